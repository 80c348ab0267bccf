"""백엔드 공통 동작 테스트 (브라우저 없음: Fake 세션/페이지 주입)."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from staysearch.backends.base import BaseBackend, SearchBackend, backend_label
from staysearch.backends.browserbase_backend import BrowserbaseBackend
from staysearch.backends.factory import create_backend
from staysearch.backends.page_backend import PageScrapingBackend
from staysearch.backends.playwright.browser import build_launch_args, context_options
from staysearch.backends.playwright_backend import PlaywrightBackend
from staysearch.backends.remote_backend import RemoteBrowserBackend
from staysearch.core.exceptions import (
    BackendConnectionError,
    BackendNotConnectedError,
    BlockedException,
    EnrichmentError,
    UnsupportedModeException,
)
from staysearch.schemas.search_schema import ListingDetail
from tests.fixtures import BLOCKED_HTML, DETAIL_HTML, SEARCH_HTML, make_listings, make_request


class StubBackend(BaseBackend):
    name = "playwright"

    def __init__(self, listings=None, fail_connect=False, detail_failures=None, **kwargs):
        kwargs.setdefault("detail_retry_delay_s", 0)
        super().__init__(**kwargs)
        self.listings = listings or []
        self.fail_connect = fail_connect
        self.detail_failures = dict(detail_failures or {})
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.detail_attempts: dict[str, int] = {}
        self.in_flight = 0
        self.peak = 0

    async def _connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise OSError("port in use")

    async def _disconnect(self) -> None:
        self.disconnect_calls += 1
        raise RuntimeError("already closed")

    async def _search(self, request):
        return list(self.listings)

    async def _fetch_details(self, url: str) -> ListingDetail:
        self.detail_attempts[url] = self.detail_attempts.get(url, 0) + 1
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            if self.detail_failures.get(url, 0) >= self.detail_attempts[url]:
                raise RuntimeError(f"detail failed: {url}")
            return ListingDetail(title=url, url=url)
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio
async def test_connect_is_idempotent():
    backend = StubBackend()

    await backend.connect()
    await backend.connect()

    assert backend.connect_calls == 1
    assert backend.is_connected() is True
    assert isinstance(backend, SearchBackend)


@pytest.mark.asyncio
async def test_connect_failure_wrapped():
    backend = StubBackend(fail_connect=True)

    with pytest.raises(BackendConnectionError) as exc_info:
        await backend.connect()

    assert exc_info.value.error_code == "BACKEND_CONNECTION_FAILED"
    assert backend.is_connected() is False


@pytest.mark.asyncio
async def test_disconnect_never_raises_and_is_idempotent():
    backend = StubBackend()
    await backend.connect()

    await backend.disconnect()
    await backend.disconnect()

    assert backend.disconnect_calls == 1
    assert backend.is_connected() is False


@pytest.mark.asyncio
async def test_operations_require_connection():
    backend = StubBackend()

    with pytest.raises(BackendNotConnectedError):
        await backend.search_airbnb(make_request())
    assert await backend.health_check() is False


@pytest.mark.asyncio
async def test_search_capped_at_native_result_count():
    backend = StubBackend(listings=make_listings([100 + i for i in range(15)]))
    await backend.connect()

    assert len(await backend.search_airbnb(make_request())) == 10


@pytest.mark.asyncio
async def test_multiple_details_retry_and_omit_failures():
    urls = [f"https://www.airbnb.com/rooms/{i}" for i in range(6)]
    backend = StubBackend(detail_failures={urls[1]: 1, urls[4]: 5}, detail_concurrency=2, detail_retry_attempts=2)
    await backend.connect()

    details = await backend.get_multiple_listing_details(urls)

    assert [d.url for d in details] == [u for u in urls if u != urls[4]]
    assert backend.detail_attempts[urls[1]] == 2
    assert backend.detail_attempts[urls[4]] == 2
    assert backend.peak <= 2


def test_backend_labels():
    assert backend_label("browserbase") == "Browserbase"
    assert backend_label("mystery") == "mystery"


# ============================================================================
# PageScrapingBackend (Fake page)
# ============================================================================

class FakePage:
    def __init__(self, pages: dict[str, str]):
        self.pages = pages
        self.url = None
        self.closed = False

    def set_default_timeout(self, timeout):
        self.timeout = timeout

    async def route(self, pattern, handler):
        self.route_pattern = pattern

    async def goto(self, url, wait_until=None, timeout=None):
        self.url = url

    async def wait_for_selector(self, selector, timeout=None):
        raise TimeoutError(selector)

    async def content(self) -> str:
        for prefix, html in self.pages.items():
            if self.url.startswith(prefix):
                return html
        return "<html><body></body></html>"

    async def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, pages: dict[str, str]):
        self.pages = pages
        self.opened: list[FakePage] = []
        self.closed = False

    def is_connected(self) -> bool:
        return not self.closed

    async def new_page(self) -> FakePage:
        page = FakePage(self.pages)
        self.opened.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakePageBackend(PageScrapingBackend):
    name = "remote"

    def __init__(self, pages: dict[str, str]):
        super().__init__(detail_retry_delay_s=0)
        self.session = FakeSession(pages)
        self.released = 0

    async def _open_session(self):
        return self.session

    async def _release_session(self) -> None:
        self.released += 1


@pytest.mark.asyncio
async def test_page_backend_search_parses_results():
    backend = FakePageBackend({"https://www.airbnb.com/s/homes": SEARCH_HTML})
    await backend.connect()

    listings = await backend.search_airbnb(make_request())

    assert [l.title for l in listings] == ["Shinjuku loft", "Shibuya studio", "Asakusa house"]
    assert all(page.closed for page in backend.session.opened)
    assert await backend.health_check() is True


@pytest.mark.asyncio
async def test_page_backend_blocked_search_raises():
    backend = FakePageBackend({"https://www.airbnb.com/s/homes": BLOCKED_HTML})
    await backend.connect()

    with pytest.raises(BlockedException):
        await backend.search_airbnb(make_request())


@pytest.mark.asyncio
async def test_page_backend_empty_search_is_not_failure():
    backend = FakePageBackend({"https://www.airbnb.com/s/homes": "<html><body><p>No exact matches</p></body></html>"})
    await backend.connect()

    assert await backend.search_airbnb(make_request()) == []


@pytest.mark.asyncio
async def test_page_backend_details():
    backend = FakePageBackend({"https://www.airbnb.com/rooms/111": DETAIL_HTML})
    await backend.connect()

    detail = await backend.get_listing_details("https://www.airbnb.com/rooms/111")
    with pytest.raises(EnrichmentError):
        await backend.get_listing_details("https://www.airbnb.com/rooms/404")

    assert detail.title == "Shinjuku loft"
    assert len(detail.reviews) == 2


@pytest.mark.asyncio
async def test_page_backend_disconnect_closes_session_and_releases():
    backend = FakePageBackend({})
    await backend.connect()

    await backend.disconnect()

    assert backend.session.closed is True
    assert backend.released == 1
    assert backend.is_connected() is False


# ============================================================================
# Browserbase (httpx MockTransport)
# ============================================================================

def browserbase_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_browserbase_create_session_request():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "sess_1", "connectUrl": "wss://connect.browserbase.com/sess_1"})

    backend = BrowserbaseBackend(
        api_key="bb_test", project_id="proj_1", api_url="https://bb.test/v1", http_client=browserbase_client(handler)
    )

    connect_url = await backend.create_session()

    assert connect_url == "wss://connect.browserbase.com/sess_1"
    assert str(seen[0].url) == "https://bb.test/v1/sessions"
    assert seen[0].headers["X-BB-API-Key"] == "bb_test"
    assert json.loads(seen[0].content) == {"projectId": "proj_1"}


@pytest.mark.asyncio
async def test_browserbase_http_error_is_connection_error():
    backend = BrowserbaseBackend(
        api_key="bad", project_id="proj_1", http_client=browserbase_client(lambda r: httpx.Response(401))
    )

    with pytest.raises(BackendConnectionError, match="HTTP 401"):
        await backend.create_session()


@pytest.mark.asyncio
async def test_browserbase_missing_credentials():
    backend = BrowserbaseBackend(api_key=None, project_id=None)
    backend.api_key = None
    backend.project_id = None

    with pytest.raises(BackendConnectionError):
        await backend.create_session()


@pytest.mark.asyncio
async def test_browserbase_attach_failure_releases_session(monkeypatch):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/sessions"):
            return httpx.Response(201, json={"id": "sess_9", "connectUrl": "wss://connect/sess_9"})
        return httpx.Response(200, json={})

    async def failing_attach(endpoint: str):
        raise OSError("cdp refused")

    monkeypatch.setattr("staysearch.backends.browserbase_backend.attach_over_cdp", failing_attach)
    backend = BrowserbaseBackend(
        api_key="bb_test", project_id="proj_1", api_url="https://bb.test/v1", http_client=browserbase_client(handler)
    )

    with pytest.raises(BackendConnectionError):
        await backend.connect()

    assert [r.url.path for r in requests] == ["/v1/sessions", "/v1/sessions/sess_9"]
    assert json.loads(requests[1].content)["status"] == "REQUEST_RELEASE"
    assert backend.is_connected() is False


# ============================================================================
# Factory
# ============================================================================

def test_create_backend_returns_concrete_types():
    assert isinstance(create_backend("playwright"), PlaywrightBackend)
    assert isinstance(create_backend("browserbase"), BrowserbaseBackend)
    assert isinstance(create_backend("remote"), RemoteBrowserBackend)


def test_create_backend_unknown_name():
    with pytest.raises(UnsupportedModeException):
        create_backend("netscape")


@pytest.mark.asyncio
async def test_remote_backend_without_url_fails_to_connect():
    backend = RemoteBrowserBackend()
    backend.cdp_url = None

    with pytest.raises(BackendConnectionError):
        await backend.connect()


def test_launch_args_are_unique():
    args = build_launch_args()

    assert "--disable-blink-features=AutomationControlled" in args
    assert len(args) == len(set(args))


def test_context_options_use_configured_locale():
    options = context_options()

    assert options["locale"] == "en-US"
    assert "Accept-Language" in options["extra_http_headers"]
