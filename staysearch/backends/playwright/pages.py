"""Playwright page 설정/보조 함수.

Page 생성 후 라우팅(리소스 차단), 기본 타임아웃 등 공통 설정을 분리합니다.
"""

from __future__ import annotations

from playwright.async_api import Page

from staysearch.core.config import settings
from staysearch.core.logging import logger


_BLOCKED_RESOURCE_TYPES = {"media", "font"}
_BLOCKED_EXTENSIONS = (".mp4", ".webm", ".woff", ".woff2", ".ttf", ".otf")

SEARCH_READY_SELECTOR = '[data-testid="card-container"], a[href*="/rooms/"]'
DETAIL_READY_SELECTOR = "h1"


async def configure_page(page: Page) -> Page:
    page.set_default_timeout(settings.backend_timeout_ms)

    # 이미지 src는 파싱에 필요하므로 이미지 요청은 막지 않고 미디어/폰트만 차단
    async def _route_handler(route, request):
        try:
            url = (request.url or "").lower()
            if request.resource_type in _BLOCKED_RESOURCE_TYPES or url.endswith(_BLOCKED_EXTENSIONS):
                await route.abort()
                return
            await route.continue_()
        except Exception as e:
            # 페이지가 이미 닫힌 경우 등
            logger.debug(f"[Playwright] Route handling skipped: {type(e).__name__}")

    try:
        await page.route("**/*", _route_handler)
    except Exception as e:
        logger.debug(f"[Playwright] Resource blocking unavailable: {type(e).__name__}: {e}")

    return page


async def load_html(page: Page, url: str, ready_selector: str) -> str:
    """URL로 이동 후 ready selector를 잠깐 기다리고 HTML 반환

    selector 대기 실패는 무시합니다 (빈 결과 페이지도 정상 응답).
    """
    await page.goto(url, wait_until="domcontentloaded", timeout=settings.backend_timeout_ms)
    try:
        await page.wait_for_selector(ready_selector, timeout=min(settings.backend_timeout_ms, 15000))
    except Exception as e:
        logger.debug(f"[Playwright] Ready selector not found for {url}: {type(e).__name__}")
    return await page.content()
