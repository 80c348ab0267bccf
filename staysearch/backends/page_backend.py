"""Page scraping backend - 공통 navigate & parse 로직

브라우저 세션을 여는 방식(로컬 launch / 클라우드 세션 / CDP attach)만
하위 클래스가 결정하고, 검색/상세 수집은 이 클래스가 담당합니다.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional

from staysearch.backends.base import BaseBackend
from staysearch.backends.parsing import (
    build_search_url,
    is_blocked_html,
    parse_listing_detail,
    parse_search_results,
)
from staysearch.backends.playwright import BrowserSession, configure_page, load_html
from staysearch.backends.playwright.pages import DETAIL_READY_SELECTOR, SEARCH_READY_SELECTOR
from staysearch.core.exceptions import BlockedException, EnrichmentError
from staysearch.core.logging import logger
from staysearch.schemas.search_schema import Listing, ListingDetail, SearchRequest


class PageScrapingBackend(BaseBackend):
    """브라우저 페이지를 열어 HTML을 가져오고 parsing 모듈로 변환하는 백엔드"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._session: Optional[BrowserSession] = None

    @abstractmethod
    async def _open_session(self) -> BrowserSession:
        ...

    async def _release_session(self) -> None:
        """세션 종료 후 추가 정리 (클라우드 세션 반납 등)"""
        return None

    async def _connect(self) -> None:
        self._session = await self._open_session()

    async def _disconnect(self) -> None:
        session, self._session = self._session, None
        try:
            if session is not None:
                await session.close()
        finally:
            await self._release_session()

    async def _health_check(self) -> bool:
        return self._session is not None and self._session.is_connected()

    async def _search(self, request: SearchRequest) -> list[Listing]:
        url = build_search_url(request)
        logger.info(f"[{self.label}] Searching: location='{request.location}', guests={request.guests}")

        html = await self._load(url, SEARCH_READY_SELECTOR)
        listings = parse_search_results(html, request.currency, self.native_result_count)

        if not listings and is_blocked_html(html):
            raise BlockedException(self.label)

        logger.info(f"[{self.label}] Search parsed {len(listings)} listings")
        return listings

    async def _fetch_details(self, url: str) -> ListingDetail:
        html = await self._load(url, DETAIL_READY_SELECTOR)
        detail = parse_listing_detail(html, url)

        if not detail.title and not detail.price_per_night and not detail.image_url:
            if is_blocked_html(html):
                raise BlockedException(self.label)
            raise EnrichmentError(url, "detail page had no usable content")
        return detail

    async def _load(self, url: str, ready_selector: str) -> str:
        if self._session is None:
            raise EnrichmentError(url, "browser session is not open")
        page = await configure_page(await self._session.new_page())
        try:
            return await load_html(page, url, ready_selector)
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug(f"[{self.label}] Page close failed: {type(e).__name__}: {e}")
