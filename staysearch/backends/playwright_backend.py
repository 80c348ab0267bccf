"""Local Playwright backend"""

from __future__ import annotations

from typing import Optional

from staysearch.backends.base import BackendName
from staysearch.backends.page_backend import PageScrapingBackend
from staysearch.backends.playwright import BrowserSession, launch_local_browser


class PlaywrightBackend(PageScrapingBackend):
    """로컬에서 브라우저를 직접 띄우는 백엔드 (별도 설정 불필요)"""

    name = BackendName.PLAYWRIGHT.value

    def __init__(self, headless: Optional[bool] = None, browser_type: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.headless = headless
        self.browser_type = browser_type

    async def _open_session(self) -> BrowserSession:
        return await launch_local_browser(headless=self.headless, browser_type=self.browser_type)
