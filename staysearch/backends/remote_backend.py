"""Remote Chromium backend (CDP attach)"""

from __future__ import annotations

from typing import Optional

from staysearch.backends.base import BackendName
from staysearch.backends.page_backend import PageScrapingBackend
from staysearch.backends.playwright import BrowserSession, attach_over_cdp
from staysearch.core.config import settings
from staysearch.core.exceptions import BackendConnectionError


class RemoteBrowserBackend(PageScrapingBackend):
    """이미 실행 중인 Chromium(--remote-debugging-port)에 붙는 백엔드"""

    name = BackendName.REMOTE.value

    def __init__(self, cdp_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.cdp_url = cdp_url or settings.remote_cdp_url

    async def _open_session(self) -> BrowserSession:
        if not self.cdp_url:
            raise BackendConnectionError(self.name, "remote CDP URL is not configured")
        return await attach_over_cdp(self.cdp_url)
