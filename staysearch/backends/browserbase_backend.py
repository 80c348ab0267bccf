"""Browserbase cloud browser backend

REST API로 세션을 생성한 뒤 connectUrl에 CDP로 붙습니다.
"""

from __future__ import annotations

from typing import Optional

import httpx

from staysearch.backends.base import BackendName
from staysearch.backends.page_backend import PageScrapingBackend
from staysearch.backends.playwright import BrowserSession, attach_over_cdp
from staysearch.core.config import settings
from staysearch.core.exceptions import BackendConnectionError
from staysearch.core.logging import logger


class BrowserbaseBackend(PageScrapingBackend):
    """Browserbase 세션 기반 백엔드 (API 키 + 프로젝트 ID 필요)"""

    name = BackendName.BROWSERBASE.value

    def __init__(
        self,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key or settings.browserbase_api_key
        self.project_id = project_id or settings.browserbase_project_id
        self.api_url = (api_url or settings.browserbase_api_url).rstrip("/")
        self._http_client = http_client
        self._session_id: Optional[str] = None

    def _headers(self) -> dict[str, str]:
        return {"X-BB-API-Key": self.api_key or "", "Content-Type": "application/json"}

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.backend_timeout_ms / 1000))
        return self._http_client

    async def create_session(self) -> str:
        """세션 생성 후 connectUrl 반환

        Raises:
            BackendConnectionError: 자격 증명 누락 또는 API 오류
        """
        if not self.api_key or not self.project_id:
            raise BackendConnectionError(self.name, "missing API key or project id")

        try:
            response = await self._client().post(
                f"{self.api_url}/sessions",
                headers=self._headers(),
                json={"projectId": self.project_id},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise BackendConnectionError(self.name, f"session create returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BackendConnectionError(self.name, f"session create failed: {type(e).__name__}") from e

        connect_url = data.get("connectUrl")
        if not connect_url:
            raise BackendConnectionError(self.name, "session response missing connectUrl")

        self._session_id = data.get("id")
        logger.info(f"[{self.label}] Session created: id={self._session_id}")
        return connect_url

    async def _open_session(self) -> BrowserSession:
        try:
            connect_url = await self.create_session()
            return await attach_over_cdp(connect_url)
        except Exception:
            await self._release_session()
            raise

    async def _release_session(self) -> None:
        """세션을 명시적으로 반납하고 HTTP 클라이언트 정리"""
        session_id, self._session_id = self._session_id, None
        try:
            if session_id:
                response = await self._client().post(
                    f"{self.api_url}/sessions/{session_id}",
                    headers=self._headers(),
                    json={"projectId": self.project_id, "status": "REQUEST_RELEASE"},
                )
                if response.status_code >= 400:
                    logger.warning(f"[{self.label}] Session release returned HTTP {response.status_code}")
        finally:
            if self._http_client is not None:
                await self._http_client.aclose()
                self._http_client = None
