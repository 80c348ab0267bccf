"""Backend Capability Contract

모든 검색 백엔드가 구현해야 할 인터페이스(SearchBackend)와
공통 동작(연결 상태 관리, 상세 수집 배치 처리)을 제공하는 BaseBackend입니다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from staysearch.core.config import settings
from staysearch.core.exceptions import BackendConnectionError, BackendNotConnectedError, StaySearchException
from staysearch.core.logging import logger
from staysearch.engine.pool import bounded_map, compact
from staysearch.engine.retry import retry_async
from staysearch.schemas.search_schema import Listing, ListingDetail, SearchRequest


class BackendName(str, Enum):
    """백엔드 종류 (닫힌 집합)"""

    PLAYWRIGHT = "playwright"  # 로컬 Playwright 브라우저
    BROWSERBASE = "browserbase"  # Browserbase 클라우드 세션
    REMOTE = "remote"  # 이미 떠 있는 Chromium (CDP)


BACKEND_LABELS = {
    BackendName.PLAYWRIGHT.value: "Playwright",
    BackendName.BROWSERBASE.value: "Browserbase",
    BackendName.REMOTE.value: "Remote Chromium",
}


def backend_label(name: str) -> str:
    return BACKEND_LABELS.get(name, name)


@runtime_checkable
class SearchBackend(Protocol):
    """검색 백엔드 프로토콜

    오케스트레이터는 이 인터페이스만 참조하며 구체 타입으로 분기하지 않습니다.
    """

    @property
    def name(self) -> str:
        ...

    async def connect(self) -> None:
        """연결 (멱등). 실패 시 BackendConnectionError"""
        ...

    async def disconnect(self) -> None:
        """연결 해제 (멱등, best-effort). 실패는 로깅만"""
        ...

    def is_connected(self) -> bool:
        ...

    async def health_check(self) -> bool:
        """best-effort 상태 확인. 예외를 던지지 않음"""
        ...

    async def search_airbnb(self, request: SearchRequest) -> list[Listing]:
        """검색 실행

        Returns:
            list[Listing]: 최대 native 결과 수. 결과 없음은 빈 리스트

        Raises:
            Exception: 검색 전체 실패
        """
        ...

    async def get_listing_details(self, url: str) -> ListingDetail:
        """단일 상세 수집. 실패 시 예외"""
        ...

    async def get_multiple_listing_details(self, urls: list[str]) -> list[ListingDetail]:
        """배치 상세 수집. 부분 실패는 생략하고 예외를 던지지 않음"""
        ...


class BaseBackend(ABC):
    """공통 백엔드 구현

    하위 클래스는 _connect/_disconnect/_search/_fetch_details만 구현합니다.
    """

    name: str = "base"
    native_result_count: int = 10

    def __init__(
        self,
        detail_concurrency: Optional[int] = None,
        detail_retry_attempts: Optional[int] = None,
        detail_retry_delay_s: Optional[float] = None,
    ):
        self._connected = False
        self.detail_concurrency = detail_concurrency or settings.detail_concurrency
        self.detail_retry_attempts = detail_retry_attempts or settings.detail_retry_attempts
        self.detail_retry_delay_s = (
            settings.detail_retry_delay_s if detail_retry_delay_s is None else detail_retry_delay_s
        )

    @property
    def label(self) -> str:
        return backend_label(self.name)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        if self._connected:
            return
        try:
            await self._connect()
        except BackendConnectionError:
            raise
        except Exception as e:
            logger.error(f"[{self.label}] Connect failed: {type(e).__name__}: {e}")
            raise BackendConnectionError(self.name, f"{type(e).__name__}: {e}") from e
        self._connected = True
        logger.info(f"[{self.label}] Connected")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        try:
            await self._disconnect()
            logger.info(f"[{self.label}] Disconnected")
        except Exception as e:
            logger.warning(f"[{self.label}] Disconnect failed (ignored): {type(e).__name__}: {e}")
        finally:
            self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    async def health_check(self) -> bool:
        if not self._connected:
            return False
        try:
            return bool(await self._health_check())
        except Exception as e:
            logger.debug(f"[{self.label}] Health check failed: {type(e).__name__}: {e}")
            return False

    # ------------------------------------------------------------------
    # search / details
    # ------------------------------------------------------------------
    async def search_airbnb(self, request: SearchRequest) -> list[Listing]:
        self._ensure_connected()
        listings = await self._search(request)
        return list(listings[: self.native_result_count])

    async def get_listing_details(self, url: str) -> ListingDetail:
        self._ensure_connected()
        return await self._fetch_details(url)

    async def get_multiple_listing_details(self, urls: list[str]) -> list[ListingDetail]:
        """상세 페이지 배치 수집 (동시성 제한 + URL별 재시도)

        실패한 URL은 결과에서 생략됩니다.
        """
        logger.info(
            f"[{self.label}] Fetching listing details: urls={len(urls)}, concurrency={self.detail_concurrency}"
        )

        async def _fetch(url: str) -> Optional[ListingDetail]:
            try:
                return await retry_async(
                    lambda: self.get_listing_details(url),
                    attempts=self.detail_retry_attempts,
                    delay_s=self.detail_retry_delay_s,
                    label=f"{self.name} details",
                )
            except StaySearchException as e:
                logger.warning(f"[{self.label}] Detail fetch failed: {e.error_code} url={url}")
                return None
            except Exception as e:
                logger.warning(f"[{self.label}] Detail fetch failed: {type(e).__name__}: {e} url={url}")
                return None

        details = await bounded_map(urls, _fetch, concurrency=self.detail_concurrency)
        return compact(details)

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise BackendNotConnectedError(self.name)

    # ------------------------------------------------------------------
    # hooks
    # ------------------------------------------------------------------
    @abstractmethod
    async def _connect(self) -> None:
        ...

    @abstractmethod
    async def _disconnect(self) -> None:
        ...

    async def _health_check(self) -> bool:
        return self._connected

    @abstractmethod
    async def _search(self, request: SearchRequest) -> list[Listing]:
        ...

    @abstractmethod
    async def _fetch_details(self, url: str) -> ListingDetail:
        ...
