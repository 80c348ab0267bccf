"""Sliding-window rate limiter (per client)

클라이언트별 요청 시각을 deque로 보관하고, 검사할 때마다 윈도우 밖 항목을 제거합니다.
읽기-수정-쓰기는 asyncio.Lock 아래에서만 수행합니다.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from dataclasses import dataclass
from time import monotonic
from typing import Callable, Optional

from staysearch.core.config import settings
from staysearch.core.logging import logger


@dataclass(frozen=True)
class RateLimitDecision:
    """허용/거부 결과 (예외가 아닌 구조화된 신호)

    Attributes:
        allowed: 허용 여부
        remaining: 현재 윈도우에서 남은 허용 횟수
        retry_after_s: 거부 시 가장 오래된 요청이 만료될 때까지 (초, 올림)
    """

    allowed: bool
    remaining: int
    retry_after_s: int = 0


class SlidingWindowRateLimiter:
    """클라이언트별 슬라이딩 윈도우 제한기

    프로세스당 1개를 만들어 주입하며, 테스트에서는 reset()으로 초기화합니다.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        window_s: Optional[float] = None,
        clock: Callable[[], float] = monotonic,
    ):
        self.limit = limit or settings.rate_limit_requests
        self.window_s = window_s or settings.rate_limit_window_s
        if self.limit <= 0 or self.window_s <= 0:
            raise ValueError("limit and window_s must be positive")

        self._clock = clock
        self._lock = asyncio.Lock()
        self._windows: dict[str, deque[float]] = {}
        self._last_sweep: Optional[float] = None

    @staticmethod
    def _prune(window: deque[float], cutoff: float) -> None:
        while window and window[0] <= cutoff:
            window.popleft()

    def _sweep(self, now: float) -> None:
        """윈도우가 빈 클라이언트 항목 제거 (윈도우당 최대 1회)"""
        if self._last_sweep is not None and now - self._last_sweep < self.window_s:
            return
        self._last_sweep = now

        cutoff = now - self.window_s
        idle = []
        for client_id, window in self._windows.items():
            self._prune(window, cutoff)
            if not window:
                idle.append(client_id)
        for client_id in idle:
            del self._windows[client_id]
        if idle:
            logger.debug(f"[RateLimit] Swept {len(idle)} idle clients ({len(self._windows)} tracked)")

    async def check(self, client_id: str) -> RateLimitDecision:
        """요청 1건 허용 여부 검사 (허용 시 기록)

        기록이 남지 않은 클라이언트는 맵에 남기지 않습니다.
        """
        async with self._lock:
            now = self._clock()
            self._sweep(now)

            window = self._windows.get(client_id)
            if window is not None:
                self._prune(window, now - self.window_s)

            if window and len(window) >= self.limit:
                retry_after = max(1, math.ceil(window[0] + self.window_s - now))
                logger.warning(f"[RateLimit] Rejected client={client_id}, retry_after={retry_after}s")
                return RateLimitDecision(allowed=False, remaining=0, retry_after_s=retry_after)

            if window is None:
                window = self._windows[client_id] = deque()
            window.append(now)
            return RateLimitDecision(allowed=True, remaining=self.limit - len(window))

    async def reset(self, client_id: Optional[str] = None) -> None:
        async with self._lock:
            if client_id is None:
                self._windows.clear()
            else:
                self._windows.pop(client_id, None)

    def tracked_clients(self) -> int:
        return len(self._windows)
