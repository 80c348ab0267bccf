"""Fixed-delay retry helper

시도 간 간격은 고정이며 지수 증가(backoff)는 하지 않습니다.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from staysearch.core.logging import logger


T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 2,
    delay_s: float = 1.0,
    label: str = "operation",
) -> T:
    """operation을 최대 attempts회 실행

    Args:
        operation: 매 시도마다 새 awaitable을 만드는 팩토리
        attempts: 총 시도 횟수 (재시도 포함)
        delay_s: 시도 사이 고정 대기 시간 (초)
        label: 로그용 이름

    Returns:
        operation의 첫 성공 결과

    Raises:
        ValueError: attempts < 1
        Exception: 마지막 시도의 예외
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1 (got {attempts})")

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(f"[Retry] {label} failed (attempt {attempt}/{attempts}): {type(e).__name__}: {e}")
            if attempt < attempts:
                await asyncio.sleep(delay_s)

    assert last_error is not None
    raise last_error
