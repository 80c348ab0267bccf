"""Bounded Enrichment Pool - fixed-concurrency async map

min(K, N)개의 워커가 공유 커서에서 항목을 하나씩 가져가 mapper를 실행합니다.
완료 순서와 무관하게 결과는 입력 인덱스 순서로 저장됩니다.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from staysearch.core.logging import logger


T = TypeVar("T")
R = TypeVar("R")


async def bounded_map(
    items: Sequence[T],
    mapper: Callable[[T], Awaitable[Optional[R]]],
    concurrency: int = 3,
) -> list[Optional[R]]:
    """동시성 제한 map

    Args:
        items: 입력 항목
        mapper: 항목별 비동기 함수. "결과 없음"은 None으로 반환
        concurrency: 최대 동시 실행 수 (K)

    Returns:
        list[Optional[R]]: 입력과 같은 길이/순서의 결과 (결과 없음은 None)

    Raises:
        ValueError: concurrency < 1
        Exception: mapper가 던진 예외 (나머지 워커는 취소됨)
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1 (got {concurrency})")

    total = len(items)
    results: list[Optional[R]] = [None] * total
    if total == 0:
        return results

    cursor = 0

    async def _worker() -> None:
        nonlocal cursor
        while cursor < total:
            # 단일 이벤트 루프: 검사와 증가 사이에 await가 없으므로 원자적
            index = cursor
            cursor += 1
            results[index] = await mapper(items[index])

    worker_count = min(concurrency, total)
    logger.debug(f"[Pool] Mapping {total} items with {worker_count} workers")

    workers = [asyncio.create_task(_worker()) for _ in range(worker_count)]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    return results


def compact(results: Sequence[Optional[R]]) -> list[R]:
    """None(결과 없음) 제거, 순서 유지"""
    return [r for r in results if r is not None]
