"""Ranking / Post-processing Engine

백엔드 원본 목록 → 중복 제거 → 유효/무효 분리 → 예산 경로 또는 무예산 경로 → 최대 N개.

- 예산 경로: [min, max] 필터, 부족하면 max 완화(엄격히 늘어날 때만 채택),
  목표가(중간값 또는 단일 경계)와의 거리순 정렬
- 무예산 경로: 가격 내림차순 상위 anchor + 나머지 중앙의 mid 구간으로 가격대 분산
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from staysearch.core.config import settings
from staysearch.core.logging import logger
from staysearch.engine.result import PostProcessResult
from staysearch.schemas.search_schema import Listing, SearchContext, SearchRequest


@dataclass(frozen=True)
class RankingConfig:
    """랭킹 튜닝 값 (기본값은 settings에서)"""

    max_results: int = 10
    high_price_count: int = 5
    mid_price_count: int = 5
    budget_relax_percent: int = 20

    def __post_init__(self):
        if self.max_results <= 0:
            raise ValueError("max_results must be positive")
        if self.high_price_count < 0 or self.mid_price_count < 0 or self.budget_relax_percent < 0:
            raise ValueError("ranking counts and relax percent must be >= 0")

    @classmethod
    def from_settings(cls) -> "RankingConfig":
        return cls(
            max_results=settings.max_results,
            high_price_count=settings.high_price_count,
            mid_price_count=settings.mid_price_count,
            budget_relax_percent=settings.budget_relax_percent,
        )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def dedupe_listings(listings: Iterable[Listing]) -> list[Listing]:
    """identity key 기준 중복 제거 (첫 등장 유지, 순서 보존)"""
    seen: set[str] = set()
    unique: list[Listing] = []
    for listing in listings:
        key = listing.identity_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(listing)
    return unique


def partition_by_price(listings: Iterable[Listing]) -> tuple[list[Listing], list[Listing]]:
    valid: list[Listing] = []
    invalid: list[Listing] = []
    for listing in listings:
        (valid if listing.is_valid_price else invalid).append(listing)
    return valid, invalid


def target_price(budget_min: Optional[float], budget_max: Optional[float]) -> float:
    if budget_min is not None and budget_max is not None:
        return (budget_min + budget_max) / 2
    if budget_min is not None:
        return budget_min
    if budget_max is not None:
        return budget_max
    raise ValueError("target_price requires at least one budget bound")


def _within(listings: list[Listing], low: float, high: float) -> list[Listing]:
    return [l for l in listings if low <= l.price_per_night <= high]


def _pad(selected: list[Listing], filler: list[Listing], limit: int) -> list[Listing]:
    if len(selected) >= limit:
        return selected[:limit]
    return selected + filler[: limit - len(selected)]


def _select_with_budget(
    valid: list[Listing],
    invalid: list[Listing],
    request: SearchRequest,
    config: RankingConfig,
    notes: list[str],
) -> tuple[list[Listing], bool]:
    low = request.budget_min if request.budget_min is not None else 0.0
    high = request.budget_max if request.budget_max is not None else math.inf

    filtered = _within(valid, low, high)
    relaxed = False

    if (
        len(filtered) < config.max_results
        and request.budget_max is not None
        and config.budget_relax_percent > 0
    ):
        relaxed_max = round_half_up(request.budget_max * (100 + config.budget_relax_percent) / 100)
        relaxed_filtered = _within(valid, low, relaxed_max)
        # 엄격히 늘어날 때만 채택
        if len(relaxed_filtered) > len(filtered):
            logger.info(
                f"[Ranking] Budget relaxed: max {request.budget_max:g} -> {relaxed_max} "
                f"({len(filtered)} -> {len(relaxed_filtered)} listings)"
            )
            filtered = relaxed_filtered
            relaxed = True
            notes.append(
                f"Relaxed max budget by {config.budget_relax_percent}% "
                f"(to {relaxed_max} {request.currency}) to surface more options."
            )

    target = target_price(request.budget_min, request.budget_max)
    ranked = sorted(filtered, key=lambda l: abs(l.price_per_night - target))
    return _pad(ranked[: config.max_results], invalid, config.max_results), relaxed


def _select_without_budget(
    valid: list[Listing],
    invalid: list[Listing],
    config: RankingConfig,
) -> list[Listing]:
    by_price = sorted(valid, key=lambda l: l.price_per_night, reverse=True)

    selected = list(by_price[: config.high_price_count])
    chosen = {l.identity_key for l in selected}

    remaining = by_price[config.high_price_count:]
    mid_start = max(0, (len(remaining) - config.mid_price_count) // 2)
    for listing in remaining[mid_start: mid_start + config.mid_price_count]:
        if listing.identity_key not in chosen:
            selected.append(listing)
            chosen.add(listing.identity_key)

    for listing in by_price:
        if len(selected) >= config.max_results:
            break
        if listing.identity_key not in chosen:
            selected.append(listing)
            chosen.add(listing.identity_key)

    return _pad(selected[: config.max_results], invalid, config.max_results)


def post_process_listings(
    listings: Iterable[Listing],
    request: SearchRequest,
    config: Optional[RankingConfig] = None,
    notes: Optional[list[str]] = None,
) -> PostProcessResult:
    """백엔드 원본 목록을 최종 랭킹 목록으로 변환

    Args:
        listings: 한 백엔드의 원본 목록
        request: 검색 요청
        config: 랭킹 설정 (기본: settings)
        notes: 앞 단계(폴백 등)에서 생성된 안내 문구. 복사 후 이어서 기록

    Returns:
        PostProcessResult: 최대 max_results개의 목록 + 컨텍스트 + 안내 문구
    """
    config = config or RankingConfig.from_settings()
    notes = list(notes or [])

    unique = dedupe_listings(listings)
    valid, invalid = partition_by_price(unique)

    relaxed = False
    if request.has_budget:
        selected, relaxed = _select_with_budget(valid, invalid, request, config, notes)
    else:
        selected = _select_without_budget(valid, invalid, config)

    logger.debug(
        f"[Ranking] in={len(unique)} valid={len(valid)} invalid={len(invalid)} "
        f"out={len(selected)} budget={request.has_budget} relaxed={relaxed}"
    )

    return PostProcessResult(
        listings=selected,
        context=SearchContext(
            location=request.location,
            check_in=request.check_in,
            check_out=request.check_out,
            had_budget=request.has_budget,
            budget_relaxed=relaxed,
        ),
        notes=notes,
    )
