"""Evaluator - 듀얼 모드 백엔드 채점 및 승자 선정

모든 계산은 결정적입니다 (이미 측정된 타이밍 외에 시계/난수 사용 없음).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Mapping, Optional

from staysearch.backends.result import BackendExecutionResult
from staysearch.core.logging import logger
from staysearch.engine.ranking import round_half_up
from staysearch.engine.result import TIE, Comparison, EvalMetrics, EvalResult
from staysearch.schemas.search_schema import Listing, SearchRequest


DEFAULT_TARGET_RESULT_COUNT = 10
DEFAULT_TARGET_TIME_MS = 30000

COMPLETENESS_WEIGHT = 0.4
ACCURACY_WEIGHT = 0.4
SPEED_WEIGHT = 0.2
TIE_THRESHOLD = 1.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _listing_accuracy(listing: Listing) -> float:
    present = [
        bool(listing.title and listing.title.strip()),
        bool(listing.url and listing.url.strip()),
        bool(listing.currency and listing.currency.strip()),
        listing.price_per_night > 0,
    ]
    return 100.0 * sum(present) / len(present)


def calculate_metrics(
    result: Optional[BackendExecutionResult],
    target_result_count: int = DEFAULT_TARGET_RESULT_COUNT,
    target_time_ms: float = DEFAULT_TARGET_TIME_MS,
) -> EvalMetrics:
    """completeness / accuracy / speed 계산

    Args:
        result: 백엔드 실행 결과. None이면 모두 0
        target_result_count: 만점 기준 결과 수
        target_time_ms: 만점 기준 시간 (ms)

    Returns:
        EvalMetrics: 각 0~100 정수

    Raises:
        ValueError: 기준값이 0 이하
    """
    if target_result_count <= 0 or target_time_ms <= 0:
        raise ValueError("targets must be positive")
    if result is None:
        return EvalMetrics()

    count = len(result.listings)
    completeness = min(100, round_half_up(100 * count / target_result_count))

    if count:
        accuracy = round_half_up(sum(_listing_accuracy(l) for l in result.listings) / count)
    else:
        accuracy = 0

    total = max(0.0, result.total_time_ms)
    first = max(0.0, result.time_to_first_result_ms)
    raw_speed = 0.7 * (1 - total / target_time_ms) + 0.3 * (1 - first / target_time_ms)
    speed = round_half_up(100 * _clamp(raw_speed, 0.0, 1.0))

    return EvalMetrics(
        completeness=int(_clamp(completeness, 0, 100)),
        accuracy=int(_clamp(accuracy, 0, 100)),
        speed=int(_clamp(speed, 0, 100)),
    )


def composite_score(metrics: EvalMetrics) -> float:
    return (
        metrics.completeness * COMPLETENESS_WEIGHT
        + metrics.accuracy * ACCURACY_WEIGHT
        + metrics.speed * SPEED_WEIGHT
    )


def _produced(result: Optional[BackendExecutionResult]) -> bool:
    return result is not None and result.produced


def pick_winner(
    first: tuple[str, Optional[BackendExecutionResult], EvalMetrics],
    second: tuple[str, Optional[BackendExecutionResult], EvalMetrics],
) -> str:
    """승자 선정 (두 인자를 바꾸면 결과 라벨도 대칭으로 바뀜)

    1. 한쪽만 결과를 냈으면 그쪽이 승리
    2. 둘 다 못 냈으면 무승부
    3. 그 외 composite 점수 비교, 차이가 1점 미만이면 무승부
    """
    first_name, first_result, first_metrics = first
    second_name, second_result, second_metrics = second

    first_produced = _produced(first_result)
    second_produced = _produced(second_result)

    if first_produced and not second_produced:
        return first_name
    if second_produced and not first_produced:
        return second_name
    if not first_produced and not second_produced:
        return TIE

    first_score = composite_score(first_metrics)
    second_score = composite_score(second_metrics)
    if abs(first_score - second_score) < TIE_THRESHOLD:
        return TIE
    return first_name if first_score > second_score else second_name


def build_eval_result(
    request: SearchRequest,
    results: Mapping[str, Optional[BackendExecutionResult]],
    target_result_count: int = DEFAULT_TARGET_RESULT_COUNT,
    target_time_ms: float = DEFAULT_TARGET_TIME_MS,
) -> EvalResult:
    """두 백엔드 결과로 EvalResult 생성

    Raises:
        ValueError: results가 정확히 2개가 아닌 경우
    """
    if len(results) != 2:
        raise ValueError(f"evaluation requires exactly two backends (got {len(results)})")

    metrics = {
        name: calculate_metrics(result, target_result_count, target_time_ms)
        for name, result in results.items()
    }
    (first_name, first_result), (second_name, second_result) = list(results.items())
    winner = pick_winner(
        (first_name, first_result, metrics[first_name]),
        (second_name, second_result, metrics[second_name]),
    )

    logger.info(
        f"[Evaluator] winner={winner} "
        + " ".join(
            f"{name}(c={m.completeness},a={m.accuracy},s={m.speed})" for name, m in metrics.items()
        )
    )

    return EvalResult(
        session_id=uuid.uuid4().hex,
        timestamp=datetime.now(timezone.utc).isoformat(),
        search_request=request,
        results=dict(results),
        comparison=Comparison(winner=winner, metrics=metrics),
    )
