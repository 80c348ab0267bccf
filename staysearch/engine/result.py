"""Pipeline Result Types - Standardized Result Format

Ranking, evaluation and orchestration outputs shared by the stream/API layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from staysearch.backends.result import BackendExecutionResult
from staysearch.schemas.search_schema import Listing, SearchContext, SearchRequest


TIE = "tie"


class OutcomeKind(str, Enum):
    """파이프라인 결과 종류"""

    SINGLE = "single"
    DUAL = "dual"


@dataclass(frozen=True)
class PostProcessResult:
    """후처리(랭킹) 결과

    Attributes:
        listings: 최종 목록 (최대 max_results)
        context: 검색 컨텍스트 echo
        notes: 정책 완화/폴백 안내 문구
    """

    listings: list[Listing]
    context: SearchContext
    notes: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "listings": [listing.model_dump(mode="json", by_alias=True) for listing in self.listings],
            "searchContext": self.context.model_dump(mode="json", by_alias=True),
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class EvalMetrics:
    """백엔드별 평가 지표 (각 0~100 정수)"""

    completeness: int = 0
    accuracy: int = 0
    speed: int = 0

    def to_payload(self) -> dict[str, int]:
        return {"completeness": self.completeness, "accuracy": self.accuracy, "speed": self.speed}


@dataclass(frozen=True)
class Comparison:
    winner: str
    metrics: dict[str, EvalMetrics]

    def to_payload(self) -> dict[str, Any]:
        return {
            "winner": self.winner,
            "metrics": {name: m.to_payload() for name, m in self.metrics.items()},
        }


@dataclass(frozen=True)
class EvalResult:
    """듀얼 모드 1회 실행의 평가 결과 (불변)"""

    session_id: str
    timestamp: str
    search_request: SearchRequest
    results: dict[str, Optional[BackendExecutionResult]]
    comparison: Comparison

    def to_payload(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "searchParams": self.search_request.model_dump(mode="json", by_alias=True),
            "results": {
                name: (result.to_payload() if result is not None else None)
                for name, result in self.results.items()
            },
            "comparison": self.comparison.to_payload(),
        }


@dataclass(frozen=True)
class SingleSearchOutcome:
    """단일 백엔드 실행 결과 (폴백 반영)"""

    mode: str
    backend: str
    execution: BackendExecutionResult
    ranked: PostProcessResult

    kind: OutcomeKind = OutcomeKind.SINGLE

    @property
    def notes(self) -> list[str]:
        return self.ranked.notes

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "mode": self.mode,
            "backend": self.backend,
            **self.ranked.to_payload(),
            "timing": {
                "timeToFirstResult": round(self.execution.time_to_first_result_ms),
                "totalTime": round(self.execution.total_time_ms),
            },
            "errors": list(self.execution.errors),
        }


@dataclass(frozen=True)
class DualSearchOutcome:
    """듀얼 모드 결과: 백엔드별 랭킹 목록 + 비교"""

    mode: str
    ranked: dict[str, PostProcessResult]
    evaluation: EvalResult
    notes: list[str] = field(default_factory=list)

    kind: OutcomeKind = OutcomeKind.DUAL

    @property
    def winner(self) -> str:
        return self.evaluation.comparison.winner

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "mode": self.mode,
            "backends": {name: ranked.to_payload() for name, ranked in self.ranked.items()},
            "evaluation": self.evaluation.to_payload(),
            "notes": list(self.notes),
        }
