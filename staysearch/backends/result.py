"""Backend Execution Result Standard Format

백엔드 1회 실행(connect → search → enrich → disconnect)의 표준 결과 형식입니다.
"""

from dataclasses import dataclass, field
from typing import Any

from staysearch.schemas.search_schema import Listing


@dataclass
class BackendExecutionResult:
    """백엔드 실행 결과

    Attributes:
        backend: 백엔드 이름 ("playwright" | "browserbase" | "remote")
        listings: 백엔드가 만든 순서 그대로의 숙소 목록
        time_to_first_result_ms: 디스패치부터 첫 결과 확보까지 (ms)
        total_time_ms: 디스패치부터 완료/실패까지 (ms)
        errors: 실행 중 누적된 실패 메시지 (append-only)
    """

    backend: str
    listings: list[Listing] = field(default_factory=list)
    time_to_first_result_ms: float = 0.0
    total_time_ms: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.listings

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def failed(self) -> bool:
        """결과 없음 + 오류 기록 (fallback 트리거 조건)"""
        return self.is_empty and self.has_errors

    @property
    def produced(self) -> bool:
        return not self.is_empty

    @classmethod
    def failure(cls, backend: str, error: str, elapsed_ms: float) -> "BackendExecutionResult":
        """실행 시작 전/연결 단계에서 실패한 결과 생성

        Args:
            backend: 백엔드 이름
            error: 오류 메시지
            elapsed_ms: 소요 시간 (밀리초)

        Returns:
            BackendExecutionResult: listings가 비어있고 오류 1건이 기록된 결과
        """
        return cls(
            backend=backend,
            listings=[],
            time_to_first_result_ms=elapsed_ms,
            total_time_ms=elapsed_ms,
            errors=[error],
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "listings": [listing.model_dump(mode="json", by_alias=True) for listing in self.listings],
            "timeToFirstResult": round(self.time_to_first_result_ms),
            "totalTime": round(self.total_time_ms),
            "errors": list(self.errors),
        }
