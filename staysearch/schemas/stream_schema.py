"""스트리밍 업데이트 스키마"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from staysearch.schemas.search_schema import CamelModel


class UpdateType(str, Enum):
    """스트림 업데이트 종류"""

    TEXT = "text"  # 어시스턴트 메시지 조각
    STATUS = "status"  # 진행 상태 문구
    RESULTS = "results"  # 최종 결과 (단일 랭킹 목록 또는 듀얼 비교)
    ERROR = "error"  # 오류 배너
    DONE = "done"  # 완료 마커 (중복 수신 허용)


class StreamUpdate(CamelModel):
    """호출자에게 전달되는 타입 있는 업데이트 한 건"""
    type: UpdateType
    text: Optional[str] = None
    status: Optional[str] = None
    results: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    retry_after: Optional[int] = Field(None, ge=0, description="재시도까지 대기 시간 (초)")

    @classmethod
    def text_update(cls, text: str) -> "StreamUpdate":
        return cls(type=UpdateType.TEXT, text=text)

    @classmethod
    def status_update(cls, status: str) -> "StreamUpdate":
        return cls(type=UpdateType.STATUS, status=status)

    @classmethod
    def results_update(cls, results: dict[str, Any]) -> "StreamUpdate":
        return cls(type=UpdateType.RESULTS, results=results)

    @classmethod
    def error_update(cls, error: str, retry_after: Optional[int] = None) -> "StreamUpdate":
        return cls(type=UpdateType.ERROR, error=error, retry_after=retry_after)

    @classmethod
    def done(cls) -> "StreamUpdate":
        return cls(type=UpdateType.DONE)

    @property
    def is_done(self) -> bool:
        return self.type == UpdateType.DONE
