"""HTTP API 요청/응답 스키마"""
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from staysearch.schemas.search_schema import CamelModel, SearchRequest


class SearchApiRequest(CamelModel):
    """POST /api/v1/search 요청 바디"""
    request: SearchRequest
    mode: Optional[str] = Field(None, description="playwright | browserbase | remote | dual")
    model: Optional[str] = Field(None, description="요약기로 전달되는 모델 id")
    allow_fallback: bool = True


class SearchApiResponse(CamelModel):
    """POST /api/v1/search 응답"""
    status: str
    data: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    error_code: Optional[str] = None


class HealthResponse(CamelModel):
    """헬스 체크 응답"""
    status: str
    timestamp: datetime
    version: str
    default_mode: str
    backends: dict[str, bool] = Field(default_factory=dict, description="백엔드별 설정 완료 여부")
    summarizer_enabled: bool = False
