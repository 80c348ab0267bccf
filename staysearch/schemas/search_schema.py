"""Pydantic 스키마 정의 (숙소 검색 도메인)

와이어(JSON/SSE)로 나가는 모델은 camelCase alias를 사용하며,
snake_case 필드명으로도 생성할 수 있습니다 (populate_by_name).
"""
from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


MAX_REVIEWS_PER_DETAIL = 10


class CamelModel(BaseModel):
    """camelCase 직렬화 + 불변 기본 모델"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SearchRequest(CamelModel):
    """정규화된 숙소 검색 요청 (intent collaborator가 생성)"""
    location: str = Field(..., min_length=1, max_length=200, description="목적지")
    check_in: date = Field(..., description="체크인 (YYYY-MM-DD)")
    check_out: date = Field(..., description="체크아웃 (YYYY-MM-DD)")
    guests: int = Field(2, ge=1, description="인원")
    budget_min: Optional[float] = Field(None, ge=0, description="1박 최소 예산")
    budget_max: Optional[float] = Field(None, ge=0, description="1박 최대 예산")
    currency: str = Field("USD", description="ISO 4217 통화 코드")

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("location must not be blank")
        return v.strip()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> str:
        if v is None or not str(v).strip():
            return "USD"
        code = str(v).strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"currency must be a 3-letter ISO 4217 code: {v}")
        return code

    @model_validator(mode="after")
    def validate_ranges(self) -> "SearchRequest":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValueError("budget_min must be <= budget_max")
        return self

    @property
    def has_budget(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


class Review(CamelModel):
    """리뷰 한 건"""
    text: str
    author: Optional[str] = None
    date: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)


class Listing(CamelModel):
    """검색 결과 카드 한 건

    price_per_night가 0이면 가격 파싱 실패(랭킹상 invalid)로 취급합니다.
    """
    title: str = ""
    price_per_night: float = Field(0, ge=0)
    currency: str = "USD"
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    review_summary: Optional[str] = None
    url: str = ""
    image_url: Optional[str] = None

    @property
    def identity_key(self) -> str:
        """중복 제거 키: url → 소문자 title → "unknown" """
        url = (self.url or "").strip()
        if url:
            return url
        title = (self.title or "").strip().lower()
        if title:
            return title
        return "unknown"

    @property
    def is_valid_price(self) -> bool:
        return self.price_per_night > 0


class ListingDetail(Listing):
    """상세 페이지 데이터 (enrichment 동안만 존재)"""
    reviews: list[Review] = Field(default_factory=list)
    description: Optional[str] = None
    amenities: list[str] = Field(default_factory=list)

    @field_validator("reviews")
    @classmethod
    def truncate_reviews(cls, v: list[Review]) -> list[Review]:
        return list(v[:MAX_REVIEWS_PER_DETAIL])


class SearchContext(CamelModel):
    """후처리 결과와 함께 내려가는 검색 컨텍스트 echo"""
    location: str
    check_in: date
    check_out: date
    had_budget: bool
    budget_relaxed: bool = False


class IntentResult(CamelModel):
    """intent collaborator 결과: 완성된 요청 / 추가 질문 / 오류"""
    kind: Literal["completed", "clarification", "error"]
    request: Optional[SearchRequest] = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def validate_kind(self) -> "IntentResult":
        if self.kind == "completed" and self.request is None:
            raise ValueError("completed intent requires a request")
        return self

    @classmethod
    def completed(cls, request: SearchRequest) -> "IntentResult":
        return cls(kind="completed", request=request)

    @classmethod
    def clarification(cls, question: str) -> "IntentResult":
        return cls(kind="clarification", message=question)

    @classmethod
    def error(cls, message: str) -> "IntentResult":
        return cls(kind="error", message=message)
