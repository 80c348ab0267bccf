"""테스트 자산 레이어

규칙:
- 네트워크/브라우저 의존 없음
- 빌더는 유효한 기본값을 갖고, 필요한 필드만 덮어씀
"""

from .builders import make_detail, make_listing, make_listings, make_request
from .fakes import BackendRegistry, FakeBackend, FakeSummarizer
from .html import BLOCKED_HTML, DETAIL_HTML, DETAIL_JSONLD_HTML, SEARCH_HTML

__all__ = [
    "make_detail",
    "make_listing",
    "make_listings",
    "make_request",
    "BackendRegistry",
    "FakeBackend",
    "FakeSummarizer",
    "BLOCKED_HTML",
    "DETAIL_HTML",
    "DETAIL_JSONLD_HTML",
    "SEARCH_HTML",
]
