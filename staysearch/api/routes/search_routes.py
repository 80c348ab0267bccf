"""Search Routes - HTTP → Engine 위임

HTTP Layer는 요청 변환과 응답 직렬화만 수행합니다.
- GET  /api/v1/search/stream : SSE 스트림 (text/status/results/error/done)
- POST /api/v1/search        : 최종 결과만 JSON으로 반환
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from staysearch.core.exceptions import (
    ConfigError,
    InvalidSearchRequest,
    PipelineTimeoutError,
    StaySearchException,
)
from staysearch.core.logging import logger, sanitize_for_log
from staysearch.engine.orchestrator import SearchOrchestrator
from staysearch.schemas.api_schema import SearchApiRequest, SearchApiResponse
from staysearch.schemas.search_schema import IntentResult, SearchRequest
from staysearch.services.rate_limiter import SlidingWindowRateLimiter
from staysearch.services.sse import encode_stream
from staysearch.services.stream_service import RATE_LIMIT_MESSAGE, SearchStreamService
from staysearch.services.summarizer import create_summarizer

router = APIRouter(prefix="/api/v1", tags=["search"])

CLIENT_ID_HEADER = "X-Client-Id"

# 싱글톤 서비스
_rate_limiter: Optional[SlidingWindowRateLimiter] = None
_orchestrator: Optional[SearchOrchestrator] = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """SlidingWindowRateLimiter 싱글톤 (프로세스 공용 상태)"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter


def get_orchestrator() -> SearchOrchestrator:
    """SearchOrchestrator 싱글톤

    백엔드 인스턴스는 요청마다 factory로 새로 만들어집니다.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SearchOrchestrator(summarizer=create_summarizer())
    return _orchestrator


def get_stream_service(
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    rate_limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> SearchStreamService:
    return SearchStreamService(orchestrator, rate_limiter)


def resolve_client_id(request: Request) -> str:
    """X-Client-Id 헤더 → 원격 주소 → "anonymous" """
    header = (request.headers.get(CLIENT_ID_HEADER) or "").strip()
    if header:
        return header[:128]
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def _first_error(e: ValidationError) -> InvalidSearchRequest:
    error = e.errors()[0] if e.errors() else {}
    field = ".".join(str(part) for part in error.get("loc", ())) or "request"
    return InvalidSearchRequest(field, error.get("msg", "invalid value"))


@router.get("/search/stream")
async def stream_search(
    request: Request,
    location: str = Query(..., min_length=1, max_length=200),
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    guests: int = Query(2, ge=1),
    budget_min: Optional[float] = Query(None, alias="budgetMin", ge=0),
    budget_max: Optional[float] = Query(None, alias="budgetMax", ge=0),
    currency: str = Query("USD"),
    mode: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    allow_fallback: bool = Query(True, alias="allowFallback"),
    stream_service: SearchStreamService = Depends(get_stream_service),
):
    """스트리밍 검색 (SSE)

    교차 필드 검증 실패(체크아웃 ≤ 체크인 등)는 HTTP 오류가 아니라
    스트림 안의 error 이벤트로 전달됩니다.
    """
    client_id = resolve_client_id(request)
    logger.info(f"[API] Stream search: client={client_id}, location='{sanitize_for_log(location)}', mode={mode}")

    try:
        intent = IntentResult.completed(
            SearchRequest(
                location=location,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                budget_min=budget_min,
                budget_max=budget_max,
                currency=currency,
            )
        )
    except ValidationError as e:
        invalid = _first_error(e)
        logger.warning(f"[API] Invalid search request: {invalid}")
        intent = IntentResult.error(invalid.user_message)

    updates = stream_service.stream(
        intent,
        client_id,
        mode=mode,
        model=model,
        allow_fallback=allow_fallback,
    )
    return StreamingResponse(
        encode_stream(updates),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/search", response_model=SearchApiResponse)
async def search(
    body: SearchApiRequest,
    request: Request,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    rate_limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """비스트리밍 검색

    Flow:
        1. rate limit 검사 (거부 시 429 + Retry-After)
        2. Engine에 위임 (mode 해석 → 백엔드 실행 → 랭킹/평가)
        3. 결과 payload를 그대로 반환
    """
    client_id = resolve_client_id(request)
    decision = await rate_limiter.check(client_id)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(decision.retry_after_s)},
        )

    logger.info(
        f"[API] Search request: client={client_id}, "
        f"location='{sanitize_for_log(body.request.location)}', mode={body.mode}"
    )

    try:
        outcome = await orchestrator.search(
            body.request,
            mode=body.mode,
            allow_fallback=body.allow_fallback,
            model=body.model,
        )
    except ConfigError as e:
        logger.warning(f"[API] Configuration error: {e}")
        raise HTTPException(status_code=400, detail=e.user_message)
    except PipelineTimeoutError as e:
        logger.warning(f"[API] {e}")
        raise HTTPException(status_code=504, detail=e.user_message)
    except StaySearchException as e:
        logger.error(f"[API] Search failed: {e}")
        raise HTTPException(status_code=500, detail=e.user_message)
    except Exception as e:
        logger.error(f"[API] Unexpected error: {type(e).__name__}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Search failed")

    return SearchApiResponse(status="success", data=outcome.to_payload())
