"""헬스 체크 엔드포인트"""
from datetime import datetime

from fastapi import APIRouter

from staysearch import __version__
from staysearch.backends.base import BackendName
from staysearch.backends.factory import is_backend_configured
from staysearch.core.config import settings
from staysearch.core.exceptions import UnsupportedModeException
from staysearch.core.logging import logger
from staysearch.engine.modes import DUAL_PAIR, ExecutionMode, resolve_mode
from staysearch.schemas.api_schema import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    헬스 체크 엔드포인트

    - 백엔드별 설정 완료 여부 (브라우저를 실제로 띄우지는 않음)
    - 기본 모드가 실행 가능한지
    """
    backends: dict[str, bool] = {}
    for name in BackendName:
        try:
            backends[name.value] = is_backend_configured(name.value)
        except UnsupportedModeException as e:
            logger.warning(f"[Health] {e}")
            backends[name.value] = False

    default_mode = resolve_mode(settings.default_mode)
    required = (
        DUAL_PAIR if default_mode == ExecutionMode.DUAL else (default_mode.value,)
    )
    ready = [backends.get(name, False) for name in required]
    status = "ok" if all(ready) else ("degraded" if any(backends.values()) else "error")

    return HealthResponse(
        status=status,
        timestamp=datetime.now(),
        version=__version__,
        default_mode=default_mode.value,
        backends=backends,
        summarizer_enabled=bool(settings.llm_api_key),
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "숙소 검색 비교 서비스",
        "version": __version__,
        "docs": "/docs",
    }
