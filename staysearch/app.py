"""FastAPI 앱 팩토리"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staysearch.api import health_router, search_router
from staysearch.backends.base import BackendName
from staysearch.backends.factory import missing_backend_config
from staysearch.core.config import settings
from staysearch.core.logging import logger


def log_backend_status() -> int:
    """백엔드별 설정 상태를 로그로 남기고 사용 가능한 백엔드 수 반환"""
    available = 0
    for name in BackendName:
        missing = missing_backend_config(name.value)
        if missing:
            logger.info(f"[App] Backend '{name.value}' disabled (missing: {', '.join(missing)})")
        else:
            available += 1
            logger.info(f"[App] Backend '{name.value}' configured")
    return available


@asynccontextmanager
async def lifespan(app: FastAPI):
    available = log_backend_status()
    if available == 0:
        logger.warning("[App] No search backend is configured; searches will fail")
    logger.info(f"[App] Ready (default mode: {settings.default_mode}, backends: {available})")
    yield
    logger.info("[App] Shutting down")


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(search_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
