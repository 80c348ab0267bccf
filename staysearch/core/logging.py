"""로깅 설정

- 단일 "staysearch" 로거, stdout 핸들러
- ENVIRONMENT=production 이면 DEBUG를 막고 짧은 포맷 사용
- 로그에 남기기 전 비밀값 마스킹 헬퍼
"""
import logging
import os
import sys

from staysearch.core.config import settings

LOGGER_NAME = "staysearch"

_PRODUCTION_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_DEVELOPMENT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development") == "production"


def _resolve_level(raw: str) -> int:
    """설정 문자열 → logging 레벨 (production에서는 최소 INFO)"""
    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        level = logging.INFO
    if _is_production():
        level = max(level, logging.INFO)
    return level


def setup_logging(name: str = LOGGER_NAME) -> logging.Logger:
    """로거 초기화. 이미 핸들러가 있으면 레벨만 갱신"""
    logger = logging.getLogger(name)
    level = _resolve_level(settings.log_level)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        fmt = _PRODUCTION_FORMAT if _is_production() else _DEVELOPMENT_FORMAT
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)

    return logger


logger = setup_logging()


_SENSITIVE_MARKERS = ("password", "token", "api_key", "apikey", "secret", "x-bb-api-key")


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """민감 정보 제거 후 로깅용 문자열 반환

    Args:
        value: 로깅할 문자열
        max_length: 최대 길이

    Returns:
        마스킹/절단된 문자열
    """
    if not value:
        return "[empty]"

    lowered = value.lower()
    result = "***" if any(marker in lowered for marker in _SENSITIVE_MARKERS) else value

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result


def mask_secret(secret: str | None) -> str:
    """API 키 등 비밀값을 앞 4자리만 남기고 마스킹"""
    if not secret:
        return "[unset]"
    if len(secret) <= 4:
        return "****"
    return secret[:4] + "****"
