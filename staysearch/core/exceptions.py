"""커스텀 예외 정의 (Structured Exception Hierarchy)

치명적인 상황(설정 오류, 파이프라인 데드라인)만 예외로 전파하고,
백엔드 로컬 실패는 BackendExecutionResult.errors에 기록합니다.
"""
from typing import Any, Optional


_DEFAULT_USER_MESSAGE = "Sorry, something went wrong while searching. Please try again."


class StaySearchException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
        user_message: Optional[str] = None,
        retryable: bool = False,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.user_message = user_message or _DEFAULT_USER_MESSAGE
        self.retryable = retryable
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 설정 관련 예외
class ConfigError(StaySearchException):
    """선택된 모드에 필요한 백엔드 설정 누락"""
    def __init__(self, backend: str, missing: list[str], details: Optional[dict[str, Any]] = None):
        message = f"Backend '{backend}' is not configured (missing: {', '.join(missing)})"
        super().__init__(
            message,
            "CONFIG_ERROR",
            details or {"backend": backend, "missing": missing},
            user_message="The selected search backend is not configured. Please choose another mode.",
        )


class UnsupportedModeException(StaySearchException):
    """알 수 없는 백엔드 이름으로 생성을 시도한 경우"""
    def __init__(self, mode: str, details: Optional[dict[str, Any]] = None):
        message = f"Unsupported backend: {mode}"
        super().__init__(message, "UNSUPPORTED_MODE", details or {"mode": mode})


# 백엔드 관련 예외
class BackendException(StaySearchException):
    """백엔드 관련 예외의 기본 클래스"""
    def __init__(
        self,
        message: str,
        error_code: str = "BACKEND_ERROR",
        details: Optional[dict[str, Any]] = None,
        retryable: bool = True,
    ):
        super().__init__(message, error_code or "BACKEND_ERROR", details, retryable=retryable)


class BackendConnectionError(BackendException):
    """백엔드 연결 실패"""
    def __init__(self, backend: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to connect to {backend}: {reason}"
        super().__init__(message, "BACKEND_CONNECTION_FAILED", details or {"backend": backend, "reason": reason})


class BackendNotConnectedError(BackendException):
    """connect() 전에 작업을 호출한 경우"""
    def __init__(self, backend: str):
        super().__init__(f"{backend} backend is not connected", "BACKEND_NOT_CONNECTED", {"backend": backend}, retryable=False)


class SearchError(BackendException):
    """검색 단계 실패 (재시도 예산 소진 포함)"""
    def __init__(self, backend: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Search failed on {backend}: {reason}"
        super().__init__(message, "SEARCH_FAILED", details or {"backend": backend, "reason": reason})


class EnrichmentError(BackendException):
    """상세 수집/요약 실패 (항상 비치명적)"""
    def __init__(self, target: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Enrichment failed for {target}: {reason}"
        super().__init__(message, "ENRICHMENT_FAILED", details or {"target": target, "reason": reason})


class BlockedException(BackendException):
    """봇 감지/차단 예외"""
    def __init__(self, source: str, details: Optional[dict[str, Any]] = None):
        message = f"Request blocked by {source} (possible bot detection)"
        super().__init__(message, "BLOCKED", details or {"source": source})


class BrowserException(BackendException):
    """브라우저 실행/세션 생성 오류"""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


# 파이프라인 예외
class PipelineTimeoutError(StaySearchException):
    """파이프라인 전체 데드라인 초과"""
    def __init__(self, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Search pipeline timed out after {timeout_s}s"
        super().__init__(
            message,
            "PIPELINE_TIMEOUT",
            details or {"timeout_s": timeout_s},
            user_message="The search took too long. Please try again in a moment.",
            retryable=True,
        )


# 유효성 검증 관련 예외
class InvalidSearchRequest(StaySearchException):
    """검색 요청 유효성 검증 실패"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(
            message,
            "VALIDATION_ERROR",
            details or {"field": field, "reason": reason},
            user_message="Some search details look invalid. Please check your dates, guests and budget.",
        )
