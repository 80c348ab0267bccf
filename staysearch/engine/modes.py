"""Execution Strategy - mode resolution, validation and fallback decisions

요청 모드를 실행 계획(실행할 백엔드, 폴백 대상, 안내 문구)으로 바꿉니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from staysearch.backends.base import BackendName, backend_label
from staysearch.backends.result import BackendExecutionResult
from staysearch.core.config import settings
from staysearch.core.exceptions import ConfigError
from staysearch.core.logging import logger


class ExecutionMode(str, Enum):
    """실행 모드"""

    PLAYWRIGHT = "playwright"
    BROWSERBASE = "browserbase"
    REMOTE = "remote"
    DUAL = "dual"


# 듀얼 모드에서 비교할 두 백엔드
DUAL_PAIR: tuple[str, str] = (BackendName.PLAYWRIGHT.value, BackendName.BROWSERBASE.value)

# 단일 모드 폴백 순서 (1회만 시도)
FALLBACK_ORDER: dict[str, str] = {
    BackendName.PLAYWRIGHT.value: BackendName.BROWSERBASE.value,
    BackendName.BROWSERBASE.value: BackendName.PLAYWRIGHT.value,
    BackendName.REMOTE.value: BackendName.PLAYWRIGHT.value,
}

MissingConfig = Callable[[str], list[str]]


def resolve_mode(raw: Optional[str], default: Optional[str] = None) -> ExecutionMode:
    """모드 문자열 정규화. 알 수 없거나 비어 있으면 기본 모드"""
    fallback = ExecutionMode((default or settings.default_mode).strip().lower())
    if not raw:
        return fallback
    try:
        return ExecutionMode(raw.strip().lower())
    except ValueError:
        logger.warning(f"[Mode] Unknown mode '{raw}', using default '{fallback.value}'")
        return fallback


@dataclass(frozen=True)
class ExecutionPlan:
    """실행 계획

    Attributes:
        mode: 요청(해석)된 모드
        backends: 실행할 백엔드 (단일 1개, 듀얼 2개)
        fallback: 단일 모드 폴백 대상 (없으면 None)
        notes: 계획 단계 안내 문구 (듀얼 → 단일 강등 등)
    """

    mode: ExecutionMode
    backends: tuple[str, ...]
    fallback: Optional[str] = None
    notes: tuple[str, ...] = ()

    @property
    def is_dual(self) -> bool:
        return len(self.backends) == 2

    @property
    def primary(self) -> str:
        return self.backends[0]


class ExecutionStrategy:
    """실행 전략 결정

    Usage:
        plan = ExecutionStrategy.plan(mode, missing_backend_config, allow_fallback=True)
        result = await run(plan.primary)
        if plan.fallback and ExecutionStrategy.should_fallback(result):
            alt = await run(plan.fallback)
            if ExecutionStrategy.should_adopt_fallback(alt):
                result = alt
    """

    @staticmethod
    def plan(mode: ExecutionMode, missing_config: MissingConfig, allow_fallback: bool = True) -> ExecutionPlan:
        """모드 검증 후 실행 계획 생성

        Args:
            mode: 해석된 실행 모드
            missing_config: 백엔드 이름 → 누락 설정 키 목록
            allow_fallback: 단일 모드 폴백 허용 여부

        Returns:
            ExecutionPlan

        Raises:
            ConfigError: 필요한 백엔드 설정 누락 (듀얼 모드는 둘 다 누락일 때만)
        """
        if mode == ExecutionMode.DUAL:
            missing = {name: missing_config(name) for name in DUAL_PAIR}
            configured = [name for name in DUAL_PAIR if not missing[name]]

            if len(configured) == 2:
                return ExecutionPlan(mode=mode, backends=DUAL_PAIR)

            if len(configured) == 1:
                available = configured[0]
                unavailable = next(name for name in DUAL_PAIR if name != available)
                note = (
                    f"Comparison mode unavailable: {backend_label(unavailable)} is not configured, "
                    f"so only {backend_label(available)} was used."
                )
                logger.warning(f"[Mode] Dual degraded to single: {available} (missing {missing[unavailable]})")
                return ExecutionPlan(mode=mode, backends=(available,), notes=(note,))

            first = DUAL_PAIR[0]
            raise ConfigError(first, missing[first] + missing[DUAL_PAIR[1]])

        backend = mode.value
        missing_keys = missing_config(backend)
        if missing_keys:
            raise ConfigError(backend, missing_keys)

        fallback: Optional[str] = None
        if allow_fallback:
            candidate = FALLBACK_ORDER.get(backend)
            if candidate and not missing_config(candidate):
                fallback = candidate

        return ExecutionPlan(mode=mode, backends=(backend,), fallback=fallback)

    @staticmethod
    def should_fallback(result: BackendExecutionResult) -> bool:
        """결과 없음 + 오류 기록이면 폴백"""
        return result.failed

    @staticmethod
    def should_adopt_fallback(result: BackendExecutionResult) -> bool:
        """폴백 결과도 실패(결과 없음 + 오류)면 채택하지 않음"""
        return not result.failed
