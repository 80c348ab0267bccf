"""Budget Manager - Time Budget and Timing Checkpoints

백엔드 실행 타이밍(첫 결과/총 시간)과 파이프라인 데드라인 잔여 시간을 추적합니다.
오케스트레이터는 최소 여유 시간보다 적게 남으면 폴백을 시작하지 않습니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Callable, Optional


@dataclass
class BudgetConfig:
    """예산 설정"""

    total_budget: float = 120.0  # 전체 예산 (초)
    min_remaining: float = 0.0  # 새 단계를 시작하기 위한 최소 여유 시간 (초)

    def __post_init__(self):
        if self.total_budget <= 0:
            raise ValueError(f"total_budget must be positive (got {self.total_budget})")
        if self.min_remaining < 0:
            raise ValueError(f"min_remaining must be >= 0 (got {self.min_remaining})")


class BudgetManager:
    """시간 예산 관리자

    Usage:
        manager = BudgetManager(BudgetConfig(total_budget=120, min_remaining=10))
        manager.start()
        manager.checkpoint("first_result")
        if not manager.is_exhausted():
            ...  # 다음 단계 시작
    """

    def __init__(self, config: Optional[BudgetConfig] = None, clock: Callable[[], float] = monotonic):
        self.config = config or BudgetConfig()
        self._clock = clock
        self.start_time: Optional[float] = None
        self._checkpoints: dict[str, float] = {}

    def start(self) -> None:
        """예산 측정 시작"""
        self.start_time = self._clock()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> float:
        """체크포인트 기록

        Args:
            name: 체크포인트 이름 (예: "connected", "first_result")

        Returns:
            float: 기록된 경과 시간 (초)

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Budget not started. Call start() first.")
        elapsed = self._clock() - self.start_time
        self._checkpoints[name] = elapsed
        return elapsed

    def checkpoint_ms(self, name: str) -> Optional[float]:
        value = self._checkpoints.get(name)
        return None if value is None else value * 1000

    def elapsed(self) -> float:
        """경과 시간 (초). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return self._clock() - self.start_time

    def elapsed_ms(self) -> float:
        return self.elapsed() * 1000

    def remaining(self) -> float:
        """남은 예산 (초, 음수 없음)"""
        return max(0.0, self.config.total_budget - self.elapsed())

    def is_exhausted(self) -> bool:
        """최소 여유 시간보다 적게 남았는지 여부"""
        remaining = self.remaining()
        return remaining <= 0.0 or remaining < self.config.min_remaining
