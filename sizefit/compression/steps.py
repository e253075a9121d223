"""Step functions that choose the next quality inside the bracket.

Bisect: plain midpoint, predictable convergence.
Weighted: midpoint shifted by how badly the last trial missed, moving
further after an overshoot than after an equally sized undershoot.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from .result import SearchState


class StepFunction(ABC):
    """Abstract base class for quality step functions."""

    name: str

    @abstractmethod
    def next_quality(
        self,
        state: SearchState,
        size_bytes: int,
        target_bytes: int,
    ) -> float:
        """Pick the next quality to try.

        Args:
            state: Search state with the bracket already narrowed by the
                last trial
            size_bytes: Size produced by the last trial
            target_bytes: Target size in bytes

        Returns:
            Quality inside [state.low, state.high]
        """
        pass


class BisectionStep(StepFunction):
    """Always split the bracket in half."""

    name = "bisect"

    def next_quality(self, state: SearchState, size_bytes: int, target_bytes: int) -> float:
        return (state.low + state.high) / 2


class WeightedStep(StepFunction):
    """Asymmetric step biased by the relative miss of the last trial.

    The miss m is 1 - target/size after an overshoot and 1 - size/target
    after an undershoot, so it lies in [0, 1). The next quality sits at
    position t of the bracket (0 = low, 1 = high):

        overshoot:  t = 0.5 - overshoot_weight * m / 2
        undershoot: t = 0.5 + undershoot_weight * m / 2

    clamped to [min_position, 1 - min_position] so the bracket keeps
    shrinking even when the miss is huge.
    """

    name = "weighted"

    def __init__(
        self,
        overshoot_weight: float = 0.8,
        undershoot_weight: float = 0.5,
        min_position: float = 0.2,
    ):
        if not 0 < min_position <= 0.5:
            raise ValueError(f"min_position must be in (0, 0.5], got {min_position}")
        if overshoot_weight < 0 or undershoot_weight < 0:
            raise ValueError("step weights must be >= 0")

        self.overshoot_weight = overshoot_weight
        self.undershoot_weight = undershoot_weight
        self.min_position = min_position

    def position(self, size_bytes: int, target_bytes: int) -> float:
        """Relative position of the next guess inside the bracket."""
        if size_bytes > target_bytes:
            miss = 1 - target_bytes / size_bytes
            t = 0.5 - self.overshoot_weight * miss / 2
        else:
            miss = 1 - size_bytes / target_bytes
            t = 0.5 + self.undershoot_weight * miss / 2

        return max(self.min_position, min(1 - self.min_position, t))

    def next_quality(self, state: SearchState, size_bytes: int, target_bytes: int) -> float:
        t = self.position(size_bytes, target_bytes)
        return state.low + t * (state.high - state.low)


_STEPS: Dict[str, Type[StepFunction]] = {
    BisectionStep.name: BisectionStep,
    WeightedStep.name: WeightedStep,
}


def get_step(name: str) -> Optional[StepFunction]:
    """Create a step function by name.

    Args:
        name: Step name (bisect, weighted)

    Returns:
        New StepFunction instance or None if the name is unknown
    """
    step_class = _STEPS.get(name.lower())
    if step_class is None:
        return None
    return step_class()


def get_available_steps() -> List[str]:
    """Get list of registered step function names."""
    return list(_STEPS.keys())
