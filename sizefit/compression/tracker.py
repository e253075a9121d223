"""Best-trial bookkeeping for one solve call."""

from typing import Optional

from .result import TrialResult


class BestResultTracker:
    """Remembers the trial closest to the target size.

    Closeness is |size_bytes - target_bytes|. On a tie the trial with the
    higher quality wins.
    """

    def __init__(self, target_bytes: int):
        self.target_bytes = target_bytes
        self._best: Optional[TrialResult] = None

    @property
    def best(self) -> Optional[TrialResult]:
        return self._best

    def update(self, trial: TrialResult) -> bool:
        """Offer a trial.

        Returns:
            True if the trial became the new best
        """
        if self._best is None or self._is_better(trial, self._best):
            self._best = trial
            return True
        return False

    def _is_better(self, candidate: TrialResult, current: TrialResult) -> bool:
        candidate_distance = candidate.distance_to(self.target_bytes)
        current_distance = current.distance_to(self.target_bytes)

        if candidate_distance != current_distance:
            return candidate_distance < current_distance
        return candidate.quality > current.quality
