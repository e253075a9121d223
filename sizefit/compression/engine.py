"""Size-target solver: drives a black-box encoder toward a byte budget."""

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from typing import Any, Optional, Tuple

from ..errors import EncodeError
from .params import ParameterSpace
from .progress import CancellationToken, MonotonicProgress, ProgressCallback
from .result import (
    CompressionOutcome,
    CompressionRequest,
    OutcomeReason,
    SearchPhase,
    SearchState,
    SourceImage,
    TrialResult,
)
from .steps import StepFunction, WeightedStep
from .tracker import BestResultTracker

logger = logging.getLogger(__name__)


class SizeTargetSolver:
    """Iterative quality search with an optional dimension-rescaling pass.

    Features:
    - Pluggable step function (bisection or weighted)
    - Recovers from individual encoder failures
    - Falls back to shrinking pixel dimensions when the quality floor is
      not enough
    - Keeps the closest trial so an exhausted budget still returns output
    - Cooperative cancellation between encoder calls

    One solver may serve many concurrent solve() calls. All search state
    lives in the call.
    """

    def __init__(self, encoder: Any, step: Optional[StepFunction] = None):
        """Initialize solver.

        Args:
            encoder: Object with an encode(image, quality, scale) method, or
                such a callable itself. May be synchronous (run in a worker
                thread) or a coroutine function.
            step: Step function, defaults to WeightedStep
        """
        self.encoder = encoder
        self.step = step if step is not None else WeightedStep()

    async def solve(
        self,
        request: CompressionRequest,
        progress_callback: ProgressCallback = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompressionOutcome:
        """Re-encode request.source as close to request.target_bytes as possible.

        Args:
            request: Validated compression request
            progress_callback: Receives integer percentages, never decreasing
            cancel_token: Checked before every encoder call

        Returns:
            CompressionOutcome. Missing the target is reported through the
            outcome reason, never raised.

        Raises:
            ValidationError: If the request is malformed
        """
        request.validate()
        start_time = time.time()
        progress = MonotonicProgress(progress_callback)
        source = request.source
        target = request.target_bytes

        if target >= source.original_size:
            logger.info(
                f"Source is {source.original_size} bytes, already within "
                f"target {target}; keeping original"
            )
            progress.report(100)
            return CompressionOutcome(
                result=self._original_trial(source, request.max_quality),
                reason=OutcomeReason.EXACT,
                attempts_used=0,
            )

        space = ParameterSpace(request.min_quality, request.max_quality)
        tracker = BestResultTracker(target)
        state = self._initial_state(request, space)

        logger.debug(
            f"Solving for {target} bytes from {source.original_size} bytes "
            f"({source.width}x{source.height}), step={self.step.name}, "
            f"budget={request.max_attempts}, tolerance={request.tolerance_ratio}"
        )

        while state.attempts_used < request.max_attempts:
            if cancel_token is not None and cancel_token.cancelled:
                logger.info(f"Solve cancelled after {state.attempts_used} attempts")
                return CompressionOutcome(
                    result=tracker.best,
                    reason=OutcomeReason.BEST_EFFORT,
                    attempts_used=state.attempts_used,
                    phase=state.phase,
                    cancelled=True,
                )

            try:
                trial = await self._run_trial(source, state.quality, state.scale)
            except EncodeError as e:
                logger.warning(
                    f"Attempt {state.attempts_used + 1} failed at quality "
                    f"{state.quality:.3f}, scale {state.scale:.3f}: {e}"
                )
                state = self._after_failure(state, request, space)
                progress.report_attempts(state.attempts_used, request.max_attempts)
                continue

            tracker.update(trial)
            state = replace(
                state,
                attempts_used=state.attempts_used + 1,
                successes=state.successes + 1,
            )
            progress.report_attempts(state.attempts_used, request.max_attempts)

            logger.debug(
                f"Attempt {state.attempts_used}: quality {trial.quality:.4f}, "
                f"scale {trial.scale:.4f} -> {trial.size_bytes} bytes "
                f"({trial.size_bytes / target:.3f}x target)"
            )

            ratio = trial.size_bytes / target
            if abs(1 - ratio) <= request.tolerance_ratio:
                reason = (
                    OutcomeReason.EXACT
                    if trial.size_bytes == target
                    else OutcomeReason.WITHIN_TOLERANCE
                )
                self._log_outcome(reason, trial, state, start_time)
                return CompressionOutcome(
                    result=trial,
                    reason=reason,
                    attempts_used=state.attempts_used,
                    phase=state.phase,
                )

            state, stop = self._advance(state, trial, request, space)
            if stop:
                break

        if state.successes == 0:
            logger.info(f"All {state.attempts_used} attempts failed; infeasible")
            return CompressionOutcome(
                result=None,
                reason=OutcomeReason.INFEASIBLE,
                attempts_used=state.attempts_used,
                phase=state.phase,
            )

        self._log_outcome(OutcomeReason.BEST_EFFORT, tracker.best, state, start_time)
        return CompressionOutcome(
            result=tracker.best,
            reason=OutcomeReason.BEST_EFFORT,
            attempts_used=state.attempts_used,
            phase=state.phase,
        )

    def _initial_state(self, request: CompressionRequest, space: ParameterSpace) -> SearchState:
        scale = 1.0
        if request.precompute_scale:
            scale = min(1.0, space.rescale_factor(request.target_bytes, request.source.original_size))

        return SearchState(
            low=request.min_quality,
            high=request.max_quality,
            quality=space.clamp_quality(request.initial_quality),
            scale=scale,
        )

    def _after_failure(
        self,
        state: SearchState,
        request: CompressionRequest,
        space: ParameterSpace,
    ) -> SearchState:
        """Step toward the permissive end after a failed encode."""
        quality = space.clamp_quality(state.quality - request.failure_decrement)
        return replace(
            state,
            quality=quality,
            low=min(state.low, quality),
            attempts_used=state.attempts_used + 1,
        )

    def _advance(
        self,
        state: SearchState,
        trial: TrialResult,
        request: CompressionRequest,
        space: ParameterSpace,
    ) -> Tuple[SearchState, bool]:
        """Narrow the bracket around the last trial and pick the next quality.

        Returns:
            Tuple of (next_state, stop)
        """
        target = request.target_bytes
        oversized = trial.size_bytes > target

        if oversized:
            narrowed = replace(state, high=state.quality)
        else:
            narrowed = replace(state, low=state.quality)

        if narrowed.width < request.collapse_epsilon:
            if (
                state.phase is SearchPhase.BISECTING
                and request.allow_dimension_rescale
                and oversized
            ):
                rescaled = self._start_rescaling(narrowed, trial, request, space)
                if rescaled is not None:
                    return rescaled, False

            logger.debug(
                f"Quality bracket collapsed at {state.quality:.4f} "
                f"in phase {state.phase.value}"
            )
            return narrowed, True

        quality = space.clamp_quality(self.step.next_quality(narrowed, trial.size_bytes, target))
        quality = max(narrowed.low, min(narrowed.high, quality))
        return replace(narrowed, quality=quality), False

    def _start_rescaling(
        self,
        state: SearchState,
        trial: TrialResult,
        request: CompressionRequest,
        space: ParameterSpace,
    ) -> Optional[SearchState]:
        """Shrink dimensions and restart the quality search.

        Returns:
            New state, or None when the image cannot get any smaller
        """
        source = request.source
        scale = state.scale * space.rescale_factor(request.target_bytes, trial.size_bytes)
        new_size = space.scaled_size(source.width, source.height, scale)

        if new_size == trial.dimensions:
            logger.debug(f"Cannot shrink below {trial.width}x{trial.height}")
            return None

        logger.info(
            f"Quality floor gives {trial.size_bytes} bytes for target "
            f"{request.target_bytes}; rescaling {trial.width}x{trial.height} "
            f"-> {new_size[0]}x{new_size[1]}"
        )
        return replace(
            state,
            low=request.min_quality,
            high=request.max_quality,
            quality=space.clamp_quality(request.initial_quality),
            scale=scale,
            phase=SearchPhase.DIMENSION_RESCALING,
        )

    async def _run_trial(self, source: SourceImage, quality: float, scale: float) -> TrialResult:
        width, height = ParameterSpace.scaled_size(source.width, source.height, scale)
        data = await self._encode(source.image, quality, scale)

        if not data:
            raise EncodeError("Encoder returned no data", quality=quality, scale=scale)

        return TrialResult(
            quality=quality,
            scale=scale,
            data=bytes(data),
            size_bytes=len(data),
            width=width,
            height=height,
        )

    async def _encode(self, image: Any, quality: float, scale: float) -> bytes:
        """Call the encoder without blocking the event loop."""
        encode = getattr(self.encoder, "encode", self.encoder)

        if inspect.iscoroutinefunction(encode):
            data = await encode(image, quality, scale)
        else:
            data = await asyncio.to_thread(encode, image, quality, scale)

        if inspect.isawaitable(data):
            data = await data
        return data

    @staticmethod
    def _original_trial(source: SourceImage, quality: float) -> TrialResult:
        return TrialResult(
            quality=quality,
            scale=1.0,
            data=source.data,
            size_bytes=source.original_size,
            width=source.width,
            height=source.height,
        )

    @staticmethod
    def _log_outcome(
        reason: OutcomeReason,
        trial: TrialResult,
        state: SearchState,
        start_time: float,
    ) -> None:
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"{reason.value}: {trial.size_bytes} bytes at quality "
            f"{trial.quality:.3f}, {trial.width}x{trial.height} after "
            f"{state.attempts_used} attempts ({elapsed_ms} ms)"
        )


async def solve(
    request: CompressionRequest,
    encoder: Any,
    step: Optional[StepFunction] = None,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancellationToken] = None,
) -> CompressionOutcome:
    """Convenience wrapper around SizeTargetSolver(encoder, step).solve()."""
    solver = SizeTargetSolver(encoder, step)
    return await solver.solve(request, progress_callback, cancel_token)
