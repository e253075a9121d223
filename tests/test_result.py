import pytest

from sizefit.compression import (
    CompressionOutcome,
    OutcomeReason,
    SearchState,
    SourceImage,
    TrialResult,
)
from sizefit.errors import ValidationError

from .fakes import make_request


def _trial(size=1024 * 1024, quality=0.8, width=100, height=50):
    return TrialResult(
        quality=quality,
        scale=1.0,
        data=b"x",
        size_bytes=size,
        width=width,
        height=height,
    )


def test_request_rejects_empty_source():
    source = SourceImage(image=None, width=0, height=10, original_size=100)

    with pytest.raises(ValidationError):
        make_request(source=source, target_bytes=50)


def test_request_is_immutable():
    request = make_request()

    with pytest.raises(AttributeError):
        request.target_bytes = 1


def test_search_state_width():
    assert SearchState(low=0.25, high=0.75, quality=0.5).width == 0.5


def test_trial_distance_and_size():
    trial = _trial(size=1024 * 1024)

    assert trial.distance_to(1000) == 1024 * 1024 - 1000
    assert trial.size_mb == 1.0
    assert trial.dimensions == (100, 50)


def test_success_flag():
    assert CompressionOutcome(_trial(), OutcomeReason.EXACT, 1).success
    assert CompressionOutcome(_trial(), OutcomeReason.WITHIN_TOLERANCE, 3).success
    assert not CompressionOutcome(_trial(), OutcomeReason.BEST_EFFORT, 15).success
    assert not CompressionOutcome(None, OutcomeReason.INFEASIBLE, 15).success


def test_messages():
    target = 1024 * 1024

    kept = CompressionOutcome(_trial(size=512 * 1024), OutcomeReason.EXACT, 0)
    hit = CompressionOutcome(_trial(), OutcomeReason.WITHIN_TOLERANCE, 4)
    missed = CompressionOutcome(_trial(size=2 * target), OutcomeReason.BEST_EFFORT, 15)
    failed = CompressionOutcome(None, OutcomeReason.INFEASIBLE, 15)
    cancelled = CompressionOutcome(None, OutcomeReason.BEST_EFFORT, 0, cancelled=True)

    assert kept.build_message(target).startswith("Already under target")
    assert hit.build_message(target) == "Compressed to 1.00 MB at quality 80"
    assert "Could not reach target 1.00 MB" in missed.build_message(target)
    assert "100x50" in missed.build_message(target)
    assert failed.build_message(target) == "Could not encode image in 15 attempts"
    assert cancelled.build_message(target).startswith("Cancelled")
