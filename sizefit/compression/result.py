"""Request, trial and outcome dataclasses for size-targeted compression."""

from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from PIL import Image, ImageOps

from ..errors import ValidationError


class SearchPhase(Enum):
    """Phase of the quality search."""
    BISECTING = "bisecting"
    DIMENSION_RESCALING = "dimension_rescaling"


class OutcomeReason(Enum):
    """Why a solve call stopped.

    EXACT and WITHIN_TOLERANCE mean the target was met. BEST_EFFORT is the
    normal result of an exhausted budget. INFEASIBLE means every trial failed.
    """
    EXACT = "exact"
    WITHIN_TOLERANCE = "within_tolerance"
    BEST_EFFORT = "best_effort"
    INFEASIBLE = "infeasible"


@dataclass(frozen=True)
class SourceImage:
    """Image to be fitted into a byte budget.

    Attributes:
        image: Pixel buffer handed to the encoder (a PIL Image for the
            bundled encoders, anything a custom encoder understands)
        width: Width in pixels
        height: Height in pixels
        original_size: Size of the original encoded file in bytes
        data: Original encoded bytes, returned unchanged when no
            re-encoding is needed
        format: Original format name as reported by Pillow, if known
    """
    image: Any
    width: int
    height: int
    original_size: int
    data: bytes = field(default=b"", repr=False)
    format: Optional[str] = None

    @property
    def dimensions(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SourceImage":
        """Decode an encoded image held in memory.

        EXIF orientation is applied so encoders see upright pixels.
        """
        with Image.open(BytesIO(data)) as img:
            img.load()
            fmt = img.format
            upright = ImageOps.exif_transpose(img)

        return cls(
            image=upright,
            width=upright.width,
            height=upright.height,
            original_size=len(data),
            data=data,
            format=fmt,
        )

    @classmethod
    def from_path(cls, filepath: Union[str, Path]) -> "SourceImage":
        """Load an image file from disk."""
        return cls.from_bytes(Path(filepath).read_bytes())


@dataclass(frozen=True)
class CompressionRequest:
    """Immutable description of one fit-to-budget job.

    Attributes:
        source: Image to compress
        target_bytes: Desired output size in bytes
        tolerance_ratio: Acceptable relative deviation from target_bytes
        max_attempts: Encoder call budget
        min_quality: Lower quality bound (0-1)
        max_quality: Upper quality bound (0-1)
        allow_dimension_rescale: Shrink pixel dimensions when the quality
            floor still produces oversized output
        initial_quality: First quality tried, clamped into the bounds
        failure_decrement: Quality drop applied after a failed encode
        collapse_epsilon: Bracket width below which the search has converged
        precompute_scale: Start from sqrt(target / original_size) scale
            instead of full resolution
    """
    source: SourceImage
    target_bytes: int
    tolerance_ratio: float = 0.02
    max_attempts: int = 15
    min_quality: float = 0.05
    max_quality: float = 1.0
    allow_dimension_rescale: bool = True
    initial_quality: float = 0.7
    failure_decrement: float = 0.1
    collapse_epsilon: float = 0.001
    precompute_scale: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check request shape.

        Raises:
            ValidationError: If any field is out of range
        """
        if self.target_bytes <= 0:
            raise ValidationError(f"target_bytes must be > 0, got {self.target_bytes}")
        if self.max_attempts <= 0:
            raise ValidationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if not 0 < self.tolerance_ratio <= 1:
            raise ValidationError(
                f"tolerance_ratio must be in (0, 1], got {self.tolerance_ratio}"
            )
        if not 0 <= self.min_quality < self.max_quality <= 1:
            raise ValidationError(
                "quality bounds must satisfy 0 <= min_quality < max_quality <= 1, "
                f"got min={self.min_quality} max={self.max_quality}"
            )
        if self.failure_decrement <= 0:
            raise ValidationError(
                f"failure_decrement must be > 0, got {self.failure_decrement}"
            )
        if self.collapse_epsilon <= 0:
            raise ValidationError(
                f"collapse_epsilon must be > 0, got {self.collapse_epsilon}"
            )
        if self.source.width < 1 or self.source.height < 1:
            raise ValidationError(
                f"source dimensions must be at least 1x1, got "
                f"{self.source.width}x{self.source.height}"
            )


@dataclass(frozen=True)
class TrialResult:
    """One successful encoder call.

    Attributes:
        quality: Quality passed to the encoder
        scale: Linear scale factor passed to the encoder
        data: Encoded bytes
        size_bytes: len(data)
        width: Output width in pixels
        height: Output height in pixels
    """
    quality: float
    scale: float
    data: bytes = field(repr=False)
    size_bytes: int
    width: int
    height: int

    @property
    def dimensions(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def size_mb(self) -> float:
        """Get size in megabytes."""
        return self.size_bytes / (1024 * 1024)

    def distance_to(self, target_bytes: int) -> int:
        return abs(self.size_bytes - target_bytes)


@dataclass(frozen=True)
class SearchState:
    """Snapshot of the search, replaced wholesale after every attempt.

    low <= quality <= high holds for every instance the solver creates.
    """
    low: float
    high: float
    quality: float
    scale: float = 1.0
    attempts_used: int = 0
    successes: int = 0
    phase: SearchPhase = SearchPhase.BISECTING

    @property
    def width(self) -> float:
        """Width of the quality bracket."""
        return self.high - self.low


@dataclass(frozen=True)
class CompressionOutcome:
    """Terminal result of one solve call.

    Attributes:
        result: The returned trial (None only when nothing was encoded)
        reason: Why the search stopped
        attempts_used: Encoder calls made, failures included
        phase: Phase the search was in when it stopped
        cancelled: True if a cancellation token ended the search
    """
    result: Optional[TrialResult]
    reason: OutcomeReason
    attempts_used: int
    phase: SearchPhase = SearchPhase.BISECTING
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """True if the target was met."""
        return self.reason in (OutcomeReason.EXACT, OutcomeReason.WITHIN_TOLERANCE)

    def build_message(self, target_bytes: int) -> str:
        """Build human-readable result message."""
        target_mb = target_bytes / (1024 * 1024)

        if self.result is None:
            if self.cancelled:
                return "Cancelled before any trial succeeded"
            return f"Could not encode image in {self.attempts_used} attempts"

        size_mb = self.result.size_mb
        quality = round(self.result.quality * 100)
        if self.reason is OutcomeReason.EXACT and self.attempts_used == 0:
            return f"Already under target {target_mb:.2f} MB, kept original ({size_mb:.2f} MB)"
        if self.success:
            return f"Compressed to {size_mb:.2f} MB at quality {quality}"
        return (
            f"Could not reach target {target_mb:.2f} MB. "
            f"Best: {size_mb:.2f} MB at quality {quality}, "
            f"{self.result.width}x{self.result.height}"
        )
