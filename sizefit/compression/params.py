"""Quality clamping and dimension rescaling helpers."""

import math
from typing import Tuple


class ParameterSpace:
    """Valid parameter ranges for one request.

    Quality is clamped into [min_quality, max_quality]. Scale factors are
    linear (applied to each axis), so a factor of 0.5 quarters the pixel
    count.
    """

    def __init__(self, min_quality: float, max_quality: float):
        self.min_quality = min_quality
        self.max_quality = max_quality

    def clamp_quality(self, quality: float) -> float:
        """Clamp a proposed quality into the allowed range."""
        return max(self.min_quality, min(self.max_quality, quality))

    @staticmethod
    def scaled_size(width: int, height: int, scale: float) -> Tuple[int, int]:
        """Calculate pixel dimensions for a linear scale factor.

        Args:
            width: Original width
            height: Original height
            scale: Linear scale factor (> 0)

        Returns:
            (width, height) tuple, never smaller than 1x1
        """
        if scale <= 0:
            raise ValueError(f"scale must be > 0, got {scale}")

        if scale == 1.0:
            return (width, height)

        new_width = max(1, int(round(width * scale)))
        new_height = max(1, int(round(height * scale)))
        return (new_width, new_height)

    @staticmethod
    def rescale_factor(target_bytes: int, observed_bytes: int) -> float:
        """Linear scale expected to bring observed_bytes down to target_bytes.

        Encoded size grows roughly with pixel area, so the per-axis factor is
        the square root of the byte ratio.
        """
        if observed_bytes <= 0:
            return 1.0
        return math.sqrt(target_bytes / observed_bytes)
