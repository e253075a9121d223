"""Exception types raised by sizefit."""

from typing import Optional


class SizeFitError(Exception):
    """Base class for all sizefit errors."""


class ValidationError(SizeFitError, ValueError):
    """A compression request is malformed.

    Raised eagerly, before any encoder call is made.
    """


class EncodeError(SizeFitError):
    """A single encoder trial failed.

    The solver recovers from these locally and retries with adjusted
    parameters. They only become visible as an ``INFEASIBLE`` outcome when
    every attempt of a run fails.
    """

    def __init__(
        self,
        message: str,
        quality: Optional[float] = None,
        scale: Optional[float] = None,
    ):
        super().__init__(message)
        self.quality = quality
        self.scale = scale
