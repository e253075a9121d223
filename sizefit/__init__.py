"""Fit images into a byte budget by searching encoder quality and dimensions"""

from .errors import SizeFitError, ValidationError, EncodeError
from .compression import (
    CompressionOutcome,
    CompressionRequest,
    OutcomeReason,
    SizeTargetSolver,
    SourceImage,
    TrialResult,
    solve,
)
from .processor import BatchCompressor, CompressionTask, BatchItemResult

__version__ = "1.0.0"

__all__ = [
    'SizeFitError',
    'ValidationError',
    'EncodeError',
    'CompressionOutcome',
    'CompressionRequest',
    'OutcomeReason',
    'SizeTargetSolver',
    'SourceImage',
    'TrialResult',
    'solve',
    'BatchCompressor',
    'CompressionTask',
    'BatchItemResult',
]
