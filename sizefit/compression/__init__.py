"""Size-targeted image compression: solver, encoders and presets."""

from .result import (
    CompressionOutcome,
    CompressionRequest,
    OutcomeReason,
    SearchPhase,
    SearchState,
    SourceImage,
    TrialResult,
)
from .params import ParameterSpace
from .tracker import BestResultTracker
from .steps import BisectionStep, StepFunction, WeightedStep, get_step, get_available_steps
from .progress import CancellationToken, MonotonicProgress
from .engine import SizeTargetSolver, solve
from .encoders import (
    AVIF_AVAILABLE,
    MOZJPEG_AVAILABLE,
    SSIM_AVAILABLE,
    EncoderOptions,
    get_encoder,
    get_available_formats,
    calculate_ssim_inmemory,
)
from .presets import BUILTIN_PRESETS, DEFAULT_PRESET, SolverPreset, get_preset

__all__ = [
    'CompressionOutcome',
    'CompressionRequest',
    'OutcomeReason',
    'SearchPhase',
    'SearchState',
    'SourceImage',
    'TrialResult',
    'ParameterSpace',
    'BestResultTracker',
    'StepFunction',
    'BisectionStep',
    'WeightedStep',
    'get_step',
    'get_available_steps',
    'CancellationToken',
    'MonotonicProgress',
    'SizeTargetSolver',
    'solve',
    'EncoderOptions',
    'AVIF_AVAILABLE',
    'MOZJPEG_AVAILABLE',
    'SSIM_AVAILABLE',
    'get_encoder',
    'get_available_formats',
    'calculate_ssim_inmemory',
    'SolverPreset',
    'BUILTIN_PRESETS',
    'DEFAULT_PRESET',
    'get_preset',
]
