"""Solver presets: built-in search profiles and user presets stored as JSON."""

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .result import CompressionRequest, SourceImage
from .steps import StepFunction, get_step

# Presets file location (next to the package)
PRESETS_FILE = Path(__file__).parent.parent.parent / "sizefit_presets.json"


@dataclass(frozen=True)
class SolverPreset:
    """Tunable search settings applied to a CompressionRequest.

    Attributes:
        max_attempts: Encoder call budget
        tolerance_ratio: Acceptable relative deviation from target
        min_quality: Quality floor (0-1)
        max_quality: Quality ceiling (0-1)
        initial_quality: First quality tried
        allow_dimension_rescale: Shrink dimensions when quality is not enough
        precompute_scale: Start at sqrt(target / original) scale
        step: Step function name (bisect, weighted)
    """
    max_attempts: int = 15
    tolerance_ratio: float = 0.02
    min_quality: float = 0.05
    max_quality: float = 1.0
    initial_quality: float = 0.7
    allow_dimension_rescale: bool = True
    precompute_scale: bool = False
    step: str = "weighted"

    def build_request(self, source: SourceImage, target_bytes: int) -> CompressionRequest:
        """Create a request for source using these settings."""
        return CompressionRequest(
            source=source,
            target_bytes=target_bytes,
            tolerance_ratio=self.tolerance_ratio,
            max_attempts=self.max_attempts,
            min_quality=self.min_quality,
            max_quality=self.max_quality,
            allow_dimension_rescale=self.allow_dimension_rescale,
            initial_quality=self.initial_quality,
            precompute_scale=self.precompute_scale,
        )

    def create_step(self) -> StepFunction:
        step = get_step(self.step)
        if step is None:
            raise ValueError(f"Unknown step function: {self.step}")
        return step

    def with_overrides(self, **overrides: Any) -> "SolverPreset":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolverPreset":
        """Build a preset from JSON data, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


BUILTIN_PRESETS: Dict[str, SolverPreset] = {
    # Long, tight search starting high
    "precise": SolverPreset(
        max_attempts=50,
        tolerance_ratio=0.02,
        min_quality=0.05,
        initial_quality=0.9,
        step="weighted",
    ),
    # Resize toward the target first, then bisect quality
    "balanced": SolverPreset(
        max_attempts=15,
        tolerance_ratio=0.05,
        min_quality=0.1,
        initial_quality=0.7,
        precompute_scale=True,
        step="bisect",
    ),
    "fast": SolverPreset(
        max_attempts=12,
        tolerance_ratio=0.05,
        min_quality=0.1,
        initial_quality=0.7,
        step="weighted",
    ),
}

DEFAULT_PRESET = "precise"


def load_presets(presets_file: Optional[Path] = None) -> Dict[str, SolverPreset]:
    """
    Load user presets from JSON file.

    Args:
        presets_file: Override for the presets file location

    Returns:
        Dictionary mapping preset name to SolverPreset (empty if the file is
        missing or unreadable)
    """
    presets_file = presets_file or PRESETS_FILE
    if not presets_file.exists():
        return {}

    try:
        with open(presets_file, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (json.JSONDecodeError, IOError):
        return {}

    if not isinstance(raw, dict):
        return {}

    presets = {}
    for name, data in raw.items():
        if not isinstance(data, dict):
            continue
        try:
            presets[name] = SolverPreset.from_dict(data)
        except TypeError:
            continue
    return presets


def save_presets(presets: Dict[str, SolverPreset], presets_file: Optional[Path] = None) -> bool:
    """
    Save user presets to JSON file.

    Args:
        presets: Dictionary mapping preset name to SolverPreset
        presets_file: Override for the presets file location

    Returns:
        True if saved successfully
    """
    presets_file = presets_file or PRESETS_FILE
    try:
        with open(presets_file, 'w', encoding='utf-8') as f:
            json.dump({name: p.to_dict() for name, p in presets.items()}, f, indent=2)
        return True
    except IOError:
        return False


def add_preset(name: str, preset: SolverPreset, presets_file: Optional[Path] = None) -> bool:
    """
    Add or replace a user preset.

    Built-in names cannot be overridden.

    Returns:
        True if added successfully
    """
    if name in BUILTIN_PRESETS:
        return False

    presets = load_presets(presets_file)
    presets[name] = preset
    return save_presets(presets, presets_file)


def remove_preset(name: str, presets_file: Optional[Path] = None) -> bool:
    """
    Remove a user preset.

    Returns:
        True if removed successfully
    """
    presets = load_presets(presets_file)
    if name in presets:
        del presets[name]
        return save_presets(presets, presets_file)
    return False


def get_preset_names(presets_file: Optional[Path] = None) -> List[str]:
    """
    Get list of all preset names, built-ins first.
    """
    user_names = [n for n in load_presets(presets_file) if n not in BUILTIN_PRESETS]
    return list(BUILTIN_PRESETS.keys()) + user_names


def get_preset(name: str, presets_file: Optional[Path] = None) -> Optional[SolverPreset]:
    """
    Look up a preset by name.

    Returns:
        SolverPreset or None if not found
    """
    if name in BUILTIN_PRESETS:
        return BUILTIN_PRESETS[name]
    return load_presets(presets_file).get(name)
