"""Batch fit-to-size processing and queue management"""

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from PIL import Image

from .compression import (
    BUILTIN_PRESETS,
    DEFAULT_PRESET,
    CancellationToken,
    CompressionOutcome,
    EncoderOptions,
    OutcomeReason,
    SizeTargetSolver,
    SolverPreset,
    SourceImage,
    calculate_ssim_inmemory,
    get_available_formats,
    get_encoder,
    get_preset,
)
from .errors import SizeFitError
from .utils import validate_image_file

logger = logging.getLogger(__name__)

BatchProgressCallback = Optional[Callable[[int, int, str], None]]


@dataclass
class CompressionTask:
    """A single file to fit into a byte budget."""
    filepath: Path
    target_bytes: int
    format: str = 'JPEG'
    preset: str = DEFAULT_PRESET

    # Preset field overrides (max_attempts, tolerance_ratio, ...); None values are ignored
    overrides: Dict[str, Any] = field(default_factory=dict)
    encoder_options: Optional[EncoderOptions] = None
    calculate_ssim: bool = False

    def __post_init__(self):
        """Validate task parameters."""
        if not isinstance(self.filepath, Path):
            self.filepath = Path(self.filepath)

        self.format = self.format.upper()
        if self.format == 'JPG':
            self.format = 'JPEG'
        available = get_available_formats()
        if self.format not in available:
            raise ValueError(f"Unsupported format: {self.format}. Available: {available}")

        if self.target_bytes <= 0:
            raise ValueError(f"target_bytes must be > 0, got {self.target_bytes}")

        if self.preset not in BUILTIN_PRESETS and get_preset(self.preset) is None:
            raise ValueError(f"Unknown preset: {self.preset}")

    def get_preset(self) -> SolverPreset:
        """Resolve the preset with this task's overrides applied."""
        return get_preset(self.preset).with_overrides(**self.overrides)


@dataclass
class BatchItemResult:
    """What happened to one task of a batch."""
    filepath: Path
    output_path: Optional[Path] = None
    outcome: Optional[CompressionOutcome] = None
    ssim_score: Optional[float] = None
    skipped: bool = False
    error: Optional[str] = None

    @property
    def written(self) -> bool:
        return self.output_path is not None

    @property
    def target_met(self) -> bool:
        return self.outcome is not None and self.outcome.success


class BatchCompressor:
    """Fits a queue of images into their byte budgets.

    Each task gets its own solve() call; calls run concurrently up to
    max_concurrency and share no state.
    """

    def __init__(self):
        """Initialize processor with empty queue"""
        self.queue: List[CompressionTask] = []

    def add_to_queue(self, task: CompressionTask) -> None:
        """
        Add task to processing queue.

        Args:
            task: CompressionTask to add
        """
        self.queue.append(task)

    def remove_from_queue(self, index: int) -> None:
        """
        Remove task from queue by index.

        Args:
            index: Index of task to remove
        """
        if 0 <= index < len(self.queue):
            self.queue.pop(index)

    def clear_queue(self) -> None:
        """Clear all tasks from queue"""
        self.queue.clear()

    def get_queue_size(self) -> int:
        """Get number of tasks in queue"""
        return len(self.queue)

    def _get_output_extension(self, format: str) -> str:
        """Get file extension for format"""
        encoder = get_encoder(format)
        return encoder.file_extension if encoder is not None else '.jpg'

    def get_expected_output_path(
        self,
        original_path: Path,
        output_dir: Path,
        format: str,
        target_bytes: Optional[int] = None
    ) -> Path:
        """
        Get the expected output path for a file (without collision handling).
        Keeps the original stem, extension follows the output format. A file
        already within target_bytes is copied as-is under its own name.

        Args:
            original_path: Original image file path
            output_dir: Output directory
            format: Output format (JPEG, WEBP, AVIF)
            target_bytes: Byte budget, if known

        Returns:
            Path object for expected output file
        """
        if target_bytes is not None and _fits_already(original_path, target_bytes):
            return output_dir / original_path.name
        return output_dir / f"{original_path.stem}{self._get_output_extension(format)}"

    def check_existing_files(
        self,
        filepaths: List[Path],
        output_dir: Path,
        format: str,
        target_bytes: Optional[int] = None
    ) -> List[Path]:
        """
        Check which output files already exist.

        Args:
            filepaths: List of input file paths
            output_dir: Output directory
            format: Output format
            target_bytes: Byte budget; inputs already within it map to their own name

        Returns:
            List of paths that already exist in output directory
        """
        existing = []
        output_dir = Path(output_dir)

        if not output_dir.exists():
            return existing

        for filepath in filepaths:
            expected_path = self.get_expected_output_path(filepath, output_dir, format, target_bytes)
            if expected_path.exists():
                existing.append(expected_path)

        return existing

    def _generate_output_path(
        self,
        expected_path: Path,
        overwrite: bool = False
    ) -> Path:
        """
        Resolve collisions for an output path.

        Args:
            expected_path: Desired output path
            overwrite: If True, return path even if file exists

        Returns:
            Path object for output file
        """
        if overwrite:
            return expected_path

        # Handle collisions by adding numeric suffix
        output_path = expected_path
        counter = 1
        while output_path.exists():
            output_path = expected_path.with_name(
                f"{expected_path.stem}_{counter}{expected_path.suffix}"
            )
            counter += 1

        return output_path

    async def process_task(
        self,
        task: CompressionTask,
        output_dir: Path,
        overwrite: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> BatchItemResult:
        """
        Solve and save a single task.

        Args:
            task: CompressionTask to process
            output_dir: Directory to save into (must exist)
            overwrite: Overwrite instead of adding a numeric suffix
            cancel_token: Stops the search early, keeping the best trial
            progress_callback: Per-file percentage sink

        Returns:
            BatchItemResult; errors are recorded, not raised
        """
        item = BatchItemResult(filepath=task.filepath)

        if not task.filepath.is_file():
            item.error = f"Image file not found: {task.filepath}"
            logger.error(item.error)
            return item
        if not await asyncio.to_thread(validate_image_file, task.filepath):
            item.error = f"Not a supported image file: {task.filepath}"
            logger.error(item.error)
            return item

        try:
            source = await asyncio.to_thread(SourceImage.from_path, task.filepath)
            preset = task.get_preset()
            request = preset.build_request(source, task.target_bytes)
            encoder = get_encoder(task.format, task.encoder_options)

            solver = SizeTargetSolver(encoder, preset.create_step())
            outcome = await solver.solve(request, progress_callback, cancel_token)
        except (OSError, ValueError, SizeFitError) as e:
            logger.error(f"{task.filepath.name}: {e}")
            item.error = str(e)
            return item

        item.outcome = outcome
        if outcome.result is None:
            item.error = outcome.build_message(task.target_bytes)
            logger.warning(f"{task.filepath.name}: {item.error}")
            return item

        kept_original = outcome.attempts_used == 0
        expected_path = self.get_expected_output_path(
            task.filepath, output_dir, task.format, task.target_bytes
        )

        output_path = self._generate_output_path(expected_path, overwrite=overwrite)
        try:
            if kept_original:
                shutil.copy2(task.filepath, output_path)
            else:
                output_path.write_bytes(outcome.result.data)
        except OSError as e:
            logger.error(f"Could not write {output_path}: {e}")
            item.error = str(e)
            return item

        item.output_path = output_path
        if task.calculate_ssim and not kept_original:
            item.ssim_score = await asyncio.to_thread(
                _ssim_for, source.image, outcome.result.data
            )

        logger.info(f"{task.filepath.name}: {outcome.build_message(task.target_bytes)}")
        return item

    async def process_batch(
        self,
        output_dir: Path,
        progress_callback: BatchProgressCallback = None,
        overwrite: bool = False,
        skip_existing: bool = False,
        max_concurrency: int = 4,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[BatchItemResult]:
        """
        Process all images in queue.

        Args:
            output_dir: Directory to save processed images
            progress_callback: Optional callback function(current, total, filename)
                               Called after each image is processed
            overwrite: If True, overwrite existing files
            skip_existing: If True, skip files that already exist
            max_concurrency: Maximum number of simultaneous solves
            cancel_token: Shared token that stops every running solve

        Returns:
            One BatchItemResult per queued task, in queue order

        Raises:
            ValueError: If output_dir is invalid
        """
        if not output_dir:
            raise ValueError("Output directory must be specified")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        # Create output directory if it doesn't exist
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        total = len(self.queue)
        semaphore = asyncio.Semaphore(max_concurrency)
        done = 0

        def _report(name: str) -> None:
            nonlocal done
            done += 1
            if progress_callback:
                progress_callback(done, total, name)

        async def _run(task: CompressionTask) -> BatchItemResult:
            expected_path = self.get_expected_output_path(
                task.filepath, output_dir, task.format, task.target_bytes
            )
            if skip_existing and expected_path.exists():
                _report(f"Skipped: {task.filepath.name}")
                return BatchItemResult(filepath=task.filepath, skipped=True)

            async with semaphore:
                item = await self.process_task(task, output_dir, overwrite, cancel_token)

            if item.error:
                _report(f"ERROR: {task.filepath.name} - {item.error}")
            else:
                _report(task.filepath.name)
            return item

        return list(await asyncio.gather(*(_run(task) for task in self.queue)))


def _fits_already(filepath: Path, target_bytes: int) -> bool:
    """True when the solver would keep the file unchanged."""
    try:
        return filepath.stat().st_size <= target_bytes
    except OSError:
        return False


def _ssim_for(original: Image.Image, encoded: bytes) -> Optional[float]:
    with Image.open(BytesIO(encoded)) as compressed:
        compressed.load()
        return calculate_ssim_inmemory(original, compressed)


def summarize(results: List[BatchItemResult]) -> Dict[str, int]:
    """Count batch results by category."""
    summary = {'written': 0, 'target_met': 0, 'best_effort': 0, 'failed': 0, 'skipped': 0}
    for item in results:
        if item.skipped:
            summary['skipped'] += 1
        elif not item.written:
            summary['failed'] += 1
        else:
            summary['written'] += 1
            if item.target_met:
                summary['target_met'] += 1
            elif item.outcome.reason is OutcomeReason.BEST_EFFORT:
                summary['best_effort'] += 1
    return summary
