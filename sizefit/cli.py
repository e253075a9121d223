"""Command-line interface: fit one or more images into a byte budget."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Column

from .compression import (
    DEFAULT_PRESET,
    SizeTargetSolver,
    SourceImage,
    get_available_formats,
    get_available_steps,
    get_encoder,
    get_preset,
)
from .compression.presets import get_preset_names
from .errors import SizeFitError
from .logger import close_logging, setup_logging
from .processor import BatchCompressor, CompressionTask, summarize
from .utils import format_size, parse_size

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sizefit",
        description="Re-encode images so each fits a target file size.",
        epilog="Examples:\n"
               "  sizefit photo.png -t 500KB -o photo.jpg\n"
               "  sizefit *.jpg -t 1.5MB -o out/ --format WEBP --preset fast\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="Image files to compress",
    )
    parser.add_argument(
        "-t", "--target",
        required=True,
        help="Target size, e.g. 500KB, 1.5MB or a byte count",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file (single input) or directory (default: ./compressed)",
    )
    parser.add_argument(
        "--format",
        default="JPEG",
        type=str.upper,
        help=f"Output format ({', '.join(get_available_formats())})",
    )
    parser.add_argument(
        "--preset",
        default=DEFAULT_PRESET,
        help=f"Search preset ({', '.join(get_preset_names())})",
    )
    parser.add_argument("--tolerance", type=float, help="Relative size tolerance, e.g. 0.02")
    parser.add_argument("--max-attempts", type=int, help="Encoder call budget")
    parser.add_argument("--min-quality", type=float, help="Quality floor (0-1)")
    parser.add_argument("--max-quality", type=float, help="Quality ceiling (0-1)")
    parser.add_argument(
        "--step",
        choices=get_available_steps(),
        help="Quality step function",
    )
    parser.add_argument(
        "--no-rescale",
        action="store_true",
        help="Never shrink pixel dimensions",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing output files",
    )
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip inputs whose output already exists",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=4,
        help="Files compressed concurrently (default: 4)",
    )
    parser.add_argument(
        "--ssim",
        action="store_true",
        help="Report SSIM quality score (requires scikit-image)",
    )
    parser.add_argument("--log-file", type=Path, help="Write a debug log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every trial")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    return {
        'tolerance_ratio': args.tolerance,
        'max_attempts': args.max_attempts,
        'min_quality': args.min_quality,
        'max_quality': args.max_quality,
        'step': args.step,
        'allow_dimension_rescale': False if args.no_rescale else None,
    }


def _is_single_file_output(args: argparse.Namespace) -> bool:
    return (
        len(args.inputs) == 1
        and args.output is not None
        and args.output.suffix != ""
        and not args.output.is_dir()
    )


async def _run_single(args: argparse.Namespace, target_bytes: int) -> int:
    """Compress one file to an explicit output path."""
    preset = get_preset(args.preset).with_overrides(**_overrides(args))
    source = SourceImage.from_path(args.inputs[0])
    request = preset.build_request(source, target_bytes)
    solver = SizeTargetSolver(get_encoder(args.format), preset.create_step())

    text_column = TextColumn(args.inputs[0].name, markup=False, table_column=Column(ratio=1))
    bar_column = BarColumn(bar_width=None, table_column=Column(ratio=5))
    with Progress(text_column, bar_column, expand=True, transient=True) as progress:
        task_id = progress.add_task('', total=100)
        outcome = await solver.solve(
            request,
            lambda percent: progress.update(task_id, completed=percent),
        )

    print(outcome.build_message(target_bytes))
    if outcome.result is None:
        return EXIT_FAILED

    output = args.output
    if outcome.attempts_used == 0 and output.suffix.lower() != args.inputs[0].suffix.lower():
        # Original bytes keep their own extension
        output = output.with_suffix(args.inputs[0].suffix)
        logger.warning(
            f"{args.inputs[0].name} is already within target; keeping its "
            f"format and writing {output.name} instead of {args.output.name}"
        )

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(outcome.result.data)
    print(
        f"{args.inputs[0]} ({format_size(source.original_size)}) -> "
        f"{output} ({format_size(outcome.result.size_bytes)}), "
        f"{outcome.reason.value}, {outcome.attempts_used} attempts"
    )
    return EXIT_OK


async def _run_batch(args: argparse.Namespace, target_bytes: int) -> int:
    """Compress every input into an output directory."""
    output_dir = args.output or Path("compressed")
    batch = BatchCompressor()
    overrides = _overrides(args)

    for filepath in args.inputs:
        batch.add_to_queue(CompressionTask(
            filepath=filepath,
            target_bytes=target_bytes,
            format=args.format,
            preset=args.preset,
            overrides=overrides,
            calculate_ssim=args.ssim,
        ))

    text_column = TextColumn("{task.description}", markup=False, table_column=Column(ratio=1))
    bar_column = BarColumn(bar_width=None, table_column=Column(ratio=5))
    with Progress(text_column, bar_column, expand=True, transient=True) as progress:
        task_id = progress.add_task('', total=batch.get_queue_size())
        results = await batch.process_batch(
            output_dir,
            lambda current, total, name: progress.update(task_id, completed=current, description=name),
            overwrite=args.overwrite,
            skip_existing=args.skip_existing,
            max_concurrency=args.jobs,
        )

    for item in results:
        if item.skipped:
            print(f"{item.filepath}: skipped")
        elif item.error:
            print(f"{item.filepath}: FAILED - {item.error}")
        else:
            line = (
                f"{item.filepath} -> {item.output_path} "
                f"({format_size(item.outcome.result.size_bytes)}, {item.outcome.reason.value})"
            )
            if item.ssim_score is not None:
                line += f", SSIM {item.ssim_score:.4f}"
            print(line)

    summary = summarize(results)
    print(
        f"Done: {summary['written']} written ({summary['target_met']} on target, "
        f"{summary['best_effort']} best effort), {summary['failed']} failed, "
        f"{summary['skipped']} skipped"
    )
    return EXIT_FAILED if summary['failed'] else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        target_bytes = parse_size(args.target)
    except ValueError as e:
        parser.error(str(e))
    if target_bytes <= 0:
        parser.error("target size must be greater than zero")
    if args.format not in get_available_formats() and args.format != 'JPG':
        parser.error(f"unsupported format {args.format}")
    if args.format == 'JPG':
        args.format = 'JPEG'
    if get_preset(args.preset) is None:
        parser.error(f"unknown preset {args.preset}")
    if args.jobs < 1:
        parser.error("--jobs must be at least 1")

    setup_logging(args.log_file, args.verbose)
    try:
        if _is_single_file_output(args):
            return asyncio.run(_run_single(args, target_bytes))
        return asyncio.run(_run_batch(args, target_bytes))
    except ValueError as e:
        # ValidationError lands here too
        logger.error(f"Invalid settings: {e}")
        return EXIT_USAGE
    except (OSError, SizeFitError) as e:
        logger.error(str(e))
        return EXIT_FAILED
    finally:
        close_logging()


if __name__ == "__main__":
    sys.exit(main())
