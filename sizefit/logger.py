"""
Logging setup for sizefit
Console output through rich, optional log file (overwritten on each run)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

LOGGER_NAME = "sizefit"


def _write_header(log_path: Path) -> None:
    """Write log file header"""
    with open(log_path, 'w', encoding='utf-8') as f:
        f.write("=" * 70 + "\n")
        f.write("SIZEFIT - LOG FILE\n")
        f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"Log file: {log_path}\n")
        f.write("=" * 70 + "\n\n")


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        log_file: Optional path; the file is overwritten and gets every
            DEBUG record regardless of verbosity
        verbose: Show DEBUG records (one per encoder trial) on the console

    Returns:
        The configured "sizefit" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = RichHandler(show_path=False, markup=False)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(console)

    if log_file is not None:
        log_path = Path(log_file)
        _write_header(log_path)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def close_logging() -> None:
    """Detach and close every handler on the package logger"""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
