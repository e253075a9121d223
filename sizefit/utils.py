"""Utility functions for image files and byte sizes"""

import re
from pathlib import Path
from typing import Union

from PIL import Image

# Supported image formats
SUPPORTED_FORMATS = {'.jpg', '.jpeg', '.png', '.webp', '.avif', '.gif', '.bmp', '.tif', '.tiff'}

_UNITS = {
    '': 1,
    'B': 1,
    'KB': 1024,
    'K': 1024,
    'MB': 1024 * 1024,
    'M': 1024 * 1024,
}

_SIZE_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$')


def parse_size(value: Union[str, int, float]) -> int:
    """
    Parse a human size string into bytes.

    Units are 1024-based: "500KB" is 512000 bytes, "2MB" is 2097152.

    Args:
        value: Size such as "500KB", "1.5 MB", "2048" or a number of bytes

    Returns:
        Size in bytes

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, (int, float)):
        return int(value)

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")

    number, unit = match.groups()
    multiplier = _UNITS.get(unit.upper())
    if multiplier is None:
        raise ValueError(f"Unknown size unit {unit!r} in {value!r}")

    return int(float(number) * multiplier)


def format_size(size_bytes: int) -> str:
    """Format a byte count for display."""
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} B"


def is_supported_format(filepath: Path) -> bool:
    """
    Check if file extension is supported.

    Args:
        filepath: Path to check

    Returns:
        True if extension is supported
    """
    return filepath.suffix.lower() in SUPPORTED_FORMATS


def validate_image_file(filepath: Path) -> bool:
    """
    Validate if file is a supported image.

    Args:
        filepath: Path to image file

    Returns:
        True if valid image file, False otherwise
    """
    if not filepath.is_file():
        return False

    if not is_supported_format(filepath):
        return False

    # Try to open with PIL to verify it's actually an image
    try:
        with Image.open(filepath) as img:
            img.verify()
        return True
    except (OSError, SyntaxError):
        return False
