"""Pillow-backed lossy encoders with optional dependency support.

Provides JPEG, WebP and AVIF encoders that satisfy the solver's
encode(image, quality, scale) contract, with graceful degradation when
optional dependencies (MozJPEG, pillow-avif-plugin, scikit-image) are not
installed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional

import numpy as np
from PIL import Image

from ..errors import EncodeError
from .params import ParameterSpace

logger = logging.getLogger(__name__)


# Optional dependency checks
SSIM_AVAILABLE = False
try:
    from skimage.metrics import structural_similarity
    SSIM_AVAILABLE = True
except ImportError:
    pass

MOZJPEG_AVAILABLE = False
try:
    import mozjpeg_lossless_optimization
    MOZJPEG_AVAILABLE = True
except ImportError:
    pass

AVIF_AVAILABLE = False
try:
    import pillow_avif  # noqa: F401
    AVIF_AVAILABLE = True
except ImportError:
    pass


@dataclass
class EncoderOptions:
    """Format-specific options that stay fixed during a search.

    Attributes:
        chroma_subsampling: JPEG chroma mode (0=4:4:4, 1=4:2:2, 2=4:2:0)
        progressive: Enable progressive encoding
        use_mozjpeg: Apply MozJPEG lossless optimization
        effort: Encoder effort level (format-specific)
    """
    chroma_subsampling: int = 2
    progressive: bool = False
    use_mozjpeg: bool = True
    effort: int = 4  # AVIF/WebP effort (0-10, higher = slower/better)

    def __post_init__(self):
        """Validate options."""
        if self.chroma_subsampling not in (0, 1, 2):
            raise ValueError(f"chroma_subsampling must be 0, 1, or 2, got {self.chroma_subsampling}")
        if not 0 <= self.effort <= 10:
            raise ValueError(f"effort must be 0-10, got {self.effort}")


def to_pillow_quality(quality: float) -> int:
    """Map a [0, 1] quality onto Pillow's 1-100 scale."""
    return max(1, min(100, int(round(quality * 100))))


class BaseEncoder(ABC):
    """Abstract base class for format-specific encoders."""

    format_name: str
    file_extension: str

    def __init__(self, options: Optional[EncoderOptions] = None):
        self.options = options if options is not None else EncoderOptions()

    def encode(self, image: Image.Image, quality: float, scale: float = 1.0) -> bytes:
        """Encode image to bytes.

        Args:
            image: PIL Image to encode
            quality: Quality in [0, 1]
            scale: Linear scale factor applied before encoding

        Returns:
            Encoded image bytes

        Raises:
            EncodeError: If Pillow cannot encode the image
        """
        try:
            resized = self.resize(image, scale)
            prepared = self.prepare_image(resized)
            buffer = BytesIO()
            self._save(prepared, to_pillow_quality(quality), buffer)
            return buffer.getvalue()
        except (OSError, ValueError) as e:
            raise EncodeError(
                f"{self.format_name} encoding failed: {e}",
                quality=quality,
                scale=scale,
            ) from e

    @abstractmethod
    def _save(self, image: Image.Image, quality: int, buffer: BytesIO) -> None:
        """Write the encoded image into buffer."""
        pass

    def resize(self, image: Image.Image, scale: float) -> Image.Image:
        """Resize image by a linear scale factor (no-op at 1.0)."""
        new_size = ParameterSpace.scaled_size(image.width, image.height, scale)
        if new_size == image.size:
            return image
        return image.resize(new_size, Image.Resampling.LANCZOS)

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Prepare image for encoding (mode conversion, etc).

        Args:
            image: Source image

        Returns:
            Image ready for encoding
        """
        if image.mode == 'P':
            # Check if palette has transparency
            if 'transparency' in image.info:
                return image.convert('RGBA')
            return image.convert('RGB')
        elif image.mode not in ('RGB', 'RGBA'):
            return image.convert('RGB')
        return image


class JpegEncoder(BaseEncoder):
    """JPEG encoder with MozJPEG optimization support."""

    format_name = "JPEG"
    file_extension = ".jpg"

    def _save(self, image: Image.Image, quality: int, buffer: BytesIO) -> None:
        image.save(
            buffer,
            format='JPEG',
            quality=quality,
            optimize=True,
            progressive=self.options.progressive,
            subsampling=self.options.chroma_subsampling,
        )

        # Apply MozJPEG lossless optimization if available and requested
        if self.options.use_mozjpeg and MOZJPEG_AVAILABLE:
            try:
                optimized = mozjpeg_lossless_optimization.optimize(buffer.getvalue())
            except Exception as e:
                logger.debug(f"MozJPEG optimization skipped: {e}")
                return
            buffer.seek(0)
            buffer.truncate()
            buffer.write(optimized)

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Convert to RGB for JPEG."""
        if image.mode == 'RGBA':
            # Composite on white background
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            return background
        elif image.mode == 'LA':
            return self.prepare_image(image.convert('RGBA'))
        elif image.mode == 'P':
            if 'transparency' in image.info:
                return self.prepare_image(image.convert('RGBA'))
            return image.convert('RGB')
        elif image.mode not in ('RGB', 'L'):
            return image.convert('RGB')
        return image


class WebpEncoder(BaseEncoder):
    """Lossy WebP encoder."""

    format_name = "WEBP"
    file_extension = ".webp"

    def _save(self, image: Image.Image, quality: int, buffer: BytesIO) -> None:
        image.save(
            buffer,
            format='WEBP',
            quality=quality,
            method=min(self.options.effort, 6),  # WebP method 0-6
        )


class AvifEncoder(BaseEncoder):
    """AVIF encoder using pillow-avif-plugin."""

    format_name = "AVIF"
    file_extension = ".avif"

    def _save(self, image: Image.Image, quality: int, buffer: BytesIO) -> None:
        if not AVIF_AVAILABLE:
            raise OSError("AVIF encoding requires pillow-avif-plugin")

        image.save(
            buffer,
            format='AVIF',
            quality=quality,
            speed=10 - self.options.effort,  # Convert effort to speed (0=slowest/best)
        )


_ENCODER_CLASSES = {
    'JPEG': JpegEncoder,
    'WEBP': WebpEncoder,
}

# Register AVIF if available
if AVIF_AVAILABLE:
    _ENCODER_CLASSES['AVIF'] = AvifEncoder

# Shared default instances; encoders hold no per-call state
_ENCODERS: Dict[str, BaseEncoder] = {
    name: encoder_class() for name, encoder_class in _ENCODER_CLASSES.items()
}

FORMAT_ALIASES = {
    'JPG': 'JPEG',
}


def get_encoder(format_name: str, options: Optional[EncoderOptions] = None) -> Optional[BaseEncoder]:
    """Get encoder for format.

    Args:
        format_name: Format name (JPEG, WEBP, AVIF)
        options: Custom options; returns a fresh encoder when given

    Returns:
        Encoder instance or None if format not supported
    """
    name = format_name.upper()
    name = FORMAT_ALIASES.get(name, name)

    if options is not None:
        encoder_class = _ENCODER_CLASSES.get(name)
        return encoder_class(options) if encoder_class is not None else None
    return _ENCODERS.get(name)


def get_available_formats() -> List[str]:
    """Get list of available format names.

    Returns:
        List of format names that can be used
    """
    return list(_ENCODERS.keys())


def calculate_ssim_inmemory(
    original: Image.Image,
    compressed: Image.Image
) -> Optional[float]:
    """Calculate SSIM between two images in memory.

    No disk I/O - works directly with PIL Images.

    Args:
        original: Original PIL Image
        compressed: Compressed PIL Image

    Returns:
        SSIM score (0.0 to 1.0) or None if scikit-image unavailable
    """
    if not SSIM_AVAILABLE:
        return None

    # Compare at the compressed size when dimensions were rescaled
    if original.size != compressed.size:
        original = original.resize(compressed.size, Image.Resampling.LANCZOS)

    # Convert to same mode
    if original.mode != compressed.mode or original.mode not in ('RGB', 'L'):
        original = original.convert('RGB')
        compressed = compressed.convert('RGB')

    orig_array = np.array(original)
    comp_array = np.array(compressed)

    # skimage needs windows no larger than the image
    win_size = min(7, *orig_array.shape[:2])
    if win_size % 2 == 0:
        win_size -= 1
    if win_size < 3:
        return None

    if orig_array.ndim == 2:
        return float(structural_similarity(
            orig_array, comp_array, data_range=255, win_size=win_size
        ))
    return float(structural_similarity(
        orig_array,
        comp_array,
        data_range=255,
        channel_axis=-1,
        win_size=win_size,
    ))


def get_encoder_capabilities() -> dict:
    """Get available encoder features.

    Returns:
        Dict with boolean flags for each feature
    """
    return {
        'ssim_validation': SSIM_AVAILABLE,
        'mozjpeg_optimization': MOZJPEG_AVAILABLE,
        'avif_encoding': AVIF_AVAILABLE,
        'formats': get_available_formats(),
    }
