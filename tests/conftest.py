import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def noise_image():
    """Deterministic RGB noise; compresses badly, so sizes react to quality."""
    rng = np.random.default_rng(0)
    pixels = rng.integers(0, 256, size=(300, 400, 3), dtype=np.uint8)
    return Image.fromarray(pixels, 'RGB')


@pytest.fixture
def gradient_image():
    x = np.linspace(0, 255, 64, dtype=np.uint8)
    pixels = np.stack([np.tile(x, (48, 1))] * 3, axis=-1)
    return Image.fromarray(pixels, 'RGB')


@pytest.fixture
def png_file(tmp_path, noise_image):
    path = tmp_path / "noise.png"
    noise_image.save(path, format='PNG')
    return path
