"""
Pytest configuration and fixtures for the HDR codec tests.

Prerequisites:
    pip install -e ".[test]"
"""

import numpy as np
import pytest

# RGBE keeps 8 mantissa bits per channel relative to the pixel maximum
RGBE_BOUND = 2.0**-8


# ---------------------------------------------------------------------------
# Image fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator so failures are reproducible."""
    return np.random.default_rng(42)


@pytest.fixture
def hdr_image(rng) -> np.ndarray:
    """HDR image 6x24x3 spanning ~12 stops, with flat areas and black pixels.

    Flat rows produce long runs in the RLE planes, random rows produce
    literals, so both token kinds are exercised.
    """
    height, width = 6, 24
    image = np.empty((height, width, 3), dtype=np.float32)
    # Flat sky
    image[:2] = np.array([0.35, 0.55, 0.95], dtype=np.float32)
    # Noisy ground with a wide dynamic range
    magnitude = 10.0 ** rng.uniform(-3.0, 3.0, size=(height - 2, width, 1))
    image[2:] = (rng.random((height - 2, width, 3)) * magnitude).astype(np.float32)
    # A black patch and a bright sun
    image[3, 4:12] = 0.0
    image[1, 10] = [5000.0, 4800.0, 4000.0]
    return image


@pytest.fixture
def gradient_image() -> np.ndarray:
    """Vertical gradient 4x16x3, smooth values in (0, 1]."""
    t = np.linspace(0.1, 1.0, 4, dtype=np.float32)[:, np.newaxis]
    row = np.ones((1, 16), dtype=np.float32)
    return np.stack([t * row, 0.5 * t * row, 0.25 * t * row], axis=-1)


# ---------------------------------------------------------------------------
# Comparison helpers
# ---------------------------------------------------------------------------

def assert_rgbe_close(actual: np.ndarray, expected: np.ndarray, msg: str = ""):
    """Assert every channel is within the RGBE error bound of its pixel maximum."""
    assert actual.shape == expected.shape, msg
    a = actual.astype(np.float64)
    e = expected.astype(np.float64)
    limit = e.max(axis=-1, keepdims=True) * RGBE_BOUND
    assert np.all(np.abs(a - e) <= limit), msg


def max_abs_diff(a: np.ndarray, b: np.ndarray) -> float:
    """Calculate maximum absolute difference."""
    return float(np.max(np.abs(a.astype(np.float64) - b.astype(np.float64))))
