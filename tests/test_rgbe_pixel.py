"""
RGBE pixel conversion tests: scalar and vectorized encode/decode.
"""

import math

import numpy as np
import pytest
from conftest import RGBE_BOUND, assert_rgbe_close

from hdr_errors import ErrorKind, PixelRangeError
from rgbe_pixel import (
    RGBE_ZERO_THRESHOLD,
    float_to_rgbe,
    rgb_to_rgbe,
    rgbe_to_float,
    rgbe_to_rgb,
)


# ---------------------------------------------------------------------------
# Scalar encode
# ---------------------------------------------------------------------------

class TestRgbToRgbe:
    def test_black(self):
        assert rgb_to_rgbe(0.0, 0.0, 0.0) == (0, 0, 0, 0)

    def test_below_threshold_is_black(self):
        assert rgb_to_rgbe(1e-33, 5e-33, 0.0) == (0, 0, 0, 0)

    def test_just_above_threshold_is_not_black(self):
        quad = rgb_to_rgbe(1e-30, 0.0, 0.0)
        assert quad[3] != 0
        assert quad[0] >= 128

    @pytest.mark.parametrize(
        "rgb, expected",
        [
            ((1.0, 1.0, 1.0), (128, 128, 128, 129)),
            ((0.5, 0.25, 0.0), (128, 64, 0, 128)),
            ((3.0, 1.5, 0.75), (192, 96, 48, 130)),
            ((0.0, 0.0, 2.0), (0, 0, 128, 130)),
            ((1.5 * 2.0**126, 0.0, 0.0), (192, 0, 0, 255)),
        ],
    )
    def test_known_values(self, rgb, expected):
        assert rgb_to_rgbe(*rgb) == expected

    def test_power_of_two_uses_full_mantissa_range(self):
        # 2^k sits at the bottom of its octave: mantissa 128, never 256
        for k in range(-60, 60):
            r, _, _, e = rgb_to_rgbe(2.0**k, 0.0, 0.0)
            assert r == 128
            assert e == k + 129

    def test_largest_channel_mantissa_in_upper_half(self, rng):
        for rgb in rng.random((200, 3)) * 1000.0:
            quad = rgb_to_rgbe(*map(float, rgb))
            assert 128 <= max(quad[:3]) <= 255

    @pytest.mark.parametrize(
        "rgb",
        [
            (-0.1, 0.5, 0.5),
            (0.5, -1e-20, 0.5),
            (math.nan, 0.0, 0.0),
            (0.0, math.inf, 0.0),
            (2.0**127, 0.0, 0.0),
            (1e300, 1.0, 1.0),
        ],
    )
    def test_rejects_unrepresentable(self, rgb):
        with pytest.raises(PixelRangeError) as exc_info:
            rgb_to_rgbe(*rgb)
        assert exc_info.value.kind is ErrorKind.PIXEL_RANGE

    def test_range_error_is_value_error(self):
        with pytest.raises(ValueError):
            rgb_to_rgbe(-1.0, 0.0, 0.0)


# ---------------------------------------------------------------------------
# Scalar decode
# ---------------------------------------------------------------------------

class TestRgbeToRgb:
    def test_black(self):
        assert rgbe_to_rgb((0, 0, 0, 0)) == (0.0, 0.0, 0.0)

    def test_zero_exponent_ignores_mantissas(self):
        assert rgbe_to_rgb((200, 10, 99, 0)) == (0.0, 0.0, 0.0)

    def test_midpoint_reconstruction(self):
        assert rgbe_to_rgb((192, 96, 48, 130)) == (3.0078125, 1.5078125, 0.7578125)

    def test_accepts_bytes(self):
        assert rgbe_to_rgb(b"\x80\x80\x80\x81") == (1.00390625, 1.00390625, 1.00390625)

    def test_round_trip_within_bound(self, rng):
        magnitudes = 10.0 ** rng.uniform(-20.0, 20.0, size=500)
        for rgb, m in zip(rng.random((500, 3)), magnitudes):
            rgb = [float(c * m) for c in rgb]
            decoded = rgbe_to_rgb(rgb_to_rgbe(*rgb))
            limit = max(rgb) * RGBE_BOUND
            for expected, value in zip(rgb, decoded):
                assert abs(expected - value) <= limit


# ---------------------------------------------------------------------------
# Vectorized
# ---------------------------------------------------------------------------

class TestVectorized:
    def test_matches_scalar_encode(self, rng):
        pixels = (rng.random((300, 3)) * 10.0 ** rng.uniform(-8, 8, (300, 1))).astype(np.float32)
        pixels[::7] = 0.0
        quads = float_to_rgbe(pixels)
        expected = [rgb_to_rgbe(*map(float, p)) for p in pixels]
        assert quads.dtype == np.uint8
        assert [tuple(int(v) for v in q) for q in quads] == expected

    def test_matches_scalar_decode(self, rng):
        quads = rng.integers(0, 256, size=(300, 4), dtype=np.uint8)
        quads[::5, 3] = 0
        rgb = rgbe_to_float(quads)
        assert rgb.dtype == np.float32
        for q, value in zip(quads, rgb):
            assert tuple(float(v) for v in value) == rgbe_to_rgb(tuple(int(v) for v in q))

    def test_preserves_leading_shape(self, gradient_image):
        quads = float_to_rgbe(gradient_image)
        assert quads.shape == (4, 16, 4)
        assert rgbe_to_float(quads).shape == (4, 16, 3)

    def test_round_trip_within_bound(self, hdr_image):
        assert_rgbe_close(rgbe_to_float(float_to_rgbe(hdr_image)), hdr_image)

    def test_black_maps_to_exact_black(self):
        quads = float_to_rgbe(np.zeros((5, 3), dtype=np.float32))
        assert not quads.any()
        assert not rgbe_to_float(quads).any()

    def test_below_threshold_maps_to_black(self):
        quads = float_to_rgbe(np.array([[RGBE_ZERO_THRESHOLD / 2, 0.0, 0.0]]))
        assert quads.tolist() == [[0, 0, 0, 0]]

    def test_normalized_quads_reencode_exactly(self, rng):
        quads = rng.integers(0, 256, size=(1000, 4), dtype=np.uint8)
        quads[:, 3] = rng.integers(32, 256, size=1000)
        # The largest mantissa of a normalized quad is in [128, 255]
        quads[np.arange(1000), rng.integers(0, 3, size=1000)] |= 0x80
        assert np.array_equal(float_to_rgbe(rgbe_to_float(quads)), quads)

    @pytest.mark.parametrize("bad", [-1.0, np.nan, np.inf, 2.0**128])
    def test_rejects_unrepresentable(self, bad):
        pixels = np.ones((4, 3), dtype=np.float64)
        pixels[2, 1] = bad
        with pytest.raises(PixelRangeError, match=r"\(2, 1\)|\(2,\)"):
            float_to_rgbe(pixels)

    def test_rejects_wrong_channel_count(self):
        with pytest.raises(ValueError):
            float_to_rgbe(np.zeros((4, 4)))
        with pytest.raises(ValueError):
            rgbe_to_float(np.zeros((4, 3), dtype=np.uint8))
