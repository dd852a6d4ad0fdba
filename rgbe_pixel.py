# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Shared-exponent RGBE pixel conversion.

Float32 RGB triples are stored as 4 bytes: three 8-bit mantissas sharing one
8-bit exponent.

Encoding, for M = max(R, G, B):
- M < 1e-32 encodes as (0, 0, 0, 0), which decodes as exact black.
- Otherwise write M = f * 2^x with f in [0.5, 1) and take E = x + 128, which
  must land in [1, 255]. With scale = 2^(136 - E) the largest channel maps to
  scale * M = 256 * f in [128, 256), so the mantissa byte floor(scale * M)
  always uses the top half of its range. Smaller channels map into [0, 256).

Decoding adds 0.5 before scaling back, the midpoint of the floor() bucket:
    R = (r + 0.5) * 2^(E - 136)
so the absolute error of every channel is at most half a mantissa step,
2^(E - 137), which is at most 2^-8 * M.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from hdr_errors import PixelRangeError

__all__: Final[list[str]] = [
    "RGBE_ZERO_THRESHOLD",
    "rgb_to_rgbe",
    "rgbe_to_rgb",
    "float_to_rgbe",
    "rgbe_to_float",
]

# Maxima below this encode as exact black
RGBE_ZERO_THRESHOLD: Final[float] = 1e-32

EXPONENT_BIAS: Final[int] = 128
MANTISSA_BITS: Final[int] = 8
# E - 136 scales a mantissa byte back to a float (128 bias + 8 mantissa bits)
_SCALE_OFFSET: Final[int] = EXPONENT_BIAS + MANTISSA_BITS


def _shared_exponent(maximum: float) -> int:
    """Biased exponent E such that maximum * 2^(136 - E) lies in [128, 256)."""
    _, exponent = math.frexp(maximum)
    return exponent + EXPONENT_BIAS


def rgb_to_rgbe(r: float, g: float, b: float) -> tuple[int, int, int, int]:
    """Encode one linear RGB triple as an RGBE quad.

    Raises:
        PixelRangeError: If a channel is negative, NaN or infinite, or the
            shared exponent falls outside [1, 255]
    """
    for channel in (r, g, b):
        if not math.isfinite(channel) or channel < 0.0:
            raise PixelRangeError(f"Channel value {channel!r} is not representable as RGBE")

    maximum = max(r, g, b)
    if maximum < RGBE_ZERO_THRESHOLD:
        return (0, 0, 0, 0)

    e = _shared_exponent(maximum)
    if not 1 <= e <= 255:
        raise PixelRangeError(f"Pixel maximum {maximum!r} needs exponent {e}, outside [1, 255]")

    scale = math.ldexp(1.0, _SCALE_OFFSET - e)
    return (math.floor(r * scale), math.floor(g * scale), math.floor(b * scale), e)


def rgbe_to_rgb(quad: Sequence[int] | bytes) -> tuple[float, float, float]:
    """Decode an RGBE quad to a linear RGB triple."""
    r, g, b, e = quad
    if e == 0:
        return (0.0, 0.0, 0.0)

    factor = math.ldexp(1.0, e - _SCALE_OFFSET)
    return ((r + 0.5) * factor, (g + 0.5) * factor, (b + 0.5) * factor)


def float_to_rgbe(pixels: ArrayLike) -> NDArray[np.uint8]:
    """Encode an array of RGB triples, shape (..., 3), to quads, shape (..., 4).

    Same arithmetic and range contract as rgb_to_rgbe(). The whole array is
    validated before any byte is produced.

    Raises:
        PixelRangeError: On the first pixel that cannot be represented
    """
    rgb = np.asarray(pixels, dtype=np.float64)
    if rgb.shape[-1:] != (3,):
        raise ValueError(f"Expected RGB triples with shape (..., 3), got {rgb.shape}")

    invalid = ~np.isfinite(rgb) | (rgb < 0.0)
    if invalid.any():
        index = tuple(int(i) for i in np.argwhere(invalid)[0])
        raise PixelRangeError(
            f"Channel value {rgb[index]!r} at {index} is not representable as RGBE"
        )

    maximum = rgb.max(axis=-1)
    nonzero = maximum >= RGBE_ZERO_THRESHOLD
    _, exponent = np.frexp(maximum)
    e = exponent.astype(np.int32) + EXPONENT_BIAS

    out_of_range = nonzero & ((e < 1) | (e > 255))
    if out_of_range.any():
        index = tuple(int(i) for i in np.argwhere(out_of_range)[0])
        raise PixelRangeError(
            f"Pixel maximum {maximum[index]!r} at {index} needs exponent "
            f"{int(e[index])}, outside [1, 255]"
        )

    # Black pixels keep a neutral exponent so their scale stays finite
    e = np.where(nonzero, e, EXPONENT_BIAS).astype(np.int32)
    scale = np.ldexp(1.0, _SCALE_OFFSET - e)
    mantissas = np.floor(rgb * scale[..., np.newaxis])

    quads = np.zeros(rgb.shape[:-1] + (4,), dtype=np.uint8)
    quads[..., :3] = np.where(nonzero[..., np.newaxis], mantissas, 0.0).astype(np.uint8)
    quads[..., 3] = np.where(nonzero, e, 0).astype(np.uint8)
    return quads


def rgbe_to_float(quads: ArrayLike) -> NDArray[np.float32]:
    """Decode an array of RGBE quads, shape (..., 4), to float32 RGB, shape (..., 3)."""
    q = np.asarray(quads, dtype=np.uint8)
    if q.shape[-1:] != (4,):
        raise ValueError(f"Expected RGBE quads with shape (..., 4), got {q.shape}")

    e = q[..., 3].astype(np.int32)
    factor = np.where(e != 0, np.ldexp(1.0, e - _SCALE_OFFSET), 0.0)
    rgb = (q[..., :3].astype(np.float64) + 0.5) * factor[..., np.newaxis]
    return rgb.astype(np.float32)
