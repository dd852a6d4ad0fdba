# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Radiance RGBE (.hdr) image reader/writer.

Reads and writes float32 RGB images of shape (height, width, 3), rows
top-to-bottom, as run-length encoded RGBE scanlines. Quantization error per
channel is at most 2^-8 of the pixel's largest channel.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Final

import numpy as np
from numpy.typing import NDArray

from hdr_errors import UnsupportedFeatureError
from hdr_image import ByteCursor, ImageBuffer, as_image_array
from radiance_header import RadianceHeader, emit_radiance_header, parse_radiance_header
from rgbe_pixel import float_to_rgbe, rgbe_to_float
from rgbe_scanline import (
    check_rle_width,
    decode_scanline,
    encode_scanline,
    pack_planes,
    unpack_planes,
)

__all__: Final[list[str]] = [
    "decode_radiance",
    "encode_radiance",
    "write_radiance_stream",
    "read_radiance",
    "write_radiance",
]

logger = logging.getLogger(__name__)


def decode_radiance(data: bytes) -> tuple[RadianceHeader, ImageBuffer]:
    """Decode a complete Radiance file held in memory.

    Scanlines are decoded as run-length encoded whether or not the header
    declares FORMAT=32-bit_rle_rgbe.

    Returns:
        Tuple of (header, float32 image of shape (height, width, 3))

    Raises:
        InvalidHeaderError: If the header is malformed
        UnsupportedFeatureError: If the width needs flat scanlines
        ScanlineFormatError: If scanline data is corrupt
        HdrReadError: If the data ends early
    """
    header, offset = parse_radiance_header(data)
    width, height = header.width, header.height

    image = np.zeros((height, width, 3), dtype=np.float32)
    if height == 0:
        return header, image

    check_rle_width(width)
    cursor = ByteCursor(data, offset)
    for y in range(height):
        planes = decode_scanline(cursor, width)
        image[y] = rgbe_to_float(unpack_planes(planes, width))

    if cursor.remaining:
        logger.debug("Ignoring %d trailing bytes after last scanline", cursor.remaining)

    return header, image


def _prepare(header: RadianceHeader, image: ImageBuffer) -> NDArray[np.uint8]:
    """Validate everything that can fail and return the RGBE quads."""
    if not header.run_length_encoded:
        raise UnsupportedFeatureError("Writing flat (non run-length encoded) RGBE is not supported")

    pixels = as_image_array(image, header.width, header.height)
    if header.height:
        check_rle_width(header.width)
    return float_to_rgbe(pixels)


def _write_scanlines(stream: BinaryIO, header: RadianceHeader, quads: NDArray[np.uint8]) -> None:
    stream.write(emit_radiance_header(header))
    for row in quads:
        stream.write(encode_scanline(pack_planes(row), header.width))


def write_radiance_stream(stream: BinaryIO, header: RadianceHeader, image: ImageBuffer) -> None:
    """Write header and scanlines to an open binary stream.

    The image is validated and converted to RGBE before anything is written,
    so a failure leaves the stream untouched.

    Raises:
        UnsupportedFeatureError: If the header is not run-length encoded or
            the width is outside [8, 32767]
        PixelRangeError: If a pixel cannot be represented as RGBE
        ValueError: If the image shape does not match the header
    """
    _write_scanlines(stream, header, _prepare(header, image))


def encode_radiance(header: RadianceHeader, image: ImageBuffer) -> bytes:
    """Encode a complete Radiance file in memory."""
    buffer = io.BytesIO()
    write_radiance_stream(buffer, header, image)
    return buffer.getvalue()


def read_radiance(path: Path | str) -> tuple[RadianceHeader, ImageBuffer]:
    """Read a Radiance file from disk."""
    path = Path(path)
    data = path.read_bytes()
    header, image = decode_radiance(data)
    logger.debug("Read %s: %dx%d (%d bytes)", path, header.width, header.height, len(data))
    return header, image


def write_radiance(path: Path | str, header: RadianceHeader, image: ImageBuffer) -> None:
    """Write a Radiance file to disk.

    Nothing is created on disk if the header or image is rejected.
    """
    path = Path(path)
    quads = _prepare(header, image)
    with open(path, "wb") as f:
        _write_scanlines(f, header, quads)
    logger.debug("Wrote %s: %dx%d", path, header.width, header.height)
