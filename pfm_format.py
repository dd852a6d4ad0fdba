# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Portable Float Map (.pfm) reader/writer.

File layout:
- "PF" (RGB; "Pf" is grayscale and not supported)
- "<width> <height>"
- "<scale>": negative means little-endian data (big-endian is not supported)
Each of the three header items is followed by exactly one whitespace byte.

The body is `height` rows of `width` pixels, 3 little-endian float32 values
per pixel, stored bottom row first. In memory rows are top-to-bottom, so the
row order is reversed on both read and write. Values are copied bit for bit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import numpy as np

from hdr_errors import HdrReadError, InvalidHeaderError, UnsupportedFeatureError
from hdr_image import ImageBuffer, as_image_array, image_dimensions

__all__: Final[list[str]] = [
    "PfmHeader",
    "parse_pfm_header",
    "emit_pfm_header",
    "read_pfm_body",
    "write_pfm_body",
    "decode_pfm",
    "encode_pfm",
    "read_pfm",
    "write_pfm",
]

logger = logging.getLogger(__name__)

PFM_WHITESPACE: Final[bytes] = b" \t\r\n"
PFM_DTYPE: Final[str] = "<f4"


@dataclass(frozen=True, slots=True)
class PfmHeader:
    """PFM header values.

    Attributes:
        width: Pixels per row
        height: Number of rows
        scale: Scale/endianness field; negative means little-endian
    """

    width: int
    height: int
    scale: float = -1.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid dimensions: {self.width}x{self.height}")
        if not self.scale < 0.0:
            raise ValueError(f"Only little-endian PFM (negative scale) is supported, got {self.scale}")

    @property
    def body_size(self) -> int:
        """Number of bytes in the pixel data."""
        return self.width * self.height * 3 * 4


def _next_token(data: bytes, pos: int) -> tuple[str, int]:
    """Return the next whitespace-delimited token and the offset after it.

    Leading whitespace is skipped. The token must be followed by exactly one
    whitespace byte, which is consumed.
    """
    end = len(data)
    while pos < end and data[pos] in PFM_WHITESPACE:
        pos += 1
    start = pos
    while pos < end and data[pos] not in PFM_WHITESPACE:
        pos += 1

    if pos == start:
        raise InvalidHeaderError(f"Missing PFM header token at offset {start}")
    if pos == end:
        raise InvalidHeaderError(f"PFM header token at offset {start} is not terminated")

    try:
        return data[start:pos].decode("ascii"), pos + 1
    except UnicodeDecodeError as e:
        raise InvalidHeaderError(f"Non-ASCII PFM header token at offset {start}") from e


def _parse_dimension(name: str, token: str) -> int:
    if not (token.isascii() and token.isdigit()) or int(token) == 0:
        raise InvalidHeaderError(f"PFM {name} must be a positive integer, got {token!r}")
    return int(token)


def parse_pfm_header(data: bytes) -> tuple[PfmHeader, int]:
    """Parse the header at the start of a PFM file.

    Returns:
        Tuple of (header, offset of the first body byte)

    Raises:
        InvalidHeaderError: If a token is missing or malformed, or the scale
            is not negative
        UnsupportedFeatureError: If the file is a grayscale ("Pf") map
    """
    magic, pos = _next_token(data, 0)
    if magic == "Pf":
        raise UnsupportedFeatureError("Grayscale PFM is not supported")
    if magic != "PF":
        raise InvalidHeaderError(f"Not a PFM file (magic {magic[:16]!r})")

    width_token, pos = _next_token(data, pos)
    height_token, pos = _next_token(data, pos)
    width = _parse_dimension("width", width_token)
    height = _parse_dimension("height", height_token)

    scale_token, pos = _next_token(data, pos)
    try:
        scale = float(scale_token)
    except ValueError as e:
        raise InvalidHeaderError(f"Invalid PFM scale: {scale_token!r}") from e
    if math.isnan(scale) or scale >= 0.0:
        raise InvalidHeaderError(
            f"PFM scale {scale_token!r} is not negative; only little-endian data is supported"
        )

    return PfmHeader(width, height, scale), pos


def emit_pfm_header(header: PfmHeader) -> bytes:
    """Serialize `header` as three newline-terminated lines."""
    return f"PF\n{header.width} {header.height}\n{header.scale}\n".encode("ascii")


def read_pfm_body(data: bytes, header: PfmHeader, offset: int) -> ImageBuffer:
    """Read the pixel data starting at `offset` into a top-to-bottom image.

    Raises:
        HdrReadError: If the data holds fewer than header.body_size bytes
    """
    available = len(data) - offset
    if available < header.body_size:
        raise HdrReadError(
            f"PFM body truncated: expected {header.body_size} bytes, got {available}"
        )

    count = header.width * header.height * 3
    rows = np.frombuffer(data, dtype=PFM_DTYPE, count=count, offset=offset)
    rows = rows.reshape(header.height, header.width, 3)
    # File order is bottom row first
    return np.ascontiguousarray(rows[::-1], dtype=np.float32)


def write_pfm_body(image: ImageBuffer, header: PfmHeader) -> bytes:
    """Serialize a top-to-bottom image as a bottom-to-top PFM body."""
    pixels = as_image_array(image, header.width, header.height)
    return np.ascontiguousarray(pixels[::-1], dtype=PFM_DTYPE).tobytes()


def decode_pfm(data: bytes) -> tuple[PfmHeader, ImageBuffer]:
    """Decode a complete PFM file held in memory."""
    header, offset = parse_pfm_header(data)
    image = read_pfm_body(data, header, offset)
    trailing = len(data) - offset - header.body_size
    if trailing:
        logger.debug("Ignoring %d trailing bytes after PFM body", trailing)
    return header, image


def encode_pfm(image: ImageBuffer, header: PfmHeader | None = None) -> bytes:
    """Encode a complete PFM file in memory.

    If `header` is omitted it is derived from the image shape with scale -1.0.
    """
    if header is None:
        width, height = image_dimensions(np.asarray(image))
        header = PfmHeader(width, height)
    return emit_pfm_header(header) + write_pfm_body(image, header)


def read_pfm(path: Path | str) -> tuple[PfmHeader, ImageBuffer]:
    """Read a PFM file from disk."""
    path = Path(path)
    data = path.read_bytes()
    header, image = decode_pfm(data)
    logger.debug("Read %s: %dx%d (%d bytes)", path, header.width, header.height, len(data))
    return header, image


def write_pfm(path: Path | str, image: ImageBuffer, header: PfmHeader | None = None) -> None:
    """Write a PFM file to disk."""
    path = Path(path)
    data = encode_pfm(image, header)
    with open(path, "wb") as f:
        f.write(data)
    logger.debug("Wrote %s (%d bytes)", path, len(data))
