# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Radiance adaptive run-length encoding for RGBE scanlines.

A scanline of W pixels is stored as a 4-byte marker followed by four
independently compressed planes (all R bytes, then G, B and E):

- marker: 0x02 0x02 followed by W as a big-endian 15-bit value
- plane data: a sequence of tokens until W bytes have been produced
  - count > 128: run token, the next byte repeated (count - 128) times
  - count <= 128: literal token, the next `count` bytes copied verbatim

Only widths in [8, 32767] can be run-length encoded. Other widths require the
flat (uncompressed) pixel layout, which is not supported here.
"""

from __future__ import annotations

from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from hdr_errors import ScanlineFormatError, UnsupportedFeatureError
from hdr_image import ByteCursor

__all__: Final[list[str]] = [
    "MIN_RLE_WIDTH",
    "MAX_RLE_WIDTH",
    "check_rle_width",
    "encode_plane",
    "decode_plane",
    "encode_scanline",
    "decode_scanline",
    "pack_planes",
    "unpack_planes",
]

MIN_RLE_WIDTH: Final[int] = 8
MAX_RLE_WIDTH: Final[int] = 0x7FFF

# Shorter repeats are cheaper as part of a literal
MIN_RUN_LENGTH: Final[int] = 4
MAX_RUN_LENGTH: Final[int] = 127
MAX_LITERAL_LENGTH: Final[int] = 128
RUN_FLAG: Final[int] = 128

PLANE_COUNT: Final[int] = 4


def check_rle_width(width: int) -> None:
    """Raise UnsupportedFeatureError unless `width` can be run-length encoded."""
    if not MIN_RLE_WIDTH <= width <= MAX_RLE_WIDTH:
        raise UnsupportedFeatureError(
            f"Scanline width {width} is outside [{MIN_RLE_WIDTH}, {MAX_RLE_WIDTH}]; "
            "flat RGBE scanlines are not supported"
        )


def scanline_marker(width: int) -> bytes:
    """4-byte header that starts every run-length encoded scanline."""
    return bytes((2, 2, width >> 8, width & 0xFF))


# =============================================================================
# Encoding
# =============================================================================


def encode_plane(plane: bytes) -> bytes:
    """Run-length encode one plane of a scanline.

    Produces the same token boundaries as the Radiance reference encoder:
    the plane is scanned for the next run of at least MIN_RUN_LENGTH equal
    bytes; everything before it is written as literals, except that a run of
    2 or 3 bytes filling the whole gap is written as a short run token.
    """
    out = bytearray()
    pos = 0
    end = len(plane)

    while pos < end:
        # Find the next run worth encoding
        run_start = pos
        prev_run = 0
        run = 0
        while run < MIN_RUN_LENGTH and run_start < end:
            run_start += run
            prev_run = run
            run = 1
            while (
                run_start + run < end
                and run < MAX_RUN_LENGTH
                and plane[run_start] == plane[run_start + run]
            ):
                run += 1

        if prev_run > 1 and prev_run == run_start - pos:
            out.append(RUN_FLAG + prev_run)
            out.append(plane[pos])
            pos = run_start

        while pos < run_start:
            count = min(run_start - pos, MAX_LITERAL_LENGTH)
            out.append(count)
            out.extend(plane[pos : pos + count])
            pos += count

        if run >= MIN_RUN_LENGTH:
            out.append(RUN_FLAG + run)
            out.append(plane[run_start])
            pos += run

    return bytes(out)


def encode_scanline(planes: bytes, width: int) -> bytes:
    """Encode one scanline given in planar layout (R..., G..., B..., E...).

    Raises:
        UnsupportedFeatureError: If `width` is outside [8, 32767]
        ValueError: If `planes` is not exactly 4 * width bytes
    """
    check_rle_width(width)
    if len(planes) != PLANE_COUNT * width:
        raise ValueError(f"Scanline holds {len(planes)} bytes, expected {PLANE_COUNT * width}")

    out = bytearray(scanline_marker(width))
    for i in range(PLANE_COUNT):
        out.extend(encode_plane(planes[i * width : (i + 1) * width]))
    return bytes(out)


# =============================================================================
# Decoding
# =============================================================================


def decode_plane(cursor: ByteCursor, size: int) -> bytes:
    """Decode tokens from `cursor` until `size` bytes are produced.

    Raises:
        ScanlineFormatError: On a zero-length token or one that overflows the plane
        HdrReadError: If the data ends first
    """
    plane = bytearray()

    while len(plane) < size:
        start = cursor.pos
        count, value = cursor.read(2)
        space = size - len(plane)

        if count > RUN_FLAG:
            count -= RUN_FLAG
            if count > space:
                raise ScanlineFormatError(
                    f"Run of {count} bytes at offset {start} overflows plane ({space} left)"
                )
            plane.extend(bytes((value,)) * count)
        else:
            if count == 0 or count > space:
                raise ScanlineFormatError(
                    f"Literal of {count} bytes at offset {start} is invalid ({space} left)"
                )
            plane.append(value)
            plane.extend(cursor.read(count - 1))

    return bytes(plane)


def decode_scanline(cursor: ByteCursor, width: int) -> bytes:
    """Decode one scanline into planar layout (R..., G..., B..., E...).

    Raises:
        UnsupportedFeatureError: If `width` is outside [8, 32767]
        ScanlineFormatError: If the marker or a token is invalid
        HdrReadError: If the data ends before the scanline is complete
    """
    check_rle_width(width)

    start = cursor.pos
    marker = cursor.read(4)
    if marker[0] != 2 or marker[1] != 2 or marker[2] & 0x80:
        raise ScanlineFormatError(
            f"No run-length scanline marker at offset {start} (got {marker.hex()})"
        )
    encoded_width = (marker[2] << 8) | marker[3]
    if encoded_width != width:
        raise ScanlineFormatError(
            f"Scanline at offset {start} has width {encoded_width}, expected {width}"
        )

    return b"".join(decode_plane(cursor, width) for _ in range(PLANE_COUNT))


# =============================================================================
# Layout
# =============================================================================


def pack_planes(quads: ArrayLike) -> bytes:
    """Convert a row of RGBE quads, shape (width, 4), to planar bytes."""
    q = np.asarray(quads, dtype=np.uint8)
    if q.ndim != 2 or q.shape[1] != PLANE_COUNT:
        raise ValueError(f"Expected quads with shape (width, 4), got {q.shape}")
    return np.ascontiguousarray(q.T).tobytes()


def unpack_planes(planes: bytes, width: int) -> NDArray[np.uint8]:
    """Convert planar bytes back to a row of RGBE quads, shape (width, 4)."""
    q = np.frombuffer(planes, dtype=np.uint8)
    if q.size != PLANE_COUNT * width:
        raise ValueError(f"Scanline holds {q.size} bytes, expected {PLANE_COUNT * width}")
    return q.reshape(PLANE_COUNT, width).T.copy()
