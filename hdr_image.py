# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Image buffer and byte cursor helpers shared by the HDR codecs.

An image buffer is a float32 array of shape (height, width, 3), rows stored
top-to-bottom. That is the same memory layout as a flat sequence of
width * height RGB triples in row-major order, which is what
as_image_array() accepts from callers that do not use numpy.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

import numpy as np
from numpy.typing import NDArray

from hdr_errors import HdrReadError

__all__: Final[list[str]] = [
    "ImageBuffer",
    "ByteCursor",
    "as_image_array",
    "image_dimensions",
]

type ImageBuffer = NDArray[np.float32]


@dataclass(slots=True)
class ByteCursor:
    """Read position over a fully buffered file.

    Attributes:
        data: Complete file contents
        pos: Offset of the next unread byte
    """

    data: bytes
    pos: int = 0

    @property
    def remaining(self) -> int:
        """Number of unread bytes."""
        return len(self.data) - self.pos

    def read(self, size: int) -> bytes:
        """Consume exactly `size` bytes.

        Raises:
            HdrReadError: If fewer than `size` bytes remain
        """
        if size < 0 or size > self.remaining:
            raise HdrReadError(
                f"Unexpected end of data: needed {size} bytes at offset "
                f"{self.pos}, {self.remaining} available"
            )
        chunk = self.data[self.pos : self.pos + size]
        self.pos += size
        return chunk

    def read_byte(self) -> int:
        """Consume a single byte and return its value."""
        if self.pos >= len(self.data):
            raise HdrReadError(f"Unexpected end of data at offset {self.pos}")
        value = self.data[self.pos]
        self.pos += 1
        return value


def as_image_array(
    data: ImageBuffer | Sequence[float],
    width: int | None = None,
    height: int | None = None,
) -> ImageBuffer:
    """Return `data` as a contiguous (height, width, 3) float32 array.

    Args:
        data: Either an array already shaped (height, width, 3), or a flat
            sequence of width * height * 3 floats, row-major, top-to-bottom
        width: Expected width; required for flat input
        height: Expected height; required for flat input

    Raises:
        ValueError: If the buffer size or shape does not match the dimensions
    """
    arr = np.asarray(data, dtype=np.float32)

    if arr.ndim == 1:
        if width is None or height is None:
            raise ValueError("width and height are required for a flat buffer")
        if arr.size != width * height * 3:
            raise ValueError(
                f"Buffer holds {arr.size} floats, expected "
                f"{width} x {height} x 3 = {width * height * 3}"
            )
        arr = arr.reshape(height, width, 3)
    elif arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"Image must have shape (H, W, 3), got {arr.shape}")

    if width is not None and arr.shape[1] != width:
        raise ValueError(f"Image width {arr.shape[1]} does not match {width}")
    if height is not None and arr.shape[0] != height:
        raise ValueError(f"Image height {arr.shape[0]} does not match {height}")

    return np.ascontiguousarray(arr)


def image_dimensions(image: ImageBuffer) -> tuple[int, int]:
    """Return (width, height) of a (height, width, 3) buffer."""
    height, width = image.shape[:2]
    return int(width), int(height)
