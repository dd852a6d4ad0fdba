# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Exceptions shared by the Radiance (.hdr) and PFM (.pfm) codecs.

Every exception carries an ErrorKind so a caller can branch on the kind of
failure (for example, skip files that need an unsupported feature) without
matching on exception classes one by one.
"""

from __future__ import annotations

from enum import StrEnum, auto
from typing import Final

__all__: Final[list[str]] = [
    "ErrorKind",
    "HdrError",
    "InvalidHeaderError",
    "HdrReadError",
    "ScanlineFormatError",
    "UnsupportedFeatureError",
    "PixelRangeError",
]


class ErrorKind(StrEnum):
    """Failure categories reported by the codecs."""

    INVALID_HEADER = auto()
    READ_ERROR = auto()
    FORMAT_ERROR = auto()
    UNSUPPORTED_FEATURE = auto()
    PIXEL_RANGE = auto()


class HdrError(Exception):
    """Base exception for HDR codec errors."""

    kind: ErrorKind


class InvalidHeaderError(HdrError):
    """Header signature, tag, resolution line or PFM token is malformed."""

    kind = ErrorKind.INVALID_HEADER


class HdrReadError(HdrError):
    """Pixel data ended before the image was complete."""

    kind = ErrorKind.READ_ERROR


class ScanlineFormatError(HdrError):
    """RLE scanline marker or run/copy token is corrupt."""

    kind = ErrorKind.FORMAT_ERROR


class UnsupportedFeatureError(HdrError):
    """Valid input that needs a feature these codecs do not implement."""

    kind = ErrorKind.UNSUPPORTED_FEATURE


class PixelRangeError(HdrError, ValueError):
    """A color channel cannot be represented as RGBE.

    Raised for negative, NaN or infinite channels and for magnitudes whose
    shared exponent falls outside [1, 255]. This is a caller error, so it is
    also a ValueError.
    """

    kind = ErrorKind.PIXEL_RANGE
