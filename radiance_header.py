# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Radiance (.hdr) text header.

Header layout (ASCII, lines terminated by '\\n'):
- signature: "#?RADIANCE" or "#?RGBE"
- optional tags: GAMMA=<float>, EXPOSURE=<float>, PRIMARIES=<8 numbers>
- FORMAT=32-bit_rle_rgbe
- blank line
- resolution: "-Y <height> +X <width>" (rows top-to-bottom, columns left-to-right)

Binary scanline data follows the resolution line immediately.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from hdr_errors import InvalidHeaderError

__all__: Final[list[str]] = [
    "RadianceHeader",
    "RADIANCE_SIGNATURES",
    "REC2020_PRIMARIES",
    "parse_radiance_header",
    "emit_radiance_header",
]

RADIANCE_SIGNATURES: Final[tuple[str, ...]] = ("#?RADIANCE", "#?RGBE")
RLE_FORMAT: Final[str] = "32-bit_rle_rgbe"

# xy chromaticities of R, G, B and white (D65)
REC2020_PRIMARIES: Final[str] = "0.708 0.292 0.170 0.797 0.131 0.046 0.3127 0.3290"

_PRIMARIES_TAG: Final[str] = "PRIMARIES="
_FORMAT_TAG: Final[str] = "FORMAT="
_GAMMA_TAG: Final[str] = "GAMMA="
_EXPOSURE_TAG: Final[str] = "EXPOSURE="


@dataclass(frozen=True, slots=True, kw_only=True)
class RadianceHeader:
    """Parsed Radiance header.

    Attributes:
        width: Pixels per scanline
        height: Number of scanlines
        signature: One of RADIANCE_SIGNATURES
        gamma: GAMMA tag value, if present
        exposure: EXPOSURE tag value, if present
        primaries: PRIMARIES tag text, passed through uninterpreted
        run_length_encoded: True if the header declares FORMAT=32-bit_rle_rgbe
    """

    width: int
    height: int
    signature: str = RADIANCE_SIGNATURES[0]
    gamma: float | None = None
    exposure: float | None = None
    primaries: str | None = None
    run_length_encoded: bool = False

    def __post_init__(self) -> None:
        if self.signature not in RADIANCE_SIGNATURES:
            raise ValueError(f"Unknown Radiance signature: {self.signature!r}")
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid dimensions: {self.width}x{self.height}")
        for tag, value in (("gamma", self.gamma), ("exposure", self.exposure)):
            if value is not None and not (math.isfinite(value) and value > 0.0):
                raise ValueError(f"{tag} must be a finite positive number, got {value!r}")
        if self.primaries is not None and (
            not self.primaries.isascii() or "\n" in self.primaries or "\r" in self.primaries
        ):
            raise ValueError(f"primaries must be single-line ASCII text, got {self.primaries!r}")


def _read_line(data: bytes, pos: int) -> tuple[str, int]:
    """Return the next non-blank line and the offset just past its newline."""
    while True:
        end = data.find(b"\n", pos)
        if end == -1:
            raise InvalidHeaderError(f"Header truncated at offset {pos}")
        raw = data[pos:end]
        pos = end + 1
        if raw:
            break

    try:
        return raw.decode("ascii"), pos
    except UnicodeDecodeError as e:
        raise InvalidHeaderError(f"Non-ASCII header line ending at offset {end}") from e


def _parse_positive_float(tag: str, text: str) -> float:
    # float() also accepts digit separators ("1_0")
    if "_" in text:
        raise InvalidHeaderError(f"Invalid {tag} value: {text!r}")
    try:
        value = float(text)
    except ValueError as e:
        raise InvalidHeaderError(f"Invalid {tag} value: {text!r}") from e
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidHeaderError(f"{tag} must be a positive number, got {text!r}")
    return value


def _parse_resolution(line: str) -> tuple[int, int] | None:
    """Parse "-Y <height> +X <width>"; None if the line is not a resolution line."""
    parts = line.split(" ")
    if len(parts) != 4 or parts[0] != "-Y" or parts[2] != "+X":
        return None
    height_text, width_text = parts[1], parts[3]
    if not (height_text.isascii() and height_text.isdigit()):
        return None
    if not (width_text.isascii() and width_text.isdigit()):
        return None
    return int(width_text), int(height_text)


def parse_radiance_header(data: bytes) -> tuple[RadianceHeader, int]:
    """Parse the header at the start of a Radiance file.

    Args:
        data: File contents (at least the complete header)

    Returns:
        Tuple of (header, offset of the first scanline byte)

    Raises:
        InvalidHeaderError: If the signature, a tag or the resolution line is
            malformed, or the data ends inside the header
    """
    signature, pos = _read_line(data, 0)
    if signature not in RADIANCE_SIGNATURES:
        raise InvalidHeaderError(f"Not a Radiance file (signature {signature[:32]!r})")

    fields: dict[str, object] = {"signature": signature}

    while True:
        line, pos = _read_line(data, pos)

        if line.startswith(_PRIMARIES_TAG):
            fields["primaries"] = line[len(_PRIMARIES_TAG) :].strip()
        elif line.startswith(_FORMAT_TAG):
            value = line[len(_FORMAT_TAG) :].strip()
            if value != RLE_FORMAT:
                raise InvalidHeaderError(f"Unsupported pixel format: {value!r}")
            fields["run_length_encoded"] = True
        elif line.startswith(_GAMMA_TAG):
            fields["gamma"] = _parse_positive_float("GAMMA", line[len(_GAMMA_TAG) :].strip())
        elif line.startswith(_EXPOSURE_TAG):
            fields["exposure"] = _parse_positive_float(
                "EXPOSURE", line[len(_EXPOSURE_TAG) :].strip()
            )
        elif (resolution := _parse_resolution(line)) is not None:
            fields["width"], fields["height"] = resolution
            break
        else:
            raise InvalidHeaderError(f"Unexpected header line: {line[:64]!r}")

    try:
        return RadianceHeader(**fields), pos  # type: ignore[arg-type]
    except ValueError as e:
        raise InvalidHeaderError(str(e)) from e


def emit_radiance_header(header: RadianceHeader) -> bytes:
    """Serialize `header`, ending with the resolution line."""
    lines = [header.signature]
    if header.gamma is not None:
        lines.append(f"{_GAMMA_TAG}{header.gamma}")
    if header.exposure is not None:
        lines.append(f"{_EXPOSURE_TAG}{header.exposure}")
    if header.primaries:
        lines.append(f"{_PRIMARIES_TAG}{header.primaries}")
    lines.append(f"{_FORMAT_TAG}{RLE_FORMAT}")
    lines.append("")
    lines.append(f"-Y {header.height} +X {header.width}")
    return ("\n".join(lines) + "\n").encode("ascii")
