#!/usr/bin/env -S uv run --quiet --script
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "numpy>=1.26",
#     "rich>=13.0.0",
# ]
# ///
#
# SPDX-License-Identifier: MPL-2.0
# Copyright (c) 2025-2026 Aryan Ameri
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""
Round-trip test for the Radiance (.hdr) and PFM (.pfm) codecs.

For every .hdr and .pfm file in a directory:
1. Read the image into a float32 buffer
2. Write it back as <stem>_out.hdr (run-length encoded RGBE) and <stem>_out.pfm
3. Read both outputs again and compare them against the source buffer

The summary table shows per-file read success, whether each round trip
matches within the tolerance, value statistics and the max/average absolute
errors. PFM round trips are lossless; RGBE round trips are exact for images
that came from an RGBE file and otherwise within 2^-8 of each pixel's
largest channel (the "Bound" column).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from enum import StrEnum
from pathlib import Path
from typing import ClassVar, Final, override

import numpy as np
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from hdr_errors import HdrError
from hdr_image import ImageBuffer, image_dimensions
from pfm_format import read_pfm, write_pfm
from radiance_hdr import read_radiance, write_radiance
from radiance_header import REC2020_PRIMARIES, RadianceHeader
from rgbe_pixel import RGBE_ZERO_THRESHOLD

__all__: Final[list[str]] = [
    "RoundTripConfig",
    "BufferComparison",
    "RoundTripResult",
    "find_images",
    "compare_buffers",
    "within_rgbe_bound",
    "roundtrip_image",
    "main",
]

__version__: Final[str] = "1.0.0"

IMAGE_SUFFIXES: Final[frozenset[str]] = frozenset({".hdr", ".pfm"})

# Largest RGBE error relative to the pixel's maximum channel
RGBE_RELATIVE_BOUND: Final[float] = 2.0**-8

# Console for rich output
console = Console()

logger = logging.getLogger("hdr_roundtrip")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True, kw_only=True)
class RoundTripConfig:
    """Configuration for a round-trip run."""

    output_dir: Path
    tolerance: float = 1e-3
    jobs: int = 1
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.tolerance > 0.0:
            msg = f"tolerance must be > 0, got {self.tolerance}"
            raise ValueError(msg)
        if self.jobs < 1:
            msg = f"jobs must be >= 1, got {self.jobs}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class BufferComparison:
    """Difference between a source buffer and its round-tripped copy."""

    same: bool
    max_error: float
    avg_error: float


@dataclass(frozen=True, slots=True)
class RoundTripResult:
    """Outcome of round-tripping one source file."""

    source: Path
    width: int = 0
    height: int = 0
    hdr: BufferComparison | None = None
    pfm: BufferComparison | None = None
    hdr_within_bound: bool = False
    value_range: tuple[float, float, float] | None = None
    error: str | None = None

    @property
    def read_ok(self) -> bool:
        """True if the source and both outputs were read back."""
        return self.error is None


# =============================================================================
# Comparison
# =============================================================================


def compare_buffers(
    expected: ImageBuffer,
    actual: ImageBuffer,
    tolerance: float = 1e-3,
) -> BufferComparison:
    """Compare two image buffers by absolute error.

    Buffers are "same" when their shapes match and the largest absolute
    difference is below `tolerance`. NaN in both buffers at the same
    position counts as equal.
    """
    if expected.shape != actual.shape:
        return BufferComparison(False, float("inf"), float("inf"))
    if expected.size == 0:
        return BufferComparison(True, 0.0, 0.0)

    a = expected.astype(np.float64)
    b = actual.astype(np.float64)
    with np.errstate(invalid="ignore"):
        diff = np.abs(a - b)
    diff = np.where(np.isnan(a) & np.isnan(b), 0.0, diff)

    max_error = float(diff.max())
    avg_error = float(diff.mean())
    return BufferComparison(bool(max_error < tolerance), max_error, avg_error)


def within_rgbe_bound(expected: ImageBuffer, actual: ImageBuffer) -> bool:
    """Check the RGBE quantization bound for every channel of every pixel."""
    if expected.shape != actual.shape:
        return False
    a = expected.astype(np.float64)
    b = actual.astype(np.float64)
    limit = a.max(axis=-1, keepdims=True) * RGBE_RELATIVE_BOUND + RGBE_ZERO_THRESHOLD
    return bool(np.all(np.abs(a - b) <= limit))


def _value_range(image: ImageBuffer) -> tuple[float, float, float] | None:
    if image.size == 0:
        return None
    return (float(image.min()), float(image.mean(dtype=np.float64)), float(image.max()))


# =============================================================================
# File Discovery
# =============================================================================


def find_images(directory: Path) -> list[Path]:
    """Find .hdr and .pfm files (case-insensitive) directly in `directory`."""
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
    )


# =============================================================================
# Processing Pipeline
# =============================================================================


def _read_source(source: Path) -> tuple[RadianceHeader, ImageBuffer]:
    """Read a source file and the Radiance header to write it back with."""
    if source.suffix.lower() == ".hdr":
        header, image = read_radiance(source)
        return replace(header, run_length_encoded=True), image

    _, image = read_pfm(source)
    width, height = image_dimensions(image)
    header = RadianceHeader(
        width=width, height=height, primaries=REC2020_PRIMARIES, run_length_encoded=True
    )
    return header, image


def roundtrip_image(source: Path, config: RoundTripConfig) -> RoundTripResult:
    """Round-trip one file through both formats and compare the results."""
    hdr_out = config.output_dir / f"{source.stem}_out.hdr"
    pfm_out = config.output_dir / f"{source.stem}_out.pfm"

    try:
        header, image = _read_source(source)
        write_radiance(hdr_out, header, image)
        write_pfm(pfm_out, image)

        _, hdr_back = read_radiance(hdr_out)
        _, pfm_back = read_pfm(pfm_out)
    except HdrError as e:
        logger.debug("%s failed: %s", source, e)
        return RoundTripResult(source, error=f"{e.kind}: {e}")
    except (OSError, ValueError) as e:
        logger.debug("%s failed: %s", source, e)
        return RoundTripResult(source, error=f"Unexpected error: {e}")

    return RoundTripResult(
        source,
        width=header.width,
        height=header.height,
        hdr=compare_buffers(image, hdr_back, config.tolerance),
        pfm=compare_buffers(image, pfm_back, config.tolerance),
        hdr_within_bound=within_rgbe_bound(image, hdr_back),
        value_range=_value_range(image),
    )


def process_all(sources: list[Path], config: RoundTripConfig) -> list[RoundTripResult]:
    """Round-trip all files with parallel execution and progress display."""
    results: list[RoundTripResult] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Round-tripping images...", total=len(sources))

        with ThreadPoolExecutor(max_workers=config.jobs) as executor:
            futures = {executor.submit(roundtrip_image, src, config): src for src in sources}

            for future in as_completed(futures):
                result = future.result()
                results.append(result)
                if not result.read_ok:
                    console.print(f"  [red]✗[/red] {result.source.name}: {result.error}")
                elif config.verbose:
                    console.print(f"  [green]✓[/green] {result.source.name}")
                progress.advance(task)

    results.sort(key=lambda r: r.source)
    return results


# =============================================================================
# Reporting
# =============================================================================


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


def _errors(comparison: BufferComparison | None) -> str:
    if comparison is None:
        return "-"
    return f"{comparison.max_error:.3f} / {comparison.avg_error:.3f}"


def print_results(results: list[RoundTripResult]) -> None:
    """Print the per-file summary table."""
    table = Table(title="Round-Trip Results")
    table.add_column("File", style="cyan")
    table.add_column("Size")
    table.add_column("Read")
    table.add_column("Same (hdr, pfm)")
    table.add_column("Bound")
    table.add_column("Min / Mean / Max")
    table.add_column("HDR err (max / avg)")
    table.add_column("PFM err (max / avg)")

    for r in results:
        if not r.read_ok or r.hdr is None or r.pfm is None:
            table.add_row(r.source.name, "-", _yes_no(False), "-", "-", "-", "-", "-")
            continue

        values = "-"
        if r.value_range is not None:
            values = "{:.3f} / {:.3f} / {:.3f}".format(*r.value_range)
        table.add_row(
            r.source.name,
            f"{r.width} x {r.height}",
            _yes_no(True),
            f"{_yes_no(r.hdr.same)}, {_yes_no(r.pfm.same)}",
            _yes_no(r.hdr_within_bound),
            values,
            _errors(r.hdr),
            _errors(r.pfm),
        )

    console.print(table)


# =============================================================================
# Logging
# =============================================================================


class _AnsiColor(StrEnum):
    """ANSI color codes for terminal output."""

    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    RED = "\033[0;31m"
    GRAY = "\033[0;37m"
    RESET = "\033[0m"


class _ColoredFormatter(logging.Formatter):
    """Logging formatter with colored level names."""

    _LEVEL_COLORS: ClassVar[dict[int, str]] = {
        logging.DEBUG: _AnsiColor.GRAY,
        logging.INFO: _AnsiColor.GREEN,
        logging.WARNING: _AnsiColor.YELLOW,
        logging.ERROR: _AnsiColor.RED,
    }

    @override
    def format(self, record: logging.LogRecord) -> str:
        color = self._LEVEL_COLORS.get(record.levelno, _AnsiColor.RESET)
        return f"{color}[{record.levelname}]{_AnsiColor.RESET} {record.getMessage()}"


def _configure_logging(verbose: bool) -> None:
    """Send codec log records to stderr; debug detail only when verbose."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_ColoredFormatter())
        root.addHandler(handler)


# =============================================================================
# CLI
# =============================================================================


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Round-trip .hdr and .pfm images through both codecs and report errors.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output:
  <output>/<stem>_out.hdr   - run-length encoded Radiance RGBE
  <output>/<stem>_out.pfm   - little-endian RGB Portable Float Map

Examples:
  %(prog)s images/                 Round-trip every image in images/
  %(prog)s images/ -o /tmp/rt      Write outputs to /tmp/rt
  %(prog)s images/ -t 0.01 -v      Looser tolerance, verbose
        """,
    )

    parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory containing .hdr/.pfm files (default: current directory)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        metavar="DIR",
        help="Output directory (default: <directory>/output)",
    )
    parser.add_argument(
        "-t",
        "--tolerance",
        type=float,
        default=1e-3,
        metavar="T",
        help="Max absolute error for buffers to count as the same (default: 0.001)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Parallel jobs (default: CPU count)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    args = parse_args(argv)
    _configure_logging(args.verbose)

    directory = Path(args.directory).resolve()
    if not directory.is_dir():
        console.print(f"[red]Error:[/red] '{directory}' is not a directory")
        sys.exit(1)

    try:
        config = RoundTripConfig(
            output_dir=(args.output or directory / "output").resolve(),
            tolerance=args.tolerance,
            jobs=args.jobs or os.cpu_count() or 1,
            verbose=args.verbose,
        )
    except ValueError as exc:
        sys.exit(f"Error: Invalid configuration: {exc}")

    sources = find_images(directory)
    if not sources:
        console.print(f"[yellow]No .hdr or .pfm files found in {directory}[/yellow]")
        sys.exit(0)

    config.output_dir.mkdir(parents=True, exist_ok=True)

    console.print()
    console.print(f"[bold]HDR Round-Trip v{__version__}[/bold]")
    console.print(f"Directory: {directory}")
    console.print(f"Output: {config.output_dir}")
    console.print(f"Found: {len(sources)} image(s)")
    console.print()

    results = process_all(sources, config)
    print_results(results)

    failure_count = sum(1 for r in results if not r.read_ok)
    console.print()
    if failure_count == 0:
        console.print(f"[green]Complete:[/green] {len(results)} file(s) round-tripped")
    else:
        console.print(
            f"[yellow]Complete:[/yellow] {len(results) - failure_count} succeeded, "
            f"[red]{failure_count} failed[/red]"
        )

    sys.exit(0 if failure_count == 0 else 1)


if __name__ == "__main__":
    main()
