#!/usr/bin/env python3
"""
CSV adapters: cross stitch patterns in, solved half-stitch sequences in and out.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

from stitch_order_core import HalfStitch, Location, StitchOrderError, make_full_stitch

logger = logging.getLogger(__name__)

PATTERN_FIELDS = ("X", "Y", "Modifier")
SEQUENCE_FIELDS = ("StartX", "StartY", "FacingRight")

FIRST_MODIFIERS = {"f"}
LAST_MODIFIERS = {"l"}
FIRST_AND_LAST_MODIFIERS = {"fl", "lf"}


class PatternFormatError(StitchOrderError, ValueError):
    """A CSV row could not be turned into stitches."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


@dataclass
class SolverInput:
    """Everything the search needs: optional first stitch, free pool, optional final location."""

    first: Optional[HalfStitch] = None
    free: List[HalfStitch] = field(default_factory=list)
    final_anchor: Optional[Location] = None


def _parse_int(row: Dict[str, str], key: str, line: int) -> int:
    raw = row.get(key)
    if raw is None or raw.strip() == "":
        raise PatternFormatError(f"missing {key}", line)
    try:
        return int(raw.strip())
    except ValueError:
        raise PatternFormatError(f"{key} is not an integer: {raw!r}", line) from None


def _parse_bool(raw: Optional[str], key: str, line: int) -> bool:
    text = (raw or "").strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0"):
        return False
    raise PatternFormatError(f"{key} is not a boolean: {raw!r}", line)


def _require_columns(reader: csv.DictReader, columns: Iterable[str]) -> None:
    present = set(reader.fieldnames or [])
    missing = [name for name in columns if name not in present]
    if missing:
        raise PatternFormatError(f"missing column(s): {', '.join(missing)}", 1)


def read_pattern(stream: TextIO) -> SolverInput:
    """Read ``X,Y,Modifier`` rows, one full stitch per row.

    ``f`` fixes the row's right half as the first stitch, ``l`` makes its left
    half the last stitch, ``fl``/``lf`` do both. The last stitch stays in the
    free pool; its end becomes the final anchor.
    """
    reader = csv.DictReader(stream)
    _require_columns(reader, PATTERN_FIELDS[:2])
    first: Optional[HalfStitch] = None
    last: Optional[HalfStitch] = None
    free: List[HalfStitch] = []
    for row in reader:
        line = reader.line_num
        right, left = make_full_stitch(_parse_int(row, "X", line), _parse_int(row, "Y", line))
        modifier = (row.get("Modifier") or "").strip().lower()
        takes_first = modifier in FIRST_MODIFIERS or modifier in FIRST_AND_LAST_MODIFIERS
        takes_last = modifier in LAST_MODIFIERS or modifier in FIRST_AND_LAST_MODIFIERS
        if takes_first:
            if first is not None:
                raise PatternFormatError("more than one first stitch", line)
            first = right
        else:
            free.append(right)
        if takes_last:
            if last is not None:
                raise PatternFormatError("more than one last stitch", line)
            last = left
        else:
            free.append(left)

    final_anchor: Optional[Location] = None
    if last is not None:
        final_anchor = last.end
        free.append(last)
    logger.info("Read %d free stitches (first=%s, final=%s)", len(free), first, final_anchor)
    return SolverInput(first=first, free=free, final_anchor=final_anchor)


def load_pattern(path: Path) -> SolverInput:
    with Path(path).open(newline="", encoding="utf-8") as handle:
        return read_pattern(handle)


def read_sequence(stream: TextIO) -> List[HalfStitch]:
    reader = csv.DictReader(stream)
    _require_columns(reader, SEQUENCE_FIELDS)
    sequence: List[HalfStitch] = []
    for row in reader:
        line = reader.line_num
        sequence.append(
            HalfStitch(
                Location(_parse_int(row, "StartX", line), _parse_int(row, "StartY", line)),
                _parse_bool(row.get("FacingRight"), "FacingRight", line),
            )
        )
    return sequence


def load_sequence(path: Path) -> List[HalfStitch]:
    with Path(path).open(newline="", encoding="utf-8") as handle:
        return read_sequence(handle)


def write_sequence(stream: TextIO, sequence: Iterable[HalfStitch]) -> None:
    writer = csv.writer(stream)
    writer.writerow(SEQUENCE_FIELDS)
    for stitch in sequence:
        writer.writerow([stitch.start.x, stitch.start.y, "true" if stitch.facing_right else "false"])


def save_sequence(sequence: List[HalfStitch], outfile: Path) -> None:
    outfile = Path(outfile)
    outfile.parent.mkdir(parents=True, exist_ok=True)
    with outfile.open("w", newline="", encoding="utf-8") as handle:
        write_sequence(handle, sequence)
