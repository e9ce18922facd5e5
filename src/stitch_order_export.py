#!/usr/bin/env python3
"""
Stitch path model and exporters (CSV, DXF, animated GIF) for solved sequences.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageOps

from stitch_order_core import HalfStitch, Location
from stitch_order_io import save_sequence


@dataclass
class PathEdge:
    """Single straight move of the needle, stitched or travelled."""

    start: Location
    end: Location
    needle_down: bool
    length: float


class StitchPathModel:
    """A stitch sequence flattened into stitched and travel edges with their lengths."""

    def __init__(self, sequence: Sequence[HalfStitch]) -> None:
        self.sequence: List[HalfStitch] = list(sequence)
        self.edges: List[PathEdge] = []
        self.total_length = 0.0
        self.stitch_length = 0.0
        self.travel_length = 0.0

        previous: Optional[HalfStitch] = None
        for stitch in self.sequence:
            if previous is not None and previous.end != stitch.start:
                self._append(previous.end, stitch.start, needle_down=False)
            self._append(stitch.start, stitch.end, needle_down=True)
            previous = stitch

        xs = [loc.x for stitch in self.sequence for loc in (stitch.start, stitch.end)]
        ys = [loc.y for stitch in self.sequence for loc in (stitch.start, stitch.end)]
        if xs and ys:
            self.bounds = (min(xs), min(ys), max(xs), max(ys))
        else:
            self.bounds = (0, 0, 0, 0)

    def _append(self, start: Location, end: Location, needle_down: bool) -> None:
        length = math.hypot(end.x - start.x, end.y - start.y)
        self.edges.append(PathEdge(start=start, end=end, needle_down=needle_down, length=length))
        self.total_length += length
        if needle_down:
            self.stitch_length += length
        else:
            self.travel_length += length


class ExportProfile:
    """Holds metadata about every supported export format."""

    def __init__(
        self,
        title: str,
        extension: str,
        description: str,
        writer: Callable[[List[HalfStitch], Path], None],
    ) -> None:
        self.title = title
        self.extension = extension
        self.description = description
        self.writer = writer


# Export writers -------------------------------------------------------------
def write_dxf(sequence: Sequence[HalfStitch], outfile: Path) -> None:
    def format_number(value: float) -> str:
        text = f"{value:.4f}".rstrip("0").rstrip(".")
        if text == "-0":
            text = "0"
        return text

    model = StitchPathModel(sequence)
    lines: List[str] = ["0", "SECTION", "2", "HEADER", "0", "ENDSEC", "0", "SECTION", "2", "ENTITIES"]
    for edge in model.edges:
        lines.extend(
            [
                "0",
                "LINE",
                "8",
                "STITCH" if edge.needle_down else "TRAVEL",
                "10",
                format_number(edge.start.x),
                "20",
                format_number(edge.start.y),
                "11",
                format_number(edge.end.x),
                "21",
                format_number(edge.end.y),
            ]
        )
    lines.extend(["0", "ENDSEC", "0", "EOF"])
    outfile = Path(outfile)
    outfile.parent.mkdir(parents=True, exist_ok=True)
    outfile.write_text("\n".join(lines), encoding="ascii")


def write_gif(
    sequence: Sequence[HalfStitch],
    outfile: Path,
    cell_px: int = 10,
    frame_ms: int = 500,
) -> None:
    """Animate the sequence one stitch per frame on a grid with +y pointing up."""
    if cell_px < 1:
        raise ValueError("cell_px must be at least 1")
    model = StitchPathModel(sequence)
    min_x, min_y, max_x, max_y = model.bounds
    origin_x = min(min_x, 0)
    origin_y = min(min_y, 0)
    margin = max(cell_px // 2, 1)

    def transform(loc: Location) -> Tuple[int, int]:
        return ((loc.x - origin_x) * cell_px + margin, (loc.y - origin_y) * cell_px + margin)

    width = transform(Location(max_x, max_y))[0] + margin + 1
    height = transform(Location(max_x, max_y))[1] + margin + 1

    canvas = Image.new("RGB", (width, height), "#ffffff")
    draw = ImageDraw.Draw(canvas)
    for stitch in model.sequence:
        draw.point([transform(stitch.start), transform(stitch.end)], fill="#000000")

    frames: List[Image.Image] = [ImageOps.flip(canvas)]
    for edge in model.edges:
        if not edge.needle_down:
            draw.line([transform(edge.start), transform(edge.end)], fill="#f4a1a1", width=1)
            continue
        draw.line([transform(edge.start), transform(edge.end)], fill="#000000", width=1)
        frames.append(ImageOps.flip(canvas))

    outfile = Path(outfile)
    outfile.parent.mkdir(parents=True, exist_ok=True)
    frames[0].save(
        outfile,
        save_all=True,
        append_images=frames[1:],
        duration=frame_ms,
        loop=0,
    )


EXPORT_PROFILES: Dict[str, ExportProfile] = {
    "CSV": ExportProfile(
        title="Stitch sequence CSV",
        extension="csv",
        description="StartX,StartY,FacingRight rows in stitching order",
        writer=save_sequence,
    ),
    "DXF": ExportProfile(
        title="AutoCAD DXF (lines)",
        extension="dxf",
        description="Stitches and travel moves as LINE entities",
        writer=write_dxf,
    ),
    "GIF": ExportProfile(
        title="Animated GIF",
        extension="gif",
        description="One frame per stitch, drawn in sequence order",
        writer=write_gif,
    ),
}


def profile_for_path(path: Path) -> ExportProfile:
    suffix = Path(path).suffix.lower().lstrip(".")
    for profile in EXPORT_PROFILES.values():
        if profile.extension == suffix:
            return profile
    known = ", ".join(sorted(f".{profile.extension}" for profile in EXPORT_PROFILES.values()))
    raise ValueError(f"Unsupported output format '{Path(path).suffix}' (expected one of {known})")
