#!/usr/bin/env python3
"""
Core stitch model: grid locations, half stitches, sequence cost and placement rules.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

SQRT_2 = math.sqrt(2.0)


class StitchOrderError(Exception):
    """Base class for every error raised by the stitch ordering package."""


class NonFiniteCostError(StitchOrderError, ArithmeticError):
    """A sequence produced a NaN or infinite cost."""


@dataclass(frozen=True)
class Location:
    """Integer grid point."""

    x: int
    y: int

    def distance_to(self, other: "Location") -> float:
        return distance(self, other)


@dataclass(frozen=True)
class HalfStitch:
    """Unit diagonal stitch starting at ``start`` and leaning right or left."""

    start: Location
    facing_right: bool

    @property
    def end(self) -> Location:
        if self.facing_right:
            return Location(self.start.x + 1, self.start.y + 1)
        return Location(self.start.x - 1, self.start.y + 1)

    @classmethod
    def at(cls, x: int, y: int, facing_right: bool) -> "HalfStitch":
        return cls(Location(x, y), facing_right)


@dataclass
class CostBreakdown:
    """Split of a sequence cost into its stitched and travelled parts."""

    stitch_length: float
    travel_length: float
    anchor_length: float

    @property
    def total(self) -> float:
        return self.stitch_length + self.travel_length + self.anchor_length


def end_location(stitch: HalfStitch) -> Location:
    return stitch.end


def distance(a: Location, b: Location) -> float:
    """Euclidean distance between two grid points."""
    return math.hypot(a.x - b.x, a.y - b.y)


def make_full_stitch(x: int, y: int) -> List[HalfStitch]:
    """Return the over and under halves of the cross stitch whose lower-left corner is (x, y)."""
    return [HalfStitch(Location(x, y), True), HalfStitch(Location(x + 1, y), False)]


def sequence_breakdown(sequence: Sequence[HalfStitch], final_anchor: Optional[Location] = None) -> CostBreakdown:
    travel = 0.0
    for current, following in zip(sequence, sequence[1:]):
        travel += distance(current.end, following.start)
    anchor = 0.0
    if final_anchor is not None and sequence:
        anchor = distance(sequence[-1].end, final_anchor)
    return CostBreakdown(
        stitch_length=SQRT_2 * len(sequence),
        travel_length=travel,
        anchor_length=anchor,
    )


def sequence_cost(sequence: Sequence[HalfStitch], final_anchor: Optional[Location] = None) -> float:
    """Travel between stitches, plus the move to ``final_anchor``, plus sqrt(2) per stitch.

    Raises NonFiniteCostError if the total is NaN or infinite; such a value can
    only come from a malformed input and must not take part in comparisons.
    """
    cost = 0.0
    for current, following in zip(sequence, sequence[1:]):
        cost += distance(current.end, following.start)
    if final_anchor is not None and sequence:
        cost += distance(sequence[-1].end, final_anchor)
    cost += SQRT_2 * len(sequence)
    if not math.isfinite(cost):
        raise NonFiniteCostError(f"Sequence of {len(sequence)} stitches has non-finite cost {cost!r}")
    return cost


def is_valid_sequence(sequence: Sequence[HalfStitch]) -> bool:
    """Check both placement rules for every consecutive pair.

    A stitch may not start where the previous one ended, and a left-facing
    stitch must be preceded somewhere earlier by the right-facing stitch at
    (its x - 1, the next stitch's y).
    """
    placed_right: Set[Location] = set()
    for current, following in zip(sequence, sequence[1:]):
        if current.end == following.start:
            return False
        if current.facing_right:
            placed_right.add(current.start)
        elif Location(current.start.x - 1, following.start.y) not in placed_right:
            return False
    return True
