#!/usr/bin/env python3
"""
Closest-N candidate families: at each step pick one of the n nearest unused stitches.
"""

from __future__ import annotations

import bisect
import itertools
import logging
import threading
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from stitch_order_core import HalfStitch, Location, distance

logger = logging.getLogger(__name__)


class DistanceCache:
    """Memoised ranking of a fixed stitch pool by distance from an end location.

    Each ranking is built once per run. Readers that find a ranking never
    block; the first reader of a missing key takes that key's lock so
    concurrent workers do not rank the same key twice.
    """

    def __init__(self, pool: Sequence[HalfStitch]) -> None:
        self._pool: Tuple[HalfStitch, ...] = tuple(pool)
        self._rankings: Dict[Location, Tuple[HalfStitch, ...]] = {}
        self._key_locks: Dict[Location, threading.Lock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._rankings)

    def __getstate__(self) -> Dict[str, Tuple[HalfStitch, ...]]:
        # Locks do not pickle; a copy in another process ranks from scratch.
        return {"pool": self._pool}

    def __setstate__(self, state: Dict[str, Tuple[HalfStitch, ...]]) -> None:
        self.__init__(state["pool"])

    def _rank(self, origin: Location) -> Tuple[HalfStitch, ...]:
        candidates = [stitch for stitch in self._pool if stitch.start != origin]
        # sorted() is stable, so equal distances keep pool order.
        candidates = sorted(candidates, key=lambda stitch: distance(origin, stitch.start))
        return tuple(candidates)

    def ranked_from(self, stitch: HalfStitch) -> Tuple[HalfStitch, ...]:
        """Pool stitches ordered by distance from the end of ``stitch``."""
        key = stitch.end
        ranking = self._rankings.get(key)
        if ranking is not None:
            return ranking
        with self._guard:
            lock = self._key_locks.setdefault(key, threading.Lock())
        with lock:
            ranking = self._rankings.get(key)
            if ranking is None:
                ranking = self._rank(key)
                self._rankings[key] = ranking
                logger.debug("Ranked %d stitches from %s", len(ranking), key)
        return ranking


def _check_rank_bound(n: int) -> None:
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValueError(f"closest-n rank bound must be a positive integer, got {n!r}")


class ClosestNCandidates:
    """All sequences from a fixed start where each step takes one of the ``n`` nearest unused stitches.

    Candidate ``k`` is read as ``len(pool)`` base-``n`` digits, most
    significant first; digit ``i`` is the rank chosen at step ``i``. A rank past
    the end of the unused list takes the farthest unused stitch, and a
    sequence stops early once nothing unused is reachable. The under/over
    placement rule is not checked here.
    """

    def __init__(
        self,
        start: HalfStitch,
        pool: Sequence[HalfStitch],
        n: int,
        cache: Optional[DistanceCache] = None,
    ) -> None:
        _check_rank_bound(n)
        self.start = start
        self.pool: List[HalfStitch] = list(pool)
        self.n = n
        self.cache = cache if cache is not None else DistanceCache(self.pool)

    @property
    def steps(self) -> int:
        return len(self.pool)

    @property
    def count(self) -> int:
        return self.n ** self.steps

    def choices_at(self, index: int) -> List[int]:
        if not 0 <= index < self.count:
            raise IndexError(f"candidate index {index} out of range for {self.count} candidates")
        digits = [0] * self.steps
        for position in range(self.steps - 1, -1, -1):
            index, digits[position] = divmod(index, self.n)
        return digits

    def _pick(self, current: HalfStitch, rank: int, visited: Set[HalfStitch]) -> Optional[HalfStitch]:
        seen = 0
        farthest: Optional[HalfStitch] = None
        for stitch in self.cache.ranked_from(current):
            if stitch in visited:
                continue
            if seen == rank:
                return stitch
            seen += 1
            farthest = stitch
        return farthest

    def build(self, choices: Sequence[int]) -> List[HalfStitch]:
        sequence = [self.start]
        visited = {self.start}
        for rank in choices:
            stitch = self._pick(sequence[-1], rank, visited)
            if stitch is None:
                break
            sequence.append(stitch)
            visited.add(stitch)
        return sequence

    def candidate_at(self, index: int) -> List[HalfStitch]:
        return self.build(self.choices_at(index))

    def __getitem__(self, index: int) -> List[HalfStitch]:
        return self.candidate_at(index)

    def __iter__(self) -> Iterator[List[HalfStitch]]:
        for choices in itertools.product(range(self.n), repeat=self.steps):
            yield self.build(choices)


class ClosestNFamily:
    """Closest-N candidates for a fixed start, or the union over every pool stitch as start."""

    def __init__(self, pool: Sequence[HalfStitch], n: int, start: Optional[HalfStitch] = None) -> None:
        _check_rank_bound(n)
        self.pool: List[HalfStitch] = list(pool)
        self.n = n
        self.start = start
        self.cache = DistanceCache(self.pool)
        self.members: List[ClosestNCandidates] = []
        if start is not None:
            self.members.append(ClosestNCandidates(start, self.pool, n, cache=self.cache))
        else:
            for first in self.pool:
                others = [stitch for stitch in self.pool if stitch != first]
                self.members.append(ClosestNCandidates(first, others, n, cache=self.cache))
        self._offsets: List[int] = []
        total = 0
        for member in self.members:
            self._offsets.append(total)
            total += member.count
        self._count = total

    @property
    def count(self) -> int:
        return self._count

    def candidate_at(self, index: int) -> List[HalfStitch]:
        if not 0 <= index < self._count:
            raise IndexError(f"candidate index {index} out of range for {self._count} candidates")
        slot = bisect.bisect_right(self._offsets, index) - 1
        return self.members[slot].candidate_at(index - self._offsets[slot])

    def __getitem__(self, index: int) -> List[HalfStitch]:
        return self.candidate_at(index)

    def __iter__(self) -> Iterator[List[HalfStitch]]:
        for member in self.members:
            yield from member
