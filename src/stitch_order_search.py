#!/usr/bin/env python3
"""
Parallel minimum-cost search over permutation and closest-N candidate spaces.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set

from stitch_order_closest import ClosestNFamily
from stitch_order_core import HalfStitch, Location, is_valid_sequence, sequence_cost
from stitch_order_permutations import AffixedPermutations

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 256
CANCEL_POLL_S = 0.05

ProgressCallback = Callable[[int], None]

# Per-process state installed by _init_worker.
WORKER_CONTEXT: Dict[str, object] = {}


class CandidateSource(Protocol):
    @property
    def count(self) -> int: ...

    def __getitem__(self, index: int) -> List[HalfStitch]: ...


class CancelToken:
    """Cooperative stop flag checked by workers between candidate evaluations."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._timer: Optional[threading.Timer] = None

    @classmethod
    def after(cls, seconds: float) -> "CancelToken":
        """Token that cancels itself once ``seconds`` have elapsed."""
        token = cls()
        token._timer = threading.Timer(seconds, token.cancel)
        token._timer.daemon = True
        token._timer.start()
        return token

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class IndexCursor:
    """Hands out consecutive index ranges; each index is claimed exactly once."""

    def __init__(self, total: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.total = total
        self.chunk_size = chunk_size
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[range]:
        with self._lock:
            if self._next >= self.total:
                return None
            start = self._next
            self._next = min(start + self.chunk_size, self.total)
            return range(start, self._next)


@dataclass
class SearchResult:
    """Winning sequence of a search run, or ``sequence=None`` when nothing qualified."""

    mode: str
    sequence: Optional[List[HalfStitch]]
    cost: Optional[float]
    evaluated: int = 0
    rejected: int = 0
    cancelled: bool = False
    elapsed_s: float = 0.0

    @property
    def found(self) -> bool:
        return self.sequence is not None


@dataclass
class _Tally:
    sequence: Optional[List[HalfStitch]] = None
    cost: Optional[float] = None
    evaluated: int = 0
    rejected: int = 0

    @property
    def processed(self) -> int:
        return self.evaluated + self.rejected

    def offer(self, sequence: List[HalfStitch], cost: float) -> None:
        self.evaluated += 1
        if self.cost is None or cost < self.cost:
            self.sequence = sequence
            self.cost = cost

    def merge(self, other: "_Tally") -> "_Tally":
        merged = _Tally(evaluated=self.evaluated + other.evaluated, rejected=self.rejected + other.rejected)
        if other.cost is not None and (self.cost is None or other.cost < self.cost):
            merged.sequence, merged.cost = other.sequence, other.cost
        else:
            merged.sequence, merged.cost = self.sequence, self.cost
        return merged


def default_worker_count() -> int:
    return os.cpu_count() or 1


def _scan(
    source: CandidateSource,
    indices: Iterable[int],
    final_anchor: Optional[Location],
    validate: bool,
    stopped: Callable[[], bool],
) -> _Tally:
    tally = _Tally()
    for index in indices:
        if stopped():
            break
        candidate = source[index]
        if validate and not is_valid_sequence(candidate):
            tally.rejected += 1
            continue
        tally.offer(candidate, sequence_cost(candidate, final_anchor))
    return tally


def _init_worker(source: CandidateSource, final_anchor: Optional[Location], validate: bool, stop) -> None:
    WORKER_CONTEXT["source"] = source
    WORKER_CONTEXT["final_anchor"] = final_anchor
    WORKER_CONTEXT["validate"] = validate
    WORKER_CONTEXT["stop"] = stop


def _scan_chunk(start: int, stop: int) -> _Tally:
    stop_event = WORKER_CONTEXT["stop"]
    tally = _scan(
        WORKER_CONTEXT["source"],  # type: ignore[arg-type]
        range(start, stop),
        WORKER_CONTEXT["final_anchor"],  # type: ignore[arg-type]
        bool(WORKER_CONTEXT["validate"]),
        stop_event.is_set,  # type: ignore[attr-defined]
    )
    logger.debug(
        "pid %d scanned [%d, %d): %d evaluated, %d rejected", os.getpid(), start, stop, tally.evaluated, tally.rejected
    )
    return tally


def _reduce_in_process(
    source: CandidateSource,
    cursor: IndexCursor,
    final_anchor: Optional[Location],
    validate: bool,
    stopped: Callable[[], bool],
    progress: Optional[ProgressCallback],
) -> _Tally:
    best = _Tally()
    while not stopped():
        claimed = cursor.claim()
        if claimed is None:
            break
        tally = _scan(source, claimed, final_anchor, validate, stopped)
        best = best.merge(tally)
        if progress is not None and tally.processed:
            progress(tally.processed)
    return best


def _reduce_in_pool(
    source: CandidateSource,
    cursor: IndexCursor,
    final_anchor: Optional[Location],
    validate: bool,
    workers: int,
    cancel: Optional[CancelToken],
    progress: Optional[ProgressCallback],
) -> _Tally:
    context = multiprocessing.get_context()
    stop_event = context.Event()
    best = _Tally()
    pending: Set[Future] = set()

    def refill() -> None:
        if cancel is not None and cancel.cancelled:
            stop_event.set()
        while len(pending) < workers * 2 and not stop_event.is_set():
            claimed = cursor.claim()
            if claimed is None:
                return
            pending.add(executor.submit(_scan_chunk, claimed.start, claimed.stop))

    with ProcessPoolExecutor(
        max_workers=workers,
        mp_context=context,
        initializer=_init_worker,
        initargs=(source, final_anchor, validate, stop_event),
    ) as executor:
        try:
            refill()
            while pending:
                done, _ = wait(pending, timeout=CANCEL_POLL_S, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.discard(future)
                    tally = future.result()
                    best = best.merge(tally)
                    if progress is not None and tally.processed:
                        progress(tally.processed)
                refill()
        except BaseException:
            stop_event.set()
            for future in pending:
                future.cancel()
            raise
    return best


def _reduce(
    mode: str,
    source: CandidateSource,
    final_anchor: Optional[Location],
    validate: bool,
    workers: Optional[int],
    cancel: Optional[CancelToken],
    progress: Optional[ProgressCallback],
    chunk_size: int,
) -> SearchResult:
    if workers is None:
        workers = default_worker_count()
    if workers < 1:
        raise ValueError("workers must be at least 1")

    cursor = IndexCursor(source.count, chunk_size)

    def stopped() -> bool:
        return cancel is not None and cancel.cancelled

    logger.info("Starting %s search over %d candidates with %d workers", mode, source.count, workers)
    started = time.monotonic()
    if workers < 2 or stopped():
        best = _reduce_in_process(source, cursor, final_anchor, validate, stopped, progress)
    else:
        best = _reduce_in_pool(source, cursor, final_anchor, validate, workers, cancel, progress)
    elapsed = time.monotonic() - started
    cancelled = stopped()
    if best.sequence is None:
        logger.info("No valid sequence found after %d candidates (%.2fs)", best.rejected, elapsed)
    else:
        logger.info("Best cost %.6f from %d candidates (%.2fs)", best.cost, best.evaluated, elapsed)
    return SearchResult(
        mode=mode,
        sequence=best.sequence,
        cost=best.cost,
        evaluated=best.evaluated,
        rejected=best.rejected,
        cancelled=cancelled,
        elapsed_s=elapsed,
    )


def exhaustive_search(
    first: Optional[HalfStitch],
    free: Sequence[HalfStitch],
    final_anchor: Optional[Location] = None,
    *,
    fixed_last: Optional[HalfStitch] = None,
    workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> SearchResult:
    """Score every placement-valid permutation of ``free`` and keep the cheapest.

    Returns a result with ``sequence=None`` when no permutation passes the
    placement rules. With more than one worker, chunks of permutation indices
    are scored in separate processes.
    """
    permutations = AffixedPermutations(first, fixed_last, free)
    return _reduce("brute-force", permutations, final_anchor, True, workers, cancel, progress, chunk_size)


def closest_n_search(
    first: Optional[HalfStitch],
    free: Sequence[HalfStitch],
    final_anchor: Optional[Location] = None,
    n: int = 3,
    *,
    enforce_placement: bool = False,
    workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> SearchResult:
    """Score every closest-N candidate and keep the cheapest.

    Candidates are not checked against the under/over placement rule unless
    ``enforce_placement`` is set.
    """
    family = ClosestNFamily(free, n, start=first)
    if family.count == 0:
        return SearchResult(mode="closest-n", sequence=[], cost=0.0)
    return _reduce("closest-n", family, final_anchor, enforce_placement, workers, cancel, progress, chunk_size)


def candidate_count(mode: str, first: Optional[HalfStitch], free: Sequence[HalfStitch], n: int = 3) -> int:
    """Number of candidates a search in ``mode`` would visit, for progress reporting."""
    if mode == "brute-force":
        return AffixedPermutations(first, None, free).count
    if mode == "closest-n":
        return ClosestNFamily(free, n, start=first).count
    raise ValueError(f"Solver mode '{mode}' not recognised")
