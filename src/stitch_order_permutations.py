#!/usr/bin/env python3
"""
Index-addressable permutations with an optional fixed first and last element.
"""

from __future__ import annotations

import itertools
import math
from typing import Generic, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def lehmer_code(index: int, size: int) -> List[int]:
    """Digits of ``index`` in the factorial number system, most significant first."""
    if size < 0:
        raise ValueError("size must be non-negative")
    if not 0 <= index < math.factorial(size):
        raise IndexError(f"permutation index {index} out of range for {size} elements")
    digits: List[int] = []
    for radix in range(size, 0, -1):
        digit, index = divmod(index, math.factorial(radix - 1))
        digits.append(digit)
    return digits


class AffixedPermutations(Generic[T]):
    """Every ordering of ``free`` wrapped between an optional prefix and suffix.

    Elements are told apart by position, so repeated values still give
    ``len(free)!`` orderings. Orderings are numbered in lexicographic order of
    positions; ``permutation_at`` rebuilds any of them from its index alone,
    which lets parallel consumers share the space through a counter.
    """

    def __init__(self, prefix: Optional[T], suffix: Optional[T], free: Sequence[T]) -> None:
        self.prefix = prefix
        self.suffix = suffix
        self.free: List[T] = list(free)

    @property
    def free_elements(self) -> int:
        return len(self.free)

    @property
    def count(self) -> int:
        return math.factorial(len(self.free))

    def _affix(self, middle: Sequence[T]) -> List[T]:
        result: List[T] = []
        if self.prefix is not None:
            result.append(self.prefix)
        result.extend(middle)
        if self.suffix is not None:
            result.append(self.suffix)
        return result

    def permutation_at(self, index: int) -> List[T]:
        remaining = self.free[:]
        middle = [remaining.pop(digit) for digit in lehmer_code(index, len(self.free))]
        return self._affix(middle)

    def __getitem__(self, index: int) -> List[T]:
        return self.permutation_at(index)

    def __iter__(self) -> Iterator[List[T]]:
        # itertools walks positions in the same lexicographic order as permutation_at.
        for middle in itertools.permutations(self.free):
            yield self._affix(middle)

    def __repr__(self) -> str:
        return f"AffixedPermutations(prefix={self.prefix!r}, suffix={self.suffix!r}, free={len(self.free)})"
