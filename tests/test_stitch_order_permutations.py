import math
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import stitch_order_core as soc  # noqa: E402
import stitch_order_permutations as sop  # noqa: E402


class LehmerCodeTests(unittest.TestCase):
    def test_first_and_last_codes(self) -> None:
        self.assertEqual(sop.lehmer_code(0, 3), [0, 0, 0])
        self.assertEqual(sop.lehmer_code(5, 3), [2, 1, 0])
        self.assertEqual(sop.lehmer_code(0, 0), [])

    def test_out_of_range(self) -> None:
        with self.assertRaises(IndexError):
            sop.lehmer_code(6, 3)
        with self.assertRaises(IndexError):
            sop.lehmer_code(-1, 3)


class AffixedPermutationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.free = [soc.HalfStitch.at(x, 0, True) for x in range(3)]
        self.prefix = soc.HalfStitch.at(9, 9, True)
        self.suffix = soc.HalfStitch.at(8, 8, False)

    def test_emits_every_permutation_once(self) -> None:
        perms = sop.AffixedPermutations(None, None, self.free)
        emitted = [tuple(p) for p in perms]
        self.assertEqual(perms.count, 6)
        self.assertEqual(len(emitted), 6)
        self.assertEqual(len(set(emitted)), 6)
        for sequence in emitted:
            self.assertCountEqual(sequence, self.free)

    def test_prefix_and_suffix_are_affixed(self) -> None:
        perms = sop.AffixedPermutations(self.prefix, self.suffix, self.free)
        for sequence in perms:
            self.assertEqual(len(sequence), 5)
            self.assertEqual(sequence[0], self.prefix)
            self.assertEqual(sequence[-1], self.suffix)
            self.assertCountEqual(sequence[1:-1], self.free)

    def test_prefix_only(self) -> None:
        perms = sop.AffixedPermutations(self.prefix, None, self.free)
        self.assertTrue(all(sequence[0] == self.prefix for sequence in perms))

    def test_index_access_matches_iteration_order(self) -> None:
        perms = sop.AffixedPermutations(self.prefix, None, self.free)
        self.assertEqual(list(perms), [perms.permutation_at(k) for k in range(perms.count)])
        self.assertEqual(perms[0], [self.prefix] + self.free)
        self.assertEqual(perms[5], [self.prefix] + self.free[::-1])

    def test_iteration_restarts(self) -> None:
        perms = sop.AffixedPermutations(None, None, self.free)
        self.assertEqual(list(perms), list(perms))

    def test_no_free_elements_emits_anchors_once(self) -> None:
        self.assertEqual(list(sop.AffixedPermutations(self.prefix, self.suffix, [])), [[self.prefix, self.suffix]])
        self.assertEqual(list(sop.AffixedPermutations(None, None, [])), [[]])
        self.assertEqual(sop.AffixedPermutations(None, None, []).count, 1)

    def test_repeated_values_are_distinct_slots(self) -> None:
        twin = soc.HalfStitch.at(1, 1, True)
        perms = list(sop.AffixedPermutations(None, None, [twin, twin]))
        self.assertEqual(perms, [[twin, twin], [twin, twin]])

    def test_count_is_factorial(self) -> None:
        free = [soc.HalfStitch.at(x, 0, x % 2 == 0) for x in range(12)]
        perms = sop.AffixedPermutations(None, None, free)
        self.assertEqual(perms.count, math.factorial(12))
        self.assertCountEqual(perms[perms.count - 1], free)

    def test_out_of_range_index(self) -> None:
        perms = sop.AffixedPermutations(None, None, self.free)
        with self.assertRaises(IndexError):
            perms.permutation_at(6)


if __name__ == "__main__":
    unittest.main()
