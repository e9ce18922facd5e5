import math
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import stitch_order_core as soc  # noqa: E402

SQRT_2 = math.sqrt(2.0)


def half(x: int, y: int, facing_right: bool) -> soc.HalfStitch:
    return soc.HalfStitch(soc.Location(x, y), facing_right)


class HalfStitchGeometryTests(unittest.TestCase):
    def test_right_facing_end_location(self) -> None:
        self.assertEqual(half(1, 0, True).end, soc.Location(2, 1))

    def test_left_facing_end_location(self) -> None:
        self.assertEqual(soc.end_location(half(1, 0, False)), soc.Location(0, 1))

    def test_stitches_hash_by_value(self) -> None:
        stitches = {half(3, 4, True), half(3, 4, True), half(3, 4, False)}
        self.assertEqual(len(stitches), 2)

    def test_stitch_is_immutable(self) -> None:
        stitch = half(0, 0, True)
        with self.assertRaises(AttributeError):
            stitch.facing_right = False  # type: ignore[misc]

    def test_full_stitch_shares_a_row(self) -> None:
        right, left = soc.make_full_stitch(1, 1)
        self.assertEqual(right, half(1, 1, True))
        self.assertEqual(left, half(2, 1, False))


class DistanceTests(unittest.TestCase):
    def test_straight(self) -> None:
        self.assertEqual(soc.distance(soc.Location(0, 0), soc.Location(1, 0)), 1.0)
        self.assertEqual(soc.distance(soc.Location(0, 0), soc.Location(2, 0)), 2.0)

    def test_diagonal(self) -> None:
        self.assertAlmostEqual(soc.Location(0, 0).distance_to(soc.Location(1, 1)), SQRT_2, places=12)


class SequenceCostTests(unittest.TestCase):
    def test_one_full_stitch(self) -> None:
        cost = soc.sequence_cost(soc.make_full_stitch(1, 1))
        self.assertAlmostEqual(cost, 2 * SQRT_2 + 1.0, places=12)

    def test_two_full_stitches(self) -> None:
        sequence = soc.make_full_stitch(1, 1) + soc.make_full_stitch(2, 1)
        self.assertAlmostEqual(soc.sequence_cost(sequence), 4 * SQRT_2 + 2.0 + SQRT_2, places=12)

    def test_three_full_stitches(self) -> None:
        sequence = soc.make_full_stitch(1, 1) + soc.make_full_stitch(2, 1) + soc.make_full_stitch(3, 1)
        expected = 3 * (2 * SQRT_2 + 1.0) + 2 * SQRT_2
        self.assertAlmostEqual(soc.sequence_cost(sequence), expected, places=12)

    def test_final_anchor_on_last_end_adds_nothing(self) -> None:
        cost = soc.sequence_cost(soc.make_full_stitch(1, 1), soc.Location(1, 2))
        self.assertAlmostEqual(cost, 2 * SQRT_2 + 1.0, places=12)

    def test_final_anchor_adds_closing_move(self) -> None:
        sequence = soc.make_full_stitch(1, 1) + soc.make_full_stitch(2, 1)
        cost = soc.sequence_cost(sequence, soc.Location(1, 2))
        self.assertAlmostEqual(cost, 4 * SQRT_2 + 3.0 + SQRT_2, places=12)

    def test_row_of_right_halves(self) -> None:
        sequence = [half(x, 1, True) for x in range(1, 5)]
        self.assertAlmostEqual(soc.sequence_cost(sequence), 4 * SQRT_2 + 3.0, places=12)

    def test_pair_cost_is_travel_plus_two_diagonals(self) -> None:
        first, second = half(0, 0, True), half(4, 2, False)
        expected = soc.distance(first.end, second.start) + 2 * SQRT_2
        self.assertAlmostEqual(soc.sequence_cost([first, second]), expected, places=12)

    def test_empty_and_single_cost_only_the_diagonals(self) -> None:
        self.assertEqual(soc.sequence_cost([]), 0.0)
        self.assertEqual(soc.sequence_cost([], soc.Location(5, 5)), 0.0)
        self.assertAlmostEqual(soc.sequence_cost([half(3, 3, False)]), SQRT_2, places=12)

    def test_non_finite_cost_is_fatal(self) -> None:
        with self.assertRaises(soc.NonFiniteCostError):
            soc.sequence_cost([half(0, 0, True)], soc.Location(float("inf"), 0))  # type: ignore[arg-type]

    def test_breakdown_matches_total(self) -> None:
        sequence = soc.make_full_stitch(1, 1) + soc.make_full_stitch(2, 1)
        breakdown = soc.sequence_breakdown(sequence, soc.Location(1, 2))
        self.assertAlmostEqual(breakdown.stitch_length, 4 * SQRT_2, places=12)
        self.assertAlmostEqual(breakdown.travel_length, 2.0 + SQRT_2, places=12)
        self.assertAlmostEqual(breakdown.anchor_length, 1.0, places=12)
        self.assertAlmostEqual(breakdown.total, soc.sequence_cost(sequence, soc.Location(1, 2)), places=12)


class SequenceValidityTests(unittest.TestCase):
    def test_empty_and_single_are_valid(self) -> None:
        self.assertTrue(soc.is_valid_sequence([]))
        self.assertTrue(soc.is_valid_sequence([half(2, 1, False)]))

    def test_single_full_stitch(self) -> None:
        self.assertTrue(soc.is_valid_sequence(soc.make_full_stitch(1, 1)))

    def test_single_full_stitch_reversed(self) -> None:
        sequence = list(reversed(soc.make_full_stitch(1, 1)))
        # (2,1) left ends at (1,2), not at (1,1); it fails because its over stitch is missing.
        self.assertNotEqual(sequence[0].end, sequence[1].start)
        self.assertFalse(soc.is_valid_sequence(sequence))

    def test_two_full_stitches(self) -> None:
        sequence = soc.make_full_stitch(1, 1) + soc.make_full_stitch(2, 1)
        self.assertTrue(soc.is_valid_sequence(sequence))

    def test_resuming_where_previous_ended_is_invalid(self) -> None:
        self.assertFalse(soc.is_valid_sequence([half(1, 1, True), half(2, 2, True)]))

    def test_kick_to_next_row_is_invalid(self) -> None:
        sequence = [half(1, 1, True), half(2, 1, False), half(2, 2, True), half(3, 2, False)]
        self.assertFalse(soc.is_valid_sequence(sequence))

    def test_row_kick_is_invalid(self) -> None:
        sequence = [
            half(1, 1, True),
            half(2, 1, False),
            half(2, 1, True),
            half(3, 1, False),
            half(2, 2, True),
            half(3, 2, False),
        ]
        self.assertFalse(soc.is_valid_sequence(sequence))

    def test_under_stitch_needs_earlier_over_stitch(self) -> None:
        self.assertFalse(soc.is_valid_sequence([half(2, 1, False), half(5, 1, True)]))
        self.assertTrue(soc.is_valid_sequence([half(1, 1, True), half(2, 1, False), half(5, 1, True)]))

    def test_over_stitch_after_under_stitch_does_not_count(self) -> None:
        sequence = [half(2, 1, False), half(1, 1, True), half(5, 1, True)]
        self.assertFalse(soc.is_valid_sequence(sequence))


if __name__ == "__main__":
    unittest.main()
