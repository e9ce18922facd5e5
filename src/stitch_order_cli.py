#!/usr/bin/env python3
"""
Command line entry point: solve a pattern, visualise a sequence, or calculate its cost.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm

import stitch_order_search as search
from stitch_order_core import HalfStitch, StitchOrderError, sequence_breakdown, sequence_cost
from stitch_order_export import ExportProfile, profile_for_path
from stitch_order_io import SolverInput, load_pattern, load_sequence, read_pattern, read_sequence

WORKERS_ENV = "STITCH_ORDER_WORKERS"
CLOSEST_N_ENV = "STITCH_ORDER_CLOSEST_N"
MODES = ("closest-n", "brute-force")
PROGRESS_FORMAT = "{elapsed} {bar} {n_fmt}/{total_fmt} ({percentage:3.0f}%) [{remaining}]"


def _env_int(name: str, fallback: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    if not raw:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        raise SystemExit(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise SystemExit(f"{name} must be a positive integer, got {raw!r}")
    return value


def _load_pattern(path: str) -> SolverInput:
    if path == "-":
        return read_pattern(sys.stdin)
    return load_pattern(Path(path).expanduser())


def _load_sequence(path: str) -> List[HalfStitch]:
    if path == "-":
        return read_sequence(sys.stdin)
    return load_sequence(Path(path).expanduser())


def _output_profile(path: Path) -> ExportProfile:
    try:
        return profile_for_path(path)
    except ValueError as exc:
        raise SystemExit(str(exc)) from None


def _print_sequence(sequence: Sequence[HalfStitch]) -> None:
    for stitch in sequence:
        facing = "right" if stitch.facing_right else "left"
        print(f"  ({stitch.start.x}, {stitch.start.y}) {facing}")


def run_solve(args: argparse.Namespace) -> int:
    data = _load_pattern(args.input)
    profile = _output_profile(args.output_file)
    total = search.candidate_count(args.mode, data.first, data.free, args.closest_n)
    cancel = search.CancelToken.after(args.time_limit) if args.time_limit else None

    bar = None
    progress = None
    if not args.no_progress:
        bar = tqdm(total=total, unit="seq", bar_format=PROGRESS_FORMAT, file=sys.stderr)
        progress = bar.update
    try:
        if args.mode == "brute-force":
            result = search.exhaustive_search(
                data.first,
                data.free,
                data.final_anchor,
                workers=args.workers,
                cancel=cancel,
                progress=progress,
            )
        else:
            result = search.closest_n_search(
                data.first,
                data.free,
                data.final_anchor,
                args.closest_n,
                enforce_placement=args.enforce_placement,
                workers=args.workers,
                cancel=cancel,
                progress=progress,
            )
    finally:
        if bar is not None:
            bar.close()
        if cancel is not None:
            cancel.disarm()

    print(f"Elapsed: {result.elapsed_s:.2f}s")
    if result.cancelled:
        print("Time limit reached; reporting the best sequence found so far.")
    if not result.found:
        print("No valid sequence found.")
        return 1

    print(f"Best cost: {result.cost}")
    _print_sequence(result.sequence)
    profile.writer(result.sequence, args.output_file)
    print(f"Wrote {profile.title} to {args.output_file}")
    return 0


def run_visualise(args: argparse.Namespace) -> int:
    sequence = _load_sequence(args.input)
    profile = _output_profile(args.output_file)
    profile.writer(sequence, args.output_file)
    print(f"Wrote {profile.title} with {len(sequence)} stitches to {args.output_file}")
    return 0


def run_calculate(args: argparse.Namespace) -> int:
    sequence = _load_sequence(args.input)
    breakdown = sequence_breakdown(sequence)
    print(f"Total Cost: {sequence_cost(sequence)}")
    print(f"  stitched: {breakdown.stitch_length:.4f}")
    print(f"  travel:   {breakdown.travel_length:.4f}")
    return 0


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def _positive_float(text: str) -> float:
    value = float(text)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stitch-order",
        description="Order cross stitch half stitches to minimise needle travel.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    solve = subparsers.add_parser("solve", help="Find a low-cost stitching order for a pattern CSV.")
    solve.add_argument("-i", "--input", default="-", help="Pattern CSV with X,Y,Modifier columns (default: stdin).")
    solve.add_argument("-o", "--output-file", type=Path, default=Path("./output.csv"), help="Where to write the sequence.")
    solve.add_argument("-m", "--mode", choices=MODES, default="closest-n", help="Search strategy.")
    solve.add_argument(
        "-c",
        "--closest-n",
        type=_positive_int,
        default=_env_int(CLOSEST_N_ENV, 3),
        help=f"Rank bound for closest-n mode (or set {CLOSEST_N_ENV}).",
    )
    solve.add_argument(
        "-w",
        "--workers",
        type=_positive_int,
        default=_env_int(WORKERS_ENV, None),
        help=f"Worker threads (defaults to CPU count, or set {WORKERS_ENV}).",
    )
    solve.add_argument("--time-limit", type=_positive_float, default=None, help="Stop after this many seconds.")
    solve.add_argument(
        "--enforce-placement",
        action="store_true",
        help="Reject closest-n candidates that break the under/over placement rule.",
    )
    solve.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")
    solve.set_defaults(handler=run_solve)

    visualise = subparsers.add_parser("visualise", help="Render a sequence CSV as GIF or DXF.")
    visualise.add_argument("-i", "--input", default="-", help="Sequence CSV (default: stdin).")
    visualise.add_argument("-o", "--output-file", type=Path, default=Path("./output.gif"), help="Output path.")
    visualise.set_defaults(handler=run_visualise)

    calculate = subparsers.add_parser("calculate", help="Print the cost of a sequence CSV.")
    calculate.add_argument("-i", "--input", default="-", help="Sequence CSV (default: stdin).")
    calculate.set_defaults(handler=run_calculate)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not getattr(args, "handler", None):
        parser.print_help()
        return 0
    try:
        return args.handler(args)
    except (StitchOrderError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
