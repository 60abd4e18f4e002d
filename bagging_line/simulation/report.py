"""
Headless Run Report

Runs one line for a fixed number of ticks without the real-time driver,
summarises the verdicts and plots the measured weight distribution against
the pass range and the nominal tolerance band.

Usage:
    python -m bagging_line.simulation.report --profile small --ticks 36000
"""

import argparse
import logging
import os
import random
from typing import Dict, Any, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .controller import LineController
from .profiles import LineProfile, LineGeometry, load_profiles
from .flow.events import EventDispatcher, Event, LineEventType, VERDICT_EVENTS
from ..settings import load_config

logger = logging.getLogger("RunReport")


def run_line(profile: LineProfile, ticks: int, seed: int = 42, speed: float = 1.0,
             geometry: Optional[LineGeometry] = None) -> List[Event]:
    """
    Tick one line and collect its verdict events.

    Returns:
        ITEM_PASSED / ITEM_REJECTED events in emission order
    """
    dispatcher = EventDispatcher(keep_log=False)
    verdicts: List[Event] = []
    for event_type in VERDICT_EVENTS:
        dispatcher.subscribe(event_type, verdicts.append)

    line = LineController("report", profile, geometry=geometry, rng=random.Random(seed),
                          dispatcher=dispatcher, speed=speed)
    for _ in range(ticks):
        line.tick()
    return verdicts


def summarize(verdicts: List[Event]) -> Dict[str, Any]:
    """Counts per verdict/reason and pass rate."""
    summary = {"total": len(verdicts), "passed": 0,
               "CONTAMINANT": 0, "RANGE": 0, "TOLERANCE": 0}
    for event in verdicts:
        if event.type == LineEventType.ITEM_PASSED:
            summary["passed"] += 1
        else:
            reason = event.data.get("reject_reason")
            summary[reason] = summary.get(reason, 0) + 1
    summary["pass_rate_percent"] = (summary["passed"] / summary["total"] * 100.0) if summary["total"] else 0.0
    return summary


def plot_weight_distribution(verdicts: List[Event], profile: LineProfile, path: str) -> str:
    """
    Histogram of measured weights by outcome.

    Returns:
        Path of the saved PNG
    """
    passed = [e.data["measured_weight"] for e in verdicts if e.type == LineEventType.ITEM_PASSED]
    rejected = [e.data["measured_weight"] for e in verdicts if e.type == LineEventType.ITEM_REJECTED]

    fig, ax = plt.subplots(figsize=(10, 6))
    fig.suptitle(f"Checkweigher Results - {profile.name}", fontsize=14, fontweight='bold')

    bins = 40
    if passed:
        ax.hist(passed, bins=bins, color='#22c55e', alpha=0.7, label=f'Passed ({len(passed)})')
    if rejected:
        ax.hist(rejected, bins=bins, color='#ef4444', alpha=0.7, label=f'Rejected ({len(rejected)})')

    ax.axvline(profile.range_min, color='orange', linestyle='--', label='Pass range')
    ax.axvline(profile.range_max, color='orange', linestyle='--')
    ax.axvspan(profile.final_nominal - profile.gate_tolerance,
               profile.final_nominal + profile.gate_tolerance,
               color='#3b82f6', alpha=0.1, label='Nominal tolerance')
    ax.axvline(profile.final_nominal, color='#3b82f6', linewidth=1.5, label='Final nominal')

    ax.set_xlabel('Measured weight (kg)')
    ax.set_ylabel('Items')
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close(fig)
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Bagging line headless run report")
    parser.add_argument("--profile", default="small", help="Profile name from settings")
    parser.add_argument("--ticks", type=int, default=36000, help="Ticks to simulate (60 per second)")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--speed", type=float, default=1.0)
    parser.add_argument("--config", default=None, help="Settings JSON (default: bundled)")
    parser.add_argument("--out", default="weight_distribution.png")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='[LINE] %(asctime)s | %(message)s', datefmt='%H:%M:%S')

    config = load_config(args.config)
    profiles = load_profiles(config)
    if args.profile not in profiles:
        parser.error(f"unknown profile '{args.profile}' (available: {', '.join(profiles)})")
    profile = profiles[args.profile]
    geometry = LineGeometry.from_mapping(config.get("geometry", {}))

    verdicts = run_line(profile, args.ticks, seed=args.seed, speed=args.speed, geometry=geometry)
    summary = summarize(verdicts)

    print("=" * 60)
    print(f"RUN REPORT - profile '{profile.name}', {args.ticks} ticks")
    print("=" * 60)
    for key, value in summary.items():
        print(f"  {key:>18}: {value:.1f}" if isinstance(value, float) else f"  {key:>18}: {value}")

    path = plot_weight_distribution(verdicts, profile, os.path.abspath(args.out))
    print(f"✓ Plot saved: {path}")
    return summary


if __name__ == '__main__':
    main()
