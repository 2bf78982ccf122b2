#!/usr/bin/env python3
"""symbolsync command line interface.

Usage:
    python -m symbolsync gains --bandwidth 0.01 --damping 0.707 --ted-gain 0.25
    python -m symbolsync simulate --config config/symbolsync.yaml --symbols 12000
    python -m symbolsync algorithms
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

import numpy as np

from symbolsync.config import load_config
from symbolsync.dsp.clock_tracking_loop import calculate_loop_gains
from symbolsync.dsp.loop_analysis import is_stable, noise_bandwidth, settling_symbols
from symbolsync.dsp.ted_algorithms import available_algorithms, get_algorithm
from symbolsync.log_levels import configure_logging, resolve_log_level
from symbolsync.simulation import run_simulation

logger = logging.getLogger(__name__)


def _default_config_path() -> str | None:
    env_path = os.environ.get("SYMBOLSYNC_CONFIG")
    if env_path:
        return env_path
    config_path = Path(__file__).resolve().parent.parent / "config" / "symbolsync.yaml"
    if config_path.exists():
        return str(config_path)
    return None


def cmd_gains(args: argparse.Namespace) -> int:
    """Print loop filter gains for the given loop parameters."""
    if args.bandwidth < 0.0:
        print("Error: loop bandwidth must be >= 0.0")
        return 1
    if args.damping <= 0.0:
        print("Error: damping factor must be > 0.0")
        return 1
    if args.ted_gain <= 0.0:
        print("Error: TED gain must be > 0.0")
        return 1

    alpha, beta = calculate_loop_gains(args.bandwidth, args.damping, args.ted_gain)
    if args.damping > 1.0:
        regime = "over-damped"
    elif args.damping == 1.0:
        regime = "critically damped"
    else:
        regime = "under-damped"

    print(f"omega_n_norm: {args.bandwidth}")
    print(f"zeta:         {args.damping} ({regime})")
    print(f"ted_gain:     {args.ted_gain}")
    print(f"alpha:        {alpha:.10g}")
    print(f"beta:         {beta:.10g}")

    if is_stable(alpha, beta, args.ted_gain):
        print(f"B_n*T:        {noise_bandwidth(alpha, beta, args.ted_gain):.6g}")
        try:
            settle = settling_symbols(alpha, beta, args.ted_gain)
        except ValueError as exc:
            logger.warning(f"Settling time not available: {exc}")
        else:
            print(f"Settling (5%): {settle} symbols")
    else:
        print("Linearized loop is not stable")
    return 0


def cmd_algorithms(args: argparse.Namespace) -> int:
    """List registered timing error detector algorithms."""
    for name in available_algorithms():
        algo = get_algorithm(name)
        needs = "constellation" if algo.needs_constellation else "-"
        print(
            f"{name:24s} mode={algo.mode.name:26s} ips={algo.inputs_per_symbol} "
            f"depth={algo.error_depth} needs={needs}"
        )
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run the closed-loop tracking simulation and report convergence."""
    overrides: dict[str, Any] = {}
    sim: dict[str, Any] = {}
    if args.symbols is not None:
        sim["num_symbols"] = args.symbols
    if args.delay is not None:
        sim["delay"] = args.delay
    if args.seed is not None:
        sim["seed"] = args.seed
    if args.noise is not None:
        sim["noise_std"] = args.noise
    if sim:
        overrides["simulation"] = sim
    if args.algorithm is not None:
        overrides["detector"] = {"algorithm": args.algorithm}

    try:
        cfg = load_config(args.config, overrides=overrides)
        if cfg.log_level and not args.verbose:
            logging.getLogger("symbolsync").setLevel(resolve_log_level(configured=cfg.log_level))
        report = run_simulation(cfg)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    result = report.result
    settled = report.settled_offsets
    print(f"Symbols:          {len(result)}")
    print(f"Loop gains:       alpha={report.alpha:.6g} beta={report.beta:.6g}")
    print(f"Final T_avg:      {report.final_avg_period:.6f}")
    print(f"Settled symbols:  {settled.size}")
    if settled.size:
        print(f"Mean offset:      {report.mean_offset:+.5f} samples")
        print(f"Max |offset|:     {report.max_abs_offset:.5f} samples")
        print(f"Offset std:       {float(np.std(settled)):.5f} samples")
    print(f"Tolerance:        {report.tolerance} samples")
    print(f"Converged:        {'yes' if report.converged else 'no'}")

    if not report.converged:
        logger.warning("Timing loop did not settle within tolerance")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="symbolsync",
        description="Symbol timing recovery tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # gains
    p_gains = subparsers.add_parser("gains", help="Compute PI loop filter gains")
    p_gains.add_argument("-b", "--bandwidth", type=float, default=0.01,
                         help="Normalized natural frequency omega_n*T (default: 0.01)")
    p_gains.add_argument("-z", "--damping", type=float, default=1.0,
                         help="Damping factor (default: 1.0)")
    p_gains.add_argument("-g", "--ted-gain", type=float, default=1.0,
                         help="TED S-curve slope at zero offset (default: 1.0)")
    p_gains.set_defaults(func=cmd_gains)

    # algorithms
    p_algos = subparsers.add_parser("algorithms", help="List TED algorithms")
    p_algos.set_defaults(func=cmd_algorithms)

    # simulate
    p_sim = subparsers.add_parser("simulate", help="Run a closed-loop tracking simulation")
    p_sim.add_argument("-c", "--config", default=_default_config_path(),
                       help="Path to YAML config (default: config/symbolsync.yaml if present)")
    p_sim.add_argument("-n", "--symbols", type=int, help="Number of symbols")
    p_sim.add_argument("-d", "--delay", type=float, help="Waveform timing offset in samples")
    p_sim.add_argument("-a", "--algorithm", help="TED algorithm name")
    p_sim.add_argument("--seed", type=int, help="Random seed")
    p_sim.add_argument("--noise", type=float, help="Noise standard deviation per component")
    p_sim.set_defaults(func=cmd_simulate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(resolve_log_level(args.verbose))

    result = args.func(args)
    return 0 if result is None else int(result)


if __name__ == "__main__":
    sys.exit(main())
