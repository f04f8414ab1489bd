#!/usr/bin/env python3
"""
hypotest-sim study runner

Runs a replication study from a YAML configuration file and/or command
line overrides, prints the rejection-rate summary and exports all tables.

Usage:
    python scripts/run_study.py --config examples/study_config.yaml
    python scripts/run_study.py --replications 500 --sample-sizes 20 40 80 --workers 4
"""

import argparse
import sys
from pathlib import Path

from hypotest_sim import HypotestSimError, ResultsExporter, run_study
from hypotest_sim.utils.logging import get_logger

logger = get_logger("hypotest_sim.scripts.run_study")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Monte Carlo comparison of t-test, rank-sum and KS tests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_study.py --config examples/study_config.yaml
  python scripts/run_study.py --replications 200 --sample-sizes 10 30 --no-cache
        """
    )
    parser.add_argument('--config', '-c', type=Path,
                        help='YAML configuration file')
    parser.add_argument('--replications', '-r', type=int,
                        help='Replications per sample size')
    parser.add_argument('--sample-sizes', '-n', type=int, nargs='+',
                        help='Per-group sample sizes')
    parser.add_argument('--seed', type=int,
                        help='Top-level random seed')
    parser.add_argument('--alpha', type=float,
                        help='Significance threshold')
    parser.add_argument('--workers', '-w', type=int,
                        help='Worker processes (1 runs in-process)')
    parser.add_argument('--output-dir', '-o', type=Path, default=Path("study_results"),
                        help='Directory for exported tables (default: study_results)')
    parser.add_argument('--no-cache', action='store_true',
                        help='Always recompute instead of reusing cached results')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Dotted configuration overrides for the options given on the command line."""
    overrides = {}
    if args.replications is not None:
        overrides['simulation.n_replications'] = args.replications
    if args.sample_sizes:
        overrides['simulation.sample_sizes'] = args.sample_sizes
    if args.seed is not None:
        overrides['simulation.seed'] = args.seed
    if args.alpha is not None:
        overrides['simulation.alpha'] = args.alpha
    if args.workers is not None:
        overrides['parallel.max_workers'] = args.workers
        overrides['parallel.parallel_processing'] = args.workers > 1
    if args.no_cache:
        overrides['cache.cache_enabled'] = False
    if args.log_level:
        overrides['logging.level'] = args.log_level
    return overrides


def main(argv=None) -> int:
    """Main CLI interface."""
    args = build_parser().parse_args(argv)

    try:
        study = run_study(config_file=args.config, **overrides_from_args(args))
        exporter = ResultsExporter(args.output_dir)
        exporter.print_summary(study)
        exporter.export(study)
    except (HypotestSimError, FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Study interrupted")
        return 130

    print(f"\nResults written to {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
