#!/usr/bin/env python3
"""
===============================================================================
LOW-THRUST SHAPING - MAIN ENTRY POINT
===============================================================================
Spherically shaped low-thrust transfer between two circular orbits

Loads a transfer description, solves the shaping problem for the requested
time of flight, reports the shaped delta-V against a two-impulse Hohmann
transfer, and writes the trajectory table and plots.

USAGE:
    python main.py                                  # Default configuration
    python main.py --config my_transfer.yaml        # Custom transfer
    python main.py --propagate                      # Also integrate the thrust profile
    python main.py --no-plots --output-dir results  # Tables only

OUTPUTS:
    output/shaped_trajectory.csv       - States and thrust along the transfer
    output/propagation.csv             - Propagated vs shaped states (--propagate)
    output/*.png                       - Trajectory, thrust and propagation plots
    output/shaping.log                 - Run log

DEPENDENCIES:
    numpy, scipy, matplotlib, pandas, pyyaml
    Install: pip install numpy scipy matplotlib pandas pyyaml

===============================================================================
"""

import sys
import os
import argparse
import time
import logging
from pathlib import Path

import yaml

# ---------------------------------------------------------------------------
# Path setup: ensure all project modules are importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# ---------------------------------------------------------------------------
# Project imports
# ---------------------------------------------------------------------------
from core.constants import JULIAN_DAY
from core.config import (
    build_boundary_states,
    build_quadrature_settings,
    build_root_finder_settings,
    central_body_mu,
    interpolation_step_seconds,
    load_config,
    time_of_flight_seconds,
    validate_config,
)
from dynamics.propagation import ShapedTrajectoryPropagator
from shaping.errors import ShapingError
from shaping.spherical_shaping import ShapingProblem

logger = logging.getLogger('shaping')


def setup_logging(output_dir: str, verbose: bool = False) -> None:
    """Console plus run-log file in the output directory."""
    os.makedirs(output_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(output_dir, 'shaping.log'), mode='w'),
        ],
    )


def build_problem(config: dict) -> ShapingProblem:
    """Construct (and thereby solve) the shaping problem described by *config*."""
    transfer = config['transfer']
    initial_state, final_state = build_boundary_states(config)

    return ShapingProblem(
        initial_state,
        final_state,
        time_of_flight_seconds(config),
        number_of_revolutions=int(transfer.get('revolutions', 0)),
        central_body_gravitational_parameter=central_body_mu(config),
        root_finder_settings=build_root_finder_settings(config),
        quadrature_settings=build_quadrature_settings(config),
        interpolation_step=interpolation_step_seconds(config),
    )


def run_propagation(problem: ShapingProblem, config: dict, output_dir: str):
    """Integrate the thrust profile and write the comparison table."""
    settings = config.get('propagation') or {}
    propagator = ShapedTrajectoryPropagator(
        problem,
        initial_mass=float(settings.get('initial_mass_kg', 1000.0)),
        specific_impulse=float(settings.get('specific_impulse_s', 3000.0)),
        rtol=float(settings.get('rtol', 1e-10)),
        atol=float(settings.get('atol', 1e-6)),
    )
    result = propagator.propagate(int(settings.get('epochs', 50)))

    table = result.to_dataframe()
    csv_path = os.path.join(output_dir, 'propagation.csv')
    table.to_csv(csv_path, index=False)
    logger.info("Propagation table written to %s", csv_path)

    if result.masses is not None:
        logger.info("Final mass: %.3f kg (propellant %.3f kg)",
                    result.masses[-1], result.masses[0] - result.masses[-1])
    return table


def main() -> int:
    """Main entry point for the shaping tool."""
    parser = argparse.ArgumentParser(
        description='Spherically shaped low-thrust transfer design',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   Default transfer
  python main.py --config transfer.yaml            Custom transfer
  python main.py --propagate                       With full propagation
  python main.py --no-plots --output-dir results   Tables only
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Path to transfer config YAML')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Output directory (overrides output.directory)')
    parser.add_argument('--propagate', action='store_true',
                        help='Integrate the thrust profile and compare with the shape')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip plot generation')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except (OSError, yaml.YAMLError, ShapingError) as exc:
        print(f"Could not load configuration: {exc}", file=sys.stderr)
        return 2

    output_settings = config.get('output') or {}
    output_dir = args.output_dir or output_settings.get('directory', 'output')
    setup_logging(output_dir, args.verbose)

    print("=" * 70)
    print("  LOW-THRUST SHAPING")
    print("=" * 70)

    start = time.time()
    try:
        validate_config(config)
        problem = build_problem(config)

        shaped_delta_v = problem.compute_delta_v()
        hohmann_delta_v = problem.compute_delta_v_hohmann()
        logger.info("Free coefficient: %.12f (%d iterations)",
                    problem.free_coefficient, problem.iterations)
        logger.info("Time of flight: %.6f days", problem.compute_time_of_flight() / JULIAN_DAY)
        logger.info("Shaped delta-V: %.3f m/s", shaped_delta_v)
        logger.info("Hohmann delta-V: %.3f m/s", hohmann_delta_v)

        trajectory = problem.to_dataframe()
        csv_path = os.path.join(output_dir, 'shaped_trajectory.csv')
        trajectory.to_csv(csv_path, index=False)
        logger.info("Trajectory table written to %s", csv_path)

        propagation = None
        if args.propagate or (config.get('propagation') or {}).get('enabled', False):
            propagation = run_propagation(problem, config, output_dir)

        if not args.no_plots and output_settings.get('plots', True):
            from visualization.trajectory_plots import generate_all_plots
            generate_all_plots(trajectory, output_dir, propagation)
    except ShapingError as exc:
        logger.error("Shaping failed: %s", exc)
        return 1

    print("\n" + "=" * 70)
    print("  SHAPING COMPLETE")
    print(f"  Total wall time: {time.time() - start:.1f} seconds")
    print(f"  Outputs saved to: {output_dir}")
    print("=" * 70)
    return 0


if __name__ == '__main__':
    sys.exit(main())
