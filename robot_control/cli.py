"""Command-line interface for running the simulations headlessly.

Two commands are provided:
- pendulum: balance the cart-pendulum with LQR or PID
- localize: track a vehicle with the particle filter
"""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from .config import PF_NUM_PARTICLES, TERM_BLUE, TERM_ORANGE, TERM_RESET
from .errors import ConfigurationError
from .localizer import ParticleFilterSettings
from .metrics import summarize_tracking
from .simulation import ControllerKind, PendulumSimulation, VehicleSimulation


class CustomFormatter(logging.Formatter):
    """Console formatter: run summaries (INFO) print bare, other levels
    carry a timestamp and level name.
    """

    def __init__(self, datefmt: Optional[str] = None) -> None:
        super().__init__("%(asctime)s - %(levelname)s - %(message)s", datefmt)
        self._bare = logging.Formatter("%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return self._bare.format(record)
        return super().format(record)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        # main() may run several times in one process
        if any(isinstance(h.formatter, CustomFormatter) for h in logger.handlers):
            return
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)


def _check_run_args(args: argparse.Namespace) -> None:
    if args.steps <= 0:
        raise ConfigurationError(f"--steps must be positive, got {args.steps}")
    if not args.dt > 0:
        raise ConfigurationError(f"--dt must be positive, got {args.dt}")


def run_pendulum(args: argparse.Namespace) -> int:
    """Balance the cart-pendulum and report the angle history.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    _check_run_args(args)
    rng = np.random.default_rng(args.seed)
    sim = PendulumSimulation(controller_kind=args.controller, rng=rng)

    theta0 = sim.x[2]
    logging.info(
        f"Pendulum ({sim.controller_kind.value.upper()}): {args.steps} steps, "
        f"dt={args.dt}, initial angle {theta0:+.3f} rad"
    )

    angles = []
    for k in range(args.steps):
        sim.step(args.dt)
        angles.append(abs(sim.x[2]))
        logging.debug(
            f"k={k:4d} x={sim.x[0]:+.3f} theta={sim.x[2]:+.4f} u={sim.u:+.3f}"
        )

    summary = summarize_tracking(angles)
    if summary is None or not np.all(np.isfinite(sim.x)):
        logging.warning(f"{TERM_ORANGE}Pendulum state diverged{TERM_RESET}")
        return 1

    logging.info(f"{TERM_BLUE}|theta| {summary}{TERM_RESET}")
    if sim.controller_kind is ControllerKind.LQR:
        diag = sim.lqr.get_diagnostics()
        logging.info(
            f"DARE: {diag['iterations']} iterations, converged={diag['converged']}, "
            f"closed-loop spectral radius {diag['spectral_radius']:.4f}"
        )
    return 0


def run_localize(args: argparse.Namespace) -> int:
    """Run the particle filter localization scenario.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    _check_run_args(args)
    rng = np.random.default_rng(args.seed)
    settings = ParticleFilterSettings(num_particles=args.particles)
    sim = VehicleSimulation(settings=settings, rng=rng)

    logging.info(
        f"Particle filter: {settings.num_particles} particles, "
        f"{sim.localizer.landmarks.shape[0]} landmarks, {args.steps} steps, dt={args.dt}"
    )

    pf_errors = []
    dr_errors = []
    for k in range(args.steps):
        sim.step(args.dt)
        diag = sim.localizer.get_diagnostics()
        pf_errors.append(diag["position_error"])
        dr_errors.append(diag["dr_error"])
        logging.debug(
            f"k={k:4d} err={diag['position_error']:.3f} m "
            f"N_eff={diag['n_eff']:.1f} obs={diag['observations']}"
        )

    diag = sim.localizer.get_diagnostics()
    logging.info(f"{TERM_BLUE}PF error  {summarize_tracking(pf_errors)}{TERM_RESET}")
    logging.info(f"DR error  {summarize_tracking(dr_errors)}")
    logging.info(
        f"Resampled {diag['resample_count']} times, "
        f"re-initialized {diag['reinit_count']} times"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robot_control",
        description="Headless LQR/PID pendulum and particle filter simulations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m robot_control pendulum --steps 50 --dt 0.1
  python -m robot_control pendulum --controller pid --seed 3
  python -m robot_control localize --steps 500 --particles 200 -v
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    pendulum_parser = subparsers.add_parser("pendulum", help="Balance the inverted pendulum")
    pendulum_parser.add_argument(
        "--steps", type=int, default=50, help="Number of simulation ticks (default: 50)"
    )
    pendulum_parser.add_argument(
        "--dt", type=float, default=0.1, help="Tick length in seconds (default: 0.1)"
    )
    pendulum_parser.add_argument(
        "--controller",
        choices=[kind.value for kind in ControllerKind],
        default=ControllerKind.LQR.value,
        help="Balancing controller (default: lqr)",
    )

    localize_parser = subparsers.add_parser("localize", help="Run particle filter localization")
    localize_parser.add_argument(
        "--steps", type=int, default=500, help="Number of simulation ticks (default: 500)"
    )
    localize_parser.add_argument(
        "--dt", type=float, default=0.1, help="Tick length in seconds (default: 0.1)"
    )
    localize_parser.add_argument(
        "--particles", type=int, default=PF_NUM_PARTICLES,
        help="Number of particles (default: 100)",
    )

    for sub in (pendulum_parser, localize_parser):
        sub.add_argument("--seed", type=int, default=None, help="Random seed (default: unseeded)")
        sub.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose logging with timestamps"
        )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI.

    Args:
        argv: Optional command-line arguments (for testing)

    Returns:
        Exit code (0 for success, 1 for invalid configuration)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        if args.command == "pendulum":
            return run_pendulum(args)
        return run_localize(args)
    except ConfigurationError as e:
        logging.error(f"Invalid configuration: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
