"""
Command-line interface for kinempc.

Usage:
    kinempc solve --state 0 -1 0 130 -1 0 --coeffs 0 0 0 0
    kinempc run --steps 50 --state 0 -1 0 130 -1 0 --coeffs 0 0 0 0
    kinempc validate config.yml
    kinempc info
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from kinempc import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="kinempc",
        description="kinempc - receding-horizon MPC for a kinematic bicycle model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kinempc solve --state 0 -1 0 130 -1 0 --coeffs 0 0 0 0
  kinempc run --steps 40 --horizon 12
  kinempc validate config.yml
  kinempc info
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -vv for debug)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    solve_parser = subparsers.add_parser(
        "solve",
        help="Solve a single control cycle",
        description="Compute one actuator command for the given state and path",
    )
    _add_problem_arguments(solve_parser)
    solve_parser.set_defaults(handler=cmd_solve)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the controller in closed loop",
        description="Repeatedly solve and apply the first actuator pair",
    )
    _add_problem_arguments(run_parser)
    run_parser.add_argument(
        "--steps",
        type=int,
        default=50,
        help="Number of control cycles (default: 50)",
    )
    run_parser.set_defaults(handler=cmd_run)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a configuration file",
        description="Validate a YAML configuration file",
    )
    validate_parser.add_argument(
        "config_file",
        type=Path,
        help="Path to configuration file",
    )
    validate_parser.set_defaults(handler=cmd_validate)

    info_parser = subparsers.add_parser(
        "info",
        help="Show system information",
        description="Display system and dependency information",
    )
    info_parser.set_defaults(handler=cmd_info)

    return parser


def _add_problem_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by the solve and run commands."""
    parser.add_argument(
        "--config", "-f",
        type=Path,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--state",
        type=float,
        nargs=6,
        metavar=("X", "Y", "PSI", "V", "CTE", "EPSI"),
        default=[0.0, -1.0, 0.0, 130.0, -1.0, 0.0],
        help="Measured vehicle state (default: 0 -1 0 130 -1 0)",
    )

    parser.add_argument(
        "--coeffs",
        type=float,
        nargs="+",
        metavar="C",
        default=[0.0, 0.0, 0.0, 0.0],
        help="Path polynomial coefficients, constant term first (at most 4)",
    )

    parser.add_argument(
        "--horizon", "-H",
        type=int,
        help="Override the horizon length",
    )

    parser.add_argument(
        "--timestep", "-t",
        type=float,
        help="Override the timestep in seconds",
    )

    parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Write the result as JSON to this file",
    )


def configure_verbosity(verbose: int, quiet: bool) -> None:
    """Map -v/-q onto the package log level (warnings only by default)."""
    import logging
    from kinempc.logging import setup_logging

    levels = [logging.WARNING, logging.INFO, logging.DEBUG]
    level = logging.ERROR if quiet else levels[min(verbose, len(levels) - 1)]
    setup_logging(level=level, force=True)


def _build_controller(args: argparse.Namespace):
    """Create the controller from file/env configuration plus CLI overrides."""
    from dataclasses import replace
    from kinempc.config import ConfigManager
    from kinempc.controller import KinematicMPC

    config = ConfigManager(args.config).load()
    planner = config.planner
    if args.horizon is not None:
        planner = replace(planner, horizon=args.horizon)
    if args.timestep is not None:
        planner = replace(planner, timestep=args.timestep)

    return KinematicMPC(replace(config, planner=planner))


def _write_output(path: Optional[Path], data: dict) -> None:
    if path is None:
        return
    from kinempc.logging import LOG_INFO

    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    LOG_INFO(f"Results saved to {path}")


def cmd_solve(args: argparse.Namespace) -> int:
    """Execute the solve command."""
    from kinempc.exceptions import KineMPCError
    from kinempc.logging import LOG_ERROR
    from kinempc.types import PathPolynomial, VehicleState

    try:
        controller = _build_controller(args)
        result = controller.solve(
            VehicleState.from_array(args.state),
            PathPolynomial.from_coefficients(args.coeffs),
        )
    except KineMPCError as e:
        LOG_ERROR(f"Error: {e}")
        return 1

    print(f"Status:   {result.status}")
    print(f"Cost:     {result.objective:.4f}")
    if result.success:
        command = result.command
        print(f"Steering: {command.steering_angle:.6f} rad")
        print(f"Throttle: {command.throttle:.6f}")

    _write_output(args.output, result.to_dict())
    return 0 if result.success else 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the run command."""
    from kinempc.exceptions import KineMPCError
    from kinempc.logging import LOG_ERROR
    from kinempc.runner import max_abs_cte, run_closed_loop
    from kinempc.types import PathPolynomial, VehicleState

    try:
        controller = _build_controller(args)
        result = run_closed_loop(
            controller,
            VehicleState.from_array(args.state),
            PathPolynomial.from_coefficients(args.coeffs),
            steps=args.steps,
        )
    except KineMPCError as e:
        LOG_ERROR(f"Error: {e}")
        return 1

    final = result.states[-1]
    print(f"Steps:          {result.steps}")
    print(f"Failed solves:  {result.failures}")
    print(f"Final position: ({final.x:.2f}, {final.y:.2f})")
    print(f"Max |cte|:      {max_abs_cte(result):.4f}")

    _write_output(args.output, result.to_dict())
    return 0 if result.failures == 0 else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute the validate command."""
    from kinempc.config import ConfigManager
    from kinempc.exceptions import ConfigurationError

    try:
        config = ConfigManager(args.config_file).load(validate=True)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, TypeError) as e:
        print(f"Error reading configuration: {e}", file=sys.stderr)
        return 1

    print(f"Configuration file '{args.config_file}' is valid.")
    print(f"  Horizon: {config.planner.horizon}")
    print(f"  Timestep: {config.planner.timestep}")
    print(f"  Reference speed: {config.reference.v}")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Execute the info command."""
    import platform

    print("kinempc System Information")
    print("=" * 40)
    print(f"kinempc version: {__version__}")
    print(f"Python version: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")
    print()

    print("Dependencies:")
    for dep in ["numpy", "casadi", "yaml"]:
        try:
            mod = __import__(dep)
            version = getattr(mod, "__version__", "unknown")
            print(f"  {dep}: {version}")
        except ImportError:
            print(f"  {dep}: NOT INSTALLED")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_verbosity(args.verbose, args.quiet)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
