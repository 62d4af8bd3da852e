#!/usr/bin/env python3
"""
FSI Simulation CLI Runner.

Runs an immersed fluid-structure interaction simulation from a parameter
file (deal.II style ``.prm`` or YAML).

Usage:
    python -m fem_fsi.cli.run_fsi [parameters.prm] [options]

Examples:
    # Run with the default parameter file ./parameters.prm
    fem-fsi

    # Run from YAML
    fem-fsi cavity.yaml

    # Check a parameter file without running
    fem-fsi cavity.yaml --validate

    # Generate template configuration
    fem-fsi --template > cavity.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

DEFAULT_PARAMETER_FILE = "parameters.prm"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI (standard error)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def print_template() -> None:
    """Print a YAML template configuration to stdout."""
    from fem_fsi.core.config import Parameters

    print("# FSI Simulation Configuration: disk immersed in a driven cavity")
    print(yaml.dump(Parameters.template(), default_flow_style=None, sort_keys=False), end="")


def validate_config(config_path: str) -> bool:
    """Validate configuration file without running."""
    from fem_fsi.core.config import Parameters
    from fem_fsi.core.exceptions import ConfigurationError

    try:
        params = Parameters.load(config_path)
        warnings = params.validate()
    except ConfigurationError as e:
        print(f"\n✗ Validation failed: {e}", file=sys.stderr)
        return False

    print("Configuration validation:")
    print("=" * 50)
    print(params)

    if warnings:
        print("\nWarnings:")
        for w in warnings:
            print(f"  ⚠️  {w}")
        return False
    print("\n✓ Configuration is valid")
    return True


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run immersed FSI simulations from parameter files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                Run ./parameters.prm
  %(prog)s cavity.yaml                    Run simulation
  %(prog)s cavity.yaml --validate         Validate configuration
  %(prog)s --template > cavity.yaml       Generate template
        """,
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_PARAMETER_FILE,
        help=f"Path to .prm or YAML parameter file (default: {DEFAULT_PARAMETER_FILE})",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration file",
    )

    parser.add_argument(
        "--template",
        "-t",
        action="store_true",
        help="Print template configuration to stdout",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.template:
        print_template()
        return 0

    setup_logging(args.verbose)

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Parameter file not found: {config_path}", file=sys.stderr)
        return 1

    if args.validate:
        return 0 if validate_config(str(config_path)) else 1

    try:
        from fem_fsi.solvers.runner import run_from_file

        run_from_file(config_path)
        return 0

    except KeyboardInterrupt:
        print("\nSimulation interrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logging.exception("Simulation failed")
        print(f"\nException on processing: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
