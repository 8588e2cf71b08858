"""
Inkpost: Command Line Interface
===============================

Usage:
    inkpost serve              run the web service (uvicorn)
    inkpost dev [--tailwind]   run the service and the Tailwind watcher together

Without a subcommand the help text is printed and the exit status is 0.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from inkpost.devserver import DevSupervisor, service_spec, tailwind_spec

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inkpost", description="Inkpost web application")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    subparsers.add_parser("serve", help="Run the web service")

    dev = subparsers.add_parser("dev", help="Run the service and the CSS watcher for local development")
    dev.add_argument(
        "--tailwind",
        default=os.environ.get("TAILWIND_BIN", "tailwindcss"),
        help="Tailwind CLI executable (default: $TAILWIND_BIN or 'tailwindcss')",
    )
    dev.add_argument(
        "--grace-period",
        type=float,
        default=5.0,
        help="Seconds to wait for children after terminate before killing (default: 5)",
    )
    return parser


def run_dev(tailwind_bin: str, grace_period: float) -> int:
    from inkpost.main import setup_logging

    setup_logging()
    supervisor = DevSupervisor(
        [service_spec(), tailwind_spec(tailwind_bin)],
        grace_period=grace_period,
    )
    try:
        asyncio.run(supervisor.run_until_interrupted())
    except OSError as e:
        logger.error("dev server failed: %s", e)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        from inkpost.main import serve

        return serve()
    if args.command == "dev":
        return run_dev(args.tailwind, args.grace_period)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
