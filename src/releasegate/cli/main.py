from __future__ import annotations

import argparse
import sys
from typing import Callable, Sequence

from releasegate.cli.evaluate import handle_evaluate_command, register_evaluate_parser
from releasegate.cli.run import handle_run_command, register_run_parser
from releasegate.cli.validate import handle_validate_command, register_validate_parser
from releasegate.cli.wait import handle_wait_command, register_wait_parser
from releasegate.config import get_settings
from releasegate.logging import configure_logging

HANDLERS: dict[str, Callable[[argparse.Namespace], int]] = {
    "validate": handle_validate_command,
    "evaluate": handle_evaluate_command,
    "wait": handle_wait_command,
    "run": handle_run_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="releasegate",
        description="Evaluate declarative release gates against cluster objects",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: RELEASEGATE_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command")

    register_validate_parser(subparsers)
    register_evaluate_parser(subparsers)
    register_wait_parser(subparsers)
    register_run_parser(subparsers)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level or get_settings().log_level)
    sys.exit(HANDLERS[args.command](args))


if __name__ == "__main__":
    main()
