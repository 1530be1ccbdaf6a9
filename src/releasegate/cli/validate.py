"""
CLI command for validating gate manifests.

Parses every Gate/ClusterGate in a file or directory, fills in defaults
and runs the admission checks, without touching any store.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from rich.markup import escape

from releasegate.cli.ux import console, error, header, success, warning
from releasegate.core.errors import (
    ExitCode,
    PolicyParseError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)
from releasegate.gates.admission import validate_policy
from releasegate.gates.defaults import apply_defaults
from releasegate.gates.parser import GATE_KINDS, load_gate_file, load_manifests


def _collect_files(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted(list(path.glob("**/*.yaml")) + list(path.glob("**/*.yml")))
    return [path]


def validate_file(file_path: Path, verbose: bool = False, skip_empty: bool = False) -> tuple[int, int]:
    """
    Validate every gate in one file.

    With ``skip_empty``, files holding no gate manifest are ignored instead
    of being reported as invalid.

    Returns:
        (valid gates, invalid gates)
    """
    try:
        if skip_empty and not any(m.get("kind") in GATE_KINDS for m in load_manifests(file_path)):
            return 0, 0
        gates = load_gate_file(file_path)
    except PolicyParseError as e:
        console.print(f"[error]✗[/error] {file_path}")
        console.print(f"  {escape(format_error_message(e))}")
        return 0, 1

    valid = invalid = 0
    for key, policy, _ in gates:
        try:
            warnings = validate_policy(apply_defaults(policy))
        except ValidationError as e:
            invalid += 1
            console.print(f"[error]✗[/error] {file_path.name}: {key}")
            for problem in str(e.details.get("errors", e.message)).split("; "):
                console.print(f"  [error]✗[/error] {escape(problem)}")
            continue

        valid += 1
        if warnings:
            console.print(f"[warning]⚠[/warning] {file_path.name}: {key}")
            for message in warnings:
                console.print(f"  [warning]⚠[/warning] {escape(message)}")
        else:
            console.print(f"[success]✓[/success] {file_path.name}: {key}")
            if verbose:
                targets = ", ".join(t.name or "" for t in policy.targets) or "expression"
                console.print(f"  [muted]targets: {escape(targets)}[/muted]")
    return valid, invalid


def validate_command(file_path: str, verbose: bool = False) -> int:
    """
    Validate gate manifests.

    Returns:
        Exit code (0 when every gate is valid, 12 otherwise)
    """
    header("Validate Gates")
    console.print()

    path = Path(file_path)
    if not path.exists():
        error(f"File not found: {file_path}")
        return ExitCode.VALIDATION_ERROR

    files = _collect_files(path)
    if not files:
        warning("No YAML files found")
        return ExitCode.SUCCESS

    total_valid = total_invalid = 0
    for f in files:
        valid, invalid = validate_file(f, verbose=verbose, skip_empty=path.is_dir())
        total_valid += valid
        total_invalid += invalid

    console.print()
    if total_invalid:
        error(f"{total_invalid} invalid, {total_valid} valid")
        return ExitCode.VALIDATION_ERROR
    success(f"{total_valid} gate(s) valid")
    return ExitCode.SUCCESS


def register_validate_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the validate subcommand."""
    parser = subparsers.add_parser("validate", help="Validate Gate/ClusterGate manifests")
    parser.add_argument("file_path", help="Path to a YAML file or a directory of YAML files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed output")


@main_with_error_handling()
def handle_validate_command(args: argparse.Namespace) -> int:
    """Handle the validate subcommand."""
    return validate_command(
        file_path=args.file_path,
        verbose=getattr(args, "verbose", False),
    )
