"""
Wait for gates to open.

Evaluates the gates of a YAML file on their own schedule (evaluation
period, consolidation) until every one of them is opened or the timeout
elapses. Meant for CI pipelines that block a rollout step on a gate.

Exit codes: 0 = all gates opened, 2 = timed out with a gate still closed
"""

from __future__ import annotations

import argparse
import asyncio
import time

import structlog

from releasegate.cli.evaluate import display_result, prepare_gates, scheduler_for
from releasegate.cli.ux import error, info, success
from releasegate.core.errors import BlockedError, ExitCode, main_with_error_handling
from releasegate.gates.models import EvaluationResult, GateKey
from releasegate.store.base import ObjectStore

logger = structlog.get_logger()


async def wait_for_gate(
    store: ObjectStore,
    key: GateKey,
    api_version: str,
    deadline: float,
) -> EvaluationResult | None:
    """
    Reconcile ``key`` until it opens or ``deadline`` (monotonic) passes.

    Returns:
        The last evaluation, or None if the gate was never evaluated
    """
    scheduler = scheduler_for(store, api_version)
    last: EvaluationResult | None = None
    force = True

    while True:
        outcome = await scheduler.reconcile(key, force=force)
        force = False
        if outcome.result is not None:
            last = outcome.result
            logger.info(
                "gate_wait_cycle",
                gate=str(key),
                state=last.state.value,
                consecutive_valid_cycles=last.consecutive_valid_cycles,
            )
            if last.is_opened:
                return last
        if outcome.requeue_after is None:
            return last

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return last
        await asyncio.sleep(min(outcome.requeue_after.total_seconds(), remaining))


async def _wait_all(
    store: ObjectStore, gates: list[tuple[GateKey, str]], timeout: float
) -> list[tuple[GateKey, EvaluationResult | None]]:
    deadline = time.monotonic() + timeout
    results = await asyncio.gather(
        *(wait_for_gate(store, key, api_version, deadline) for key, api_version in gates)
    )
    return list(zip((key for key, _ in gates), results))


def wait_command(
    gate_file: str,
    objects_file: str | None = None,
    namespace: str | None = None,
    gate_name: str | None = None,
    timeout: float = 600.0,
    quiet: bool = False,
) -> int:
    """
    Block until every gate in ``gate_file`` opens.

    Returns 0 when all gates opened. Raises BlockedError on timeout.
    """
    store, gates = prepare_gates(gate_file, objects_file, namespace, gate_name)
    if not gates:
        error(f"No gate named {gate_name!r} in {gate_file}")
        return ExitCode.CONFIG_ERROR

    info(f"Waiting up to {timeout:g}s for {len(gates)} gate(s) to open")
    results = asyncio.run(_wait_all(store, gates, timeout))

    opened = True
    for key, result in results:
        if result is None:
            error(f"{key} was never evaluated")
            opened = False
            continue
        if not quiet:
            display_result(key, result)
        opened = opened and result.is_opened

    if opened:
        success("All gates opened")
        return ExitCode.SUCCESS
    error(f"Timed out after {timeout:g}s with closed gates")
    raise BlockedError(f"gates still closed after {timeout:g}s", details={"timeout": timeout})


def register_wait_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register wait subcommand parser."""
    parser = subparsers.add_parser("wait", help="Wait until the gates of a YAML file open")
    parser.add_argument("gate_file", help="Path to a YAML file with Gate/ClusterGate manifests")
    parser.add_argument(
        "--objects",
        dest="objects_file",
        help="YAML file with the target objects (default: read them from the cluster)",
    )
    parser.add_argument("--namespace", "-n", help="Namespace for namespaced gates")
    parser.add_argument("--gate", dest="gate_name", help="Only wait for the gate with this name")
    parser.add_argument(
        "--timeout",
        type=float,
        default=600.0,
        help="Seconds to wait before giving up (default: 600)",
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print the final verdict")


@main_with_error_handling()
def handle_wait_command(args: argparse.Namespace) -> int:
    """Handle wait subcommand."""
    return wait_command(
        gate_file=args.gate_file,
        objects_file=getattr(args, "objects_file", None),
        namespace=getattr(args, "namespace", None),
        gate_name=getattr(args, "gate_name", None),
        timeout=getattr(args, "timeout", 600.0),
        quiet=getattr(args, "quiet", False),
    )
