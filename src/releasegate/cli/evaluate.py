"""
Evaluate gates from a file.

Runs one forced reconciliation cycle for every gate in a YAML file, either
against objects from a fixture file or against the live cluster. Gate
status is kept in memory and never written to the cluster.

Exit codes: 0 = all gates opened, 2 = at least one gate closed
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from rich.markup import escape

from releasegate.cli.ux import console, error, header, print_table, success, warning
from releasegate.config import get_settings
from releasegate.core.errors import BlockedError, ExitCode, main_with_error_handling
from releasegate.gates.models import CLUSTER_GATE_KIND, EvaluationResult, GateKey
from releasegate.gates.parser import gate_key, load_gate_file, load_manifests
from releasegate.gates.scheduler import ReconcileResult, ReconciliationScheduler
from releasegate.store.base import ObjectStore
from releasegate.store.kubernetes import KubernetesObjectStore
from releasegate.store.memory import InMemoryObjectStore
from releasegate.store.overlay import OverlayObjectStore


def prepare_gates(
    gate_file: str,
    objects_file: str | None = None,
    namespace: str | None = None,
    gate_name: str | None = None,
) -> tuple[OverlayObjectStore, list[tuple[GateKey, str]]]:
    """
    Load gates from ``gate_file`` into an overlay over the target store.

    Returns:
        The store and, per selected gate, its key and apiVersion
    """
    settings = get_settings()
    base: ObjectStore
    if objects_file:
        base = InMemoryObjectStore(load_manifests(objects_file))
    else:
        base = KubernetesObjectStore.from_settings(settings)

    overlay = InMemoryObjectStore()
    selected: list[tuple[GateKey, str]] = []
    for _, _, manifest in load_gate_file(gate_file):
        manifest = dict(manifest)
        metadata = dict(manifest.get("metadata") or {})
        if manifest.get("kind") != CLUSTER_GATE_KIND:
            metadata["namespace"] = namespace or metadata.get("namespace") or "default"
        manifest["metadata"] = metadata
        manifest.setdefault("apiVersion", settings.gate_api_version)

        key = gate_key(manifest)
        if gate_name and key.name != gate_name:
            continue
        overlay.add(manifest)
        selected.append((key, manifest["apiVersion"]))

    return OverlayObjectStore(base, overlay), selected


def scheduler_for(store: ObjectStore, api_version: str) -> ReconciliationScheduler:
    settings = get_settings()
    return ReconciliationScheduler(store, gate_api_version=api_version, timeout=settings.request_timeout)


async def _evaluate_all(
    store: ObjectStore, gates: list[tuple[GateKey, str]]
) -> list[tuple[GateKey, ReconcileResult]]:
    results = []
    for key, api_version in gates:
        result = await scheduler_for(store, api_version).reconcile(key, force=True)
        results.append((key, result))
    return results


def display_result(key: GateKey, result: EvaluationResult) -> None:
    """Print one gate's evaluation as a table plus its message trails."""
    header(f"Gate: {key}")
    rows = [
        [
            target.name,
            "[success]✓[/success]" if target.satisfied else "[error]✗[/error]",
            target.reason,
            str(target.objects_found),
        ]
        for target in result.targets
    ]
    print_table("Targets", ["Target", "Satisfied", "Reason", "Objects"], rows)

    for target in result.targets:
        console.print(f"\n[bold]{target.name}[/bold]")
        for line in target.message.splitlines():
            console.print(f"  [muted]{escape(line)}[/muted]")

    console.print()
    console.print(f"[cyan]Consecutive valid cycles:[/cyan] {result.consecutive_valid_cycles}")
    console.print(f"[cyan]Next evaluation:[/cyan] {result.next_evaluation_at.isoformat()}")
    if result.is_opened:
        success(f"{key} is Opened")
    elif result.satisfied:
        warning(f"{key} is Closed (condition met, consolidating)")
    else:
        error(f"{key} is Closed")


def _result_payload(key: GateKey, outcome: ReconcileResult) -> dict[str, Any]:
    payload: dict[str, Any] = {"gate": str(key)}
    if outcome.result is not None:
        payload.update(outcome.result.to_dict())
    if outcome.error:
        payload["error"] = outcome.error
    return payload


def evaluate_command(
    gate_file: str,
    objects_file: str | None = None,
    namespace: str | None = None,
    gate_name: str | None = None,
    output_format: str = "text",
) -> int:
    """
    Evaluate every gate in ``gate_file`` once.

    Returns 0 when all gates are opened. Raises BlockedError when any gate is closed.
    """
    store, gates = prepare_gates(gate_file, objects_file, namespace, gate_name)
    if not gates:
        error(f"No gate named {gate_name!r} in {gate_file}")
        return ExitCode.CONFIG_ERROR

    outcomes = asyncio.run(_evaluate_all(store, gates))

    if output_format == "json":
        print(json.dumps([_result_payload(key, outcome) for key, outcome in outcomes], indent=2))
    else:
        for key, outcome in outcomes:
            if outcome.result is None:
                error(escape(f"{key}: {outcome.error or 'not evaluated'}"))
            else:
                display_result(key, outcome.result)

    closed = [str(key) for key, outcome in outcomes if outcome.result is None or not outcome.result.is_opened]
    if closed:
        raise BlockedError(f"{len(closed)} of {len(outcomes)} gate(s) closed", details={"closed": closed})
    return ExitCode.SUCCESS


def register_evaluate_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register evaluate subcommand parser."""
    parser = subparsers.add_parser("evaluate", help="Evaluate gates from a YAML file once")
    parser.add_argument("gate_file", help="Path to a YAML file with Gate/ClusterGate manifests")
    parser.add_argument(
        "--objects",
        dest="objects_file",
        help="YAML file with the target objects (default: read them from the cluster)",
    )
    parser.add_argument("--namespace", "-n", help="Namespace for namespaced gates")
    parser.add_argument("--gate", dest="gate_name", help="Only evaluate the gate with this name")
    parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")


@main_with_error_handling()
def handle_evaluate_command(args: argparse.Namespace) -> int:
    """Handle evaluate subcommand."""
    return evaluate_command(
        gate_file=args.gate_file,
        objects_file=getattr(args, "objects_file", None),
        namespace=getattr(args, "namespace", None),
        gate_name=getattr(args, "gate_name", None),
        output_format=getattr(args, "output", "text"),
    )
