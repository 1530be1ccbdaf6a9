"""Run the gate controller against the cluster."""

from __future__ import annotations

import argparse
import asyncio
import signal

import structlog

from releasegate.cli.ux import error, info
from releasegate.config import get_settings
from releasegate.controller import GateController
from releasegate.core.errors import ExitCode, main_with_error_handling
from releasegate.store.kubernetes import KubernetesObjectStore

logger = structlog.get_logger()


async def _run(controller: GateController) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass
    await controller.run(stop)


def run_command(
    namespace: str | None = None,
    workers: int | None = None,
    resync_period: float | None = None,
) -> int:
    """
    Reconcile every Gate and ClusterGate until interrupted.

    Exit codes: 0 = stopped cleanly, 11 = cluster unreachable
    """
    settings = get_settings()
    overrides = {
        key: value
        for key, value in (
            ("namespace", namespace),
            ("workers", workers),
            ("resync_period_seconds", resync_period),
        )
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)

    store = KubernetesObjectStore.from_settings(settings)
    health = asyncio.run(store.health_check())
    if not health.healthy:
        error(health.message)
        return ExitCode.STORE_ERROR

    info(f"Connected to Kubernetes API ({health.latency_ms:.0f}ms)" if health.latency_ms else health.message)
    controller = GateController.from_settings(store, settings)
    asyncio.run(_run(controller))
    return ExitCode.SUCCESS


def register_run_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register run subcommand parser."""
    parser = subparsers.add_parser("run", help="Run the gate controller against the cluster")
    parser.add_argument("--namespace", "-n", help="Only reconcile Gates in this namespace")
    parser.add_argument("--workers", type=int, help="Number of gates reconciled concurrently")
    parser.add_argument("--resync-period", type=float, help="Seconds between two full gate listings")


@main_with_error_handling()
def handle_run_command(args: argparse.Namespace) -> int:
    """Handle run subcommand."""
    return run_command(
        namespace=getattr(args, "namespace", None),
        workers=getattr(args, "workers", None),
        resync_period=getattr(args, "resync_period", None),
    )
