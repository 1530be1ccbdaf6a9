"""
Gate controller.

Keeps every gate in the store reconciled: a resync loop lists ``Gate`` and
``ClusterGate`` objects and enqueues their keys, and a pool of workers takes
keys off the queue, runs one reconciliation cycle and puts the key back
after the delay the cycle asked for.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from releasegate.core.errors import StoreError
from releasegate.gates.models import CLUSTER_GATE_KIND, GATE_KIND, GateKey
from releasegate.gates.parser import gate_key
from releasegate.gates.scheduler import DEFAULT_GATE_API_VERSION, ReconciliationScheduler
from releasegate.queue.memory import DelayingWorkQueue, QueueShutDown

if TYPE_CHECKING:
    from releasegate.config.settings import Settings
    from releasegate.store.base import ObjectStore

logger = structlog.get_logger()


class GateController:
    """
    Worker pool driving a ``ReconciliationScheduler``.

    Args:
        store: Object store holding the gates
        scheduler: Scheduler used to reconcile one gate
        workers: Number of gates reconciled concurrently
        resync_period: Seconds between two full listings of the gates
        namespace: Restrict namespaced gates to one namespace (None for all)
        gate_api_version: apiVersion under which gates are served
        error_backoff: Seconds before retrying a gate whose cycle crashed
    """

    def __init__(
        self,
        store: ObjectStore,
        scheduler: ReconciliationScheduler | None = None,
        workers: int = 4,
        resync_period: float = 30.0,
        namespace: str | None = None,
        gate_api_version: str = DEFAULT_GATE_API_VERSION,
        error_backoff: float = 5.0,
    ) -> None:
        self._store = store
        self._scheduler = scheduler or ReconciliationScheduler(store, gate_api_version=gate_api_version)
        self._workers = max(1, workers)
        self._resync_period = resync_period
        self._namespace = namespace
        self._gate_api_version = gate_api_version
        self._error_backoff = error_backoff
        self.queue: DelayingWorkQueue[GateKey] = DelayingWorkQueue()
        self._known: set[GateKey] = set()

    @classmethod
    def from_settings(cls, store: ObjectStore, settings: Settings) -> GateController:
        scheduler = ReconciliationScheduler(
            store,
            gate_api_version=settings.gate_api_version,
            timeout=settings.request_timeout,
            error_backoff=timedelta(seconds=settings.conflict_requeue_seconds),
        )
        return cls(
            store,
            scheduler=scheduler,
            workers=settings.workers,
            resync_period=settings.resync_period_seconds,
            namespace=settings.namespace,
            gate_api_version=settings.gate_api_version,
            error_backoff=settings.conflict_requeue_seconds,
        )

    async def resync(self) -> set[GateKey]:
        """List all gates, enqueue them, and forget the ones that disappeared."""
        listed: set[GateKey] = set()
        listings = (
            (GATE_KIND, self._namespace),
            (CLUSTER_GATE_KIND, None),
        )
        complete = True
        for kind, namespace in listings:
            try:
                gates = await self._store.list_by_label(kind, self._gate_api_version, namespace, "")
            except StoreError as e:
                logger.warning("gate_list_failed", kind=kind, error=e.message)
                complete = False
                continue
            for manifest in gates:
                manifest.setdefault("kind", kind)
                listed.add(gate_key(manifest))

        for key in listed:
            self.queue.add(key)

        # A failed listing must not be mistaken for deleted gates
        if complete:
            for key in self._known - listed:
                logger.info("gate_removed", gate=str(key))
                self.queue.forget(key)
                self._scheduler.forget(key)
            self._known = listed
        else:
            self._known |= listed

        logger.debug("gates_resynced", count=len(listed))
        return listed

    async def process_next(self) -> None:
        """Take one key off the queue and reconcile it."""
        key = await self.queue.get()
        requeue_after: float | None = None
        try:
            result = await self._scheduler.reconcile(key)
            if result.requeue_after is not None:
                requeue_after = result.requeue_after.total_seconds()
        except Exception as e:
            logger.exception("gate_reconcile_crashed", gate=str(key), error=str(e))
            requeue_after = self._error_backoff
        finally:
            self.queue.done(key)

        if requeue_after is not None:
            self.queue.add_after(key, requeue_after)
        else:
            self._known.discard(key)
            self._scheduler.forget(key)

    async def _worker(self, index: int) -> None:
        log = logger.bind(worker=index)
        log.debug("worker_started")
        while True:
            try:
                await self.process_next()
            except QueueShutDown:
                break
        log.debug("worker_stopped")

    async def _resync_loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.resync()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._resync_period)
            except asyncio.TimeoutError:
                continue

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run until ``stop`` is set (or forever when no event is given)."""
        stop = stop or asyncio.Event()
        logger.info(
            "controller_started",
            workers=self._workers,
            namespace=self._namespace or "*",
            resync_period=self._resync_period,
        )

        workers = [asyncio.create_task(self._worker(i)) for i in range(self._workers)]
        resync = asyncio.create_task(self._resync_loop(stop))
        try:
            await stop.wait()
        finally:
            self.queue.shutdown()
            resync.cancel()
            await asyncio.gather(resync, *workers, return_exceptions=True)
            logger.info("controller_stopped")
