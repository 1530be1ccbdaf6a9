"""
Reconciliation scheduler.

Runs one complete cycle for one gate: read the gate, decide whether it is
due, evaluate its targets, fold the verdict into the consolidation state and
write the resulting status back in a single conditional update. The caller
(the controller, or the CLI) owns the timer and re-invokes ``reconcile``
after ``requeue_after``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable

from releasegate.core.errors import (
    ObjectNotFoundError,
    StatusConflictError,
    StoreTransportError,
    ValidationError,
)
from releasegate.gates.admission import validate_policy
from releasegate.gates.consolidation import ConsolidationState, consolidate
from releasegate.gates.defaults import (
    DEFAULT_CONSOLIDATION_DELAY,
    DEFAULT_EVALUATION_PERIOD,
    apply_defaults,
)
from releasegate.gates.evaluator import GateEvaluator
from releasegate.gates.models import EvaluationResult, GateKey, GatePolicy, parse_time, utcnow
from releasegate.gates.parser import parse_policy
from releasegate.gates.status import build_invalid_status, build_status
from releasegate.logging import bind_gate

if TYPE_CHECKING:
    from releasegate.store.base import ObjectStore

DEFAULT_GATE_API_VERSION = "gate.sh/v1alpha1"


@dataclass
class ReconcileResult:
    """
    Outcome of one ``reconcile`` call.

    ``requeue_after`` is None when the gate no longer exists and must not be
    scheduled again.
    """

    requeue_after: timedelta | None
    result: EvaluationResult | None = None
    skipped: bool = False
    error: str | None = None


def load_policy(spec: dict[str, Any], source: str = "<spec>") -> tuple[GatePolicy, list[str]]:
    """Parse, default and admission-check a gate spec.

    Returns:
        The defaulted policy and admission warnings

    Raises:
        ValidationError: the spec cannot be parsed or is not admissible
    """
    policy = apply_defaults(parse_policy(spec, source=source))
    warnings = validate_policy(policy)
    return policy, warnings


def _invalid_message(error: ValidationError) -> str:
    errors = error.details.get("errors")
    return f"{error.message}: {errors}" if errors else error.message


class ReconciliationScheduler:
    """
    Evaluates gates against an object store.

    Args:
        store: Object store holding both the gates and their targets
        gate_api_version: apiVersion under which gates are served
        clock: Returns the current time (UTC); injectable for tests
        timeout: Per-target resolution timeout in seconds
        error_backoff: Requeue delay after the gate itself cannot be read
    """

    def __init__(
        self,
        store: ObjectStore,
        gate_api_version: str = DEFAULT_GATE_API_VERSION,
        clock: Callable[[], datetime] = utcnow,
        timeout: float | None = None,
        error_backoff: timedelta = DEFAULT_CONSOLIDATION_DELAY,
    ) -> None:
        self._store = store
        self._gate_api_version = gate_api_version
        self._clock = clock
        self._evaluator = GateEvaluator(store, timeout=timeout)
        self._error_backoff = error_backoff
        self._locks: dict[GateKey, asyncio.Lock] = {}

    async def reconcile(self, key: GateKey, force: bool = False) -> ReconcileResult:
        """
        Run one cycle for ``key``.

        Cycles for the same key never overlap; a second call waits for the
        first to finish.

        Args:
            key: Gate to reconcile
            force: Evaluate even if the evaluation period has not elapsed
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            return await self._reconcile(key, force)

    def forget(self, key: GateKey) -> None:
        """Drop bookkeeping for a gate that no longer exists."""
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    async def _reconcile(self, key: GateKey, force: bool) -> ReconcileResult:
        log = bind_gate(key.namespace, key.name, key.kind)

        try:
            gate = await self._store.get_by_key(key.kind, self._gate_api_version, key.namespace, key.name)
        except ObjectNotFoundError:
            log.info("gate_not_found")
            return ReconcileResult(requeue_after=None, skipped=True)
        except StoreTransportError as e:
            log.warning("gate_fetch_failed", error=e.message)
            return ReconcileResult(requeue_after=self._error_backoff, skipped=True, error=e.message)

        now = self._clock()
        metadata = gate.get("metadata") or {}
        generation = metadata.get("generation")
        previous_status = gate.get("status") or {}

        try:
            policy, warnings = load_policy(gate.get("spec") or {}, source=str(key))
        except ValidationError as e:
            message = _invalid_message(e)
            log.warning("gate_invalid_spec", error=message)
            gate["status"] = build_invalid_status(
                previous_status, message, now, now + DEFAULT_EVALUATION_PERIOD, generation
            )
            written = await self._write_status(gate, log)
            if written is None:
                return ReconcileResult(requeue_after=None, skipped=True, error=message)
            if not written:
                return ReconcileResult(requeue_after=self._error_backoff, error=message)
            return ReconcileResult(requeue_after=DEFAULT_EVALUATION_PERIOD, error=message)

        for warning in warnings:
            log.info("gate_spec_warning", warning=warning)

        period = policy.evaluation_period or DEFAULT_EVALUATION_PERIOD
        delay = policy.consolidation.delay or timedelta(0)

        if not force:
            remaining = self._remaining_cooldown(previous_status, generation, period, now)
            if remaining is not None:
                log.debug("gate_reconcile_skipped", remaining_seconds=remaining.total_seconds())
                return ReconcileResult(requeue_after=remaining, skipped=True)

        log.debug("gate_reconcile_started", targets=len(policy.targets))
        raw, targets = await self._evaluator.evaluate(policy, key.namespace)

        state = consolidate(ConsolidationState.from_status(previous_status), raw, now, policy.consolidation)
        result = EvaluationResult(
            satisfied=raw,
            state=state.state,
            consecutive_valid_cycles=state.consecutive_valid_cycles,
            evaluated_at=now,
            next_evaluation_at=now + period,
            targets=targets,
        )
        gate["status"] = build_status(previous_status, result, state, generation)

        written = await self._write_status(gate, log)
        if written is None:
            return ReconcileResult(requeue_after=None, result=result)
        if not written:
            # Nothing was written, so no cooldown protects the next attempt
            return ReconcileResult(
                requeue_after=max(delay, self._error_backoff), result=result, error="status update failed"
            )

        log.info(
            "gate_evaluated",
            satisfied=raw,
            state=state.state.value,
            consecutive_valid_cycles=state.consecutive_valid_cycles,
        )
        return ReconcileResult(requeue_after=period, result=result)

    def _remaining_cooldown(
        self,
        status: dict[str, Any],
        generation: int | None,
        period: timedelta,
        now: datetime,
    ) -> timedelta | None:
        # A spec change is evaluated right away
        if status.get("observedGeneration") != generation:
            return None
        try:
            last = parse_time(status.get("lastEvaluation"))
        except (TypeError, ValueError):
            return None
        if last is None or last + period <= now:
            return None
        return last + period - now

    async def _write_status(self, gate: dict[str, Any], log: Any) -> bool | None:
        """Write the gate status.

        Returns:
            True when written, False when the write should be retried,
            None when the gate has been deleted
        """
        try:
            await self._store.update_status(gate)
        except ObjectNotFoundError:
            log.info("gate_deleted_during_reconcile")
            return None
        except StatusConflictError as e:
            log.info("gate_status_conflict", error=e.message)
            return False
        except StoreTransportError as e:
            log.warning("gate_status_update_failed", error=e.message)
            return False
        return True
