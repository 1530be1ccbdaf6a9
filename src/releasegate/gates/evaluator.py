"""
Gate evaluation for one cycle.

Resolves and validates every target of a defaulted policy, concurrently,
and combines the verdicts. Nothing here writes to the store or looks at
consolidation state; see ``releasegate.gates.scheduler`` for that.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from releasegate.core.errors import ReleaseGateError
from releasegate.gates.combinator import combine
from releasegate.gates.expression import EXPRESSION_TARGET_NAME, ExpressionEvaluator
from releasegate.gates.models import (
    REASON_CONDITION_MET,
    REASON_CONDITION_NOT_MET,
    REASON_ERROR_WHILE_FETCHING,
    REASON_NO_OBJECT_FOUND,
    GatePolicy,
    Target,
    TargetResult,
)
from releasegate.gates.resolver import TargetResolver
from releasegate.gates.validators import ValidatorEngine

if TYPE_CHECKING:
    from releasegate.store.base import ObjectStore

logger = structlog.get_logger()


class GateEvaluator:
    """
    Computes the raw verdict of a gate policy.

    Args:
        store: Object store to resolve targets against
        timeout: Upper bound in seconds for resolving one target; a target
            that exceeds it fails with ``ErrorWhileFetching``
    """

    def __init__(self, store: ObjectStore, timeout: float | None = None) -> None:
        self._store = store
        self._timeout = timeout
        self._resolver = TargetResolver(store)
        self._engine = ValidatorEngine(store.read_conditions, store.read_field)
        self._expressions = ExpressionEvaluator(store)

    async def evaluate(self, policy: GatePolicy, default_namespace: str | None) -> tuple[bool, list[TargetResult]]:
        """
        Evaluate all targets of ``policy`` and combine them.

        Returns:
            The raw (unconsolidated) verdict and the per-target results in
            declaration order
        """
        if policy.expression is not None:
            result = await self.evaluate_expression(policy, default_namespace)
            return result.satisfied, [result]

        results = await asyncio.gather(
            *(self.evaluate_target(target, default_namespace) for target in policy.targets)
        )
        raw = combine(
            (result.satisfied for result in results),
            policy.operation.operator,
            policy.operation.invert,
        )
        return raw, list(results)

    async def evaluate_target(self, target: Target, default_namespace: str | None) -> TargetResult:
        name = target.name or ""
        try:
            objects = await asyncio.wait_for(
                self._resolver.resolve(target, default_namespace), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("target_fetch_timeout", target=name, timeout=self._timeout)
            return TargetResult(
                name=name,
                satisfied=False,
                reason=REASON_ERROR_WHILE_FETCHING,
                message=f"timed out after {self._timeout}s while fetching objects",
            )
        except ReleaseGateError as e:
            logger.warning("target_fetch_failed", target=name, error=e.message)
            return TargetResult(
                name=name,
                satisfied=False,
                reason=REASON_ERROR_WHILE_FETCHING,
                message=e.message,
            )

        outcome = self._engine.evaluate(objects, target.validators)
        if outcome.satisfied:
            reason = REASON_CONDITION_MET
        elif not objects:
            reason = REASON_NO_OBJECT_FOUND
        else:
            reason = REASON_CONDITION_NOT_MET

        logger.debug(
            "target_evaluated",
            target=name,
            satisfied=outcome.satisfied,
            matching=outcome.matching,
            threshold=outcome.threshold,
        )
        return TargetResult(
            name=name,
            satisfied=outcome.satisfied,
            reason=reason,
            message=outcome.message,
            objects_found=outcome.objects_found,
        )

    async def evaluate_expression(self, policy: GatePolicy, default_namespace: str | None) -> TargetResult:
        assert policy.expression is not None
        try:
            outcome = await asyncio.wait_for(
                self._expressions.evaluate(policy.expression, default_namespace), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("expression_fetch_timeout", timeout=self._timeout)
            return TargetResult(
                name=EXPRESSION_TARGET_NAME,
                satisfied=False,
                reason=REASON_ERROR_WHILE_FETCHING,
                message=f"timed out after {self._timeout}s while fetching objects",
            )
        except ReleaseGateError as e:
            logger.warning("expression_fetch_failed", error=e.message)
            return TargetResult(
                name=EXPRESSION_TARGET_NAME,
                satisfied=False,
                reason=REASON_ERROR_WHILE_FETCHING,
                message=e.message,
            )

        return TargetResult(
            name=EXPRESSION_TARGET_NAME,
            satisfied=outcome.satisfied,
            reason=REASON_CONDITION_MET if outcome.satisfied else REASON_CONDITION_NOT_MET,
            message=outcome.message,
            objects_found=outcome.objects_found,
        )
