"""
Legacy expression mode.

Older gates describe their condition as a boolean tree instead of a target
list::

    expression:
      and:
        - targetOne:
            objectRef: {kind: Deployment, apiVersion: apps/v1, name: api}
            condition: {type: Available}
        - invert: true
          targetOne:
            objectRef: {kind: ConfigMap, apiVersion: v1, name: freeze}

``and``/``or`` short-circuit and ``invert`` applies after a node's own
result. The evaluation trail is collected so that it can be reported as a
single target condition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from releasegate.core.errors import ObjectNotFoundError
from releasegate.gates.conditions import find_status_condition
from releasegate.gates.models import GateExpression, TargetOne

if TYPE_CHECKING:
    from releasegate.store.base import ObjectStore

logger = structlog.get_logger()

EXPRESSION_TARGET_NAME = "Expression"


@dataclass
class ExpressionOutcome:
    satisfied: bool
    objects_found: int = 0
    messages: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "\n".join(self.messages)


class ExpressionEvaluator:
    """Evaluates a ``GateExpression`` tree against an object store."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def evaluate(self, expression: GateExpression, default_namespace: str | None) -> ExpressionOutcome:
        outcome = ExpressionOutcome(satisfied=False)
        outcome.satisfied = await self._evaluate_node(expression, default_namespace, outcome)
        return outcome

    async def _evaluate_node(
        self,
        node: GateExpression,
        default_namespace: str | None,
        outcome: ExpressionOutcome,
    ) -> bool:
        if node.target_one is not None:
            result = await self._evaluate_leaf(node.target_one, default_namespace, outcome)
        elif node.and_:
            result = True
            for child in node.and_:
                if not await self._evaluate_node(child, default_namespace, outcome):
                    result = False
                    break
        elif node.or_:
            result = False
            for child in node.or_:
                if await self._evaluate_node(child, default_namespace, outcome):
                    result = True
                    break
        else:
            outcome.messages.append("empty expression node")
            result = False

        return not result if node.invert else result

    async def _evaluate_leaf(
        self,
        leaf: TargetOne,
        default_namespace: str | None,
        outcome: ExpressionOutcome,
    ) -> bool:
        ref = leaf.object_ref
        namespace = ref.namespace or default_namespace
        label = f"{ref.kind} {namespace or ''}/{ref.name}"

        try:
            obj = await self._store.get_by_key(ref.kind, ref.api_version, namespace, ref.name)
        except ObjectNotFoundError:
            logger.debug("expression_object_not_found", kind=ref.kind, namespace=namespace, name=ref.name)
            outcome.messages.append(f"{label} -> object not found")
            return False

        outcome.objects_found += 1
        if leaf.condition is None:
            outcome.messages.append(f"{label} -> object found")
            return True

        expected = leaf.condition.status or "True"
        condition = find_status_condition(self._store.read_conditions(obj), leaf.condition.type)
        if condition is None:
            outcome.messages.append(f"{label} -> condition {leaf.condition.type} is missing")
            return False
        if condition.status != expected:
            outcome.messages.append(
                f"{label} -> condition {leaf.condition.type} is wrong "
                f"(expected {expected}, got {condition.status})"
            )
            return False

        outcome.messages.append(f"{label} -> condition {leaf.condition.type} is {expected}")
        return True
