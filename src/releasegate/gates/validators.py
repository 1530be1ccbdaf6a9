"""
Validator engine.

Applies a target's validators to its resolved objects and produces a
pass/fail verdict with a human-readable message trail.

Validators are applied in declaration order. ``matchCondition`` and
``jsonPointer`` rules narrow the set of passing objects; ``atLeast`` rules
only contribute to the threshold, and the largest one wins. Without any
``atLeast`` rule every resolved object has to pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from releasegate.core.errors import ReleaseGateError
from releasegate.gates.conditions import Condition, find_status_condition, object_name, read_conditions
from releasegate.gates.fields import read_field, render_value
from releasegate.gates.models import AtLeast, JsonPointer, MatchCondition, Validator

ConditionReader = Callable[[dict[str, Any]], list[Condition]]
FieldReader = Callable[[dict[str, Any], str], Any]


@dataclass
class ValidationOutcome:
    """Verdict of a validator list over one object set."""

    satisfied: bool
    objects_found: int
    matching: int
    threshold: int
    messages: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "\n".join(self.messages)


def compute_threshold(validator: AtLeast, object_count: int) -> int:
    """Threshold contributed by one ``atLeast`` rule; -1 when it sets none."""
    count = validator.count if validator.count and validator.count > 0 else -1
    percent = -1
    if validator.percent and validator.percent > 0:
        percent = validator.percent * object_count // 100
    return max(count, percent)


class ValidatorEngine:
    """
    Evaluates validators against object documents.

    Condition and field access go through the given readers, which default
    to the plain document helpers. Pass an ``ObjectStore``'s
    ``read_conditions``/``read_field`` to use a store's own accessors.
    """

    def __init__(
        self,
        condition_reader: ConditionReader | None = None,
        field_reader: FieldReader | None = None,
    ) -> None:
        self._read_conditions = condition_reader or read_conditions
        self._read_field = field_reader or read_field

    def evaluate(self, objects: list[dict[str, Any]], validators: list[Validator]) -> ValidationOutcome:
        if not validators:
            validators = [AtLeast(count=1)]

        passing = [True] * len(objects)
        diagnostics: list[str] = []
        at_least = -1

        for validator in validators:
            if isinstance(validator, AtLeast):
                at_least = max(at_least, compute_threshold(validator, len(objects)))
            elif isinstance(validator, MatchCondition):
                self._match_condition(objects, passing, diagnostics, validator)
            elif isinstance(validator, JsonPointer):
                self._json_pointer(objects, passing, diagnostics, validator)
            else:
                raise TypeError(f"Unsupported validator: {validator!r}")

        threshold = at_least if at_least > 0 else max(1, len(objects))
        matching = sum(passing)

        messages = [
            f"{len(objects)} objects found",
            f"{matching} objects match target validators",
            f"{matching}/{threshold} valid objects",
            *diagnostics,
        ]
        return ValidationOutcome(
            satisfied=matching >= threshold,
            objects_found=len(objects),
            matching=matching,
            threshold=threshold,
            messages=messages,
        )

    def _match_condition(
        self,
        objects: list[dict[str, Any]],
        passing: list[bool],
        diagnostics: list[str],
        validator: MatchCondition,
    ) -> None:
        expected = validator.status or "True"

        for idx, obj in enumerate(objects):
            name = object_name(obj)
            try:
                conditions = self._read_conditions(obj)
            except ReleaseGateError as e:
                passing[idx] = False
                diagnostics.append(f"{name} -> cannot read conditions: {e.message}")
                continue

            if not conditions:
                passing[idx] = False
                diagnostics.append(f"{name} -> object has no conditions")
                continue

            condition = find_status_condition(conditions, validator.type)
            if condition is None:
                passing[idx] = False
                diagnostics.append(f"{name} -> condition {validator.type} is missing")
            elif condition.status != expected:
                passing[idx] = False
                diagnostics.append(
                    f"{name} -> condition {validator.type} is wrong "
                    f"(expected {expected}, got {condition.status})"
                )

    def _json_pointer(
        self,
        objects: list[dict[str, Any]],
        passing: list[bool],
        diagnostics: list[str],
        validator: JsonPointer,
    ) -> None:
        for idx, obj in enumerate(objects):
            name = object_name(obj)
            try:
                value = self._read_field(obj, validator.pointer)
            except ReleaseGateError as e:
                passing[idx] = False
                diagnostics.append(f"{name} -> field {validator.pointer} cannot be resolved: {e.message}")
                continue

            actual = render_value(value)
            if actual != validator.value:
                passing[idx] = False
                diagnostics.append(
                    f"{name} -> field {validator.pointer} is wrong "
                    f"(expected {validator.value!r}, got {actual!r})"
                )
