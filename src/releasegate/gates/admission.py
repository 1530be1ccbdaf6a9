"""
Admission checks for gate policies.

These run on a defaulted policy before the engine evaluates it. A policy
that fails here is never evaluated; its gate reports ``InvalidSpec``.
"""

from __future__ import annotations

import re
from datetime import timedelta

from releasegate.core.errors import ValidationError
from releasegate.gates.models import (
    AtLeast,
    GateExpression,
    GatePolicy,
    JsonPointer,
    MatchCondition,
    Target,
)

PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def validate_policy(policy: GatePolicy) -> list[str]:
    """
    Validate a defaulted policy.

    Returns:
        List of warnings (empty when nothing is suspicious)

    Raises:
        ValidationError: listing every violation found
    """
    errors: list[str] = []
    warnings: list[str] = []

    if policy.targets and policy.expression is not None:
        errors.append("targets and expression are mutually exclusive")
    elif not policy.targets and policy.expression is None:
        errors.append("at least one target is required")

    seen: set[str] = set()
    for target in policy.targets:
        errors.extend(_validate_target(target))
        if target.name in seen:
            errors.append(f"duplicate target name: {target.name}")
        seen.add(target.name or "")

    if policy.expression is not None:
        errors.extend(_validate_expression(policy.expression, "expression"))

    if policy.evaluation_period is not None and policy.evaluation_period <= timedelta(0):
        errors.append("evaluationPeriod must be positive")
    if policy.consolidation.count is not None and policy.consolidation.count < 1:
        errors.append("consolidation.count must be at least 1")
    if policy.consolidation.delay is not None and policy.consolidation.delay < timedelta(0):
        errors.append("consolidation.delay must not be negative")

    if (
        policy.evaluation_period is not None
        and policy.consolidation.delay is not None
        and policy.consolidation.delay > policy.evaluation_period
    ):
        warnings.append(
            "consolidation.delay is longer than evaluationPeriod; "
            "some positive evaluations will not be counted"
        )

    if errors:
        raise ValidationError("Invalid gate spec", details={"errors": "; ".join(errors)})
    return warnings


def _validate_target(target: Target) -> list[str]:
    errors = []
    label = target.name or "<unnamed>"

    if not target.name or not PASCAL_CASE.match(target.name):
        errors.append(f"target name must be PascalCase: {label}")

    selector = target.selector
    if not selector.kind:
        errors.append(f"target {label}: selector.kind is required")
    if not selector.api_version:
        errors.append(f"target {label}: selector.apiVersion is required")
    has_labels = selector.label_selector is not None and not selector.label_selector.is_empty()
    if bool(selector.name) == has_labels:
        errors.append(f"target {label}: exactly one of selector.name and selector.labelSelector must be set")

    for validator in target.validators:
        if isinstance(validator, AtLeast):
            if validator.count is None and validator.percent is None:
                errors.append(f"target {label}: atLeast needs count or percent")
            if validator.count is not None and validator.count < 0:
                errors.append(f"target {label}: atLeast.count must not be negative")
            if validator.percent is not None and not 0 <= validator.percent <= 100:
                errors.append(f"target {label}: atLeast.percent must be between 0 and 100")
        elif isinstance(validator, MatchCondition):
            if not PASCAL_CASE.match(validator.type):
                errors.append(f"target {label}: condition type must be PascalCase: {validator.type}")
        elif isinstance(validator, JsonPointer):
            if not validator.pointer.startswith("/"):
                errors.append(f"target {label}: jsonPointer.pointer must start with '/': {validator.pointer!r}")

    return errors


def _validate_expression(expression: GateExpression, path: str) -> list[str]:
    arms = sum(
        1
        for present in (expression.target_one is not None, bool(expression.and_), bool(expression.or_))
        if present
    )
    if arms != 1:
        return [f"{path}: exactly one of 'targetOne', 'and', or 'or' must be specified"]

    errors = []
    if expression.target_one is not None:
        ref = expression.target_one.object_ref
        if not ref.kind or not ref.api_version or not ref.name:
            errors.append(f"{path}.targetOne: objectRef needs kind, apiVersion and name")
    for idx, sub in enumerate(expression.and_):
        errors.extend(_validate_expression(sub, f"{path}.and[{idx}]"))
    for idx, sub in enumerate(expression.or_):
        errors.extend(_validate_expression(sub, f"{path}.or[{idx}]"))
    return errors
