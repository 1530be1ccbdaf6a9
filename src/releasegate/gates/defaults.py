"""
Default filling for gate policies.

Defaults are applied once, before evaluation, so that the evaluation
algorithm never has to special-case absent fields.
"""

from __future__ import annotations

import copy
from datetime import timedelta

from releasegate.gates.models import (
    AtLeast,
    Consolidation,
    GatePolicy,
    MatchCondition,
    Operation,
    Operator,
    Target,
    Validator,
)

DEFAULT_EVALUATION_PERIOD = timedelta(seconds=60)
DEFAULT_CONSOLIDATION_DELAY = timedelta(seconds=5)
DEFAULT_CONSOLIDATION_COUNT = 1
DEFAULT_OPERATOR = Operator.AND
DEFAULT_MATCH_CONDITION_STATUS = "True"


def default_target_validators() -> list[Validator]:
    """The implicit "at least one object found" rule."""
    return [AtLeast(count=1)]


def apply_defaults(policy: GatePolicy) -> GatePolicy:
    """Return a copy of ``policy`` with every optional field filled in."""
    policy = copy.deepcopy(policy)

    if policy.evaluation_period is None:
        policy.evaluation_period = DEFAULT_EVALUATION_PERIOD

    policy.consolidation = Consolidation(
        count=(
            policy.consolidation.count
            if policy.consolidation.count is not None
            else DEFAULT_CONSOLIDATION_COUNT
        ),
        delay=(
            policy.consolidation.delay
            if policy.consolidation.delay is not None
            else DEFAULT_CONSOLIDATION_DELAY
        ),
    )

    policy.operation = Operation(
        operator=policy.operation.operator or DEFAULT_OPERATOR,
        invert=bool(policy.operation.invert),
    )

    policy.targets = [_default_target(idx, target) for idx, target in enumerate(policy.targets)]
    return policy


def _default_target(idx: int, target: Target) -> Target:
    name = target.name or f"Target{idx + 1}"

    if not target.validators:
        validators = default_target_validators()
    else:
        validators = [_default_validator(validator) for validator in target.validators]

    return Target(selector=target.selector, name=name, validators=validators)


def _default_validator(validator: Validator) -> Validator:
    if isinstance(validator, MatchCondition) and not validator.status:
        return MatchCondition(type=validator.type, status=DEFAULT_MATCH_CONDITION_STATUS)
    return validator
