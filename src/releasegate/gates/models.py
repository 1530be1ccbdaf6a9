"""
Data models for gate policies and evaluation results.

A gate policy is read from a ``Gate`` or ``ClusterGate`` manifest. Target
objects themselves are never modelled: they are handled as plain ``dict``
documents exactly as the object store returns them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any, Union

GATE_KIND = "Gate"
CLUSTER_GATE_KIND = "ClusterGate"

REASON_CONDITION_MET = "ConditionMet"
REASON_CONDITION_NOT_MET = "ConditionNotMet"
REASON_NO_OBJECT_FOUND = "NoObjectFound"
REASON_ERROR_WHILE_FETCHING = "ErrorWhileFetching"


class Operator(StrEnum):
    """Boolean operator applied across target verdicts."""

    AND = "AND"
    OR = "OR"


class GateState(StrEnum):
    """Externally visible, consolidated gate state."""

    OPENED = "Opened"
    CLOSED = "Closed"


@dataclass
class LabelSelectorRequirement:
    key: str
    operator: str
    values: list[str] = field(default_factory=list)


@dataclass
class LabelSelector:
    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[LabelSelectorRequirement] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions


@dataclass
class TargetSelector:
    """Declarative reference to one or more objects of a single kind."""

    kind: str
    api_version: str
    namespace: str | None = None
    name: str | None = None
    label_selector: LabelSelector | None = None


@dataclass(frozen=True)
class AtLeast:
    """Quorum threshold over the resolved object set."""

    count: int | None = None
    percent: int | None = None


@dataclass(frozen=True)
class MatchCondition:
    """Requires a status condition of the given type and status on each object."""

    type: str
    status: str | None = None


@dataclass(frozen=True)
class JsonPointer:
    """Requires the field addressed by an RFC 6901 pointer to equal ``value``."""

    pointer: str
    value: str


Validator = Union[AtLeast, MatchCondition, JsonPointer]


@dataclass
class Target:
    selector: TargetSelector
    name: str | None = None
    validators: list[Validator] = field(default_factory=list)


@dataclass
class Operation:
    operator: Operator = Operator.AND
    invert: bool = False


@dataclass
class Consolidation:
    count: int | None = None
    delay: timedelta | None = None


@dataclass
class ObjectRef:
    kind: str
    api_version: str
    name: str
    namespace: str | None = None


@dataclass
class ConditionCheck:
    type: str
    status: str = "True"


@dataclass
class TargetOne:
    """Leaf of a legacy expression: a single referenced object."""

    object_ref: ObjectRef
    condition: ConditionCheck | None = None


@dataclass
class GateExpression:
    """Legacy boolean expression tree. Exactly one of the three arms is set."""

    target_one: TargetOne | None = None
    and_: list[GateExpression] = field(default_factory=list)
    or_: list[GateExpression] = field(default_factory=list)
    invert: bool = False


@dataclass
class GatePolicy:
    """Desired state of a gate, immutable during one evaluation cycle."""

    targets: list[Target] = field(default_factory=list)
    operation: Operation = field(default_factory=Operation)
    evaluation_period: timedelta | None = None
    consolidation: Consolidation = field(default_factory=Consolidation)
    expression: GateExpression | None = None


@dataclass(frozen=True)
class GateKey:
    """Identity of a gate instance in the object store."""

    kind: str
    name: str
    namespace: str | None = None

    @property
    def is_cluster_scoped(self) -> bool:
        return self.kind == CLUSTER_GATE_KIND

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}:{self.namespace}/{self.name}"
        return f"{self.kind}:{self.name}"


@dataclass
class TargetResult:
    """Verdict of one target for one cycle."""

    name: str
    satisfied: bool
    reason: str
    message: str
    objects_found: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "satisfied": self.satisfied,
            "reason": self.reason,
            "message": self.message,
            "objectsFound": self.objects_found,
        }


@dataclass
class EvaluationResult:
    """Outcome of one complete reconciliation cycle."""

    satisfied: bool
    state: GateState
    consecutive_valid_cycles: int
    evaluated_at: datetime
    next_evaluation_at: datetime
    targets: list[TargetResult] = field(default_factory=list)

    @property
    def is_opened(self) -> bool:
        return self.state == GateState.OPENED

    def to_dict(self) -> dict[str, Any]:
        return {
            "satisfied": self.satisfied,
            "state": self.state.value,
            "consecutiveValidCycles": self.consecutive_valid_cycles,
            "evaluatedAt": format_time(self.evaluated_at),
            "nextEvaluationAt": format_time(self.next_evaluation_at),
            "targets": [target.to_dict() for target in self.targets],
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_time(value: datetime | None) -> str | None:
    """Render a timestamp as RFC 3339 in UTC, keeping sub-second precision when present."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
