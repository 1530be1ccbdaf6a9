"""
Gate status construction.

The status written back to a gate carries everything the next cycle needs
(consolidation counter, last counted evaluation, schedule) plus the
human-facing conditions::

    status:
      state: Opened
      satisfied: true
      consecutiveValidCycles: 3
      lastCountedEvaluation: "2024-05-01T10:02:00.000000Z"
      lastEvaluation: "2024-05-01T10:02:00.000000Z"
      nextEvaluation: "2024-05-01T10:03:00.000000Z"
      conditions: [Opened, Available, Closed, Progressing]
      targetConditions: [<one condition per target, keyed by target name>]

Previous conditions are reused so that ``lastTransitionTime`` only moves
when a condition's status flips.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from releasegate.gates.conditions import Condition, read_conditions, set_status_condition
from releasegate.gates.consolidation import ConsolidationState
from releasegate.gates.models import EvaluationResult, GateState, TargetResult, format_time

CONDITION_OPENED = "Opened"
CONDITION_AVAILABLE = "Available"
CONDITION_CLOSED = "Closed"
CONDITION_PROGRESSING = "Progressing"

REASON_GATE_CONDITION_MET = "GateConditionMet"
REASON_GATE_CONDITION_NOT_MET = "GateConditionNotMet"
REASON_CONSOLIDATING = "Consolidating"
REASON_INVALID_SPEC = "InvalidSpec"


def _gate_conditions(
    previous: list[Condition],
    state: GateState,
    reason: str,
    message: str,
    now: datetime,
    generation: int | None,
) -> list[Condition]:
    conditions = copy.deepcopy(previous)
    opened = "True" if state == GateState.OPENED else "False"
    closed = "False" if state == GateState.OPENED else "True"
    for condition_type, status in (
        (CONDITION_OPENED, opened),
        (CONDITION_AVAILABLE, opened),
        (CONDITION_CLOSED, closed),
        (CONDITION_PROGRESSING, closed),
    ):
        set_status_condition(
            conditions,
            Condition(
                type=condition_type,
                status=status,
                reason=reason,
                message=message,
                observed_generation=generation,
            ),
            now=now,
        )
    return conditions


def _target_conditions(
    previous: list[Condition],
    targets: list[TargetResult],
    now: datetime,
    generation: int | None,
) -> list[Condition]:
    # Conditions of targets that were removed from the policy are dropped
    kept = [c for c in copy.deepcopy(previous) if any(t.name == c.type for t in targets)]
    for target in targets:
        set_status_condition(
            kept,
            Condition(
                type=target.name,
                status="True" if target.satisfied else "False",
                reason=target.reason,
                message=target.message,
                observed_generation=generation,
            ),
            now=now,
        )
    order = {t.name: idx for idx, t in enumerate(targets)}
    return sorted(kept, key=lambda c: order[c.type])


def _previous_target_conditions(status: dict[str, Any]) -> list[Condition]:
    return read_conditions({"status": {"conditions": status.get("targetConditions")}})


def build_status(
    previous_status: dict[str, Any] | None,
    result: EvaluationResult,
    consolidation: ConsolidationState,
    generation: int | None = None,
) -> dict[str, Any]:
    """Build the full status document for one completed cycle."""
    previous_status = previous_status or {}
    now = result.evaluated_at

    if result.state == GateState.OPENED:
        reason, message = REASON_GATE_CONDITION_MET, "Gate condition is met"
    elif result.satisfied:
        reason = REASON_CONSOLIDATING
        message = f"Gate condition is met, consolidating ({result.consecutive_valid_cycles} valid cycles)"
    else:
        reason, message = REASON_GATE_CONDITION_NOT_MET, "Gate condition is not met"

    conditions = _gate_conditions(
        read_conditions({"status": previous_status}), result.state, reason, message, now, generation
    )
    target_conditions = _target_conditions(
        _previous_target_conditions(previous_status), result.targets, now, generation
    )

    status = consolidation.to_status()
    status.update(
        {
            "satisfied": result.satisfied,
            "lastEvaluation": format_time(now),
            "nextEvaluation": format_time(result.next_evaluation_at),
            "conditions": [c.to_dict() for c in conditions],
            "targetConditions": [c.to_dict() for c in target_conditions],
        }
    )
    if generation is not None:
        status["observedGeneration"] = generation
    return status


def build_invalid_status(
    previous_status: dict[str, Any] | None,
    message: str,
    now: datetime,
    next_evaluation_at: datetime,
    generation: int | None = None,
) -> dict[str, Any]:
    """Status for a gate whose policy failed parsing or admission.

    The gate is reported closed and its consolidation counter is reset.
    """
    previous_status = previous_status or {}
    conditions = _gate_conditions(
        read_conditions({"status": previous_status}),
        GateState.CLOSED,
        REASON_INVALID_SPEC,
        message,
        now,
        generation,
    )
    status = ConsolidationState().to_status()
    status.update(
        {
            "satisfied": False,
            "lastEvaluation": format_time(now),
            "nextEvaluation": format_time(next_evaluation_at),
            "conditions": [c.to_dict() for c in conditions],
            "targetConditions": [],
        }
    )
    if generation is not None:
        status["observedGeneration"] = generation
    return status
