"""
Status condition helpers.

Conditions are the ``status.conditions``-shaped lists found on most cluster
objects. A condition list is keyed by ``type``: it holds at most one entry
per type, and updating an entry only moves ``lastTransitionTime`` when the
``status`` actually changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from releasegate.gates.models import format_time, parse_time, utcnow


@dataclass
class Condition:
    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None
    observed_generation: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": format_time(self.last_transition_time),
        }
        if self.observed_generation is not None:
            data["observedGeneration"] = self.observed_generation
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        status = data.get("status", "")
        return cls(
            type=str(data["type"]),
            status=str(status),
            reason=str(data.get("reason") or ""),
            message=str(data.get("message") or ""),
            last_transition_time=parse_time(data.get("lastTransitionTime")),
            observed_generation=data.get("observedGeneration"),
        )


def read_conditions(obj: dict[str, Any]) -> list[Condition]:
    """Extract ``status.conditions`` from a raw object document.

    Missing status or conditions yield an empty list. Entries that are not
    mappings or have no ``type`` are skipped.
    """
    status = obj.get("status")
    if not isinstance(status, dict):
        return []
    raw_conditions = status.get("conditions")
    if not isinstance(raw_conditions, list):
        return []

    conditions = []
    for raw in raw_conditions:
        if not isinstance(raw, dict) or "type" not in raw:
            continue
        try:
            conditions.append(Condition.from_dict(raw))
        except (TypeError, ValueError):
            continue
    return conditions


def find_status_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_status_condition(
    conditions: list[Condition],
    new_condition: Condition,
    now: datetime | None = None,
) -> bool:
    """Insert or update ``new_condition`` in place.

    Returns True when the list changed.
    """
    now = now or utcnow()
    existing = find_status_condition(conditions, new_condition.type)
    if existing is None:
        conditions.append(
            replace(new_condition, last_transition_time=new_condition.last_transition_time or now)
        )
        return True

    changed = False
    if existing.status != new_condition.status:
        existing.status = new_condition.status
        existing.last_transition_time = new_condition.last_transition_time or now
        changed = True
    if existing.reason != new_condition.reason:
        existing.reason = new_condition.reason
        changed = True
    if existing.message != new_condition.message:
        existing.message = new_condition.message
        changed = True
    if existing.observed_generation != new_condition.observed_generation:
        existing.observed_generation = new_condition.observed_generation
        changed = True
    return changed


def object_name(obj: dict[str, Any]) -> str:
    """``<namespace>/<name>`` of a raw object, as used in diagnostics."""
    metadata = obj.get("metadata") or {}
    return f"{metadata.get('namespace', '')}/{metadata.get('name', '')}"
