"""
Consolidation (hysteresis) tracking.

A gate only opens after ``count`` consecutive satisfied cycles spaced at
least ``delay`` apart, and closes on the first unsatisfied cycle. The state
is explicit and round-trips through the gate's status, so a restarted
controller continues counting where the previous one stopped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from releasegate.gates.models import Consolidation, GateState, format_time, parse_time


@dataclass
class ConsolidationState:
    state: GateState = GateState.CLOSED
    consecutive_valid_cycles: int = 0
    last_counted_at: datetime | None = None

    @classmethod
    def from_status(cls, status: dict[str, Any] | None) -> ConsolidationState:
        """Rebuild the state persisted by ``to_status``; unknown values reset it."""
        status = status or {}
        try:
            state = GateState(status.get("state") or GateState.CLOSED)
        except ValueError:
            state = GateState.CLOSED
        try:
            counter = max(0, int(status.get("consecutiveValidCycles") or 0))
        except (TypeError, ValueError):
            counter = 0
        try:
            last_counted_at = parse_time(status.get("lastCountedEvaluation"))
        except (TypeError, ValueError):
            last_counted_at = None
        return cls(state=state, consecutive_valid_cycles=counter, last_counted_at=last_counted_at)

    def to_status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutiveValidCycles": self.consecutive_valid_cycles,
            "lastCountedEvaluation": format_time(self.last_counted_at),
        }


def consolidate(
    previous: ConsolidationState,
    raw: bool,
    now: datetime,
    consolidation: Consolidation,
) -> ConsolidationState:
    """
    Fold one raw verdict into the consolidation state.

    Args:
        previous: State persisted by the last cycle
        raw: This cycle's combined verdict
        now: Evaluation time of this cycle
        consolidation: Policy with ``count`` and ``delay`` already defaulted

    Returns:
        The new state; ``previous`` is not modified
    """
    if not raw:
        return ConsolidationState(state=GateState.CLOSED, consecutive_valid_cycles=0, last_counted_at=None)

    delay = consolidation.delay if consolidation.delay is not None else timedelta(0)
    if previous.last_counted_at is not None and now - previous.last_counted_at < delay:
        return ConsolidationState(
            state=previous.state,
            consecutive_valid_cycles=previous.consecutive_valid_cycles,
            last_counted_at=previous.last_counted_at,
        )

    counter = previous.consecutive_valid_cycles + 1
    required = consolidation.count or 1
    state = GateState.OPENED if counter >= required else previous.state
    return ConsolidationState(state=state, consecutive_valid_cycles=counter, last_counted_at=now)
