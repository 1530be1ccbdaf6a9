"""Controller running gate reconciliation against a live store."""

from releasegate.controller.gate_controller import GateController

__all__ = ["GateController"]
