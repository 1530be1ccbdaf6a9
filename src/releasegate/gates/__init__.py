"""
Gate policies and their evaluation.

This package holds the policy model and the pure evaluation steps
(validators, combination, consolidation). Store-backed components live in
``releasegate.gates.resolver``, ``releasegate.gates.evaluator`` and
``releasegate.gates.scheduler``.
"""

from releasegate.gates.admission import validate_policy
from releasegate.gates.combinator import combine
from releasegate.gates.conditions import Condition, find_status_condition, set_status_condition
from releasegate.gates.consolidation import ConsolidationState, consolidate
from releasegate.gates.defaults import apply_defaults
from releasegate.gates.models import (
    CLUSTER_GATE_KIND,
    GATE_KIND,
    AtLeast,
    Consolidation,
    EvaluationResult,
    GateExpression,
    GateKey,
    GatePolicy,
    GateState,
    JsonPointer,
    LabelSelector,
    LabelSelectorRequirement,
    MatchCondition,
    Operation,
    Operator,
    Target,
    TargetResult,
    TargetSelector,
    Validator,
)
from releasegate.gates.parser import load_gate_file, parse_duration, parse_gate, parse_policy
from releasegate.gates.validators import ValidationOutcome, ValidatorEngine

__all__ = [
    "AtLeast",
    "CLUSTER_GATE_KIND",
    "Condition",
    "Consolidation",
    "ConsolidationState",
    "EvaluationResult",
    "GATE_KIND",
    "GateExpression",
    "GateKey",
    "GatePolicy",
    "GateState",
    "JsonPointer",
    "LabelSelector",
    "LabelSelectorRequirement",
    "MatchCondition",
    "Operation",
    "Operator",
    "Target",
    "TargetResult",
    "TargetSelector",
    "ValidationOutcome",
    "Validator",
    "ValidatorEngine",
    "apply_defaults",
    "combine",
    "consolidate",
    "find_status_condition",
    "load_gate_file",
    "parse_duration",
    "parse_gate",
    "parse_policy",
    "set_status_condition",
    "validate_policy",
]
