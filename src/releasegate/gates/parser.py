"""
Gate manifest parser.

Turns ``Gate``/``ClusterGate`` manifests (as stored in the cluster or read
from YAML files) into ``GatePolicy`` objects.

Expected structure:
    apiVersion: gate.sh/v1alpha1
    kind: Gate
    metadata:
      name: release-ready
      namespace: payments
    spec:
      targets:
        - name: Deployments
          selector:
            apiVersion: apps/v1
            kind: Deployment
            labelSelector:
              matchLabels:
                app: payment-api
          validators:
            - atLeast: {percent: 50}
            - matchCondition: {type: Available}
      operation:
        operator: AND
      evaluationPeriod: 60s
      consolidation:
        count: 3
        delay: 10s
"""

from __future__ import annotations

import re
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from releasegate.core.errors import PolicyParseError
from releasegate.gates.models import (
    CLUSTER_GATE_KIND,
    GATE_KIND,
    AtLeast,
    ConditionCheck,
    Consolidation,
    GateExpression,
    GateKey,
    GatePolicy,
    JsonPointer,
    LabelSelector,
    LabelSelectorRequirement,
    MatchCondition,
    ObjectRef,
    Operation,
    Operator,
    Target,
    TargetOne,
    TargetSelector,
    Validator,
)

GATE_KINDS = (GATE_KIND, CLUSTER_GATE_KIND)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|ns|h|m|s)")
_DURATION_UNITS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
    "ns": 1e-9,
}


def parse_duration(value: Any) -> timedelta:
    """
    Parse a Go-style duration (``90s``, ``5m``, ``1h30m``, ``250ms``).

    Bare numbers are read as seconds.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise PolicyParseError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str) or not value.strip():
        raise PolicyParseError(f"Invalid duration: {value!r}")

    text = value.strip()
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise PolicyParseError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        raise PolicyParseError(f"Invalid duration: {value!r}")
    return timedelta(seconds=total)


def load_manifests(file_path: str | Path) -> list[dict[str, Any]]:
    """Load every YAML document in ``file_path`` (``List`` kinds are flattened)."""
    file_path = Path(file_path)

    if not file_path.exists():
        raise PolicyParseError(f"File not found: {file_path}")

    try:
        with open(file_path) as f:
            documents = list(yaml.safe_load_all(f))
    except yaml.YAMLError as e:
        raise PolicyParseError(f"Invalid YAML in {file_path}: {e}") from e

    manifests: list[dict[str, Any]] = []
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise PolicyParseError(f"Each YAML document must be a dictionary: {file_path}")
        if str(document.get("kind", "")).endswith("List") and isinstance(document.get("items"), list):
            manifests.extend(item for item in document["items"] if isinstance(item, dict))
        else:
            manifests.append(document)
    return manifests


def load_gate_file(file_path: str | Path) -> list[tuple[GateKey, GatePolicy, dict[str, Any]]]:
    """Load and parse every gate manifest in a YAML file."""
    gates = []
    for manifest in load_manifests(file_path):
        if manifest.get("kind") not in GATE_KINDS:
            continue
        key, policy = parse_gate(manifest, source=str(file_path))
        gates.append((key, policy, manifest))

    if not gates:
        raise PolicyParseError(f"No Gate or ClusterGate manifest found in {file_path}")
    return gates


def gate_key(manifest: dict[str, Any]) -> GateKey:
    kind = manifest.get("kind", GATE_KIND)
    metadata = manifest.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        raise PolicyParseError(f"{kind} manifest has no metadata.name")
    namespace = None if kind == CLUSTER_GATE_KIND else metadata.get("namespace") or "default"
    return GateKey(kind=kind, name=name, namespace=namespace)


def parse_gate(manifest: dict[str, Any], source: str = "<manifest>") -> tuple[GateKey, GatePolicy]:
    kind = manifest.get("kind")
    if kind not in GATE_KINDS:
        raise PolicyParseError(f"Unsupported kind {kind!r} in {source}")

    key = gate_key(manifest)
    spec = manifest.get("spec")
    if not isinstance(spec, dict):
        raise PolicyParseError(f"Missing required 'spec' section in {source} ({key})")
    return key, parse_policy(spec, source=f"{source} ({key})")


def parse_policy(spec: dict[str, Any], source: str = "<spec>") -> GatePolicy:
    """Parse the ``spec`` section of a gate manifest."""
    try:
        return _parse_policy(spec)
    except PolicyParseError as e:
        raise PolicyParseError(f"{e.message} in {source}") from e
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        raise PolicyParseError(f"Malformed gate spec in {source}: {e}") from e


def _parse_policy(spec: dict[str, Any]) -> GatePolicy:
    targets = [_parse_target(raw) for raw in spec.get("targets") or []]

    operation_data = spec.get("operation") or {}
    operation = Operation(
        operator=_parse_operator(operation_data.get("operator")),
        invert=bool(operation_data.get("invert", False)),
    )

    period = spec.get("evaluationPeriod", spec.get("requeueAfter"))
    consolidation_data = spec.get("consolidation") or {}
    consolidation = Consolidation(
        count=_optional_int(consolidation_data.get("count")),
        delay=(
            parse_duration(consolidation_data["delay"])
            if consolidation_data.get("delay") is not None
            else None
        ),
    )

    expression = spec.get("expression")
    return GatePolicy(
        targets=targets,
        operation=operation,
        evaluation_period=parse_duration(period) if period is not None else None,
        consolidation=consolidation,
        expression=_parse_expression(expression) if expression else None,
    )


def _parse_operator(value: Any) -> Operator:
    if value is None or value == "":
        return Operator.AND
    try:
        return Operator(str(value).upper())
    except ValueError:
        raise PolicyParseError(f"Unknown operator {value!r} (expected AND or OR)") from None


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _parse_target(raw: dict[str, Any]) -> Target:
    if not isinstance(raw, dict):
        raise PolicyParseError("Each target must be a mapping")
    selector_data = raw.get("selector")
    if not isinstance(selector_data, dict):
        raise PolicyParseError(f"Target {raw.get('name', '')!r} has no selector")

    label_selector = None
    if selector_data.get("labelSelector") is not None:
        label_selector = _parse_label_selector(selector_data["labelSelector"])

    selector = TargetSelector(
        kind=str(selector_data.get("kind", "")),
        api_version=str(selector_data.get("apiVersion", "")),
        namespace=selector_data.get("namespace") or None,
        name=selector_data.get("name") or None,
        label_selector=label_selector,
    )
    validators = [_parse_validator(v) for v in raw.get("validators") or []]
    return Target(selector=selector, name=raw.get("name") or None, validators=validators)


def _parse_label_selector(data: dict[str, Any]) -> LabelSelector:
    expressions = [
        LabelSelectorRequirement(
            key=str(item["key"]),
            operator=str(item.get("operator", "")),
            values=[str(v) for v in item.get("values") or []],
        )
        for item in data.get("matchExpressions") or []
    ]
    labels = {str(k): str(v) for k, v in (data.get("matchLabels") or {}).items()}
    return LabelSelector(match_labels=labels, match_expressions=expressions)


def _parse_validator(raw: dict[str, Any]) -> Validator:
    if not isinstance(raw, dict):
        raise PolicyParseError("Each validator must be a mapping")

    arms = [arm for arm in ("atLeast", "matchCondition", "jsonPointer") if raw.get(arm) is not None]
    if len(arms) != 1:
        raise PolicyParseError(
            "A validator must set exactly one of atLeast, matchCondition, jsonPointer "
            f"(got {', '.join(arms) or 'none'})"
        )

    arm = arms[0]
    data = raw[arm]
    if arm == "atLeast":
        # Shorthand: ``atLeast: 2``
        if isinstance(data, int) and not isinstance(data, bool):
            return AtLeast(count=data)
        return AtLeast(count=_optional_int(data.get("count")), percent=_optional_int(data.get("percent")))
    if arm == "matchCondition":
        status = data.get("status")
        return MatchCondition(type=str(data["type"]), status=_condition_status(status))
    return JsonPointer(pointer=str(data["pointer"]), value=_literal(data.get("value", "")))


def _condition_status(value: Any) -> str | None:
    # YAML reads unquoted True/False as booleans
    if isinstance(value, bool):
        return "True" if value else "False"
    if value is None or value == "":
        return None
    return str(value)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _parse_expression(data: dict[str, Any]) -> GateExpression:
    if not isinstance(data, dict):
        raise PolicyParseError("An expression must be a mapping")

    arms = [arm for arm in ("targetOne", "and", "or") if data.get(arm)]
    if len(arms) != 1:
        raise PolicyParseError("Exactly one of 'targetOne', 'and', or 'or' must be specified")

    target_one = None
    if data.get("targetOne"):
        target_data = data["targetOne"]
        ref = target_data.get("objectRef") or {}
        condition_data = target_data.get("condition")
        condition = None
        if condition_data and condition_data.get("type"):
            condition = ConditionCheck(
                type=str(condition_data["type"]),
                status=_condition_status(condition_data.get("status")) or "True",
            )
        target_one = TargetOne(
            object_ref=ObjectRef(
                kind=str(ref.get("kind", "")),
                api_version=str(ref.get("apiVersion", "")),
                name=str(ref.get("name", "")),
                namespace=ref.get("namespace") or None,
            ),
            condition=condition,
        )

    return GateExpression(
        target_one=target_one,
        and_=[_parse_expression(sub) for sub in data.get("and") or []],
        or_=[_parse_expression(sub) for sub in data.get("or") or []],
        invert=bool(data.get("invert", False)),
    )
