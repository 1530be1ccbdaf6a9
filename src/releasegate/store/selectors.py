"""
Label selector and apiVersion helpers.

Label selectors are translated to the string form understood by the cluster
API (``app=web,tier in (a,b),!canary``). The in-memory store parses the same
string back to match labels locally.
"""

from __future__ import annotations

import re

from releasegate.core.errors import InvalidSelectorError
from releasegate.gates.models import LabelSelector

OPERATOR_IN = "In"
OPERATOR_NOT_IN = "NotIn"
OPERATOR_EXISTS = "Exists"
OPERATOR_DOES_NOT_EXIST = "DoesNotExist"

_SET_REQUIREMENT = re.compile(r"^\s*([\w./-]+)\s+(in|notin)\s+\(([^)]*)\)\s*$")
_EQUALITY_REQUIREMENT = re.compile(r"^\s*([\w./-]+)\s*(==|!=|=)\s*([\w./-]*)\s*$")
_EXISTS_REQUIREMENT = re.compile(r"^\s*(!?)([\w./-]+)\s*$")

_LABEL_NAME = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?)?$")
_DNS_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_MAX_LABEL_LENGTH = 63
_MAX_PREFIX_LENGTH = 253


def parse_group_version(api_version: str) -> tuple[str, str]:
    """Split ``apps/v1`` into ``("apps", "v1")`` and ``v1`` into ``("", "v1")``."""
    if not api_version or api_version.strip() != api_version:
        raise InvalidSelectorError(f"invalid apiVersion {api_version!r}")

    parts = api_version.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0], parts[1]
    raise InvalidSelectorError(f"invalid apiVersion {api_version!r}: unexpected GroupVersion string")


def _check_label_key(key: str) -> None:
    prefix, _, name = key.rpartition("/")
    if "/" in key and (not prefix or len(prefix) > _MAX_PREFIX_LENGTH or not _DNS_SUBDOMAIN.match(prefix)):
        raise InvalidSelectorError(f"invalid label key {key!r}: prefix must be a DNS subdomain")
    if not name or len(name) > _MAX_LABEL_LENGTH or not _LABEL_NAME.match(name):
        raise InvalidSelectorError(
            f"invalid label key {key!r}: name must be at most 63 alphanumeric characters, '-', '_' or '.'"
        )


def _check_label_value(key: str, value: str) -> None:
    if len(value) > _MAX_LABEL_LENGTH or not _LABEL_NAME.match(value):
        raise InvalidSelectorError(
            f"invalid label value {value!r} for key {key!r}: "
            "must be at most 63 alphanumeric characters, '-', '_' or '.'"
        )


def selector_to_string(selector: LabelSelector) -> str:
    """Translate a structured label selector to its string predicate."""
    for key, value in selector.match_labels.items():
        _check_label_key(key)
        _check_label_value(key, value)
    requirements = [f"{key}={value}" for key, value in sorted(selector.match_labels.items())]

    for expression in selector.match_expressions:
        if not expression.key:
            raise InvalidSelectorError("label selector requirement has an empty key")
        _check_label_key(expression.key)
        for value in expression.values:
            _check_label_value(expression.key, value)

        if expression.operator in (OPERATOR_IN, OPERATOR_NOT_IN):
            if not expression.values:
                raise InvalidSelectorError(
                    f"values must be non-empty for operator {expression.operator} (key {expression.key})"
                )
            op = "in" if expression.operator == OPERATOR_IN else "notin"
            requirements.append(f"{expression.key} {op} ({','.join(sorted(expression.values))})")
        elif expression.operator in (OPERATOR_EXISTS, OPERATOR_DOES_NOT_EXIST):
            if expression.values:
                raise InvalidSelectorError(
                    f"values must be empty for operator {expression.operator} (key {expression.key})"
                )
            prefix = "" if expression.operator == OPERATOR_EXISTS else "!"
            requirements.append(f"{prefix}{expression.key}")
        else:
            raise InvalidSelectorError(f"{expression.operator!r} is not a valid label selector operator")

    return ",".join(requirements)


def _split_requirements(selector: str) -> list[str]:
    parts, depth, current = [], 0, []
    for char in selector:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [part for part in parts if part.strip()]


def matches_selector(labels: dict[str, str], selector: str) -> bool:
    """Evaluate a string label selector against an object's labels."""
    for requirement in _split_requirements(selector or ""):
        if not _matches_requirement(labels, requirement):
            return False
    return True


def _matches_requirement(labels: dict[str, str], requirement: str) -> bool:
    match = _SET_REQUIREMENT.match(requirement)
    if match:
        key, op, raw_values = match.groups()
        values = {value.strip() for value in raw_values.split(",") if value.strip()}
        if op == "in":
            return labels.get(key) in values
        return key not in labels or labels[key] not in values

    match = _EQUALITY_REQUIREMENT.match(requirement)
    if match:
        key, op, value = match.groups()
        if op == "!=":
            return labels.get(key) != value
        return key in labels and labels[key] == value

    match = _EXISTS_REQUIREMENT.match(requirement)
    if match:
        negated, key = match.groups()
        return (key in labels) != bool(negated)

    raise InvalidSelectorError(f"unable to parse label selector requirement {requirement!r}")
