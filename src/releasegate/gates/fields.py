"""Structured-field access on raw object documents."""

from __future__ import annotations

import json
from typing import Any

import jsonpointer

from releasegate.core.errors import FieldNotResolvableError


def read_field(obj: dict[str, Any], pointer: str) -> Any:
    """Resolve an RFC 6901 JSON pointer against an object document."""
    try:
        value = jsonpointer.resolve_pointer(obj, pointer)
    except jsonpointer.JsonPointerException as e:
        raise FieldNotResolvableError(str(e), details={"pointer": pointer}) from e
    # "/-" addresses the (nonexistent) element past the end of an array
    if isinstance(value, jsonpointer.EndOfList):
        raise FieldNotResolvableError("pointer addresses the end of a list", details={"pointer": pointer})
    return value


def render_value(value: Any) -> str:
    """
    Render a field value for comparison with a declared literal.

    Strings are used as-is; anything else is rendered as canonical JSON
    text, so ``3`` becomes ``"3"``, ``True`` becomes ``"true"`` and
    ``None`` becomes ``"null"``.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)
