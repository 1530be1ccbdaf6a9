"""Combination of per-target verdicts into a raw gate verdict."""

from __future__ import annotations

from typing import Iterable

from releasegate.gates.models import Operator


def combine(results: Iterable[bool], operator: Operator, invert: bool = False) -> bool:
    """
    Reduce target verdicts with ``operator``, then apply ``invert``.

    AND over no targets is True and OR over no targets is False, which
    admission rules out for real gates anyway.
    """
    verdicts = list(results)
    if operator == Operator.AND:
        raw = all(verdicts)
    elif operator == Operator.OR:
        raw = any(verdicts)
    else:
        raise ValueError(f"Unsupported operator: {operator}")
    return not raw if invert else raw
