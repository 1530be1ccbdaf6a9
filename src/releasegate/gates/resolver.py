"""
Target resolution.

Turns one declarative target selector into the concrete, possibly empty,
set of objects it designates. Resolution is a pure read.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from releasegate.core.errors import InvalidSelectorError, ObjectNotFoundError
from releasegate.gates.models import Target
from releasegate.store.selectors import parse_group_version, selector_to_string

if TYPE_CHECKING:
    from releasegate.store.base import ObjectStore

logger = structlog.get_logger()


class TargetResolver:
    """Resolves target selectors against an object store."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def resolve(self, target: Target, default_namespace: str | None) -> list[dict[str, Any]]:
        """
        Fetch the objects designated by ``target``.

        Args:
            target: Target whose selector to resolve
            default_namespace: The gate's own namespace (None for cluster gates)

        Returns:
            Matching objects; empty when nothing matches or a named object is absent

        Raises:
            InvalidSelectorError: malformed apiVersion, name/labelSelector both
                or neither set, or an invalid label selector
            StoreTransportError: the store failed for any other reason
        """
        selector = target.selector
        parse_group_version(selector.api_version)

        has_name = bool(selector.name)
        has_labels = selector.label_selector is not None and not selector.label_selector.is_empty()
        if has_name and has_labels:
            raise InvalidSelectorError(
                f"name and labelSelector are mutually exclusive in target {target.name}"
            )
        if not has_name and not has_labels:
            raise InvalidSelectorError(
                f"either name or labelSelector must be specified in target {target.name}"
            )

        namespace = selector.namespace or default_namespace

        if has_name:
            try:
                obj = await self._store.get_by_key(
                    selector.kind, selector.api_version, namespace, selector.name or ""
                )
            except ObjectNotFoundError:
                logger.debug(
                    "target_object_not_found",
                    target=target.name,
                    kind=selector.kind,
                    namespace=namespace,
                    name=selector.name,
                )
                return []
            return [obj]

        predicate = selector_to_string(selector.label_selector)  # type: ignore[arg-type]
        objects = await self._store.list_by_label(
            selector.kind, selector.api_version, namespace, predicate
        )
        logger.debug(
            "target_objects_listed",
            target=target.name,
            kind=selector.kind,
            namespace=namespace,
            selector=predicate,
            count=len(objects),
        )
        return objects
