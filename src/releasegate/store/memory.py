"""
In-memory object store.

Holds documents in a dictionary keyed by kind, apiVersion, namespace and name.
Used for local evaluation of objects loaded from YAML and in tests.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable

from releasegate.core.errors import ObjectNotFoundError, StatusConflictError, StoreTransportError
from releasegate.store.base import ObjectStore, StoreHealth
from releasegate.store.selectors import matches_selector

ObjectKey = tuple[str, str, str, str]


def _key(kind: str, api_version: str, namespace: str | None, name: str) -> ObjectKey:
    return (api_version, kind, namespace or "", name)


class InMemoryObjectStore(ObjectStore):
    """Dictionary-backed store for local evaluation and tests."""

    def __init__(self, objects: Iterable[dict[str, Any]] | None = None) -> None:
        self._objects: dict[ObjectKey, dict[str, Any]] = {}
        self._errors: dict[str, Exception] = {}
        self._version = 0
        for obj in objects or []:
            self.add(obj)

    @property
    def name(self) -> str:
        return "memory"

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace an object, assigning it a new resourceVersion."""
        obj = copy.deepcopy(obj)
        metadata = obj.setdefault("metadata", {})
        self._version += 1
        metadata["resourceVersion"] = str(self._version)
        self._objects[self._object_key(obj)] = obj
        return copy.deepcopy(obj)

    def remove(self, kind: str, api_version: str, namespace: str | None, name: str) -> None:
        self._objects.pop(_key(kind, api_version, namespace, name), None)

    def fail_kind(self, kind: str, error: Exception | None) -> None:
        """Make every read of ``kind`` raise ``error`` (None clears it)."""
        if error is None:
            self._errors.pop(kind, None)
        else:
            self._errors[kind] = error

    def objects(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(obj) for obj in self._objects.values()]

    def _object_key(self, obj: dict[str, Any]) -> ObjectKey:
        metadata = obj.get("metadata") or {}
        return _key(
            obj.get("kind", ""),
            obj.get("apiVersion", ""),
            metadata.get("namespace"),
            metadata.get("name", ""),
        )

    def _raise_injected(self, kind: str) -> None:
        error = self._errors.get(kind)
        if error is None:
            return
        if isinstance(error, (ObjectNotFoundError, StoreTransportError)):
            raise error
        raise StoreTransportError(f"failed to read {kind}: {error}") from error

    async def get_by_key(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        name: str,
    ) -> dict[str, Any]:
        self._raise_injected(kind)
        obj = self._objects.get(_key(kind, api_version, namespace, name))
        if obj is None:
            raise ObjectNotFoundError(
                f"{kind} {namespace}/{name} not found",
                details={"kind": kind, "namespace": namespace, "name": name},
            )
        return copy.deepcopy(obj)

    async def list_by_label(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        label_selector: str,
    ) -> list[dict[str, Any]]:
        self._raise_injected(kind)
        items = []
        for (obj_api_version, obj_kind, obj_namespace, _), obj in sorted(self._objects.items()):
            if obj_kind != kind or obj_api_version != api_version:
                continue
            if namespace is not None and obj_namespace != namespace:
                continue
            labels = (obj.get("metadata") or {}).get("labels") or {}
            if matches_selector(labels, label_selector):
                items.append(copy.deepcopy(obj))
        return items

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        key = self._object_key(obj)
        current = self._objects.get(key)
        if current is None:
            raise ObjectNotFoundError(f"{key[1]} {key[2]}/{key[3]} not found")

        expected = (obj.get("metadata") or {}).get("resourceVersion")
        actual = current["metadata"].get("resourceVersion")
        if expected is not None and expected != actual:
            raise StatusConflictError(
                f"{key[1]} {key[2]}/{key[3]} was modified concurrently",
                details={"expected": expected, "actual": actual},
            )

        updated = copy.deepcopy(current)
        updated["status"] = copy.deepcopy(obj.get("status") or {})
        return self.add(updated)

    async def health_check(self) -> StoreHealth:
        return StoreHealth(healthy=True, message=f"{len(self._objects)} objects in memory")
