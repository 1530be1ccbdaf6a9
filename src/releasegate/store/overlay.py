"""
Overlay store.

Serves a set of local objects (typically gates read from a file) on top of
another store. Reads consult the overlay first; status writes only ever
touch the overlay, so evaluating a local gate against a live cluster never
writes to the cluster.
"""

from __future__ import annotations

from typing import Any

from releasegate.core.errors import ObjectNotFoundError
from releasegate.store.base import ObjectStore, StoreHealth
from releasegate.store.memory import InMemoryObjectStore


class OverlayObjectStore(ObjectStore):
    def __init__(self, base: ObjectStore, overlay: InMemoryObjectStore | None = None) -> None:
        self.base = base
        self.overlay = overlay or InMemoryObjectStore()

    @property
    def name(self) -> str:
        return f"overlay({self.base.name})"

    async def get_by_key(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        name: str,
    ) -> dict[str, Any]:
        try:
            return await self.overlay.get_by_key(kind, api_version, namespace, name)
        except ObjectNotFoundError:
            return await self.base.get_by_key(kind, api_version, namespace, name)

    async def list_by_label(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        label_selector: str,
    ) -> list[dict[str, Any]]:
        local = await self.overlay.list_by_label(kind, api_version, namespace, label_selector)
        shadowed = {_identity(obj) for obj in local}
        remote = await self.base.list_by_label(kind, api_version, namespace, label_selector)
        return local + [obj for obj in remote if _identity(obj) not in shadowed]

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        return await self.overlay.update_status(obj)

    async def health_check(self) -> StoreHealth:
        return await self.base.health_check()


def _identity(obj: dict[str, Any]) -> tuple[str, str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("namespace") or "", metadata.get("name") or ""
