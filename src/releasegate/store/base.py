"""
Base class for object store adapters.

The evaluation engine only talks to the cluster through this interface:
single-key reads, label-selected lists, and a conditional write of a
gate's own status. Objects are plain ``dict`` documents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from releasegate.gates.conditions import Condition, read_conditions
from releasegate.gates.fields import read_field


@dataclass
class StoreHealth:
    """Health status of an object store."""

    healthy: bool
    message: str
    latency_ms: float | None = None


class ObjectStore(ABC):
    """
    Abstract base class for object stores.

    All stores must implement:
    - get_by_key(): Fetch one object, raising ObjectNotFoundError when absent
    - list_by_label(): List objects of a kind matching a label selector string
    - update_status(): Replace an object's status, conditional on resourceVersion
    - health_check(): Verify store connectivity

    Any failure other than "not found" must surface as StoreTransportError.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name for identification."""

    @abstractmethod
    async def get_by_key(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        name: str,
    ) -> dict[str, Any]:
        """
        Fetch a single object.

        Raises:
            ObjectNotFoundError: the object does not exist
            StoreTransportError: any other failure
        """

    @abstractmethod
    async def list_by_label(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        label_selector: str,
    ) -> list[dict[str, Any]]:
        """
        List objects of a kind matching ``label_selector``.

        ``namespace=None`` lists across all namespaces. An empty selector
        matches everything.
        """

    @abstractmethod
    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """
        Write ``obj["status"]`` back to the store.

        The write is conditional on ``metadata.resourceVersion`` and either
        fully succeeds or changes nothing.

        Raises:
            StatusConflictError: the object changed since it was read
            ObjectNotFoundError: the object was deleted
        """

    @abstractmethod
    async def health_check(self) -> StoreHealth:
        """Check store connectivity and health."""

    def read_conditions(self, obj: dict[str, Any]) -> list[Condition]:
        """Extract the ``status.conditions`` list of an object."""
        return read_conditions(obj)

    def read_field(self, obj: dict[str, Any], pointer: str) -> Any:
        """Resolve an RFC 6901 JSON pointer against an object document."""
        return read_field(obj, pointer)
