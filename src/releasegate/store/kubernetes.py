"""
Kubernetes object store.

Reads arbitrary object kinds through the kubernetes dynamic client and
writes gate status through the ``status`` subresource. Objects are handed
to the engine as plain dictionaries.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

import structlog

from releasegate.core.errors import (
    ConfigurationError,
    ObjectNotFoundError,
    ReleaseGateError,
    StatusConflictError,
    StoreTransportError,
)
from releasegate.store.base import ObjectStore, StoreHealth

if TYPE_CHECKING:
    from releasegate.config.settings import Settings

logger = structlog.get_logger()

# Lazy import kubernetes to allow optional installation
_kubernetes_available: bool | None = None


def _check_kubernetes_available() -> bool:
    """Check if kubernetes package is installed."""
    global _kubernetes_available
    if _kubernetes_available is None:
        try:
            import kubernetes  # noqa: F401

            _kubernetes_available = True
        except ImportError:
            _kubernetes_available = False
    return _kubernetes_available


@dataclass
class KubernetesObjectStore(ObjectStore):
    """
    Object store backed by the Kubernetes API.

    Configuration:
        kubeconfig: Path to kubeconfig file (optional)
        context: Kubeconfig context to use (optional)
        timeout: API request timeout in seconds

    Environment variables:
        KUBECONFIG: Standard kubeconfig path
        RELEASEGATE_KUBE_CONTEXT: Kubeconfig context
    """

    kubeconfig: str | None = field(default_factory=lambda: os.environ.get("KUBECONFIG"))
    context: str | None = field(default_factory=lambda: os.environ.get("RELEASEGATE_KUBE_CONTEXT"))
    timeout: float = 30.0

    # Internal state
    _dynamic_client: Any = field(default=None, repr=False, compare=False)
    _initialized: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> KubernetesObjectStore:
        return cls(
            kubeconfig=settings.kubeconfig or os.environ.get("KUBECONFIG"),
            context=settings.kube_context,
            timeout=settings.request_timeout,
        )

    @property
    def name(self) -> str:
        return "kubernetes"

    def _ensure_initialized(self) -> None:
        """Initialize the dynamic client if not already done."""
        if self._initialized:
            return

        if not _check_kubernetes_available():
            raise ConfigurationError(
                "kubernetes package not installed. "
                "Install with: pip install releasegate[kubernetes]"
            )

        from kubernetes import client, config, dynamic

        # Try in-cluster config first, then kubeconfig
        try:
            config.load_incluster_config()
        except config.ConfigException:
            try:
                config.load_kube_config(
                    config_file=self.kubeconfig,
                    context=self.context,
                )
            except config.ConfigException as e:
                raise ConfigurationError(f"Failed to load Kubernetes config: {e}") from e

        self._dynamic_client = dynamic.DynamicClient(client.ApiClient())
        self._initialized = True

    def _get_resource(self, kind: str, api_version: str) -> Any:
        """Look up the API resource serving ``kind`` in ``api_version``."""
        self._ensure_initialized()
        return self._dynamic_client.resources.get(api_version=api_version, kind=kind)

    async def _run_sync(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run synchronous kubernetes API call in executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    def _translate_error(self, error: Exception, what: str) -> ReleaseGateError:
        from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

        if isinstance(error, ReleaseGateError):
            return error
        if isinstance(error, NotFoundError):
            return ObjectNotFoundError(f"{what} not found")
        if isinstance(error, ConflictError):
            return StatusConflictError(f"{what} was modified concurrently")
        return StoreTransportError(f"failed to access {what}: {error}")

    async def get_by_key(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        name: str,
    ) -> dict[str, Any]:
        def _get() -> dict[str, Any]:
            resource = self._get_resource(kind, api_version)
            ns = namespace if resource.namespaced else None
            return resource.get(name=name, namespace=ns, _request_timeout=self.timeout).to_dict()

        try:
            return await self._run_sync(_get)
        except Exception as e:
            raise self._translate_error(e, f"{kind} {namespace}/{name}") from e

    async def list_by_label(
        self,
        kind: str,
        api_version: str,
        namespace: str | None,
        label_selector: str,
    ) -> list[dict[str, Any]]:
        def _list() -> list[dict[str, Any]]:
            resource = self._get_resource(kind, api_version)
            ns = namespace if resource.namespaced else None
            result = resource.get(
                namespace=ns,
                label_selector=label_selector or None,
                _request_timeout=self.timeout,
            ).to_dict()
            items = result.get("items") or []
            # List responses omit the type of their items
            for item in items:
                item.setdefault("apiVersion", api_version)
                item.setdefault("kind", kind)
            return items

        try:
            return await self._run_sync(_list)
        except Exception as e:
            raise self._translate_error(e, f"{kind} list in {namespace or 'all namespaces'}") from e

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = obj.get("kind", "")
        api_version = obj.get("apiVersion", "")
        metadata = obj.get("metadata") or {}

        def _replace() -> dict[str, Any]:
            resource = self._get_resource(kind, api_version)
            status_resource = resource.subresources.get("status")
            if status_resource is None:
                raise StoreTransportError(f"{kind} has no status subresource")
            ns = metadata.get("namespace") if resource.namespaced else None
            return self._dynamic_client.replace(
                status_resource,
                body=obj,
                name=metadata.get("name"),
                namespace=ns,
                _request_timeout=self.timeout,
            ).to_dict()

        try:
            return await self._run_sync(_replace)
        except Exception as e:
            raise self._translate_error(
                e, f"{kind} {metadata.get('namespace')}/{metadata.get('name')} status"
            ) from e

    async def health_check(self) -> StoreHealth:
        """Check Kubernetes API connectivity."""
        start = time.time()

        try:
            self._ensure_initialized()
            from kubernetes import client

            await self._run_sync(client.VersionApi(self._dynamic_client.client).get_code)
            latency = (time.time() - start) * 1000

            return StoreHealth(
                healthy=True,
                message="Connected to Kubernetes API",
                latency_ms=latency,
            )

        except ConfigurationError as e:
            return StoreHealth(
                healthy=False,
                message=str(e),
            )
        except Exception as e:
            logger.warning("kubernetes_health_check_failed", error=str(e))
            return StoreHealth(
                healthy=False,
                message=f"Kubernetes connection failed: {e}",
            )
