"""
Object store adapters.

The engine reads target objects and writes gate status through an
``ObjectStore``. Available stores:
- memory: dictionary-backed, for local evaluation and tests
- kubernetes: the cluster API via the kubernetes dynamic client
- overlay: local objects layered over another store
"""

from releasegate.store.base import ObjectStore, StoreHealth
from releasegate.store.kubernetes import KubernetesObjectStore
from releasegate.store.memory import InMemoryObjectStore
from releasegate.store.overlay import OverlayObjectStore

__all__ = [
    "InMemoryObjectStore",
    "KubernetesObjectStore",
    "ObjectStore",
    "OverlayObjectStore",
    "StoreHealth",
]
