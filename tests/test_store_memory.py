"""Tests for the in-memory and overlay object stores."""

import pytest

from releasegate.core.errors import ObjectNotFoundError, StatusConflictError, StoreTransportError
from releasegate.store.memory import InMemoryObjectStore
from releasegate.store.overlay import OverlayObjectStore


class TestInMemoryObjectStore:
    """Tests for InMemoryObjectStore."""

    @pytest.mark.asyncio
    async def test_get_by_key(self, store, make_object):
        store.add(make_object("api", labels={"app": "api"}))

        obj = await store.get_by_key("Deployment", "apps/v1", "default", "api")

        assert obj["metadata"]["name"] == "api"
        assert obj["metadata"]["resourceVersion"] == "1"

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(ObjectNotFoundError):
            await store.get_by_key("Deployment", "apps/v1", "default", "api")

    @pytest.mark.asyncio
    async def test_kind_and_version_must_match(self, store, make_object):
        store.add(make_object("api"))

        with pytest.raises(ObjectNotFoundError):
            await store.get_by_key("Deployment", "apps/v1beta1", "default", "api")

    @pytest.mark.asyncio
    async def test_returns_copies(self, store, make_object):
        store.add(make_object("api"))

        obj = await store.get_by_key("Deployment", "apps/v1", "default", "api")
        obj["metadata"]["name"] = "changed"

        again = await store.get_by_key("Deployment", "apps/v1", "default", "api")
        assert again["metadata"]["name"] == "api"

    @pytest.mark.asyncio
    async def test_list_by_label(self, store, make_object):
        store.add(make_object("a", labels={"app": "api", "track": "stable"}))
        store.add(make_object("b", labels={"app": "api", "track": "canary"}))
        store.add(make_object("c", namespace="other", labels={"app": "api"}))
        store.add(make_object("d", labels={"app": "web"}))

        in_default = await store.list_by_label("Deployment", "apps/v1", "default", "app=api")
        everywhere = await store.list_by_label("Deployment", "apps/v1", None, "app=api")
        stable = await store.list_by_label("Deployment", "apps/v1", "default", "app=api,track in (stable)")

        assert [o["metadata"]["name"] for o in in_default] == ["a", "b"]
        assert sorted(o["metadata"]["name"] for o in everywhere) == ["a", "b", "c"]
        assert [o["metadata"]["name"] for o in stable] == ["a"]

    @pytest.mark.asyncio
    async def test_empty_selector_matches_everything(self, store, make_object):
        store.add(make_object("a"))
        store.add(make_object("b", labels={"app": "api"}))

        assert len(await store.list_by_label("Deployment", "apps/v1", "default", "")) == 2

    @pytest.mark.asyncio
    async def test_update_status(self, store, make_object):
        stored = store.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1"))
        stored["status"] = {"state": "Opened"}

        updated = await store.update_status(stored)

        assert updated["status"] == {"state": "Opened"}
        assert updated["metadata"]["resourceVersion"] != stored["metadata"]["resourceVersion"]

    @pytest.mark.asyncio
    async def test_update_status_conflict(self, store, make_object):
        stale = store.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1"))
        store.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1", spec={"changed": True}))
        stale["status"] = {"state": "Opened"}

        with pytest.raises(StatusConflictError):
            await store.update_status(stale)

        current = await store.get_by_key("Gate", "gate.sh/v1alpha1", "default", "gate")
        assert "status" not in current

    @pytest.mark.asyncio
    async def test_update_status_only_touches_status(self, store, make_object):
        stored = store.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1", spec={"a": 1}))
        stored["spec"] = {"a": 2}
        stored["status"] = {"state": "Closed"}

        updated = await store.update_status(stored)

        assert updated["spec"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_update_status_of_deleted_object(self, store, make_object):
        stored = store.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1"))
        store.remove("Gate", "gate.sh/v1alpha1", "default", "gate")

        with pytest.raises(ObjectNotFoundError):
            await store.update_status(stored)

    @pytest.mark.asyncio
    async def test_injected_failures_are_transport_errors(self, store, make_object):
        store.add(make_object("api"))
        store.fail_kind("Deployment", RuntimeError("connection reset"))

        with pytest.raises(StoreTransportError, match="connection reset"):
            await store.list_by_label("Deployment", "apps/v1", "default", "")

        store.fail_kind("Deployment", None)
        assert await store.get_by_key("Deployment", "apps/v1", "default", "api")

    @pytest.mark.asyncio
    async def test_health_check(self, make_object):
        store = InMemoryObjectStore([make_object("a"), make_object("b")])

        health = await store.health_check()

        assert health.healthy
        assert "2 objects" in health.message


class TestOverlayObjectStore:
    """Tests for OverlayObjectStore."""

    @pytest.fixture
    def base(self, make_object):
        return InMemoryObjectStore(
            [
                make_object("api", labels={"app": "api"}),
                make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1", spec={"source": "cluster"}),
            ]
        )

    @pytest.mark.asyncio
    async def test_overlay_shadows_base(self, base, make_object):
        overlay = OverlayObjectStore(base)
        overlay.overlay.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1", spec={"source": "file"}))

        gate = await overlay.get_by_key("Gate", "gate.sh/v1alpha1", "default", "gate")

        assert gate["spec"] == {"source": "file"}

    @pytest.mark.asyncio
    async def test_falls_back_to_base(self, base):
        overlay = OverlayObjectStore(base)

        obj = await overlay.get_by_key("Deployment", "apps/v1", "default", "api")

        assert obj["metadata"]["name"] == "api"

    @pytest.mark.asyncio
    async def test_list_merges_without_duplicates(self, base, make_object):
        overlay = OverlayObjectStore(base)
        overlay.overlay.add(make_object("api", labels={"app": "api"}, spec={"local": True}))
        overlay.overlay.add(make_object("api-2", labels={"app": "api"}))

        items = await overlay.list_by_label("Deployment", "apps/v1", "default", "app=api")

        assert [o["metadata"]["name"] for o in items] == ["api", "api-2"]
        assert items[0]["spec"] == {"local": True}

    @pytest.mark.asyncio
    async def test_status_writes_stay_local(self, base, make_object):
        overlay = OverlayObjectStore(base)
        local = overlay.overlay.add(make_object("gate", kind="Gate", api_version="gate.sh/v1alpha1"))
        local["status"] = {"state": "Opened"}

        await overlay.update_status(local)

        cluster_gate = await base.get_by_key("Gate", "gate.sh/v1alpha1", "default", "gate")
        assert "status" not in cluster_gate
        assert overlay.name == "overlay(memory)"
