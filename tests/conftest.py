"""Root test configuration."""

import logging
from datetime import datetime, timezone

import pytest
import structlog

from releasegate.config.settings import get_settings
from releasegate.store.memory import InMemoryObjectStore


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests that patch env vars need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def build_object(
    name,
    namespace="default",
    kind="Deployment",
    api_version="apps/v1",
    labels=None,
    conditions=None,
    **extra,
):
    """Build a raw object document the way the cluster returns it."""
    obj = {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "labels": dict(labels or {})},
    }
    if namespace is not None:
        obj["metadata"]["namespace"] = namespace
    if conditions is not None:
        obj["status"] = {
            "conditions": [{"type": ctype, "status": status} for ctype, status in conditions.items()]
        }
    obj.update(extra)
    return obj


@pytest.fixture
def make_object():
    """Factory fixture for raw object documents."""
    return build_object


@pytest.fixture
def store():
    """Empty in-memory object store."""
    return InMemoryObjectStore()


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FakeClock()
