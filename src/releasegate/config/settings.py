"""
Application settings using Pydantic.

Provides environment-based configuration loading with RELEASEGATE_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Logging
    log_level: str = "INFO"

    # Kubernetes connection
    kubeconfig: str | None = None
    kube_context: str | None = None
    request_timeout: float = 30.0

    # Gate resources
    gate_api_version: str = "gate.sh/v1alpha1"

    # Controller
    namespace: str | None = None  # None = all namespaces
    workers: int = 4
    resync_period_seconds: float = 30.0
    conflict_requeue_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "RELEASEGATE_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
