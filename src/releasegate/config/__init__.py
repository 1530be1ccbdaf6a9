"""
releasegate configuration.

Pydantic-based settings read from the environment (RELEASEGATE_ prefix)
and an optional .env file.
"""

from releasegate.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
