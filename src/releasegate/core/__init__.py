"""Core modules for releasegate - centralized definitions and utilities."""

from releasegate.core.errors import (
    BlockedError,
    ConfigurationError,
    ExitCode,
    FieldNotResolvableError,
    InvalidSelectorError,
    ObjectNotFoundError,
    PolicyParseError,
    ReleaseGateError,
    StatusConflictError,
    StoreError,
    StoreTransportError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ReleaseGateError",
    "ConfigurationError",
    "StoreError",
    "ObjectNotFoundError",
    "StoreTransportError",
    "StatusConflictError",
    "ValidationError",
    "InvalidSelectorError",
    "FieldNotResolvableError",
    "PolicyParseError",
    "BlockedError",
    "main_with_error_handling",
    "format_error_message",
]
