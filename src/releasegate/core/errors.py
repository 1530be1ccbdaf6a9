"""
Unified error handling for releasegate.

This module provides the error taxonomy shared by the evaluation engine,
the object store adapters and the CLI, together with standardized exit codes.

Exit Codes:
- 0: Success (gate opened)
- 1: Warning (advisory, operation succeeded with warnings)
- 2: Blocked (gate closed, or wait timed out)
- 10: Configuration error
- 11: Store error (object store / cluster API failure)
- 12: Validation error (invalid policy or selector)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    BLOCKED = 2
    CONFIG_ERROR = 10
    STORE_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class ReleaseGateError(Exception):
    """Base exception for releasegate errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ReleaseGateError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class StoreError(ReleaseGateError):
    """Base class for object store failures."""

    exit_code = ExitCode.STORE_ERROR


class ObjectNotFoundError(StoreError):
    """The requested object does not exist. Resolves to an empty object set."""


class StoreTransportError(StoreError):
    """The store failed for a reason other than "not found" (network, auth, quota)."""


class StatusConflictError(StoreError):
    """A conditional status update lost against a concurrent writer."""


class ValidationError(ReleaseGateError):
    """Raised for validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class InvalidSelectorError(ValidationError):
    """Malformed apiVersion, name/labelSelector exclusivity violation or bad label predicate."""


class PolicyParseError(ValidationError):
    """Raised when a gate manifest cannot be parsed."""


class FieldNotResolvableError(ValidationError):
    """A JSON pointer does not resolve against an object document."""


class BlockedError(ReleaseGateError):
    """Raised when a gate stays closed."""

    exit_code = ExitCode.BLOCKED


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Usage:
        @main_with_error_handling()
        def my_command() -> int:
            return 0

    Exit codes:
        - ReleaseGateError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ReleaseGateError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ReleaseGateError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
