"""
Error taxonomy for promboard.

Failures are scoped to the smallest affected unit:

- StructuralError: the dashboard document itself is malformed (fatal to a load)
- QueryError: a single query failed (isolated to its result slot)
- PanelFetchError: a panel's whole query batch could not run
- ConnectivityError: the backend health probe failed
- UnsupportedFeatureWarning: acknowledged but unprocessed definition content

Exit Codes:
- 0: Success
- 1: Warning (operation succeeded with warnings)
- 10: Configuration error
- 11: Provider error (backend failure)
- 12: Dashboard definition error
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
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    DEFINITION_ERROR = 12
    UNKNOWN_ERROR = 127


class PromboardError(Exception):
    """Base exception for promboard errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PromboardError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class DurationFormatError(ConfigurationError, ValueError):
    """Raised when a duration string is not of the form <int><s|m|h|d>."""


class StructuralError(PromboardError):
    """Raised when a dashboard definition is not a usable document."""

    exit_code = ExitCode.DEFINITION_ERROR


class DashboardLoadError(StructuralError):
    """Raised when a dashboard file is missing or is not valid JSON."""


class ProviderError(PromboardError):
    """Raised when the metrics backend fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class QueryError(ProviderError):
    """Raised when a single backend query or discovery call fails."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        error_type: str | None = None,
    ):
        super().__init__(message, details)
        self.error_type = error_type


class PanelFetchError(ProviderError):
    """Raised when a panel's query batch could not run at all."""

    def __init__(self, panel_id: int, message: str):
        super().__init__(message, {"panel_id": panel_id})
        self.panel_id = panel_id


class ConnectivityError(ProviderError):
    """Raised by callers that treat a failed health probe as fatal."""


class UnsupportedFeatureWarning(UserWarning):
    """Category for dashboard content that is acknowledged but not processed."""


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

    Exit codes:
        - PromboardError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except PromboardError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                _print_error(format_error_message(e))
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
                _print_error(f"Unexpected error: {e}")
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: PromboardError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg


def _print_error(message: str) -> None:
    from promboard.cli.ux import error as print_error

    print_error(message)


def exit_with_error(error: PromboardError) -> None:
    """Print error and exit with appropriate code."""
    _print_error(format_error_message(error))
    sys.exit(error.exit_code)
