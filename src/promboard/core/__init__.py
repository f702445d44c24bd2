"""Core modules for promboard - error taxonomy and exit codes."""

from promboard.core.errors import (
    ConfigurationError,
    ConnectivityError,
    DashboardLoadError,
    DurationFormatError,
    ExitCode,
    PanelFetchError,
    PromboardError,
    ProviderError,
    QueryError,
    StructuralError,
    UnsupportedFeatureWarning,
    exit_with_error,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "PromboardError",
    "ConfigurationError",
    "DurationFormatError",
    "StructuralError",
    "DashboardLoadError",
    "ProviderError",
    "QueryError",
    "PanelFetchError",
    "ConnectivityError",
    "UnsupportedFeatureWarning",
    "main_with_error_handling",
    "format_error_message",
    "exit_with_error",
]
