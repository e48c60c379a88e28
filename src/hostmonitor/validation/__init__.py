"""
Validation and error handling for the hostmonitor package.

This module provides input validation and error handling with consistent
error reporting across the agent.
"""

from .exceptions import (
    CodecError,
    ErrorSeverity,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_subprocess_error,
    handle_transport_error,
)

from .validators import (
    validate_enum_choice,
    validate_non_empty_string,
    validate_path_exists,
    validate_positive_integer,
)

__all__ = [
    # Core functionality
    "CodecError",
    "ErrorSeverity",
    "ValidationError",
    "handle_error",
    "handle_config_error",
    "handle_subprocess_error",
    "handle_transport_error",
    "handle_cli_error",
    # Validators
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_path_exists",
    "validate_positive_integer",
]
