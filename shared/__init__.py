"""
REPSENSE Shared Module

Common utilities used across all services.
"""

from .utils import (
    setup_logger,
    parse_log_level,
    APIResponse,
    ErrorResponse,
    success_response,
    error_response,
    handle_exceptions,
    get_now_iso,
    monotonic_ms,
)

__all__ = [
    'setup_logger',
    'parse_log_level',
    'APIResponse',
    'ErrorResponse',
    'success_response',
    'error_response',
    'handle_exceptions',
    'get_now_iso',
    'monotonic_ms',
]
