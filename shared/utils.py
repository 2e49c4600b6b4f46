"""
REPSENSE Shared Utilities

Logging, response models, and small helpers shared by the services.
"""

import asyncio
import logging
import sys
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Generic, Optional, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel


# ============================================
# Logging Configuration
# ============================================

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "repsense", level: int = logging.INFO) -> logging.Logger:
    """
    Set up a configured logger with console output.

    Usage:
        logger = setup_logger(__name__)
        logger.info("Hello from REPSENSE")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger


def parse_log_level(value: str, default: int = logging.INFO) -> int:
    """Translate a level name such as "debug" into a logging constant."""
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


logger = setup_logger("repsense")


# ============================================
# Response Models
# ============================================

T = TypeVar('T')


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""
    success: bool = True
    message: str = "Operation completed successfully"
    data: Optional[T] = None
    timestamp: str = ""

    def __init__(self, **data):
        if "timestamp" not in data or not data["timestamp"]:
            data["timestamp"] = get_now_iso()
        super().__init__(**data)


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    error_code: Optional[str] = None
    details: Optional[dict] = None
    timestamp: str = ""

    def __init__(self, **data):
        if "timestamp" not in data or not data["timestamp"]:
            data["timestamp"] = get_now_iso()
        super().__init__(**data)


def success_response(data: Any = None, message: str = "Success") -> dict:
    """Create a success response dict."""
    return APIResponse(data=data, message=message).model_dump()


def error_response(error: str, error_code: str = None, details: dict = None) -> dict:
    """Create an error response dict."""
    return ErrorResponse(error=error, error_code=error_code, details=details).model_dump()


# ============================================
# Decorators
# ============================================

def handle_exceptions(func):
    """
    Decorator to turn domain errors into proper HTTP errors.

    ValueError subclasses may carry an ``http_status`` attribute; anything
    else unexpected becomes a 500.
    """
    def _translate(e: Exception) -> HTTPException:
        if isinstance(e, ValueError):
            return HTTPException(status_code=getattr(e, "http_status", 400), detail=str(e))
        logger.exception(f"Unhandled error in {func.__name__}: {e}")
        return HTTPException(status_code=500, detail="Internal server error")

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise _translate(e) from e

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise _translate(e) from e

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


# ============================================
# Utility Functions
# ============================================

def get_now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000.0
