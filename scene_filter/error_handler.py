"""
Error types and user-facing error reporting.

Structural failures (no movie selected, bad index, unreadable source) are
reported as an OperationResult with a human-readable reason, never raised
out of the service layer. Exceptions are mapped to friendly messages the
same way for the CLI.
"""

import json
import logging
import traceback
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple

import requests
import yaml

from .logging_config import get_log_file_path

logger = logging.getLogger(__name__)


class UserFriendlyError(Exception):
    """Exception with a user-friendly message"""
    def __init__(self, user_message: str, technical_message: str = None):
        self.user_message = user_message
        self.technical_message = technical_message or user_message
        super().__init__(self.technical_message)


class SceneFilterError(UserFriendlyError):
    """Base class for errors raised by scene_filter."""


class InvalidPolicyError(SceneFilterError):
    """Raised by strict policy resolution for an unknown merge policy."""
    def __init__(self, policy: Any):
        self.policy = policy
        super().__init__(
            f"Unknown merge policy '{policy}'. "
            "Use prefer-existing, prefer-imported or keep-both.",
            f"invalid merge policy: {policy!r}",
        )


class SourceUnavailableError(SceneFilterError):
    """Raised when a segment database cannot be read."""


class StorageError(SceneFilterError):
    """Raised when the key-value store cannot be read or written."""


@dataclass
class OperationResult:
    """Outcome of a structural operation: ok, or a reason it failed."""
    ok: bool
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, **data) -> "OperationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "OperationResult":
        return cls(ok=False, error=error)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok}
        if self.error is not None:
            result["error"] = self.error
        result.update(self.data)
        return result


# Error message mappings
ERROR_MESSAGES = {
    InvalidPolicyError: lambda e: (
        "Invalid import option",
        e.user_message
    ),
    SourceUnavailableError: lambda e: (
        "Segment database unavailable",
        "The segment database could not be loaded. Bundled and local "
        "segments still work; try refreshing the community database later."
    ),
    StorageError: lambda e: (
        "Storage error",
        "Saved segments could not be read or written. Check that the store "
        "file is writable and not corrupted."
    ),
    requests.Timeout: lambda e: (
        "Connection timed out",
        "The connection took too long. Please try again."
    ),
    requests.ConnectionError: lambda e: (
        "Connection failed",
        "Unable to reach the community database. Local segments still work."
    ),
    requests.RequestException: lambda e: (
        "Network error",
        "A request to a remote segment source failed."
    ),
    json.JSONDecodeError: lambda e: (
        "Invalid data file",
        "The file is not valid JSON. Make sure it is an unmodified export."
    ),
    yaml.YAMLError: lambda e: (
        "Settings file error",
        "Your settings file is corrupted. Fix it or delete it to use defaults."
    ),
    FileNotFoundError: lambda e: (
        "File not found",
        f"The file could not be found.\n\n"
        f"Path: {e.filename if hasattr(e, 'filename') else 'Unknown'}"
    ),
    PermissionError: lambda e: (
        "Permission denied",
        "Unable to access this file. Please check that you have permission "
        "to read/write to this location."
    ),
    OSError: lambda e: (
        "Disk error",
        "Unable to read or write files. Please check disk space and permissions."
    ),
}


def get_friendly_message(error: Exception) -> Tuple[str, str]:
    """Get user-friendly title and message for an error"""
    for error_type, msg_func in ERROR_MESSAGES.items():
        if isinstance(error, error_type):
            return msg_func(error)

    return (
        "Something went wrong",
        f"An unexpected error occurred:\n\n{str(error)[:200]}\n\n"
        "Please try again. If the problem persists, check the log file:\n"
        f"{get_log_file_path()}"
    )


def handle_error(error: Exception, context: str = "") -> Tuple[str, str]:
    """Log error and return friendly message"""
    logger.error(f"Error in {context}: {error}")
    logger.debug(traceback.format_exc())
    return get_friendly_message(error)


def safe_operation(context: str = "operation"):
    """Decorator turning unexpected exceptions into UserFriendlyError"""
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except UserFriendlyError:
                raise
            except Exception as e:
                title, message = handle_error(e, context)
                raise UserFriendlyError(message, str(e)) from e
        return wrapper
    return decorator
