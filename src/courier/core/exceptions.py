"""
Courier Exception Hierarchy

Defines the exceptions raised inside components. Component boundaries convert
them into ExecutionOutcome objects instead of letting them escape.
"""

from typing import Any, Dict, Optional


class CourierException(Exception):
    """Base exception for all Courier errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(CourierException):
    """Request or body validation errors (gate rejection, malformed fields)."""

    pass


class NetworkError(CourierException):
    """Transport-level failures (DNS, connection refused, TLS, reset)."""

    pass


class StorageError(CourierException):
    """Durable storage read/write errors, including quota overruns."""

    pass


class QuotaExceededError(StorageError):
    """A serialized value is larger than the storage quota."""

    def __init__(self, message: str, size: int, quota: int) -> None:
        super().__init__(message, {"size": size, "quota": quota})
        self.size = size
        self.quota = quota


class ConfigurationError(CourierException):
    """Configuration-related errors."""

    pass
