"""
Courier Core Data Models

Defines the request, outcome, cache and history structures shared by every
component of the execution core.
"""

import uuid
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class HttpMethod(str, Enum):
    """HTTP methods a request may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


# Methods that must never carry a request body
BODYLESS_METHODS = frozenset({HttpMethod.GET, HttpMethod.HEAD})


class ErrorKind(str, Enum):
    """Classification of a failed execution."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN = "unknown"


class HistoryStatus(str, Enum):
    """Lifecycle state of a history record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def _new_request_id() -> str:
    return uuid.uuid4().hex


class RequestDescriptor(BaseModel):
    """User-authored description of one HTTP request."""

    id: str = Field(default_factory=_new_request_id, description="Request ID")
    method: HttpMethod = Field(default=HttpMethod.GET, description="HTTP method")
    url: str = Field(description="Absolute http(s) URL")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Request headers in insertion order"
    )
    raw_body: Optional[str] = Field(default=None, description="Verbatim body")
    fields: Optional[Dict[str, Any]] = Field(
        default=None, description="Fields encoded by the content processor"
    )
    content_type: Optional[str] = Field(
        default=None, description="Content type selecting the body processor"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )
    cross_origin_restricted: bool = Field(
        default=False, description="Force execution in an isolated context"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return _new_request_id()
        return str(v).strip()

    @field_validator("method", mode="before")
    @classmethod
    def validate_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Request URL cannot be empty")
        return v.strip()

    def has_body(self) -> bool:
        """Whether the request carries a raw body or body fields."""
        return bool(self.raw_body) or self.fields is not None


class ExecutionOutcome(BaseModel):
    """Normalized result of one execution attempt."""

    request_id: str = Field(description="ID of the executed request")
    success: bool = Field(description="Whether a response was received")
    status: Optional[int] = Field(default=None, description="HTTP status code")
    response_headers: Dict[str, str] = Field(
        default_factory=dict, description="Response headers"
    )
    response_body: str = Field(default="", description="Response body text")
    error_kind: Optional[ErrorKind] = Field(default=None, description="Failure kind")
    error_message: Optional[str] = Field(
        default=None, description="Human-readable failure reason"
    )
    duration_ms: float = Field(default=0.0, description="Execution time in ms")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_success_fields(self) -> "ExecutionOutcome":
        if self.success:
            if self.status is None:
                raise ValueError("Successful outcome requires a status code")
            if self.error_kind is not None or self.error_message is not None:
                raise ValueError("Successful outcome cannot carry an error")
        else:
            if self.status is not None:
                raise ValueError("Failed outcome cannot carry a status code")
            if self.error_kind is None or not self.error_message:
                raise ValueError("Failed outcome requires error kind and message")
        return self

    @classmethod
    def ok(
        cls,
        request_id: str,
        status: int,
        headers: Optional[Dict[str, str]] = None,
        body: str = "",
        duration_ms: float = 0.0,
    ) -> "ExecutionOutcome":
        return cls(
            request_id=request_id,
            success=True,
            status=status,
            response_headers=dict(headers or {}),
            response_body=body,
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        request_id: str,
        error_kind: ErrorKind,
        message: str,
        duration_ms: float = 0.0,
    ) -> "ExecutionOutcome":
        return cls(
            request_id=request_id,
            success=False,
            error_kind=error_kind,
            error_message=message or error_kind.value,
            duration_ms=duration_ms,
        )


class CacheEntry(BaseModel):
    """Cached outcome for one request fingerprint."""

    fingerprint: str = Field(description="Request fingerprint")
    outcome: ExecutionOutcome = Field(description="Cached outcome")
    stored_at: float = Field(description="Clock reading when the entry was stored")


class HistoryRecord(BaseModel):
    """Submitted request together with its outcome once known."""

    request: RequestDescriptor = Field(description="Submitted request")
    outcome: Optional[ExecutionOutcome] = Field(
        default=None, description="Outcome, None while pending"
    )
    status: HistoryStatus = Field(
        default=HistoryStatus.PENDING, description="Record lifecycle state"
    )

    @property
    def request_id(self) -> str:
        return self.request.id

    @property
    def is_terminal(self) -> bool:
        return self.status != HistoryStatus.PENDING


# Serialization helpers
def serialize_model(model: BaseModel) -> Dict[str, Any]:
    """Serialize a Pydantic model to a JSON-compatible dictionary."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=False)


def deserialize_model(model_class: type, data: Dict[str, Any]) -> BaseModel:
    """Deserialize a dictionary to a Pydantic model with validation."""
    return model_class.model_validate(data)
