"""
Unit tests for Courier core data models and exceptions.
"""

from datetime import UTC

import pytest
from pydantic import ValidationError as PydanticValidationError

from courier.core.exceptions import (
    ConfigurationError,
    CourierException,
    NetworkError,
    StorageError,
    ValidationError,
)
from courier.core.models import (
    BODYLESS_METHODS,
    CacheEntry,
    ErrorKind,
    ExecutionOutcome,
    HistoryRecord,
    HistoryStatus,
    HttpMethod,
    RequestDescriptor,
    deserialize_model,
    serialize_model,
)


class TestRequestDescriptor:
    """Tests for request descriptors."""

    def test_defaults(self):
        request = RequestDescriptor(url="https://example.com")
        assert request.method == HttpMethod.GET
        assert len(request.id) == 32
        assert request.headers == {}
        assert request.raw_body is None
        assert request.fields is None
        assert request.created_at.tzinfo == UTC
        assert not request.cross_origin_restricted
        assert not request.has_body()

    def test_ids_are_unique(self):
        ids = {RequestDescriptor(url="https://example.com").id for _ in range(50)}
        assert len(ids) == 50

    @pytest.mark.parametrize("given_id", ["", "   ", None])
    def test_blank_id_is_replaced(self, given_id):
        request = RequestDescriptor(id=given_id, url="https://example.com")
        assert request.id.strip()

    def test_method_is_case_insensitive(self):
        assert RequestDescriptor(method="post", url="https://a.test").method == HttpMethod.POST

    def test_unknown_method_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            RequestDescriptor(method="TRACE", url="https://a.test")

    def test_empty_url_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            RequestDescriptor(url="  ")

    def test_request_is_immutable(self):
        request = RequestDescriptor(url="https://example.com")
        with pytest.raises(PydanticValidationError):
            request.url = "https://other.example.com"

    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({"raw_body": "x"}, True),
            ({"raw_body": ""}, False),
            ({"fields": {}}, True),
            ({"fields": {"a": "1"}}, True),
        ],
    )
    def test_has_body(self, kwargs, expected):
        request = RequestDescriptor(method="POST", url="https://a.test", **kwargs)
        assert request.has_body() is expected

    def test_bodyless_methods(self):
        assert BODYLESS_METHODS == {HttpMethod.GET, HttpMethod.HEAD}


class TestExecutionOutcome:
    """Tests for the outcome invariants."""

    def test_ok_outcome(self):
        outcome = ExecutionOutcome.ok("r1", 200, {"A": "b"}, "body", 5.0)
        assert outcome.success
        assert outcome.status == 200
        assert outcome.error_kind is None
        assert outcome.error_message is None

    def test_failure_outcome(self):
        outcome = ExecutionOutcome.failure("r1", ErrorKind.NETWORK_ERROR, "refused")
        assert not outcome.success
        assert outcome.status is None
        assert outcome.error_message == "refused"

    def test_failure_without_message_uses_kind(self):
        outcome = ExecutionOutcome.failure("r1", ErrorKind.UNKNOWN, "")
        assert outcome.error_message == "unknown"

    @pytest.mark.parametrize(
        "data",
        [
            {"success": True},
            {"success": True, "status": 200, "error_kind": "timeout"},
            {"success": False, "status": 500, "error_kind": "unknown", "error_message": "x"},
            {"success": False, "error_kind": "timeout"},
        ],
    )
    def test_invariants_are_enforced(self, data):
        with pytest.raises(PydanticValidationError):
            ExecutionOutcome(request_id="r1", **data)

    def test_outcome_is_immutable(self):
        outcome = ExecutionOutcome.ok("r1", 200)
        with pytest.raises(PydanticValidationError):
            outcome.status = 500


class TestSerialization:
    """Tests for model serialization helpers."""

    def test_history_record_round_trip(self):
        request = RequestDescriptor(
            method="POST",
            url="https://example.com",
            fields={"a": "1", "flag": True},
            content_type="application/json",
        )
        record = HistoryRecord(
            request=request,
            outcome=ExecutionOutcome.ok(request.id, 201, body="created"),
            status=HistoryStatus.COMPLETED,
        )

        data = serialize_model(record)
        assert data["request"]["method"] == "POST"
        assert data["status"] == "completed"
        assert isinstance(data["request"]["created_at"], str)

        restored = deserialize_model(HistoryRecord, data)
        assert restored == record
        assert restored.is_terminal

    def test_cache_entry(self):
        entry = CacheEntry(
            fingerprint="abc", outcome=ExecutionOutcome.ok("r", 200), stored_at=1.5
        )
        assert serialize_model(entry)["outcome"]["status"] == 200


class TestExceptions:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_class", [ValidationError, NetworkError, StorageError, ConfigurationError]
    )
    def test_hierarchy(self, exc_class):
        error = exc_class("failed", {"key": "value"})
        assert isinstance(error, CourierException)
        assert error.message == "failed"
        assert error.details == {"key": "value"}
        assert str(error) == "failed (Details: {'key': 'value'})"

    def test_str_without_details(self):
        assert str(CourierException("plain")) == "plain"
