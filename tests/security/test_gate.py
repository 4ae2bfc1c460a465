"""
Unit tests for the security gate and capability providers.
"""

import pytest

from courier.core.config import GateConfig
from courier.core.models import RequestDescriptor
from courier.security import (
    AllowAllCapabilities,
    GateResult,
    SecurityGate,
    StaticCapabilities,
)
from courier.security.gate import body_text, is_textual


class TestGateResult:
    """Tests for the gate verdict object."""

    def test_accept_is_truthy(self):
        result = GateResult.accept()
        assert result
        assert result.reason is None

    def test_reject_is_falsy(self):
        result = GateResult.reject("url", "bad scheme")
        assert not result
        assert result.check == "url"
        assert "bad scheme" in repr(result)


class TestUrlCheck:
    """Tests for scheme and host validation."""

    @pytest.mark.parametrize(
        "url", ["ftp://example.com/file", "file:///etc/passwd", "javascript:alert(1)"]
    )
    def test_rejects_non_http_schemes(self, make_request, url):
        """Test only http and https URLs pass."""
        result = SecurityGate().validate(make_request(url=url))
        assert not result
        assert result.check == "url"

    def test_rejects_missing_host(self, make_request):
        result = SecurityGate().validate(make_request(url="https:///path"))
        assert not result
        assert result.reason == "URL is missing a host"

    @pytest.mark.parametrize(
        "url", ["http://example.com:99999/", "https://example.com:port/", "http://[::1/"]
    )
    def test_rejects_unparsable_urls(self, make_request, url):
        """Test bad ports and brackets are rejected before execution."""
        result = SecurityGate().validate(make_request(url=url))
        assert not result
        assert result.check == "url"
        assert result.reason.startswith("Invalid URL")

    @pytest.mark.parametrize(
        "url",
        ["http://example.com", "HTTPS://Example.com/a?b=1", "http://localhost:8080/x"],
    )
    def test_accepts_http_urls(self, make_request, url):
        assert SecurityGate().validate(make_request(url=url))


class TestHeaderChecks:
    """Tests for header syntax and allow-list enforcement."""

    def test_rejects_crlf_in_header_value(self, make_request):
        """Test header splitting attempts are rejected."""
        request = make_request(headers={"Accept": "text/html\r\nSet-Cookie: x=y"})
        result = SecurityGate().validate(request)
        assert not result
        assert result.check == "header_syntax"

    @pytest.mark.parametrize("value", ["a\nb", "a\rb", "a\x00b", "a\x7fb", "a\tb"])
    def test_rejects_control_characters(self, make_request, value):
        result = SecurityGate().validate(make_request(headers={"Accept": value}))
        assert not result
        assert result.check == "header_syntax"

    def test_rejects_invalid_header_name(self, make_request):
        result = SecurityGate().validate(make_request(headers={"Bad Header": "x"}))
        assert not result
        assert result.check == "header_syntax"

    def test_rejects_disallowed_header(self, make_request):
        """Test headers outside the allow-list reject instead of being dropped."""
        request = make_request(headers={"Accept": "*/*", "X-Custom": "1"})
        result = SecurityGate().validate(request)
        assert not result
        assert result.check == "header_allowlist"
        assert "X-Custom" in result.reason
        assert request.headers == {"Accept": "*/*", "X-Custom": "1"}

    def test_allowlist_is_case_insensitive(self, make_request):
        request = make_request(
            headers={"content-type": "text/plain", "AUTHORIZATION": "Bearer t"}
        )
        assert SecurityGate().validate(request)

    def test_custom_allowlist(self, make_request):
        gate = SecurityGate(GateConfig(allowed_headers=["X-Trace"]))
        assert gate.validate(make_request(headers={"x-trace": "1"}))
        assert not gate.validate(make_request(headers={"Accept": "*/*"}))


class TestBodyChecks:
    """Tests for bodyless methods, size limits and pattern scanning."""

    def test_get_with_body_is_rejected(self, make_request):
        result = SecurityGate().validate(make_request(method="GET", raw_body="x"))
        assert not result
        assert result.check == "body"

    def test_head_with_fields_is_rejected(self, make_request):
        result = SecurityGate().validate(make_request(method="HEAD", fields={}))
        assert not result
        assert result.check == "body"

    def test_body_size_limit(self, make_request):
        gate = SecurityGate(GateConfig(max_body_chars=10))
        assert gate.validate(make_request(method="POST", raw_body="x" * 10))
        result = gate.validate(make_request(method="POST", raw_body="x" * 11))
        assert not result
        assert result.check == "body_size"

    def test_size_counts_flattened_fields(self, make_request):
        gate = SecurityGate(GateConfig(max_body_chars=7))
        request = make_request(method="POST", fields={"a": "1", "b": True})
        assert body_text(request) == "a=1&b=true"
        assert not gate.validate(request)

    @pytest.mark.parametrize(
        "body",
        [
            "<SCRIPT>alert(1)</script>",
            "go to JavaScript:void(0)",
            "data:text/html;base64,PHNjcmlwdD4=",
            '<img src=x onerror=alert(1)>',
            "eval(atob('x'))",
        ],
    )
    def test_dangerous_patterns_rejected(self, make_request, body):
        request = make_request(method="POST", raw_body=body, content_type="text/plain")
        result = SecurityGate().validate(request)
        assert not result
        assert result.check == "body_pattern"

    def test_patterns_in_fields_are_scanned(self, make_request):
        request = make_request(
            method="POST", fields={"q": "<script>"}, content_type="application/json"
        )
        assert not SecurityGate().validate(request)

    def test_patterns_beyond_scan_window_pass(self, make_request):
        """Test the scan only inspects the leading window of the body."""
        body = "a" * 1000 + "<script>"
        request = make_request(method="POST", raw_body=body)
        assert SecurityGate().validate(request)

    def test_binary_content_types_are_not_scanned(self, make_request):
        request = make_request(
            method="POST",
            raw_body="<script>",
            content_type="application/octet-stream",
        )
        assert SecurityGate().validate(request)

    @pytest.mark.parametrize(
        "content_type,expected",
        [
            (None, True),
            ("text/csv", True),
            ("application/json; charset=utf-8", True),
            ("application/ld+json", True),
            ("image/png", False),
        ],
    )
    def test_is_textual(self, content_type, expected):
        assert is_textual(content_type) is expected


class TestCapabilityCheck:
    """Tests for the capability requirement."""

    def test_missing_capability_rejects(self, make_request):
        gate = SecurityGate(capabilities=StaticCapabilities())
        result = gate.validate(make_request())
        assert not result
        assert result.check == "capability"
        assert "network" in result.reason

    def test_granted_capability_passes(self, make_request):
        gate = SecurityGate(capabilities=StaticCapabilities({"network"}))
        assert gate.validate(make_request())

    def test_allow_all(self, make_request):
        assert SecurityGate(capabilities=AllowAllCapabilities()).validate(make_request())

    def test_no_provider_skips_check(self, make_request):
        assert SecurityGate(capabilities=None).validate(make_request())

    def test_capability_checked_last(self, make_request):
        """Test earlier failures are reported before a missing capability."""
        gate = SecurityGate(capabilities=StaticCapabilities())
        result = gate.validate(make_request(url="ftp://example.com"))
        assert result.check == "url"


def test_gate_never_mutates_request(make_request):
    """Test validation leaves the request untouched."""
    request = make_request(
        method="POST",
        headers={"Accept": "*/*"},
        fields={"a": "1"},
        content_type="application/json",
    )
    before = request.model_dump()
    SecurityGate().validate(request)
    assert request.model_dump() == before


def test_rejection_is_a_plain_verdict(make_request):
    """Test rejections are returned, not raised."""
    request = RequestDescriptor(url="ftp://example.com")
    result = SecurityGate().validate(request)
    assert isinstance(result, GateResult)
