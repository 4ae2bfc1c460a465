"""
Security Gate

Validates a candidate request against policy before any network action is
taken. The gate is pure: it never mutates the request and has no side
effects beyond consulting the capability provider.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

from ..core.config import GateConfig
from ..core.logging import get_logger
from ..core.models import BODYLESS_METHODS, RequestDescriptor
from ..processors.base import coerce_field, normalize_content_type
from .capabilities import CapabilityProvider

logger = get_logger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

HEADER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")

# Heuristic only: obfuscated payloads slip through and legitimate test
# payloads beyond the scan window are never inspected.
DANGEROUS_PATTERNS = (
    ("<script", re.compile(r"<script", re.IGNORECASE)),
    ("javascript:", re.compile(r"javascript:", re.IGNORECASE)),
    ("data:text/html", re.compile(r"data:text/html", re.IGNORECASE)),
    ("on<event>=", re.compile(r"on\w+=", re.IGNORECASE)),
    ("eval(", re.compile(r"eval\(", re.IGNORECASE)),
)

TEXTUAL_CONTENT_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/x-www-form-urlencoded",
        "multipart/form-data",
    }
)


class GateResult:
    """Outcome of gate validation: ``ok`` or a rejection with a reason."""

    def __init__(self, ok: bool, reason: Optional[str] = None, check: Optional[str] = None):
        self.ok = ok
        self.reason = reason
        self.check = check

    @classmethod
    def accept(cls) -> "GateResult":
        return cls(True)

    @classmethod
    def reject(cls, check: str, reason: str) -> "GateResult":
        return cls(False, reason, check)

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return "GateResult(ok=True)"
        return f"GateResult(ok=False, check={self.check!r}, reason={self.reason!r})"


def body_text(request: RequestDescriptor) -> str:
    """Textual view of the body used for size limits and pattern scans."""
    if request.fields is not None:
        return "&".join(
            f"{key}={coerce_field(value)}" for key, value in request.fields.items()
        )
    return request.raw_body or ""


def is_textual(content_type: Optional[str]) -> bool:
    normalized = normalize_content_type(content_type)
    if not normalized or normalized.startswith("text/"):
        return True
    return normalized in TEXTUAL_CONTENT_TYPES or normalized.endswith(("+json", "+xml"))


class SecurityGate:
    """
    Pre-execution policy check.

    Checks run in a fixed order and stop at the first failure:
    scheme, bodyless methods, header syntax, header allow-list, body size,
    dangerous body patterns and finally the network capability.
    """

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        capabilities: Optional[CapabilityProvider] = None,
    ) -> None:
        self.config = config or GateConfig()
        self.capabilities = capabilities
        self._allowed_headers = frozenset(
            name.lower() for name in self.config.allowed_headers
        )

    def validate(self, request: RequestDescriptor) -> GateResult:
        """
        Validate a request against policy.

        Args:
            request: Candidate request

        Returns:
            GateResult, falsy with a human-readable reason when rejected
        """
        for check in (
            self._check_url,
            self._check_bodyless,
            self._check_header_syntax,
            self._check_header_allowlist,
            self._check_body_size,
            self._check_body_patterns,
            self._check_capability,
        ):
            result = check(request)
            if not result:
                logger.info(
                    f"Gate rejected request {request.id} ({result.check}): {result.reason}"
                )
                return result
        return GateResult.accept()

    def _check_url(self, request: RequestDescriptor) -> GateResult:
        try:
            parsed = urlsplit(request.url)
            # Raises for non-numeric or out-of-range ports
            parsed.port
        except ValueError as e:
            return GateResult.reject("url", f"Invalid URL: {e}")

        scheme = parsed.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            shown = scheme or "<none>"
            return GateResult.reject(
                "url", f"URL scheme '{shown}' is not allowed; use http or https"
            )
        if not parsed.hostname:
            return GateResult.reject("url", "URL is missing a host")
        return GateResult.accept()

    def _check_bodyless(self, request: RequestDescriptor) -> GateResult:
        if request.method in BODYLESS_METHODS and request.has_body():
            return GateResult.reject(
                "body", f"{request.method.value} requests must not carry a body"
            )
        return GateResult.accept()

    def _check_header_syntax(self, request: RequestDescriptor) -> GateResult:
        for name, value in request.headers.items():
            if not HEADER_NAME_PATTERN.match(name):
                return GateResult.reject(
                    "header_syntax", f"Invalid header name: {name!r}"
                )
            if CONTROL_CHAR_PATTERN.search(value):
                return GateResult.reject(
                    "header_syntax",
                    f"Header {name!r} contains control characters (CR/LF not allowed)",
                )
        return GateResult.accept()

    def _check_header_allowlist(self, request: RequestDescriptor) -> GateResult:
        disallowed = [
            name for name in request.headers if name.lower() not in self._allowed_headers
        ]
        if disallowed:
            return GateResult.reject(
                "header_allowlist",
                f"Headers not allowed: {', '.join(disallowed)}",
            )
        return GateResult.accept()

    def _check_body_size(self, request: RequestDescriptor) -> GateResult:
        size = len(body_text(request))
        if size > self.config.max_body_chars:
            return GateResult.reject(
                "body_size",
                f"Body is {size} characters; the limit is {self.config.max_body_chars}",
            )
        return GateResult.accept()

    def _check_body_patterns(self, request: RequestDescriptor) -> GateResult:
        if not is_textual(request.content_type):
            return GateResult.accept()

        window = body_text(request)[: self.config.scan_window_chars]
        if not window:
            return GateResult.accept()

        for label, pattern in DANGEROUS_PATTERNS:
            if pattern.search(window):
                return GateResult.reject(
                    "body_pattern", f"Body contains a blocked pattern: {label}"
                )
        return GateResult.accept()

    def _check_capability(self, request: RequestDescriptor) -> GateResult:
        required = self.config.required_capability
        if self.capabilities is None or not required:
            return GateResult.accept()
        if not self.capabilities.has_capability(required):
            return GateResult.reject(
                "capability", f"Missing required capability: {required}"
            )
        return GateResult.accept()
