"""
Content Processor Registry

Maps content-type identifiers to processors and serializes request bodies.
"""

from typing import Dict, List, Optional

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..core.models import BODYLESS_METHODS, RequestDescriptor
from .base import DecodedBody, EncodedBody, ProcessorDescriptor, normalize_content_type
from .form import FORM_PROCESSOR
from .json_body import JSON_PROCESSOR
from .multipart import MULTIPART_PROCESSOR

logger = get_logger(__name__)


class ProcessorRegistry:
    """
    Registry of content processors with a designated default.

    Registration is dynamic and keyed purely by normalized content type; the
    last registration for a key wins. Lookups that match nothing fall back to
    the default processor.
    """

    def __init__(self, default: ProcessorDescriptor) -> None:
        self._processors: Dict[str, ProcessorDescriptor] = {}
        self._default = default
        self.register(default)

    @property
    def default(self) -> ProcessorDescriptor:
        return self._default

    def register(self, processor: ProcessorDescriptor) -> None:
        """Add or replace the processor for ``processor.content_type``."""
        key = normalize_content_type(processor.content_type)
        if not key:
            raise ValueError("Processor content type cannot be empty")
        if key in self._processors:
            logger.debug(f"Replacing processor for {key}")
        self._processors[key] = processor

    def get(self, content_type: Optional[str]) -> ProcessorDescriptor:
        """Return the processor for a content type, or the default."""
        return self._processors.get(normalize_content_type(content_type), self._default)

    def content_types(self) -> List[str]:
        """Registered content types in registration order."""
        return list(self._processors)

    def encode(self, request: RequestDescriptor) -> EncodedBody:
        """
        Serialize the body of a request.

        Args:
            request: Request whose fields or raw body should be serialized

        Returns:
            EncodedBody with the body text and the headers it requires

        Raises:
            ValidationError: If the fields fail the processor's acceptance check
        """
        if request.method in BODYLESS_METHODS:
            return EncodedBody("", {})

        if request.fields is None:
            headers = {}
            if request.content_type:
                headers["Content-Type"] = request.content_type
            return EncodedBody(request.raw_body or "", headers)

        processor = self.get(request.content_type)
        if not processor.accepts(request.fields):
            raise ValidationError(
                f"Fields rejected by {processor.content_type} processor: "
                "expected a mapping of string keys to scalar values",
                {"request_id": request.id},
            )

        body, headers = processor.encode(request.fields)
        return EncodedBody(body, dict(headers))

    def decode(self, content_type: Optional[str], body: str) -> DecodedBody:
        """
        Parse a body with the processor for its content type.

        Never raises: unparsable input comes back verbatim in ``raw`` with
        ``fields`` set to None and a validation message in ``error``.
        """
        processor = self.get(content_type)
        try:
            fields = processor.decode(body)
        except Exception as e:
            return DecodedBody(
                raw=body,
                error=f"Validation error decoding {processor.content_type} body: {e}",
            )
        return DecodedBody(raw=body, fields=dict(fields))


def create_default_registry() -> ProcessorRegistry:
    """
    Build a registry with the built-in processors.

    form-urlencoded is the designated default.
    """
    registry = ProcessorRegistry(default=FORM_PROCESSOR)
    registry.register(JSON_PROCESSOR)
    registry.register(MULTIPART_PROCESSOR)
    return registry
