"""
Courier Content Processors

Pluggable body encoders/decoders keyed by content type.
"""

from .base import (
    DecodedBody,
    EncodedBody,
    ProcessorDescriptor,
    coerce_field,
    fields_acceptable,
    normalize_content_type,
)
from .form import FORM_CONTENT_TYPE, FORM_PROCESSOR, form_processor
from .json_body import JSON_CONTENT_TYPE, JSON_PROCESSOR
from .multipart import MULTIPART_CONTENT_TYPE, MULTIPART_PROCESSOR, multipart_processor
from .registry import ProcessorRegistry, create_default_registry

__all__ = [
    "DecodedBody",
    "EncodedBody",
    "ProcessorDescriptor",
    "coerce_field",
    "fields_acceptable",
    "normalize_content_type",
    "FORM_CONTENT_TYPE",
    "FORM_PROCESSOR",
    "form_processor",
    "JSON_CONTENT_TYPE",
    "JSON_PROCESSOR",
    "MULTIPART_CONTENT_TYPE",
    "MULTIPART_PROCESSOR",
    "multipart_processor",
    "ProcessorRegistry",
    "create_default_registry",
]
