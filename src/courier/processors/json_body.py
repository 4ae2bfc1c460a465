"""
application/json processor.
"""

import json
from typing import Any, Dict, Mapping

from .base import EncodedBody, ProcessorDescriptor, coerce_field, coerce_fields

JSON_CONTENT_TYPE = "application/json"


def encode_json(fields: Mapping[str, Any]) -> EncodedBody:
    """Stringify the coerced field mapping compactly, e.g. ``{"a":"1"}``."""
    body = json.dumps(coerce_fields(fields), separators=(",", ":"), ensure_ascii=False)
    return EncodedBody(body, {"Content-Type": JSON_CONTENT_TYPE})


def decode_json(body: str) -> Dict[str, str]:
    """
    Parse a JSON object body back into string fields.

    Raises:
        ValueError: If the body is not valid JSON or not a flat object
    """
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    if any(isinstance(value, (dict, list)) for value in data.values()):
        raise ValueError("Nested JSON values cannot be represented as fields")
    return {
        key: "null" if value is None else coerce_field(value)
        for key, value in data.items()
    }


JSON_PROCESSOR = ProcessorDescriptor(
    content_type=JSON_CONTENT_TYPE,
    encode=encode_json,
    decode=decode_json,
)
