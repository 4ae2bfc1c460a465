"""
Content Processor Primitives

A processor is a small bundle of pure functions keyed by content type. New
content types are supported by registering another descriptor; existing
processors are never modified.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional


class EncodedBody(NamedTuple):
    """Serialized request body and the headers it requires."""

    body: str
    headers: Dict[str, str]


@dataclass(frozen=True)
class DecodedBody:
    """
    Result of decoding a body.

    ``fields`` is None when the body could not be parsed; ``raw`` always holds
    the original text and ``error`` explains the parse failure.
    """

    raw: str
    fields: Optional[Dict[str, str]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.fields is not None


_SCALAR_TYPES = (str, int, float, bool)


def coerce_field(value: Any) -> str:
    """Coerce a scalar field value to its wire string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_fields(fields: Mapping[str, Any]) -> Dict[str, str]:
    """Coerce every value of a field mapping, keeping key order."""
    return {key: coerce_field(value) for key, value in fields.items()}


def fields_acceptable(fields: Any) -> bool:
    """
    Default acceptance predicate for field mappings.

    Accepts a non-null mapping with string keys whose values are all scalars
    that coerce cleanly to strings.
    """
    if fields is None or not isinstance(fields, Mapping):
        return False
    return all(
        isinstance(key, str) and isinstance(value, _SCALAR_TYPES)
        for key, value in fields.items()
    )


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lowercase a content type and strip its parameters."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


@dataclass(frozen=True)
class ProcessorDescriptor:
    """
    Encoder/decoder strategy for one content type.

    Attributes:
        content_type: Registry key (normalized on registration)
        encode: fields -> EncodedBody
        decode: body -> fields, raising ValueError on unparsable input
        accepts: predicate checked before encode is called
    """

    content_type: str
    encode: Callable[[Mapping[str, Any]], EncodedBody]
    decode: Callable[[str], Dict[str, str]]
    accepts: Callable[[Any], bool] = field(default=fields_acceptable)
