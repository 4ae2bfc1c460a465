"""
application/x-www-form-urlencoded processor.
"""

from functools import partial
from typing import Any, Dict, Mapping
from urllib.parse import parse_qsl, quote, quote_plus, urlencode

from .base import EncodedBody, ProcessorDescriptor, coerce_fields

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def encode_form(fields: Mapping[str, Any], plus_spaces: bool = True) -> EncodedBody:
    """
    Percent-encode fields into ``key=value&...``.

    Args:
        fields: Field mapping to encode
        plus_spaces: Encode spaces as '+' instead of '%20'

    Returns:
        EncodedBody with the form Content-Type header
    """
    quote_via = quote_plus if plus_spaces else quote
    body = urlencode(list(coerce_fields(fields).items()), quote_via=quote_via)
    return EncodedBody(body, {"Content-Type": FORM_CONTENT_TYPE})


def decode_form(body: str) -> Dict[str, str]:
    """Parse a form body; raises ValueError if it is not well-formed."""
    if not body:
        return {}
    return dict(parse_qsl(body, keep_blank_values=True, strict_parsing=True))


FORM_PROCESSOR = ProcessorDescriptor(
    content_type=FORM_CONTENT_TYPE,
    encode=encode_form,
    decode=decode_form,
)


def form_processor(plus_spaces: bool = True) -> ProcessorDescriptor:
    """Build a form processor with the chosen space encoding."""
    return ProcessorDescriptor(
        content_type=FORM_CONTENT_TYPE,
        encode=partial(encode_form, plus_spaces=plus_spaces),
        decode=decode_form,
    )
