"""
multipart/form-data processor.

Each field becomes one boundary-delimited part carrying a
``Content-Disposition: form-data; name="..."`` header.
"""

import re
import uuid
from functools import partial
from typing import Any, Dict, Mapping, Optional

from .base import EncodedBody, ProcessorDescriptor, coerce_fields

MULTIPART_CONTENT_TYPE = "multipart/form-data"

CRLF = "\r\n"

_NAME_PATTERN = re.compile(r'name="((?:[^"\\]|\\.)*)"')


def new_boundary() -> str:
    return f"----CourierFormBoundary{uuid.uuid4().hex}"


def _quote_name(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')


def _unquote_name(name: str) -> str:
    return re.sub(r"\\(.)", r"\1", name)


def encode_multipart(
    fields: Mapping[str, Any], boundary: Optional[str] = None
) -> EncodedBody:
    """
    Encode fields as multipart/form-data.

    Args:
        fields: Field mapping to encode
        boundary: Part delimiter (random when omitted)

    Returns:
        EncodedBody whose Content-Type names the boundary
    """
    boundary = boundary or new_boundary()
    parts = []
    for name, value in coerce_fields(fields).items():
        parts.append(
            f"--{boundary}{CRLF}"
            f'Content-Disposition: form-data; name="{_quote_name(name)}"{CRLF}'
            f"{CRLF}"
            f"{value}{CRLF}"
        )
    body = "".join(parts) + f"--{boundary}--{CRLF}"
    headers = {"Content-Type": f"{MULTIPART_CONTENT_TYPE}; boundary={boundary}"}
    return EncodedBody(body, headers)


def decode_multipart(body: str) -> Dict[str, str]:
    """
    Parse a multipart body, reading the boundary from its first line.

    Raises:
        ValueError: If the body is not a well-formed multipart document
    """
    if not body.startswith("--"):
        raise ValueError("Multipart body must start with a boundary line")

    first_line = body.split(CRLF, 1)[0]
    if body.rstrip(CRLF) == first_line and first_line.endswith("--"):
        # Only a closing delimiter: a document without parts
        return {}

    boundary = first_line[2:]
    if not boundary:
        raise ValueError("Missing multipart boundary")

    closing = f"--{boundary}--"
    if closing not in body:
        raise ValueError("Multipart body is missing its closing boundary")

    content = body[: body.index(closing)]
    fields: Dict[str, str] = {}
    for chunk in content.split(f"--{boundary}{CRLF}")[1:]:
        if f"{CRLF}{CRLF}" not in chunk:
            raise ValueError("Multipart part is missing its header block")
        head, value = chunk.split(f"{CRLF}{CRLF}", 1)
        match = _NAME_PATTERN.search(head)
        if match is None:
            raise ValueError("Multipart part has no field name")
        if value.endswith(CRLF):
            value = value[: -len(CRLF)]
        fields[_unquote_name(match.group(1))] = value
    return fields


MULTIPART_PROCESSOR = ProcessorDescriptor(
    content_type=MULTIPART_CONTENT_TYPE,
    encode=encode_multipart,
    decode=decode_multipart,
)


def multipart_processor(boundary: str) -> ProcessorDescriptor:
    """Build a multipart processor with a fixed boundary."""
    return ProcessorDescriptor(
        content_type=MULTIPART_CONTENT_TYPE,
        encode=partial(encode_multipart, boundary=boundary),
        decode=decode_multipart,
    )
