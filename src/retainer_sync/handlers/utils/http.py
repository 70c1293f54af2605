"""
HTTP helpers shared by the retainer handlers: response builders and payload parsing.
"""

import base64
import json
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from aws_lambda_powertools.event_handler import Response, content_types
from aws_lambda_powertools.utilities.data_classes.common import BaseProxyEvent

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


class MalformedBodyError(ValueError):
    """Raised when a request body cannot be decoded."""


def envelope_response(
    status_code: int,
    ok: bool,
    headers: Optional[Dict[str, str]] = None,
    **fields: Any,
) -> Response:
    """Create a flat ``{ok, ...}`` JSON response."""
    body = {'ok': ok, **fields}
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body, default=str),
        headers=headers or {},
    )


def text_response(status_code: int, text: str) -> Response:
    """Create a plain-text response."""
    return Response(status_code=status_code, content_type=content_types.TEXT_PLAIN, body=text)


def empty_response(status_code: int) -> Response:
    """Create a response without a body (preflight and 405 answers)."""
    return Response(status_code=status_code, body='', headers={})


def raw_body(event: BaseProxyEvent) -> bytes:
    """Return the exact request body bytes, undoing API Gateway's base64 wrapping."""
    body = event.body or ''
    if event.is_base64_encoded:
        return base64.b64decode(body)
    return body.encode('utf-8')


def parse_request_payload(event: BaseProxyEvent) -> Dict[str, Any]:
    """
    Decode a JSON or form-encoded request body into a dictionary.

    A missing body, or a JSON body that is not an object, yields an empty dictionary.

    Raises:
        MalformedBodyError: If the body is not valid JSON
    """
    data = raw_body(event)
    if not data.strip():
        return {}

    content_type = (event.get_header_value('content-type') or '').lower()
    text = data.decode('utf-8', errors='replace')
    if content_type.startswith(FORM_CONTENT_TYPE):
        return dict(parse_qsl(text, keep_blank_values=True))

    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise MalformedBodyError('invalid JSON body') from exc

    return payload if isinstance(payload, dict) else {}
