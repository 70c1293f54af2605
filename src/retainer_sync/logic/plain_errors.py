"""
Translation of remote platform errors into plain-English messages.

Remote mutations report problems as ``userErrors`` lists that the services embed
into error messages as ``<operation>: <json list>``. The storefront script shows
``error`` verbatim, so the messages are rewritten into user-facing phrasing here.
"""

import json
import re
from typing import Any, Dict, List, Tuple

_USER_ERRORS_PATTERN = re.compile(
    r'(?:customerUpdate|customerCreate(?:\(Storefront\))?|metafieldsSet|stagedUploadsCreate|fileCreate)'
    r'(?: errors)?:\s*(\[.*\])\s*$',
    re.DOTALL,
)

# (field or message fragment, friendly message)
FIELD_MESSAGES: Tuple[Tuple[str, str], ...] = (
    ('phone', 'Phone number looks invalid. Please enter a 10-digit US number.'),
    ('email', 'Email address looks invalid.'),
    ('password', 'Password doesn’t meet requirements.'),
)

# (fragment found in the raw error, friendly message)
KNOWN_ERRORS: Tuple[Tuple[str, str], ...] = (
    ('invalid or missing phone', 'Phone number is required and must have at least 10 digits.'),
    ('invalid or missing email', 'Email address is required and must be valid.'),
    ('missing password', 'A password is required to create your account.'),
    ('Storefront token not configured', 'Storefront API access is not configured.'),
    ('ACCESS_DENIED', 'Shopify permissions are missing (protected customer data scope).'),
    ('customer not visible in Admin after creation', 'Customer created but not yet visible in Admin. Please try again.'),
)

GENERIC_ERROR = 'Something went wrong. Please try again.'


def _rewrite_user_error(user_error: Dict[str, Any]) -> str:
    field = '.'.join(str(part) for part in (user_error.get('field') or [])).lower()
    message = str(user_error.get('message') or '')
    for fragment, friendly in FIELD_MESSAGES:
        if fragment in field or fragment in message.lower():
            return friendly
    return message


def _translate_user_errors(raw: str) -> str:
    try:
        user_errors = json.loads(raw)
    except ValueError:
        return ''
    if not isinstance(user_errors, list):
        return ''

    messages: List[str] = []
    for user_error in user_errors:
        if not isinstance(user_error, dict):
            continue
        message = _rewrite_user_error(user_error)
        if message and message not in messages:
            messages.append(message)
    return ' '.join(messages)


def to_plain_error(error: Any) -> str:
    """
    Rewrite a raw error (exception or string) into a plain-English message.

    Embedded ``userErrors`` lists are rewritten field by field, known internal
    messages are mapped through ``KNOWN_ERRORS`` and anything else is returned
    unchanged so no detail is lost.
    """
    text = str(error or '')

    match = _USER_ERRORS_PATTERN.search(text)
    if match:
        translated = _translate_user_errors(match.group(1))
        if translated:
            return translated

    for fragment, friendly in KNOWN_ERRORS:
        if fragment in text:
            return friendly

    return text or GENERIC_ERROR
