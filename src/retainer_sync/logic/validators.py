"""
Validation and coercion rules for intake payload values.
"""

import base64
import binascii
import math
import re
from typing import Any, Optional, Tuple, Union

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
YMD_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
DATA_URL_PATTERN = re.compile(r'^data:([^;,]+)?')
MIN_PHONE_CHARS = 10
MIN_PASSWORD_LENGTH = 8
DEFAULT_MIME_TYPE = 'application/octet-stream'


def normalize_email(value: Any) -> str:
    return str(value or '').strip().lower()


def is_email(value: Any) -> bool:
    return bool(EMAIL_PATTERN.match(normalize_email(value)))


def is_phone_loose(value: Any) -> bool:
    """At least ten characters once everything but digits and ``+`` is removed."""
    return len(re.sub(r'[^\d+]', '', str(value or ''))) >= MIN_PHONE_CHARS


def is_ymd(value: Any) -> bool:
    return isinstance(value, str) and bool(YMD_PATTERN.match(value))


def non_blank(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() != ''
    return value is not None


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def coerce_number(value: Any) -> Union[int, float]:
    """Numeric value of ``value``, or 0 when it is not a finite number."""
    number = _to_float(value)
    if number is None:
        return 0
    return int(number) if number.is_integer() else number


def coerce_integer(value: Any) -> Optional[int]:
    """
    Integer value for ``number_integer`` metafields.

    Non-numeric and non-finite input falls back to 0; finite values with a
    fractional part return None so the metafield is dropped.
    """
    number = _to_float(value)
    if number is None:
        return 0
    if not number.is_integer():
        return None
    return int(number)


def parse_data_url(data_url: Any, required_prefix: str = 'data:') -> Tuple[str, bytes]:
    """
    Split a base64 data-URL into its MIME type and decoded bytes.

    Raises:
        ValueError: If the value is not a data-URL with the required prefix or the payload is not base64
    """
    if not isinstance(data_url, str) or not data_url.startswith(required_prefix) or ',' not in data_url:
        raise ValueError('invalid data url')

    meta, payload = data_url.split(',', 1)
    match = DATA_URL_PATTERN.match(meta)
    mime_type = (match.group(1) if match else None) or DEFAULT_MIME_TYPE
    try:
        content = base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise ValueError('invalid data url payload') from exc
    if not content:
        raise ValueError('empty data url payload')
    return mime_type, content


def derive_password(last_name: Any, dob: Any) -> str:
    """Fallback account password built from the last name and the birth year."""
    last = str(last_name or '').strip() or 'Member'
    dob_digits = re.sub(r'\D', '', str(dob or ''))[:4]
    password = f'{last}{dob_digits or "123"}!'
    if len(password) < MIN_PASSWORD_LENGTH:
        password = (password + '!' * MIN_PASSWORD_LENGTH)[:12]
    return password
