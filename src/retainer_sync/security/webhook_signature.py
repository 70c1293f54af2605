"""
HMAC-SHA256 verification of platform webhooks.

The digest is computed over the exact request bytes and compared, base64 encoded,
with the ``X-Shopify-Hmac-Sha256`` header in constant time.
"""

import base64
import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = 'X-Shopify-Hmac-Sha256'


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Check a webhook signature header against the shared secret.

    Returns False when either the header or the secret is missing. Both digests
    are compared as bytes so a header with non-ASCII characters is a mismatch.
    """
    if not signature or not secret:
        return False
    expected = compute_signature(secret, body).encode('ascii')
    return hmac.compare_digest(expected, signature.strip().encode('utf-8', errors='replace'))
