# utils/security.py

import hmac
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check an `X-Hub-Signature-256` header against the raw request body.

    Never raises: a missing header, a header with non-ASCII characters or one
    of a different length simply does not match.
    """
    if not signature or not secret:
        return False
    try:
        received = signature.encode("ascii")
    except UnicodeEncodeError:
        return False
    expected = compute_signature(payload, secret).encode("ascii")
    # compare_digest accepts unequal lengths and returns False for them
    return hmac.compare_digest(expected, received)


class WebhookAuthenticator:
    """
    Gate for inbound webhooks.

    Without a secret the authenticator either rejects everything (default)
    or, when `allow_unsigned` is set on purpose, accepts everything.
    """

    def __init__(self, secret: Optional[str], allow_unsigned: bool = False):
        self.secret = secret or None
        self.allow_unsigned = allow_unsigned

    def is_authentic(self, payload: bytes, signature: Optional[str]) -> bool:
        if self.secret is None:
            if self.allow_unsigned:
                return True
            logger.error("Rejecting webhook: WEBHOOK_SECRET is not configured")
            return False
        if not signature:
            logger.warning("Rejecting webhook: no signature header")
            return False
        return verify_signature(payload, signature, self.secret)
