"""
X-Hub-Signature check for inbound webhook deliveries.
"""
import hashlib
import hmac
import logging
from typing import Optional

from goalt.core.errors import SignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature"


def expected_signature(body: bytes, app_secret: str) -> str:
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha1).hexdigest()
    return f"sha1={digest}"


def verify_signature(body: bytes, header: Optional[str], app_secret: str, required: bool = True) -> None:
    """
    Raise SignatureError unless header is 'sha1=<hex hmac of body>'.
    With required=False a missing header is only logged.
    """
    if not header:
        if required:
            raise SignatureError("missing X-Hub-Signature header")
        logger.error("Couldn't validate the signature: header missing")
        return
    method, _, received = header.partition("=")
    if method != "sha1" or not received:
        raise SignatureError(f"unsupported signature format {method!r}")
    if not app_secret:
        raise SignatureError("APP_SECRET not configured")
    if not hmac.compare_digest(expected_signature(body, app_secret), f"sha1={received}"):
        raise SignatureError("Couldn't validate the request signature")
