"""Anonymous respondent tokens.

A respondent asks for a fresh random token; the server hands it back with an
HMAC so later requests can prove the token was issued here. The token itself
is the identity the ledger sees, which keeps respondents unlinkable to
anything but their own submissions.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Tuple


def issue_token(key: bytes, nbytes: int = 16) -> Tuple[str, str]:
    """Issue a fresh random token and its MAC

    Args
    - key: server-side secret key for token MACs
    - nbytes: token length (16-32 recommended)

    Returns: (token_hex, mac_hex)
    """

    if not isinstance(key, (bytes, bytearray)):
        raise TypeError("key must be bytes")
    token = secrets.token_bytes(nbytes)
    mac = hmac.new(key, token, hashlib.sha256).hexdigest()
    return token.hex(), mac


def verify_token(key: bytes, token_hex: str, mac_hex: str) -> bool:
    """Check token_hex against its MAC.

    Only the exact lowercase form ``issue_token`` returned is accepted, since
    the token string itself is the respondent identity.
    """
    try:
        token = bytes.fromhex(token_hex)
    except (TypeError, ValueError):
        return False
    if not token or token.hex() != token_hex:
        return False
    if not isinstance(mac_hex, str):
        return False
    expected = hmac.new(key, token, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected.encode(), mac_hex.encode("utf-8"))
