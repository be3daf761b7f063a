# app/utils/signer.py
"""
Client credentials for license requests.

Client sites send ``Authorization: TWS <base64 value>``:

- activate / deactivate : base64(shared_secret)
- validate              : base64(meta_key + "/" + purchased_on + ":" + shared_secret)

The validate credential ties a validation call to one license, one site
binding and the license issue time.
"""

import base64
import binascii
import hmac
from typing import Optional, Tuple

from config import AUTH_SCHEME


def split_authorization(header: Optional[str]) -> Tuple[str, str]:
    """'TWS abc==' -> ('TWS', 'abc==')."""
    if not header:
        return "", ""
    parts = header.strip().split(" ", 1)
    scheme = parts[0]
    value = parts[1].strip() if len(parts) > 1 else ""
    return scheme, value


def encode_credential(raw: str) -> str:
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_credential(value: str) -> Optional[str]:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None


def validation_secret(meta_key: str, purchased_on: str, shared_secret: str) -> str:
    return f"{meta_key}/{purchased_on}:{shared_secret}"


def credential_matches(scheme: str, value: str, expected: str) -> bool:
    """Scheme must be TWS and the decoded value must equal ``expected``."""
    if scheme != AUTH_SCHEME or not value:
        return False

    decoded = decode_credential(value)
    if decoded is None:
        return False

    return hmac.compare_digest(decoded.encode("utf-8"), expected.encode("utf-8"))


def authorization_header(raw: str) -> str:
    return f"{AUTH_SCHEME} {encode_credential(raw)}"
