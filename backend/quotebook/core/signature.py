"""Parameter canonicalization and signing for PayFast gateway requests."""

import hashlib
import hmac
from typing import Mapping, Optional
from urllib.parse import quote

from quotebook.core.errors import SigningError

# Characters left unescaped by JavaScript's encodeURIComponent. The gateway
# recomputes signatures with this exact encoding (space is %20, never +).
_UNRESERVED = "-_.!~*'()"


def encode_value(value: str) -> str:
    """
    Percent-encode a single parameter value.

    Args:
        value: Raw parameter value

    Returns:
        str: Encoded value, e.g. "Wedding Deposit" -> "Wedding%20Deposit"
    """
    return quote(value, safe=_UNRESERVED)


def canonicalize(params: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    """
    Build the canonical parameter string the gateway signs.

    Keys are sorted by byte value and joined as key=value pairs with "&".
    Empty values are omitted. A configured passphrase is appended last.

    Raises:
        SigningError: If any key or value is not a string
    """
    for key, value in params.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise SigningError(
                f"Gateway parameters must be strings, got {key!r}={value!r}"
            )
    if passphrase is not None and not isinstance(passphrase, str):
        raise SigningError("Gateway passphrase must be a string")

    pairs = [
        f"{key}={encode_value(params[key])}"
        for key in sorted(params, key=lambda k: k.encode("utf-8"))
        if params[key] != ""
    ]
    if passphrase:
        pairs.append(f"passphrase={encode_value(passphrase)}")
    return "&".join(pairs)


def sign(params: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    """
    Sign gateway parameters.

    Args:
        params: Flat mapping of parameter name to string value
        passphrase: Optional merchant passphrase

    Returns:
        str: Lowercase hex MD5 digest of the canonical string
    """
    payload = canonicalize(params, passphrase)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def verify(params: Mapping[str, str], signature: str, passphrase: Optional[str] = None) -> bool:
    """
    Verify a signature received from the gateway.

    The "signature" parameter itself is excluded before re-signing.
    """
    unsigned = {key: value for key, value in params.items() if key != "signature"}
    expected = sign(unsigned, passphrase)
    if not signature.isascii():
        return False
    return hmac.compare_digest(expected, signature.strip().lower())
