"""Canonical-string signing for Telebirr requests and notifications.

The gateway rebuilds the same ``key=value&...`` string on its side and
compares signatures, so the exclusion and ordering rules here must match
its contract exactly: a mismatch is a silent rejection, not an exception.
"""

import base64
import binascii
import logging
import textwrap

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from jwcrypto import jwk
from jwcrypto.common import JWException
from jwcrypto.jwa import JWA

from .exceptions import SigningError

logger = logging.getLogger(__name__)

SIGN_FIELD = "sign"
SIGN_TYPE_FIELD = "sign_type"
SIGN_TYPE = "SHA256WithRSA"

_EXCLUDED = frozenset({SIGN_FIELD, SIGN_TYPE_FIELD})


def canonical_string(fields: dict) -> str:
    """Sorted ``key=value`` pairs joined by ``&``, without the signature fields."""
    pairs = [
        f"{key}={fields[key]}"
        for key in sorted(fields)
        if key not in _EXCLUDED and fields[key] is not None
    ]
    return "&".join(pairs)


# ---------- Key loaders ----------
def _pem_bytes(key, armor: str) -> bytes:
    """Accept PEM text/bytes, or a bare base64 key body as the portal hands it out."""
    if isinstance(key, (bytes, bytearray)):
        text = bytes(key).decode("utf-8")
    else:
        text = str(key or "")
    text = text.replace("\r\n", "\n").replace("\\n", "\n").strip()
    if not text:
        raise SigningError("Key is empty")
    if "-----BEGIN" not in text:
        body = "".join(text.split())
        text = f"-----BEGIN {armor}-----\n" + "\n".join(textwrap.wrap(body, 64)) + f"\n-----END {armor}-----"
    return (text + "\n").encode("utf-8")


def _load(key, armor: str) -> jwk.JWK:
    if isinstance(key, jwk.JWK):
        return key
    pem = _pem_bytes(key, armor)
    try:
        loaded = jwk.JWK.from_pem(pem)
    except (ValueError, TypeError, UnsupportedAlgorithm, JWException) as e:
        raise SigningError(f"Malformed {armor.lower()}: {e}") from e
    if loaded.get("kty") != "RSA":
        raise SigningError(f"Expected an RSA key, got {loaded.get('kty')!r}")
    return loaded


def load_private_key(key) -> jwk.JWK:
    """Load the merchant private key (PEM or bare PKCS#8 base64)."""
    loaded = _load(key, "PRIVATE KEY")
    if not loaded.has_private:
        raise SigningError("Merchant key has no private part")
    return loaded


def load_public_key(key) -> jwk.JWK:
    """Load the gateway's public key (PEM or bare SubjectPublicKeyInfo base64)."""
    return _load(key, "PUBLIC KEY")


# ---------- Sign / verify ----------
def sign(fields: dict, private_key) -> str:
    """RSA-SHA256 (PKCS#1 v1.5) signature over the canonical string, base64 encoded."""
    if not private_key:
        raise SigningError("Merchant private key is not configured")
    key = load_private_key(private_key)
    payload = canonical_string(fields).encode("utf-8")
    try:
        raw = JWA.signing_alg("RS256").sign(key, payload)
    except (ValueError, TypeError, JWException) as e:
        raise SigningError(f"Could not sign request: {e}") from e
    return base64.b64encode(raw).decode("ascii")


def verify(fields: dict, signature: str, public_key) -> bool:
    if not signature:
        return False
    key = load_public_key(public_key)
    try:
        raw = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError):
        logger.debug("Signature is not valid base64")
        return False
    payload = canonical_string(fields).encode("utf-8")
    try:
        JWA.signing_alg("RS256").verify(key, payload, raw)
    except InvalidSignature:
        return False
    return True
