# countrygen/signatures.py
#
# -----------------------------------------------------------------------------
# Architectural notes
# -----------------------------------------------------------------------------
# This module is the *authentication layer* for inbound interactions.
#
# Responsibilities:
#   - Load the platform's Ed25519 verifying key (hex, 32 raw bytes)
#   - Verify X-Signature-Ed25519 over (timestamp || body)
#
# What this module is NOT:
#   - Not a signer (the platform holds the private key; we never do)
#   - Not a freshness check (timestamps are taken at face value)
#   - Not stateful: the key is passed in by the caller, never read from a global
#
# Signed message format:
#
#     message = utf8(X-Signature-Timestamp) || raw_body
#
# No separator, no re-encoding of the body. The body must be the exact bytes
# received on the wire, *before* any JSON parsing.
# -----------------------------------------------------------------------------

import cryptography.exceptions
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from .errors import ConfigError, HexError, InvalidSignature, MalformedSignature
from .hexcodec import decode_hex

PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64


# -----------------------------------------------------------------------------
# Key loading
# -----------------------------------------------------------------------------
def load_verifying_key(key_hex: str) -> Ed25519PublicKey:
    """
    Load a raw Ed25519 public key from hex.

    Constraints:
      - exactly 64 hex characters (32 bytes)
      - no PEM, no headers

    Raises ConfigError: the process must not start serving with a key it
    cannot use.
    """
    try:
        raw = decode_hex(key_hex.strip(), PUBLIC_KEY_BYTES)
    except HexError as e:
        raise ConfigError(f"invalid verifying key: {e}") from e

    try:
        return Ed25519PublicKey.from_public_bytes(raw)
    except ValueError as e:
        raise ConfigError(f"invalid verifying key: {e}") from e


# -----------------------------------------------------------------------------
# Verification
# -----------------------------------------------------------------------------
def signed_message(timestamp: str, body: bytes) -> bytes:
    return timestamp.encode("utf-8") + body


def verify_request(
    key: Ed25519PublicKey,
    signature_hex: str,
    timestamp: str,
    body: bytes,
) -> None:
    """
    Verify an inbound interaction signature.

    Raises:
      - MalformedSignature if signature_hex is not 128 hex characters
      - InvalidSignature   on any verification mismatch

    The mismatch case is deliberately opaque: wrong key, tampered timestamp,
    tampered body and corrupted signature all produce the same error.
    Constant-time behaviour is delegated to the Ed25519 primitive.
    """
    try:
        sig = decode_hex(signature_hex, SIGNATURE_BYTES)
    except HexError as e:
        raise MalformedSignature() from e

    try:
        key.verify(sig, signed_message(timestamp, body))
    except cryptography.exceptions.InvalidSignature:
        raise InvalidSignature() from None
