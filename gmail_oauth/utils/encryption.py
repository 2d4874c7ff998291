"""AES-256-GCM sealing for data handed to the browser.

The session cookie carries the authenticated caller, access and refresh
tokens included. Starlette only signs its session cookie, so the caller is
sealed here first: the browser sees an opaque blob it can neither read nor
alter.

A sealed blob is ``iv || ciphertext`` where the ciphertext already carries
the GCM authentication tag.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from gmail_oauth.utils.errors import TokenError, ValidationError

KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8
IV_SIZE_BYTES = 12  # 96 bits, recommended for GCM
TAG_SIZE_BYTES = 16
HEX_KEY_LENGTH = KEY_SIZE_BYTES * 2


def generate_key() -> bytes:
    """Generate a random 256-bit key suitable for ``seal``/``unseal``."""
    return AESGCM.generate_key(bit_length=KEY_SIZE_BITS)


def seal(plaintext: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """Encrypt and authenticate ``plaintext``.

    A fresh IV is drawn for every call and prepended to the result.

    Args:
        plaintext: The data to encrypt.
        key: A 32-byte key.
        associated_data: Optional data bound to the blob but not encrypted.

    Returns:
        ``iv || ciphertext`` as bytes.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
        TokenError: If encryption fails for any other reason.
    """
    _validate_key(key)

    try:
        iv = os.urandom(IV_SIZE_BYTES)
        return iv + AESGCM(key).encrypt(iv, plaintext, associated_data)
    except Exception as e:
        raise TokenError(
            "Failed to encrypt data",
            details={"error_type": type(e).__name__, "error_message": str(e)},
        ) from e


def unseal(blob: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """Verify and decrypt a blob produced by ``seal``.

    Args:
        blob: ``iv || ciphertext`` as returned by ``seal``.
        key: The 32-byte key used for sealing.
        associated_data: The same associated data given to ``seal``.

    Returns:
        The original plaintext.

    Raises:
        ValidationError: If the key has the wrong length.
        TokenError: If the blob is truncated, tampered with, or was sealed
            under another key.
    """
    _validate_key(key)

    if len(blob) < IV_SIZE_BYTES + TAG_SIZE_BYTES:
        raise TokenError(
            "Sealed data is too short",
            details={"length": len(blob)},
        )

    iv, ciphertext = blob[:IV_SIZE_BYTES], blob[IV_SIZE_BYTES:]
    try:
        return AESGCM(key).decrypt(iv, ciphertext, associated_data)
    except Exception as e:
        raise TokenError(
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def key_from_hex(hex_key: str) -> bytes:
    """Convert a 64-character hexadecimal string to a 32-byte key.

    Raises:
        ValidationError: If the string has the wrong length or contains
            non-hexadecimal characters.
    """
    hex_key = hex_key.strip()

    if len(hex_key) != HEX_KEY_LENGTH:
        raise ValidationError(
            f"Invalid hex key length: expected {HEX_KEY_LENGTH} characters, "
            f"got {len(hex_key)}",
            field="hex_key",
            details={"expected_length": HEX_KEY_LENGTH, "actual_length": len(hex_key)},
        )

    try:
        return bytes.fromhex(hex_key)
    except ValueError as e:
        raise ValidationError(
            "Invalid hex key: contains non-hexadecimal characters",
            field="hex_key",
            details={"error_message": str(e)},
        ) from e


def _validate_key(key: bytes) -> None:
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "generate_key",
    "seal",
    "unseal",
    "key_from_hex",
]
