"""Encryption key material for node bootstrap configuration."""

import secrets

from pydantic import BaseModel

KEY_SIZE = 32  # bytes (AES-256)
IV_SIZE = 16   # bytes (AES block size)


class EncryptionKeyMaterial(BaseModel):
    """
    Key and initialization vector generated once per cluster. Held in memory
    or transit only, never stored alongside the ciphertext it protects.
    """

    key: bytes
    iv: bytes


def new_key_material() -> EncryptionKeyMaterial:
    """Generate fresh key material. Callers own its secure distribution."""
    return EncryptionKeyMaterial(
        key=secrets.token_bytes(KEY_SIZE),
        iv=secrets.token_bytes(IV_SIZE),
    )
