"""
Symmetric Encrypter — confidentiality for sensitive bootstrap material.

AES-256 in CTR mode: a stream cipher, so len(ciphertext) == len(plaintext),
no padding and no authentication tag. Integrity is not a property of this
component. Key and IV are always supplied by the caller; nothing is generated
or persisted here.
"""

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from operator_kernel.config.settings import InvalidConfigError
from operator_kernel.models.encryption import IV_SIZE, KEY_SIZE, EncryptionKeyMaterial


class Encrypter:
    """Encrypt/decrypt with one fixed (key, iv) pair."""

    def __init__(self, key: bytes, iv: bytes):
        if not key:
            raise InvalidConfigError("encryption key must not be empty")
        if not iv:
            raise InvalidConfigError("initial vector must not be empty")
        if len(key) != KEY_SIZE:
            raise InvalidConfigError(f"encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        if len(iv) != IV_SIZE:
            raise InvalidConfigError(f"initial vector must be {IV_SIZE} bytes, got {len(iv)}")

        self._key = bytes(key)
        self._iv = bytes(iv)

    @classmethod
    def from_key_material(cls, material: EncryptionKeyMaterial) -> "Encrypter":
        return cls(material.key, material.iv)

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CTR(self._iv))

    def encrypt(self, plaintext: bytes) -> bytes:
        encryptor = self._cipher().encryptor()
        return encryptor.update(plaintext) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        decryptor = self._cipher().decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()

    def get_encryption_key(self) -> str:
        """Hex encoding of the key, for handing to nodes out of band."""
        return self._key.hex()

    def get_initial_vector(self) -> str:
        return self._iv.hex()
