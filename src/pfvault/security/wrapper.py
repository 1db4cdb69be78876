"""AES-256-CBC key wrapping for per-backup data-encryption keys.

The DEK is PKCS7-padded and encrypted under the KEK with a fresh 16-byte IV,
so a 32-byte DEK always wraps to 48 bytes of ciphertext. There is no
integrity tag: a corrupted ciphertext either fails the padding check or
unwraps to different key bytes.
"""
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pfvault.core.exceptions import DecryptError, KeyLengthError, PaddingError

KEK_LENGTH = 32
DEK_LENGTH = 32
IV_LENGTH = 16
BLOCK_BITS = 128


def generate_dek() -> bytes:
    return os.urandom(DEK_LENGTH)


def generate_iv() -> bytes:
    return os.urandom(IV_LENGTH)


class KeyWrapper:
    def _cipher(self, kek: bytes, iv: bytes) -> Cipher:
        if len(kek) != KEK_LENGTH:
            raise KeyLengthError(f"KEK must be {KEK_LENGTH} bytes, got {len(kek)}")
        if len(iv) != IV_LENGTH:
            raise KeyLengthError(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")
        return Cipher(algorithms.AES(kek), modes.CBC(iv))

    def wrap(self, dek: bytes, kek: bytes, iv: bytes) -> bytes:
        """Encrypt ``dek`` under ``kek`` and return the ciphertext."""
        if len(dek) != DEK_LENGTH:
            raise KeyLengthError(f"DEK must be {DEK_LENGTH} bytes, got {len(dek)}")
        encryptor = self._cipher(kek, iv).encryptor()
        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(dek) + padder.finalize()
        return encryptor.update(padded) + encryptor.finalize()

    def unwrap(self, ciphertext: bytes, kek: bytes, iv: bytes) -> bytes:
        """Decrypt a wrapped DEK.

        Raises:
            KeyLengthError: ``kek`` or ``iv`` has the wrong size.
            PaddingError: the decrypted block does not carry valid PKCS7 padding.
            DecryptError: the ciphertext is not block aligned or unwraps to a
                key of the wrong length.
        """
        decryptor = self._cipher(kek, iv).decryptor()
        try:
            padded = decryptor.update(ciphertext) + decryptor.finalize()
        except ValueError as e:
            raise DecryptError(f"unable to decrypt wrapped key: {e}") from e

        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        try:
            dek = unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise PaddingError("wrapped key has invalid padding") from e

        if len(dek) != DEK_LENGTH:
            raise DecryptError(f"unwrapped key is {len(dek)} bytes, expected {DEK_LENGTH}")
        return dek
