import os

from argon2.exceptions import HashingError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pfvault.core.exceptions import DerivationError

# Argon2id cost parameters used for every new verification record.
TIME_COST = 3
MEMORY_COST = 65536  # KiB
PARALLELISM = 1
KEY_LEN = 32
SALT_LEN = 16
MIN_SALT_LEN = 8

VERIFY_CONTEXT = b"pfvault-verify"
KEK_CONTEXT = b"pfvault-kek"


def generate_salt(length: int = SALT_LEN) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def expand_subkey(root: bytes, context: bytes, length: int = KEY_LEN) -> bytes:
    """Expand an independent subkey from ``root`` for the given context label."""
    hkdf = HKDF(algorithm=hashes.SHA256(), length=length, salt=None, info=context)
    return hkdf.derive(root)


class KekDeriver:
    """Turns (passphrase, salt) into key bytes with Argon2id.

    Cost parameters are fixed per instance; the module constants are the
    defaults for new installations, and :meth:`from_record` rebuilds a
    deriver with whatever parameters an existing record was created with.
    """

    def __init__(
        self,
        time_cost: int = TIME_COST,
        memory_cost: int = MEMORY_COST,
        parallelism: int = PARALLELISM,
    ):
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    @classmethod
    def from_record(cls, record) -> "KekDeriver":
        return cls(
            time_cost=record.time_cost,
            memory_cost=record.memory_cost,
            parallelism=record.parallelism,
        )

    def derive_key(self, passphrase: bytes | str, salt: bytes) -> bytes:
        """
        Derive raw key bytes from a passphrase using Argon2id.
        Deterministic: the same passphrase and salt always give the same bytes.
        """
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        if not isinstance(salt, (bytes, bytearray)):
            raise DerivationError("salt must be bytes")
        if len(salt) < MIN_SALT_LEN:
            raise DerivationError(
                f"salt must be at least {MIN_SALT_LEN} bytes, got {len(salt)}"
            )

        try:
            return hash_secret_raw(
                secret=passphrase,
                salt=bytes(salt),
                time_cost=self.time_cost,
                memory_cost=self.memory_cost,
                parallelism=self.parallelism,
                hash_len=KEY_LEN,
                type=Type.ID,
                version=ARGON2_VERSION,
            )
        except (HashingError, OverflowError, ValueError) as e:
            raise DerivationError(f"Argon2id derivation failed: {e}") from e

    def derive_subkeys(self, passphrase: bytes | str, salt: bytes) -> tuple[bytes, bytes]:
        """Return ``(verification_key, kek)`` from a single Argon2id run."""
        root = self.derive_key(passphrase, salt)
        return expand_subkey(root, VERIFY_CONTEXT), expand_subkey(root, KEK_CONTEXT)
