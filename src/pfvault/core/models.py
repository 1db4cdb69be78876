"""
Data models for the two persisted shapes: the verification record and the
per-backup sidecar holding a wrapped key
"""

from dataclasses import dataclass
from typing import Any, Dict

from .exceptions import MetadataCorruptError, RecordCorruptError

IV_LENGTH = 16
BLOCK_SIZE = 16

RECORD_ALGO = "argon2id"
RECORD_KDF_VERSION = 19
RECORD_SCHEME = "argon2id+hkdf-sha256"
RECORD_HASH_LEN = 32
# Argon2 takes its cost parameters as uint32
MAX_COST = 2**32 - 1


def _cost_field(data: Dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise RecordCorruptError(f"'{key}' must be an integer, got {value!r}")
    if not 1 <= value <= MAX_COST:
        raise RecordCorruptError(f"'{key}' is out of range: {value}")
    return value


def _bytes_field(value: Any) -> bytes:
    # hex strings are the current format; lists of ints come from older sidecars
    if isinstance(value, str):
        return bytes.fromhex(value)
    if isinstance(value, list):
        return bytes(value)
    raise TypeError(f"expected hex string or byte list, got {type(value).__name__}")


@dataclass(frozen=True)
class VerificationRecord:
    """Everything needed to re-check a passphrase, without the passphrase.

    The record is written once at bootstrap and never mutated. ``hash`` is
    the verification subkey, not the key-encryption key.
    """

    salt: bytes
    hash: bytes
    time_cost: int
    memory_cost: int
    parallelism: int
    hash_len: int = RECORD_HASH_LEN
    algo: str = RECORD_ALGO
    kdf_version: int = RECORD_KDF_VERSION
    scheme: str = RECORD_SCHEME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algo": self.algo,
            "kdf_version": self.kdf_version,
            "scheme": self.scheme,
            "salt": self.salt.hex(),
            "time": self.time_cost,
            "memory": self.memory_cost,
            "parallelism": self.parallelism,
            "hash_len": self.hash_len,
            "hash": self.hash.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationRecord":
        if not isinstance(data, dict):
            raise RecordCorruptError("verification record must be a JSON object")
        try:
            record = cls(
                salt=bytes.fromhex(data["salt"]),
                hash=bytes.fromhex(data["hash"]),
                time_cost=_cost_field(data, "time"),
                memory_cost=_cost_field(data, "memory"),
                parallelism=_cost_field(data, "parallelism"),
                hash_len=int(data.get("hash_len", RECORD_HASH_LEN)),
                algo=data.get("algo", RECORD_ALGO),
                kdf_version=int(data.get("kdf_version", RECORD_KDF_VERSION)),
                scheme=data.get("scheme", RECORD_SCHEME),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RecordCorruptError(f"verification record is malformed: {e}") from e
        if record.algo != RECORD_ALGO:
            raise RecordCorruptError(f"unsupported KDF algorithm: {record.algo}")
        if record.kdf_version != RECORD_KDF_VERSION:
            raise RecordCorruptError(f"unsupported Argon2 version: {record.kdf_version}")
        if record.scheme != RECORD_SCHEME:
            raise RecordCorruptError(f"unsupported key scheme: {record.scheme}")
        if record.hash_len != RECORD_HASH_LEN:
            raise RecordCorruptError(f"unsupported hash length: {record.hash_len}")
        if len(record.hash) != record.hash_len:
            raise RecordCorruptError("verification hash length does not match hash_len")
        return record


@dataclass(frozen=True)
class WrappedKeyMetadata:
    """Sidecar stored next to each backup: the IV and the wrapped DEK."""

    iv: bytes
    encrypted_key: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"iv": self.iv.hex(), "encrypted_key": self.encrypted_key.hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WrappedKeyMetadata":
        if not isinstance(data, dict):
            raise MetadataCorruptError("Metadata seems to be of invalid format.")
        try:
            iv = _bytes_field(data["iv"])
            encrypted_key = _bytes_field(data["encrypted_key"])
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataCorruptError(f"Metadata seems to be of invalid format: {e}") from e
        if len(iv) != IV_LENGTH:
            raise MetadataCorruptError(f"IV must be {IV_LENGTH} bytes, got {len(iv)}")
        if not encrypted_key or len(encrypted_key) % BLOCK_SIZE:
            raise MetadataCorruptError(
                f"encrypted key length must be a positive multiple of {BLOCK_SIZE}"
            )
        return cls(iv=iv, encrypted_key=encrypted_key)
