"""Envelope-key management for pfvault.

- Argon2id passphrase derivation with HKDF-separated subkeys
- a write-once verification record
- AES-256-CBC wrapping of per-backup data-encryption keys
- JSON sidecars binding a wrapped key to each backup file
"""

from .kdf import KekDeriver, generate_salt
from .metadata import MetadataStore, metadata_path_for
from .verifier import PassphraseVerifier
from .wrapper import KeyWrapper
from .envelope import EnvelopeKeyManager

__all__ = [
    "KekDeriver",
    "generate_salt",
    "MetadataStore",
    "metadata_path_for",
    "PassphraseVerifier",
    "KeyWrapper",
    "EnvelopeKeyManager",
]
