"""
Envelope key management for pfSense backups.

Each backup gets a fresh 32-byte DEK. pfSense encrypts the configuration
itself using the hex form of that DEK as its "encryption password"; we keep
only the DEK wrapped under the passphrase-derived KEK, in a sidecar next to
the downloaded file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from pfvault.core.exceptions import ConfigurationMissingError
from pfvault.core.models import WrappedKeyMetadata

from .metadata import MetadataStore
from .verifier import PassphraseVerifier
from .wrapper import KeyWrapper, generate_dek, generate_iv

logger = logging.getLogger(__name__)


class EnvelopeKeyManager:
    """
    Stateless generate/retrieve front end over the verifier and the wrapper.

    The passphrase is injected at construction; nothing here reads the
    environment. Sidecar persistence belongs to the caller: ``generate_key``
    returns metadata, it does not write it.
    """

    def __init__(
        self,
        passphrase: bytes | str,
        store: MetadataStore,
        verifier: Optional[PassphraseVerifier] = None,
        wrapper: Optional[KeyWrapper] = None,
    ):
        if not passphrase:
            raise ConfigurationMissingError("an encryption passphrase is required")
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        self._passphrase = passphrase
        self.store = store
        self.verifier = verifier or PassphraseVerifier(store)
        self.wrapper = wrapper or KeyWrapper()

    def _kek(self) -> bytes:
        return self.verifier.verify(self._passphrase, self.store.load_record())

    def generate_key(self) -> tuple[str, WrappedKeyMetadata]:
        """Return ``(hex_dek, metadata)`` for a new artifact."""
        kek = self._kek()
        iv = generate_iv()
        dek = generate_dek()
        metadata = WrappedKeyMetadata(iv=iv, encrypted_key=self.wrapper.wrap(dek, kek, iv))
        logger.debug("Generated a new data-encryption key")
        return dek.hex(), metadata

    def retrieve_key(self, metadata: Union[WrappedKeyMetadata, str, Path]) -> str:
        """
        Return the hex DEK wrapped in ``metadata``.

        ``metadata`` may be a loaded :class:`WrappedKeyMetadata` or the path to
        a sidecar file.
        """
        if not isinstance(metadata, WrappedKeyMetadata):
            metadata = self.store.load_metadata(metadata)
        kek = self._kek()
        dek = self.wrapper.unwrap(metadata.encrypted_key, kek, metadata.iv)
        return dek.hex()
