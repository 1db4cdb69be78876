"""Passphrase verification against the persisted record.

Bootstrap and verify run the exact same derivation: one Argon2id pass over
(passphrase, salt), then two HKDF subkeys. The verification subkey is what
the record stores; the KEK subkey is only ever returned to the caller.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from pfvault.core.exceptions import RecordExistsError, VerificationError
from pfvault.core.models import VerificationRecord

from .kdf import KekDeriver, generate_salt
from .metadata import MetadataStore

logger = logging.getLogger(__name__)


class PassphraseVerifier:
    def __init__(self, store: MetadataStore, deriver: Optional[KekDeriver] = None):
        self.store = store
        self.deriver = deriver or KekDeriver()

    def bootstrap(self, passphrase: bytes | str) -> VerificationRecord:
        """Create the verification record for ``passphrase``.

        Raises ``RecordExistsError`` if a record is already present; the
        existing record is left untouched.
        """
        salt = generate_salt()
        verify_key, _ = self.deriver.derive_subkeys(passphrase, salt)
        record = VerificationRecord(
            salt=salt,
            hash=verify_key,
            time_cost=self.deriver.time_cost,
            memory_cost=self.deriver.memory_cost,
            parallelism=self.deriver.parallelism,
            hash_len=len(verify_key),
        )
        self.store.save_record(record)
        return record

    def ensure_record(self, passphrase: bytes | str) -> VerificationRecord:
        """Load the record, bootstrapping it first if this is a fresh install."""
        if self.store.has_record():
            return self.store.load_record()
        try:
            return self.bootstrap(passphrase)
        except RecordExistsError:
            # another process bootstrapped between the check and the create
            logger.info("Verification record was created concurrently; loading it")
            return self.store.load_record()

    def verify(
        self, passphrase: bytes | str, record: Optional[VerificationRecord] = None
    ) -> bytes:
        """Check ``passphrase`` against the record and return the KEK on success."""
        if record is None:
            record = self.store.load_record()
        deriver = KekDeriver.from_record(record)
        verify_key, kek = deriver.derive_subkeys(passphrase, record.salt)
        if not hmac.compare_digest(verify_key, record.hash):
            raise VerificationError("Unable to retrieve key encryption key: passphrase does not match.")
        return kek
