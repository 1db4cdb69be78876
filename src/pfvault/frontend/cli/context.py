"""Small helper to build the pfvault runtime context for the shell."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

from pfvault.config import Settings
from pfvault.core.exceptions import ConfigurationMissingError
from pfvault.core.storage import BackupStorage
from pfvault.network.pfsense import PfSenseClient
from pfvault.scheduler import BackupScheduler
from pfvault.security.envelope import EnvelopeKeyManager
from pfvault.security.metadata import MetadataStore
from pfvault.security.verifier import PassphraseVerifier

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Container for runtime objects the shell needs."""

    settings: Settings
    store: MetadataStore
    manager: EnvelopeKeyManager
    storage: BackupStorage
    client: Optional[PfSenseClient] = None
    scheduler: Optional[BackupScheduler] = None
    first_run: bool = False


def build_context(settings: Settings) -> AppContext:
    """
    Wire the key manager, storage and pfSense client from ``settings``.

    First-run behaviour:

    - When no verification record exists it is created from the configured
      passphrase. A ``BootstrapError`` here is fatal: without the record no
      backup can be created or restored.
    - When a record exists the passphrase is checked against it right away,
      so a wrong passphrase fails at startup instead of at the first backup.

    The pfSense client and the scheduler are optional: without
    PFSENSE_* settings the shell can still list and delete local backups.
    """
    passphrase = settings.require_passphrase()

    store = MetadataStore(settings.record_path)
    verifier = PassphraseVerifier(store)
    first_run = not store.has_record()
    record = verifier.ensure_record(passphrase)
    verifier.verify(passphrase, record)

    manager = EnvelopeKeyManager(passphrase, store, verifier=verifier)
    storage = BackupStorage(settings.backup_dir, store=store)

    client: Optional[PfSenseClient] = None
    try:
        domain, username, password = settings.require_pfsense()
    except ConfigurationMissingError as e:
        logger.warning("pfSense access disabled: %s", e)
    else:
        client = PfSenseClient(
            domain,
            username,
            password,
            manager=manager,
            storage=storage,
            verify_tls=settings.verify_tls,
            timeout=settings.timeout,
        )

    scheduler: Optional[BackupScheduler] = None
    if client is not None and settings.backup_interval is not None:
        scheduler = BackupScheduler(client.download_backup, settings.backup_interval)

    return AppContext(
        settings=settings,
        store=store,
        manager=manager,
        storage=storage,
        client=client,
        scheduler=scheduler,
        first_run=first_run,
    )
