"""
Runtime settings, read from the environment (and an optional .env file).

    PFSENSE_DOMAIN          base URL of the firewall, e.g. https://192.168.1.1
    PFSENSE_USERNAME        web UI user
    PFSENSE_PASSWORD        web UI password
    ENCRYPTION_PASSPHRASE   passphrase for the key-encryption key; falls back
                            to the OS keyring entry when unset
    BACKUP_SCHEDULE         <quantity><min|hr|d|wk>, e.g. 12hr (optional)
    PFVAULT_HOME            base directory (default: current directory)
    PFVAULT_BACKUP_DIR      where backups go (default: <home>/Backups)
    PFVAULT_RECORD_PATH     verification record (default: <home>/.kek-info)
    PFSENSE_VERIFY_TLS      verify the firewall certificate (default: false)
    PFSENSE_TIMEOUT         request timeout in seconds (default: 300)
    PFVAULT_LOG_LEVEL       logging level name (default: INFO)

Security Note:
    The passphrase is never logged and never written anywhere by pfvault.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from pfvault.core.exceptions import ConfigurationError, ConfigurationMissingError
from pfvault.scheduler import parse_schedule
from pfvault.security import keystore

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class Settings:
    """Validated settings for one pfvault process."""

    pfsense_domain: Optional[str] = None
    pfsense_username: Optional[str] = None
    pfsense_password: Optional[str] = field(default=None, repr=False)
    encryption_passphrase: Optional[str] = field(default=None, repr=False)
    backup_interval: Optional[timedelta] = None
    home: Path = Path(".")
    backup_dir: Path = Path("Backups")
    record_path: Path = Path(".kek-info")
    verify_tls: bool = False
    timeout: float = 300.0
    log_level: int = logging.INFO

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str | Path] = None
    ) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ`` after loading .env)."""
        if environ is None:
            load_dotenv(dotenv_path=dotenv_path)
            environ = os.environ

        home = Path(environ.get("PFVAULT_HOME") or ".").expanduser()
        backup_dir = Path(environ.get("PFVAULT_BACKUP_DIR") or home / "Backups").expanduser()
        record_path = Path(environ.get("PFVAULT_RECORD_PATH") or home / ".kek-info").expanduser()

        schedule = environ.get("BACKUP_SCHEDULE")
        interval = parse_schedule(schedule) if schedule else None

        raw_timeout = environ.get("PFSENSE_TIMEOUT") or "300"
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigurationError(f"PFSENSE_TIMEOUT must be a number, got {raw_timeout!r}") from e
        if timeout <= 0:
            raise ConfigurationError("PFSENSE_TIMEOUT must be positive")

        level_name = (environ.get("PFVAULT_LOG_LEVEL") or "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ConfigurationError(f"unknown PFVAULT_LOG_LEVEL: {level_name}")

        passphrase = environ.get("ENCRYPTION_PASSPHRASE") or None
        if passphrase is None:
            passphrase = keystore.load_passphrase(
                service=environ.get("PFVAULT_KEYRING_SERVICE") or keystore.DEFAULT_SERVICE,
                account=environ.get("PFVAULT_KEYRING_ACCOUNT") or keystore.DEFAULT_ACCOUNT,
            )
            if passphrase:
                logger.debug("Encryption passphrase loaded from the OS keyring")

        domain = environ.get("PFSENSE_DOMAIN") or None
        if domain:
            domain = domain.rstrip("/")

        return cls(
            pfsense_domain=domain,
            pfsense_username=environ.get("PFSENSE_USERNAME") or None,
            pfsense_password=environ.get("PFSENSE_PASSWORD") or None,
            encryption_passphrase=passphrase,
            backup_interval=interval,
            home=home,
            backup_dir=backup_dir,
            record_path=record_path,
            verify_tls=_parse_bool(environ.get("PFSENSE_VERIFY_TLS")),
            timeout=timeout,
            log_level=level,
        )

    def require_passphrase(self) -> str:
        if not self.encryption_passphrase:
            raise ConfigurationMissingError(
                "'ENCRYPTION_PASSPHRASE' environment variable is not set and no "
                "passphrase is stored in the OS keyring."
            )
        return self.encryption_passphrase

    def require_pfsense(self) -> tuple[str, str, str]:
        """Return (domain, username, password) or raise naming the missing variable."""
        for name, value in (
            ("PFSENSE_DOMAIN", self.pfsense_domain),
            ("PFSENSE_USERNAME", self.pfsense_username),
            ("PFSENSE_PASSWORD", self.pfsense_password),
        ):
            if not value:
                raise ConfigurationMissingError(f"'{name}' environment variable is not set.")
        return self.pfsense_domain, self.pfsense_username, self.pfsense_password
