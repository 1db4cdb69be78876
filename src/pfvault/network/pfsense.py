"""
pfSense web UI client: login, encrypted backup download, restore.

pfSense protects every form with a ``__csrf_magic`` token, so each POST is
preceded by a GET of the same page. Backups are encrypted by pfSense itself
using the hex DEK from :class:`EnvelopeKeyManager` as the password; we only
store the resulting blob and the sidecar with the wrapped DEK.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Optional

import requests

from pfvault.core.exceptions import (
    BackupError,
    CsrfTokenError,
    LoginError,
    RestoreError,
)
from pfvault.core.storage import BackupStorage
from pfvault.security.envelope import EnvelopeKeyManager

logger = logging.getLogger(__name__)

LOGIN_PAGE_PATH = "/"
BACKUP_PAGE_PATH = "/diag_backup.php"

CSRF_TOKEN_RE = re.compile(
    r"""<input type=['"]hidden['"] name=['"]__csrf_magic['"] value=['"](.+?)['"]\s*/?>"""
)
FILENAME_RE = re.compile(r"attachment;\s*filename=(.+)")

CHUNK_SIZE = 64 * 1024


class PfSenseClient:
    """Talks to one pfSense instance over a cookie-keeping requests session"""

    def __init__(
        self,
        domain: str,
        username: str,
        password: str,
        manager: EnvelopeKeyManager,
        storage: BackupStorage,
        verify_tls: bool = False,
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
    ):
        self.domain = domain.rstrip("/")
        self.username = username
        self._password = password
        self.manager = manager
        self.storage = storage
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.verify = verify_tls
        # the scheduler thread and the shell share one session
        self._lock = threading.Lock()

    def _url(self, path: str) -> str:
        return f"{self.domain}{path}"

    def get_csrf_token(self, path: str) -> str:
        try:
            response = self.session.get(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            raise CsrfTokenError(f"Unable to load page {path}: {e}") from e
        match = CSRF_TOKEN_RE.search(response.text)
        if not match:
            raise CsrfTokenError(f"Unable to retrieve CSRF token from {path}")
        return match.group(1)

    def login(self) -> str:
        with self._lock:
            token = self.get_csrf_token(LOGIN_PAGE_PATH)
            form = [
                ("__csrf_magic", (None, token)),
                ("usernamefld", (None, self.username)),
                ("passwordfld", (None, self._password)),
                ("login", (None, "Sign+In")),
            ]
            try:
                response = self.session.post(
                    self._url(LOGIN_PAGE_PATH), files=form, timeout=self.timeout
                )
            except requests.Timeout as e:
                raise LoginError("The log in request timed out.") from e
            except requests.RequestException as e:
                raise LoginError(f"There was an error while trying to log in: {e}") from e
        if not response.ok:
            raise LoginError(
                f"There was an error while trying to log in (HTTP {response.status_code})."
            )
        logger.info("Logged in to %s as %s", self.domain, self.username)
        return "Logged in successfully."

    def login_with_retry(self, max_attempts: int = 5) -> str:
        """Log in, retrying on failure; re-raises the last error after ``max_attempts``."""
        for attempt in range(1, max_attempts + 1):
            try:
                return self.login()
            except (LoginError, CsrfTokenError) as e:
                logger.warning("Login attempt %d/%d failed: %s", attempt, max_attempts, e)
                if attempt == max_attempts:
                    raise
        raise LoginError("max_attempts must be at least 1")

    def download_backup(self) -> str:
        """Ask pfSense for an encrypted config backup and store it with its sidecar."""
        with self._lock:
            token = self.get_csrf_token(BACKUP_PAGE_PATH)
            encryption_key, metadata = self.manager.generate_key()
            form = [
                ("__csrf_magic", (None, token)),
                ("backuparea", (None, "")),
                ("donotbackuprrd", (None, "yes")),
                ("backupdata", (None, "yes")),
                ("encrypt", (None, "yes")),
                ("encrypt_password", (None, encryption_key)),
                ("encrypt_password_confirm", (None, encryption_key)),
                ("download", (None, "Download configuration as XML")),
                ("restorearea", (None, "")),
                ("conffile", ("", b"", "application/octet-stream")),
                ("decrypt_password", (None, "")),
            ]
            try:
                response = self.session.post(
                    self._url(BACKUP_PAGE_PATH), files=form, timeout=self.timeout, stream=True
                )
            except requests.RequestException as e:
                raise BackupError(f"Unable to back up config file: {e}") from e

            with response:
                if not response.ok:
                    raise BackupError(
                        f"Unable to back up config file (HTTP {response.status_code})."
                    )
                disposition = response.headers.get("Content-Disposition", "")
                match = FILENAME_RE.search(disposition)
                if not match:
                    raise BackupError(
                        "pfSense did not return a backup file; the session may have expired."
                    )
                filename = Path(match.group(1).strip().strip("\"'")).name
                try:
                    self.storage.save_backup(
                        filename, response.iter_content(chunk_size=CHUNK_SIZE), metadata
                    )
                except requests.RequestException as e:
                    raise BackupError(f"Unable to back up config file: {e}") from e

        logger.info("Backed up configuration to %s", filename)
        return f"Config file backed up successfully as '{filename}'."

    def restore_backup(self, filename: str) -> str:
        """Upload a stored backup to pfSense, decrypting with its unwrapped DEK."""
        path = self.storage.artifact_path(filename)
        if not path.is_file():
            raise RestoreError(f"backup not found: {filename}")
        encryption_key = self.manager.retrieve_key(self.storage.sidecar_path(filename))

        with self._lock:
            token = self.get_csrf_token(BACKUP_PAGE_PATH)
            with open(path, "rb") as conffile:
                form = [
                    ("__csrf_magic", (None, token)),
                    ("backuparea", (None, "")),
                    ("donotbackuprrd", (None, "yes")),
                    ("encrypt_password", (None, "")),
                    ("encrypt_password_confirm", (None, "")),
                    ("restorearea", (None, "")),
                    ("conffile", (path.name, conffile, "application/octet-stream")),
                    ("decrypt", (None, "yes")),
                    ("decrypt_password", (None, encryption_key)),
                    ("restore", (None, "Restore Configuration")),
                ]
                try:
                    response = self.session.post(
                        self._url(BACKUP_PAGE_PATH), files=form, timeout=self.timeout
                    )
                except requests.Timeout as e:
                    raise RestoreError(
                        "Request timed out while trying to restore the config file."
                    ) from e
                except requests.RequestException as e:
                    raise RestoreError(
                        f"An unknown error occurred while trying to restore the config file: {e}"
                    ) from e

        if not response.ok:
            raise RestoreError(
                "An unknown error occurred while trying to restore the config file "
                f"(HTTP {response.status_code})."
            )
        logger.info("Restored configuration from %s", filename)
        return "Config file restored successfully."
