"""
Backup storage for downloaded pfSense configurations.

Structure Map for reference:
==============================
 - <backup_root>/
      - {filename}.xml            (encrypted by pfSense with the hex DEK)
      - {filename}.xml.metadata   (sidecar: iv + wrapped DEK)
==============================
> An artifact and its sidecar live and die together: deleting a backup
  removes both.
> Filenames come from the firewall's Content-Disposition header and from the
  shell, so they are confined to the backup root.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pfvault.core.exceptions import StorageError
from pfvault.core.models import WrappedKeyMetadata
from pfvault.security.metadata import MetadataStore, metadata_path_for

logger = logging.getLogger(__name__)

BACKUP_EXTENSION = ".xml"


class BackupStorage:
    """Backup artifacts plus their sidecars, in one flat directory"""

    def __init__(self, root_path: Optional[str | Path] = None, store: Optional[MetadataStore] = None):
        self.root = Path(root_path).expanduser() if root_path else Path("Backups")
        self.store = store or MetadataStore()

    def ensure_root(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"unable to create backup directory {self.root}: {e}") from e
        return self.root

    def artifact_path(self, filename: str) -> Path:
        name = (filename or "").strip()
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise StorageError(f"invalid backup filename: {filename!r}")
        return self.root / name

    def sidecar_path(self, filename: str) -> Path:
        return metadata_path_for(self.artifact_path(filename))

    def exists(self, filename: str) -> bool:
        return self.artifact_path(filename).is_file()

    def save_backup(
        self, filename: str, chunks: Iterable[bytes], metadata: WrappedKeyMetadata
    ) -> Path:
        """Write the sidecar, then stream the artifact body to disk.

        The sidecar goes first so a backup on disk never lacks its key.
        """
        self.ensure_root()
        path = self.artifact_path(filename)
        self.store.save_metadata(metadata_path_for(path), metadata)
        try:
            f = open(path, "wb")
        except OSError as e:
            self._discard(path)
            raise StorageError(f"unable to write backup {filename}: {e}") from e

        try:
            with f:
                for chunk in chunks:
                    if chunk:
                        self._write(f, chunk, filename)
        except Exception:
            # no partial artifact, no orphaned sidecar; errors from the chunk
            # source are the caller's to report
            self._discard(path)
            raise
        logger.info("Saved backup %s", path)
        return path

    @staticmethod
    def _write(f, chunk: bytes, filename: str) -> None:
        try:
            f.write(chunk)
        except OSError as e:
            raise StorageError(f"unable to write backup {filename}: {e}") from e

    def _discard(self, path: Path) -> None:
        path.unlink(missing_ok=True)
        self.store.delete_metadata(metadata_path_for(path))

    def load_metadata(self, filename: str) -> WrappedKeyMetadata:
        return self.store.load_metadata(self.sidecar_path(filename))

    def list_backups(self) -> List[str]:
        if not self.root.exists():
            return []
        try:
            return sorted(
                p.name
                for p in self.root.iterdir()
                if p.is_file() and p.name.endswith(BACKUP_EXTENSION)
            )
        except OSError as e:
            raise StorageError(f"unable to list backups in {self.root}: {e}") from e

    def delete_backup(self, filename: str) -> None:
        path = self.artifact_path(filename)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"backup not found: {filename}") from e
        except OSError as e:
            raise StorageError(f"unable to delete backup {filename}: {e}") from e
        if not self.store.delete_metadata(metadata_path_for(path)):
            logger.warning("Backup %s had no metadata file", filename)
        logger.info("Deleted backup %s", path)
