"""
JSON persistence for the verification record and the per-backup sidecars.

Layout for reference:
==============================
 - <home>/
      - .kek-info                     (verification record, created once)
      - Backups/
          - config-fw-2024...xml          (encrypted backup from pfSense)
          - config-fw-2024...xml.metadata (sidecar: iv + wrapped DEK)
==============================
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pfvault.core.exceptions import (
    BootstrapError,
    MetadataCorruptError,
    MetadataError,
    MetadataMissingError,
    RecordCorruptError,
    RecordExistsError,
    RecordMissingError,
)
from pfvault.core.models import VerificationRecord, WrappedKeyMetadata

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".metadata"

_RECORD_HINT = (
    "The .kek-info file seems to be invalid. Remove it and restart the "
    "application to create a new one; existing backups will no longer be "
    "restorable."
)


def metadata_path_for(artifact: str | Path) -> Path:
    """Return the sidecar path bound to ``artifact`` (artifact name + suffix)."""
    artifact = Path(artifact)
    return artifact.with_name(artifact.name + METADATA_SUFFIX)


class MetadataStore:
    """Reads and writes the two persisted shapes.

    The record file is created exactly once with ``O_CREAT | O_EXCL`` so two
    processes bootstrapping at the same time cannot both win. Sidecars are
    plain JSON files next to their artifact.
    """

    def __init__(self, record_path: str | Path = ".kek-info"):
        self.record_path = Path(record_path).expanduser()

    # ------------------------------------------------------------------
    # Verification record
    # ------------------------------------------------------------------

    def has_record(self) -> bool:
        return self.record_path.exists()

    def load_record(self) -> VerificationRecord:
        try:
            with open(self.record_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise RecordMissingError(
                f"verification record not found at {self.record_path}"
            ) from e
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RecordCorruptError(_RECORD_HINT) from e

        try:
            return VerificationRecord.from_dict(data)
        except RecordCorruptError as e:
            raise RecordCorruptError(f"{_RECORD_HINT} ({e})") from e

    def save_record(self, record: VerificationRecord) -> None:
        """Atomically create the record file; never overwrite an existing one."""
        payload = json.dumps(record.to_dict()).encode("utf-8")
        try:
            self.record_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BootstrapError(
                f"cannot create directory {self.record_path.parent}: {e}"
            ) from e
        try:
            fd = os.open(self.record_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        except FileExistsError as e:
            raise RecordExistsError(
                f"verification record already exists at {self.record_path}"
            ) from e
        except OSError as e:
            raise BootstrapError(
                f"cannot create verification record at {self.record_path}: {e.strerror}. "
                "Check that the directory exists and is writable."
            ) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            # leave no half-written record behind
            self.record_path.unlink(missing_ok=True)
            raise BootstrapError(
                f"cannot write verification record at {self.record_path}: {e.strerror}"
            ) from e
        logger.info("Created verification record at %s", self.record_path)

    def delete_record(self) -> None:
        """Remove the record. Every existing wrapped key becomes unrecoverable."""
        try:
            self.record_path.unlink()
        except FileNotFoundError as e:
            raise RecordMissingError(
                f"verification record not found at {self.record_path}"
            ) from e
        logger.warning("Deleted verification record at %s", self.record_path)

    # ------------------------------------------------------------------
    # Sidecars
    # ------------------------------------------------------------------

    def load_metadata(self, path: str | Path) -> WrappedKeyMetadata:
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise MetadataMissingError(f"metadata file not found: {path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataCorruptError(f"cannot read metadata file {path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataCorruptError("Metadata seems to be of invalid format.") from e
        return WrappedKeyMetadata.from_dict(data)

    def save_metadata(self, path: str | Path, metadata: WrappedKeyMetadata) -> Path:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(metadata.to_dict(), f)
        except OSError as e:
            raise MetadataError(f"cannot write metadata file {path}: {e}") from e
        return path

    def delete_metadata(self, path: str | Path) -> bool:
        """Delete a sidecar; returns False when there was nothing to delete."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise MetadataError(f"cannot delete metadata file {path}: {e}") from e
        return True
