"""Data models for the GeoIP database cache."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DATABASE_EXTENSION = ".mmdb"
BACKUP_EXTENSION = ".backup"
CHECKSUM_EXTENSION = ".md5"


@dataclass(frozen=True)
class StorePaths:
    """
    On-disk layout of one cached database.

    Layout:
        store_dir/
        ├── {edition_id}.mmdb          current database
        ├── {edition_id}.mmdb.backup   only present mid-swap or after a crash
        └── {edition_id}.md5           checksum of the applied download
    """

    store_dir: Path
    edition_id: str

    @property
    def database(self) -> Path:
        """Path of the live database file."""
        return self.store_dir / f"{self.edition_id}{DATABASE_EXTENSION}"

    @property
    def backup(self) -> Path:
        """Path the previous database is parked at during a swap."""
        return self.store_dir / (
            f"{self.edition_id}{DATABASE_EXTENSION}{BACKUP_EXTENSION}"
        )

    @property
    def checksum(self) -> Path:
        """Path of the checksum sidecar."""
        return self.store_dir / f"{self.edition_id}{CHECKSUM_EXTENSION}"

