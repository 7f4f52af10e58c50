"""On-disk storage and atomic swap of the cached database."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .errors import DatabaseIOError, DatabaseOpenError, DatabaseRollbackError
from .models import StorePaths

logger = logging.getLogger(__name__)

DatabaseOpener = Callable[[str], Any]


class DatabaseStore:
    """
    Own the on-disk files of one cached database.

    A swap parks the current file at the backup path, renames the new file
    into place and opens it. Any failure restores the backup. Renames only
    happen inside the store directory, so each one is atomic.

    The store does no locking itself; callers serialize swaps.
    """

    def __init__(self, paths: StorePaths, opener: DatabaseOpener):
        """
        Initialize store.

        Args:
            paths: File layout for this database
            opener: Opens a database file and returns a reader handle
        """
        self._paths = paths
        self._opener = opener

    @property
    def paths(self) -> StorePaths:
        return self._paths

    def current_exists(self) -> bool:
        """Check whether a live database file is present."""
        return self._paths.database.is_file()

    def recover(self) -> bool:
        """
        Restore a backup left behind by a crash mid-swap.

        Only acts when the current file is missing and a backup exists.

        Returns:
            True if the backup was moved back into place
        """
        if self.current_exists() or not self._paths.backup.is_file():
            return False
        try:
            self._paths.backup.replace(self._paths.database)
        except OSError as e:
            raise DatabaseIOError(f"Failed to restore {self._paths.backup}: {e}") from e
        logger.warning(f"Restored database from leftover backup {self._paths.backup}")
        return True

    def swap(self, temp_path: Path) -> Any:
        """
        Move a new database into place and open it.

        Steps:
        1. Create the store directory if missing
        2. Park the current database at the backup path
        3. Rename temp_path to the current path
        4. Open the new file (proves it is a valid database)
        5. Delete the backup

        Steps 2 and 3 are skipped when temp_path already is the current path.

        Args:
            temp_path: Path to the new database file

        Returns:
            Open handle for the new database

        Raises:
            DatabaseIOError: If a rename or mkdir fails (previous database restored)
            DatabaseOpenError: If the new file cannot be opened (previous database restored)
            DatabaseRollbackError: If restoring the previous database also failed
        """
        paths = self._paths
        try:
            paths.store_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DatabaseIOError(f"Failed to create {paths.store_dir}: {e}") from e

        in_place = _same_path(temp_path, paths.database)

        if not in_place:
            if paths.database.exists():
                try:
                    paths.database.replace(paths.backup)
                except OSError as e:
                    temp_path.unlink(missing_ok=True)
                    raise DatabaseIOError(
                        f"Failed to back up {paths.database}: {e}"
                    ) from e

            try:
                temp_path.replace(paths.database)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                self._rollback(e)
                raise DatabaseIOError(
                    f"Failed to move {temp_path} to {paths.database}: {e}"
                ) from e

        try:
            handle = self._opener(str(paths.database))
        except Exception as e:
            paths.database.unlink(missing_ok=True)
            self._rollback(e)
            raise DatabaseOpenError(
                f"Failed to open new database {paths.database}: {e}"
            ) from e

        try:
            paths.backup.unlink(missing_ok=True)
        except OSError as e:
            # New database is live; a stale backup is harmless
            logger.warning(f"Failed to remove backup {paths.backup}: {e}")

        return handle

    def _rollback(self, error: Exception) -> None:
        """Move the backup back to the current path, if there is one."""
        paths = self._paths
        if not paths.backup.exists():
            return
        try:
            paths.backup.replace(paths.database)
            logger.info(f"Rolled back to previous database {paths.database}")
        except OSError as rollback_error:
            logger.error(
                f"Rollback failed, no database at {paths.database}: {rollback_error}"
            )
            raise DatabaseRollbackError(
                f"Failed to restore {paths.backup} after swap error "
                f"({error}): {rollback_error}"
            ) from error

    def read_checksum(self) -> str:
        """
        Read the checksum of the last applied download.

        Returns:
            Stored checksum, or "" if none is stored or it cannot be read
        """
        try:
            return self._paths.checksum.read_text().strip()
        except FileNotFoundError:
            return ""
        except OSError as e:
            logger.warning(f"Failed to read checksum file {self._paths.checksum}: {e}")
            return ""

    def write_checksum(self, checksum: str) -> None:
        """
        Persist the checksum of the applied download.

        Raises:
            DatabaseIOError: If the sidecar cannot be written
        """
        path = self._paths.checksum
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(checksum)
            tmp.replace(path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise DatabaseIOError(f"Failed to write checksum file {path}: {e}") from e


def _same_path(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return a == b
