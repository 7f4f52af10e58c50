"""GeoIP database readers: a plain local reader and a self-updating one."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import geoip2.database

from .errors import (
    CacheClosedError,
    DatabaseIOError,
    DatabaseNotFoundError,
    FirstDownloadError,
    GeoIPUpdaterError,
    InvalidParametersError,
)
from .fetcher import DatabaseFetcher
from .models import StorePaths
from .options import DownloadOption, DownloadOptions, apply_options
from .refresher import DatabaseRefresher
from .rwlock import ReadWriteLock
from .store import DatabaseOpener, DatabaseStore
from .urls import DownloadSuffix, maxmind_download_url

if TYPE_CHECKING:
    import ipaddress

    import httpx
    from geoip2.models import (
        ASN,
        ISP,
        AnonymousIP,
        City,
        ConnectionType,
        Country,
        Domain,
        Enterprise,
    )
    from maxminddb.reader import Metadata

    IPAddress = str | ipaddress.IPv4Address | ipaddress.IPv6Address

logger = logging.getLogger(__name__)

# How often open_url checks whether the first download has landed
FIRST_DOWNLOAD_POLL_SECONDS = 0.1

# Refresh tasks left to finish an in-flight download after a first-download
# timeout. Held here so they are not garbage collected while running.
_abandoned_tasks: set[asyncio.Task] = set()


class Reader(Protocol):
    """Lookup surface shared by FileReader and DatabaseReader."""

    def asn(self, ip_address: IPAddress) -> ASN: ...

    def anonymous_ip(self, ip_address: IPAddress) -> AnonymousIP: ...

    def city(self, ip_address: IPAddress) -> City: ...

    def connection_type(self, ip_address: IPAddress) -> ConnectionType: ...

    def country(self, ip_address: IPAddress) -> Country: ...

    def domain(self, ip_address: IPAddress) -> Domain: ...

    def enterprise(self, ip_address: IPAddress) -> Enterprise: ...

    def isp(self, ip_address: IPAddress) -> ISP: ...

    def metadata(self) -> Metadata: ...


class _LookupMixin:
    """
    Typed lookup methods forwarding to `_lookup`.

    Subclasses must override `_lookup(method, *args)`: call the named method
    of the underlying geoip2 handle with args and return its result.
    """

    def _lookup(self, method: str, *args: Any) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement _lookup")

    def asn(self, ip_address: IPAddress) -> ASN:
        return self._lookup("asn", ip_address)

    def anonymous_ip(self, ip_address: IPAddress) -> AnonymousIP:
        return self._lookup("anonymous_ip", ip_address)

    def city(self, ip_address: IPAddress) -> City:
        return self._lookup("city", ip_address)

    def connection_type(self, ip_address: IPAddress) -> ConnectionType:
        return self._lookup("connection_type", ip_address)

    def country(self, ip_address: IPAddress) -> Country:
        return self._lookup("country", ip_address)

    def domain(self, ip_address: IPAddress) -> Domain:
        return self._lookup("domain", ip_address)

    def enterprise(self, ip_address: IPAddress) -> Enterprise:
        return self._lookup("enterprise", ip_address)

    def isp(self, ip_address: IPAddress) -> ISP:
        return self._lookup("isp", ip_address)

    def metadata(self) -> Metadata:
        return self._lookup("metadata")


class FileReader(_LookupMixin):
    """Reader over a local database file that never updates."""

    def __init__(self, handle: Any):
        self._db = handle

    def _lookup(self, method: str, *args: Any) -> Any:
        return getattr(self._db, method)(*args)

    def close(self) -> None:
        self._db.close()

    def __enter__(self) -> FileReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_database(path: str | Path, opener: DatabaseOpener | None = None) -> FileReader:
    """
    Open a local database file.

    Args:
        path: Path to an .mmdb file
        opener: Optional handle factory (defaults to geoip2.database.Reader)

    Returns:
        FileReader over the file

    Raises:
        DatabaseNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise DatabaseNotFoundError(f"Database not found: {path}")
    return FileReader((opener or geoip2.database.Reader)(str(path)))


class DatabaseReader(_LookupMixin):
    """
    Self-updating GeoIP database.

    Lookups take a shared lock and run against the current handle; reload()
    and close() take the exclusive lock. Readers therefore see either the old
    or the new database, never a closed or half-written one.

    A background task (DatabaseRefresher) checks the remote checksum every
    update interval and swaps in a new database when it changes.

    Create with open_url(); close with `await reader.close()`.
    """

    def __init__(self, store: DatabaseStore, options: DownloadOptions):
        """
        Initialize reader without a database.

        Args:
            store: On-disk store the database is swapped through
            options: Validated download options
        """
        self._store = store
        self._options = options
        self._lock = ReadWriteLock()
        self._db: Any = None
        self._checksum = ""
        self._closed = False
        self._refresher: DatabaseRefresher | None = None
        self._task: asyncio.Task | None = None

    @property
    def path(self) -> Path:
        """Path of the live database file."""
        return self._store.paths.database

    @property
    def checksum(self) -> str:
        """Checksum of the database currently served ("" if unknown)."""
        with self._lock.read_locked():
            return self._checksum

    @property
    def ready(self) -> bool:
        """True once a database handle is available."""
        with self._lock.read_locked():
            return self._db is not None

    @property
    def closed(self) -> bool:
        """True once close() has released the database."""
        with self._lock.read_locked():
            return self._closed

    def _lookup(self, method: str, *args: Any) -> Any:
        with self._lock.read_locked():
            if self._closed or self._db is None:
                raise CacheClosedError("Database reader is closed")
            return getattr(self._db, method)(*args)

    def reload(self, temp_path: str | Path, checksum: str = "") -> None:
        """
        Swap in a new database file and publish its handle.

        Blocks until in-flight lookups finish. An empty checksum means the
        file is an existing local database; the checksum persisted next to it
        is adopted instead.

        Args:
            temp_path: Path to the new database (renamed into place on success)
            checksum: Remote checksum of the download, or "" on cold start

        Raises:
            InvalidParametersError: If temp_path is empty
            DatabaseNotFoundError: If temp_path does not exist
            DatabaseIOError: If the swap fails (previous database kept)
            CacheClosedError: If the reader is closed (nothing is swapped)
        """
        if not temp_path:
            raise InvalidParametersError("reload requires a database path")
        temp_path = Path(temp_path)
        if not temp_path.exists():
            raise DatabaseNotFoundError(f"Database not found: {temp_path}")

        with self._lock.write_locked():
            if self._closed:
                raise CacheClosedError("Database reader is closed")

            handle = self._store.swap(temp_path)

            if self._db is not None:
                self._close_handle(self._db)
                self._db = None

            if checksum:
                try:
                    self._store.write_checksum(checksum)
                except DatabaseIOError as e:
                    # Serving the new database matters more than the sidecar
                    logger.error(f"Database updated but checksum not persisted: {e}")
            else:
                checksum = self._store.read_checksum()

            self._db = handle
            self._checksum = checksum

        logger.info(f"Loaded database {self.path} (checksum {checksum or 'unknown'})")

    @staticmethod
    def _close_handle(handle: Any) -> None:
        try:
            handle.close()
        except Exception as e:
            logger.error(f"Failed to close previous database: {e}")

    async def start(self, fetcher: DatabaseFetcher) -> None:
        """
        Load any local database, start refreshing, wait for a first database.

        Raises:
            FirstDownloadError: If no database is available within
                first_download_wait_seconds
        """
        await asyncio.to_thread(self._load_local)

        self._refresher = DatabaseRefresher(self, fetcher, self._options)
        self._task = asyncio.create_task(
            self._refresher.run(), name=f"geoip-refresh-{self._store.paths.edition_id}"
        )

        if self.ready:
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._options.first_download_wait_seconds
        while not self.ready:
            remaining = deadline - loop.time()
            if remaining <= 0 or self._task.done():
                break
            await asyncio.sleep(min(FIRST_DOWNLOAD_POLL_SECONDS, remaining))

        if not self.ready:
            await self._abandon()
            raise FirstDownloadError(
                f"No database available after "
                f"{self._options.first_download_wait_seconds}s"
            )

    async def _abandon(self) -> None:
        """
        Close without waiting for an in-flight download.

        The reader is marked closed first, so a download that lands later is
        rejected by reload() and never published or reported.
        """
        await asyncio.to_thread(self._release)
        if self._refresher is not None:
            self._refresher.stop()

        task, self._task = self._task, None
        if task is None:
            return
        done, _ = await asyncio.wait({task}, timeout=FIRST_DOWNLOAD_POLL_SECONDS)
        if not done:
            logger.warning(
                "First download timed out; in-flight download will be discarded"
            )
            _abandoned_tasks.add(task)
            task.add_done_callback(_abandoned_tasks.discard)

    def _load_local(self) -> None:
        """Use a database already on disk, if there is a usable one."""
        try:
            self._store.recover()
            if self._store.current_exists():
                self.reload(self.path, "")
        except GeoIPUpdaterError as e:
            logger.warning(f"Existing database at {self.path} is unusable: {e}")

    async def close(self) -> None:
        """
        Stop the refresh loop and release the database.

        Waits for an in-progress download or swap to finish. Safe to call
        more than once.
        """
        if self._refresher is not None:
            self._refresher.stop()

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except Exception as e:
                logger.error(f"Refresh task ended with error: {e}", exc_info=True)

        await asyncio.to_thread(self._release)

    def _release(self) -> None:
        with self._lock.write_locked():
            if self._closed:
                return
            self._closed = True
            if self._db is not None:
                self._close_handle(self._db)
                self._db = None
        logger.info(f"Closed database {self.path}")

    async def __aenter__(self) -> DatabaseReader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def open_url(
    license_key: str,
    edition_id: str,
    store_dir: str | Path,
    *options: DownloadOption,
    opener: DatabaseOpener | None = None,
    transport: httpx.BaseTransport | None = None,
) -> DatabaseReader:
    """
    Open a database that keeps itself up to date from MaxMind.

    An existing {edition_id}.mmdb in store_dir is used immediately. Otherwise
    this waits up to the first-download wait for the initial download.

    Args:
        license_key: MaxMind license key
        edition_id: Database edition, e.g. "GeoLite2-Country"
        store_dir: Directory holding the database and its checksum
        *options: Overrides such as with_update_interval(...), with_retries(...)
        opener: Optional handle factory (defaults to geoip2.database.Reader)
        transport: Optional httpx transport for both download requests

    Returns:
        Running DatabaseReader

    Raises:
        InvalidParametersError: If a required argument is empty or an option is invalid
        FirstDownloadError: If no database became available in time

    Example:
        reader = await open_url(key, "GeoLite2-City", "./geoip", with_retries(3))
        city = reader.city("81.2.69.142")
        await reader.close()
    """
    if not license_key or not edition_id or not store_dir:
        raise InvalidParametersError(
            "license_key, edition_id and store_dir are required"
        )

    download_url = maxmind_download_url(license_key, edition_id, DownloadSuffix.GZIP)
    checksum_url = maxmind_download_url(license_key, edition_id, DownloadSuffix.MD5)

    cfg = apply_options(*options)
    cfg.validate()

    paths = StorePaths(store_dir=Path(store_dir), edition_id=edition_id)
    store = DatabaseStore(paths, opener or geoip2.database.Reader)
    fetcher = DatabaseFetcher(
        checksum_url=checksum_url,
        download_url=download_url,
        store_dir=paths.store_dir,
        edition_id=edition_id,
        timeout=cfg.request_timeout_seconds,
        transport=transport,
    )

    reader = DatabaseReader(store, cfg)
    await reader.start(fetcher)
    return reader
