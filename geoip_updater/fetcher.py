"""Checksum and database downloads from the MaxMind download service."""

from __future__ import annotations

import asyncio
import gzip
import io
import logging
import os
import shutil
import tarfile
import tempfile
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx

from .errors import (
    ArchiveFormatError,
    BadStatusError,
    DatabaseIOError,
    NetworkError,
)
from .models import DATABASE_EXTENSION

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class _ResponseStream(io.RawIOBase):
    """Read-only file object over an httpx byte iterator, for tarfile's stream mode."""

    def __init__(self, chunks: Iterator[bytes]):
        self._chunks = chunks
        self._buffer = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._buffer:
            try:
                self._buffer = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._buffer))
        buffer[:size] = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return size


class DatabaseFetcher:
    """
    Download database checksums and archives.

    The checksum request is cheap and is used to decide whether the full
    archive needs downloading. The archive is a gzip-compressed tar; it is
    decompressed and scanned while streaming, and only the first .mmdb entry
    is written to disk.

    Temp files are created in the store directory so that the later rename
    into place stays on one filesystem.
    """

    def __init__(
        self,
        checksum_url: str,
        download_url: str,
        store_dir: Path,
        edition_id: str,
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize fetcher.

        Args:
            checksum_url: URL returning the archive's MD5 as plain text
            download_url: URL returning the tar.gz archive
            store_dir: Directory temp files are created in
            edition_id: Database edition, used to name temp files
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self._checksum_url = checksum_url
        self._download_url = download_url
        self._store_dir = store_dir
        self._edition_id = edition_id
        self._timeout = timeout
        self._transport = transport

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"timeout": self._timeout, "follow_redirects": True}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def _async_client(self) -> httpx.AsyncClient:
        """Create a new async HTTP client for a request."""
        return httpx.AsyncClient(**self._client_kwargs())

    def _client(self) -> httpx.Client:
        """Create a new blocking HTTP client for a streamed download."""
        return httpx.Client(**self._client_kwargs())

    async def fetch_checksum(self) -> str:
        """
        Fetch the checksum of the current remote archive.

        Returns:
            Response body with surrounding whitespace removed

        Raises:
            NetworkError: If the request fails
            BadStatusError: If the response status is not 2xx
        """
        async with self._async_client() as client:
            try:
                response = await client.get(self._checksum_url)
            except httpx.HTTPError as e:
                raise NetworkError(f"Checksum request failed: {e}") from e

            if not response.is_success:
                raise BadStatusError(
                    f"Checksum request returned status {response.status_code}",
                    status_code=response.status_code,
                )

            checksum = response.text.strip()
            logger.debug(f"Fetched remote checksum {checksum}")
            return checksum

    async def fetch_database(self) -> Path:
        """
        Download the archive and extract its database to a temp file.

        Returns:
            Path to the extracted database; the caller must move or delete it

        Raises:
            NetworkError: If the request fails
            BadStatusError: If the response status is not 2xx
            ArchiveFormatError: If the archive is corrupt or has no .mmdb entry
            DatabaseIOError: If the temp file cannot be written
        """
        # Run the blocking stream + untar in a thread pool
        return await asyncio.to_thread(self._download_database)

    def _download_database(self) -> Path:
        with self._client() as client:
            try:
                with client.stream("GET", self._download_url) as response:
                    if not response.is_success:
                        raise BadStatusError(
                            f"Database request returned status {response.status_code}",
                            status_code=response.status_code,
                        )
                    stream = _ResponseStream(response.iter_bytes(CHUNK_SIZE))
                    return self._extract_database(stream)
            except httpx.HTTPError as e:
                raise NetworkError(f"Database download failed: {e}") from e

    def _extract_database(self, stream: io.RawIOBase) -> Path:
        """
        Copy the first .mmdb entry of a tar.gz stream to a new temp file.

        Entries after the match are never read.
        """
        temp_path = self._create_temp_file()
        try:
            with tarfile.open(fileobj=stream, mode="r|gz") as archive:
                for member in archive:
                    if not member.isreg():
                        continue
                    if not member.name.lower().endswith(DATABASE_EXTENSION):
                        continue

                    source = archive.extractfile(member)
                    if source is None:
                        continue
                    with open(temp_path, "wb") as target:
                        shutil.copyfileobj(source, target, CHUNK_SIZE)

                    logger.info(
                        f"Extracted {member.name} ({member.size} bytes) to {temp_path}"
                    )
                    return temp_path

            raise ArchiveFormatError(
                f"No {DATABASE_EXTENSION} entry found in downloaded archive"
            )

        except (tarfile.TarError, zlib.error, EOFError, gzip.BadGzipFile) as e:
            temp_path.unlink(missing_ok=True)
            raise ArchiveFormatError(f"Invalid database archive: {e}") from e
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise DatabaseIOError(f"Failed to write temp database: {e}") from e
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    def _create_temp_file(self) -> Path:
        try:
            self._store_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"{self._edition_id}-",
                suffix=f"{DATABASE_EXTENSION}.tmp",
                dir=self._store_dir,
            )
        except OSError as e:
            raise DatabaseIOError(f"Failed to create temp database file: {e}") from e
        os.close(fd)
        return Path(name)
