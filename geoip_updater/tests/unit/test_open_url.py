"""Unit tests for open_url startup and shutdown."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest

from geoip_updater import (
    FirstDownloadError,
    InvalidParametersError,
    StorePaths,
    open_url,
    with_backoff,
    with_first_download_wait,
    with_retries,
    with_success_func,
)
from geoip_updater.tests.fakes import FakeMaxMind, FakeOpener, db_bytes

EDITION = "GeoLite2-Country"


@pytest.fixture
def paths(store_dir: Path) -> StorePaths:
    return StorePaths(store_dir=store_dir, edition_id=EDITION)


@pytest.fixture
def open_cache(store_dir: Path, opener: FakeOpener, maxmind: FakeMaxMind):
    """open_url bound to the fake opener and fake MaxMind service."""

    async def _open(*options, license_key: str = "key"):
        return await open_url(
            license_key,
            EDITION,
            store_dir,
            with_backoff(0, 0),
            *options,
            opener=opener,
            transport=maxmind.transport,
        )

    return _open


class TestOpenURLValidation:
    """Tests for argument validation."""

    @pytest.mark.asyncio
    async def test_empty_license_key(self, open_cache) -> None:
        with pytest.raises(InvalidParametersError):
            await open_cache(license_key="")

    @pytest.mark.asyncio
    async def test_empty_edition_and_dir(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidParametersError):
            await open_url("key", "", tmp_path)
        with pytest.raises(InvalidParametersError):
            await open_url("key", EDITION, "")

    @pytest.mark.asyncio
    async def test_invalid_option(self, open_cache, maxmind: FakeMaxMind) -> None:
        with pytest.raises(InvalidParametersError):
            await open_cache(with_retries(-1))

        assert maxmind.requests == []


class TestOpenURLStartup:
    """Tests for the first database."""

    @pytest.mark.asyncio
    async def test_first_download(self, open_cache, paths: StorePaths) -> None:
        """With nothing on disk, open_url waits for the first download."""
        reader = await open_cache()
        try:
            assert reader.ready
            assert reader.checksum == "abc123"
            assert reader.country("1.2.3.4").version == "v1"
            assert paths.database.read_bytes() == db_bytes("v1")
        finally:
            await reader.close()

    @pytest.mark.asyncio
    async def test_uses_existing_database(
        self, open_cache, paths: StorePaths, maxmind: FakeMaxMind
    ) -> None:
        """A local database is served at once, with its stored checksum."""
        paths.store_dir.mkdir(parents=True)
        paths.database.write_bytes(db_bytes("local"))
        paths.checksum.write_text("abc123")

        reader = await open_cache()
        try:
            assert reader.country("1.2.3.4").version == "local"
            assert reader.checksum == "abc123"
        finally:
            await reader.close()

        assert maxmind.archive_requests == 0

    @pytest.mark.asyncio
    async def test_existing_database_served_when_offline(
        self, open_cache, paths: StorePaths, maxmind: FakeMaxMind
    ) -> None:
        paths.store_dir.mkdir(parents=True)
        paths.database.write_bytes(db_bytes("local"))
        maxmind.checksum_status = 503

        reader = await open_cache(with_first_download_wait(0.2))
        try:
            assert reader.country("1.2.3.4").version == "local"
        finally:
            await reader.close()

    @pytest.mark.asyncio
    async def test_recovers_leftover_backup(
        self, open_cache, paths: StorePaths, maxmind: FakeMaxMind
    ) -> None:
        """A backup stranded by an interrupted swap is put back in place."""
        paths.store_dir.mkdir(parents=True)
        paths.backup.write_bytes(db_bytes("backup"))
        paths.checksum.write_text("abc123")

        reader = await open_cache()
        try:
            assert reader.country("1.2.3.4").version == "backup"
            assert not paths.backup.exists()
        finally:
            await reader.close()

        assert maxmind.archive_requests == 0

    @pytest.mark.asyncio
    async def test_corrupt_local_database_is_replaced(
        self, open_cache, paths: StorePaths
    ) -> None:
        paths.store_dir.mkdir(parents=True)
        paths.database.write_bytes(b"garbage")

        reader = await open_cache()
        try:
            assert reader.country("1.2.3.4").version == "v1"
        finally:
            await reader.close()

    @pytest.mark.asyncio
    async def test_first_download_timeout(
        self, open_cache, maxmind: FakeMaxMind, paths: StorePaths
    ) -> None:
        maxmind.checksum_status = 500

        with pytest.raises(FirstDownloadError):
            await open_cache(with_first_download_wait(0.3))

        requests = len(maxmind.requests)
        await asyncio.sleep(0.2)
        assert len(maxmind.requests) == requests
        assert not paths.database.exists()

    @pytest.mark.asyncio
    async def test_timeout_does_not_wait_for_slow_download(
        self, open_cache, maxmind: FakeMaxMind, paths: StorePaths
    ) -> None:
        """A download still in flight at the deadline is discarded, not awaited."""
        maxmind.archive_delay = 1.5
        successes: list[int] = []

        started = time.monotonic()
        with pytest.raises(FirstDownloadError):
            await open_cache(
                with_first_download_wait(0.3),
                with_success_func(lambda: successes.append(1)),
            )
        elapsed = time.monotonic() - started

        assert elapsed < 1.0

        # Let the abandoned download land
        await asyncio.sleep(2.5)

        assert maxmind.archive_requests == 1
        assert successes == []
        assert not paths.database.exists()
        assert not paths.checksum.exists()
        assert list(paths.store_dir.iterdir()) == []


class TestOpenURLShutdown:
    """Tests for closing a running cache."""

    @pytest.mark.asyncio
    async def test_no_requests_after_close(
        self, open_cache, maxmind: FakeMaxMind, opener: FakeOpener
    ) -> None:
        reader = await open_cache()

        await reader.close()
        requests = len(maxmind.requests)
        await asyncio.sleep(0.2)

        assert reader.closed
        assert len(maxmind.requests) == requests
        assert all(db.closed for db in opener.opened)

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, open_cache) -> None:
        async with await open_cache() as reader:
            assert reader.ready

        assert reader.closed
