"""Background refresh loop for the self-updating database."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    stop_any,
    wait_exponential_jitter,
)

from .errors import RefreshError
from .options import DownloadOptions

if TYPE_CHECKING:
    from .fetcher import DatabaseFetcher
    from .reader import DatabaseReader

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseRefresher:
    """
    Keep a DatabaseReader up to date.

    Each cycle:
    1. Fetch the remote checksum (with retries)
    2. If it differs from the served checksum, download and reload (with retries)
    3. Sleep for the update interval, or exit if stopped

    Every failed attempt is passed to the on_error callback; failures never
    end the loop. Retries stop at the first success and are separated by
    exponential backoff, starting fresh for each stage.
    """

    def __init__(
        self,
        reader: DatabaseReader,
        fetcher: DatabaseFetcher,
        options: DownloadOptions,
    ):
        """
        Initialize refresher.

        Args:
            reader: Reader whose database is kept current
            fetcher: Fetcher for checksum and database downloads
            options: Timing, retry and callback settings
        """
        self._reader = reader
        self._fetcher = fetcher
        self._options = options
        self._stop_event = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit at its next wait point."""
        self._stop_event.set()

    async def run(self) -> None:
        """Run update cycles until stop() is called."""
        logger.info(
            f"Refresh loop started (interval {self._options.update_interval_seconds}s, "
            f"{self._options.retries} attempts per stage)"
        )
        while not self.stopped:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Unexpected error in refresh cycle: {e}", exc_info=True)
                await self._report(RefreshError(f"Refresh cycle failed: {e}", "cycle"))

            if await self._wait(self._options.update_interval_seconds):
                break
        logger.info("Refresh loop stopped")

    async def run_cycle(self) -> bool:
        """
        Run one update cycle.

        Returns:
            True if a new database was applied
        """
        checksum = await self._with_retries("checksum", self._fetcher.fetch_checksum)
        if self.stopped:
            return False

        if not checksum:
            await self._report(
                RefreshError("Checksum download failed", stage="checksum")
            )
            return False

        if checksum == self._reader.checksum:
            logger.info(f"Database is up to date (checksum {checksum})")
            return False

        logger.info(
            f"Remote checksum {checksum} differs from "
            f"{self._reader.checksum or 'none'}, downloading database"
        )

        async def _update() -> bool:
            await self._download_and_reload(checksum)
            return True

        applied = await self._with_retries("download", _update)
        if applied:
            logger.info(f"Database updated to checksum {checksum}")
            await self._notify(self._options.on_success)
        return bool(applied)

    async def _download_and_reload(self, checksum: str) -> None:
        temp_path = await self._fetcher.fetch_database()
        try:
            await asyncio.to_thread(self._reader.reload, temp_path, checksum)
        finally:
            # Renamed into place on success; leftover only on failure
            temp_path.unlink(missing_ok=True)

    async def _with_retries(
        self, stage: str, operation: Callable[[], Awaitable[T]]
    ) -> T | None:
        """
        Run operation until it succeeds, attempts run out, or stop() is called.

        Returns:
            The operation's result, or None if every attempt failed
        """
        if self._options.retries < 1 or self.stopped:
            return None

        opts = self._options
        retrying = AsyncRetrying(
            stop=stop_any(stop_after_attempt(opts.retries), self._stop_requested),
            wait=wait_exponential_jitter(
                initial=opts.backoff_initial_seconds,
                max=opts.backoff_max_seconds,
                exp_base=opts.backoff_multiplier,
                jitter=opts.backoff_jitter_seconds,
            ),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    if self.stopped:
                        return None
                    try:
                        return await operation()
                    except Exception as e:
                        if self.stopped:
                            # Work finishing after close is discarded, not reported
                            logger.info(f"{stage} abandoned after stop: {e}")
                            return None
                        number = attempt.retry_state.attempt_number
                        logger.warning(
                            f"{stage} attempt {number}/{opts.retries} failed: {e}"
                        )
                        error = RefreshError(f"{stage} attempt failed: {e}", stage)
                        error.__cause__ = e
                        await self._report(error)
                        raise
        except Exception:
            logger.warning(f"All {stage} attempts failed")
        return None

    def _stop_requested(self, retry_state: RetryCallState) -> bool:
        return self.stopped

    async def _sleep(self, seconds: float) -> None:
        """Backoff sleep that returns early when stopped."""
        await self._wait(seconds)

    async def _wait(self, seconds: float) -> bool:
        """
        Wait for stop() or the timeout, whichever comes first.

        Returns:
            True if stopped
        """
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _report(self, error: Exception) -> None:
        await self._notify(self._options.on_error, error)

    @staticmethod
    async def _notify(callback: Callable[..., Any], *args: Any) -> None:
        """Call a user callback, awaiting it if async. Its errors are logged only."""
        try:
            result = callback(*args)
            if isinstance(result, Awaitable):
                await result
        except Exception as e:
            logger.error(f"Callback {callback!r} raised: {e}", exc_info=True)
