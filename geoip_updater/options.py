"""Download options for the self-updating database cache."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .errors import InvalidParametersError

SuccessCallback = Callable[[], "None | Awaitable[None]"]
ErrorCallback = Callable[[Exception], "None | Awaitable[None]"]
DownloadOption = Callable[["DownloadOptions"], None]


def _noop_success() -> None:
    pass


def _noop_error(error: Exception) -> None:
    pass


@dataclass
class DownloadOptions:
    """Configuration for downloading and refreshing a database."""

    first_download_wait_seconds: float = 10.0
    update_interval_seconds: float = 3600.0  # 1 hour
    retries: int = 1
    on_success: SuccessCallback = field(default=_noop_success)
    on_error: ErrorCallback = field(default=_noop_error)
    # Backoff between retry attempts: 0.5s -> 0.75s -> 1.1s ... capped at 60s
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 1.5
    backoff_max_seconds: float = 60.0
    backoff_jitter_seconds: float = 0.25
    request_timeout_seconds: float = 300.0

    def validate(self) -> None:
        """
        Check option values.

        Raises:
            InvalidParametersError: If any value is out of range
        """
        if self.retries < 0:
            raise InvalidParametersError(f"retries must be >= 0, got {self.retries}")
        for name in (
            "first_download_wait_seconds",
            "update_interval_seconds",
            "request_timeout_seconds",
            "backoff_multiplier",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise InvalidParametersError(f"{name} must be > 0, got {value}")
        if self.backoff_initial_seconds < 0 or self.backoff_max_seconds < 0:
            raise InvalidParametersError("backoff delays must be >= 0")
        if self.backoff_jitter_seconds < 0:
            raise InvalidParametersError("backoff_jitter_seconds must be >= 0")


def apply_options(*options: DownloadOption) -> DownloadOptions:
    """Build DownloadOptions from defaults and the given overrides, in order."""
    cfg = DownloadOptions()
    for option in options:
        option(cfg)
    return cfg


def with_update_interval(seconds: float) -> DownloadOption:
    """Set the time between update checks."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.update_interval_seconds = seconds

    return _apply


def with_retries(retries: int) -> DownloadOption:
    """Set how many attempts each stage of an update cycle gets."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.retries = retries

    return _apply


def with_success_func(func: SuccessCallback) -> DownloadOption:
    """Set the callback invoked after each applied update."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.on_success = func

    return _apply


def with_error_func(func: ErrorCallback) -> DownloadOption:
    """Set the callback invoked with every failed attempt."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.on_error = func

    return _apply


def with_first_download_wait(seconds: float) -> DownloadOption:
    """Set how long open_url waits for a database when none exists locally."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.first_download_wait_seconds = seconds

    return _apply


def with_backoff(
    initial_seconds: float,
    max_seconds: float,
    multiplier: float = 1.5,
    jitter_seconds: float = 0.0,
) -> DownloadOption:
    """Set the exponential backoff used between retry attempts."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.backoff_initial_seconds = initial_seconds
        cfg.backoff_max_seconds = max_seconds
        cfg.backoff_multiplier = multiplier
        cfg.backoff_jitter_seconds = jitter_seconds

    return _apply


def with_request_timeout(seconds: float) -> DownloadOption:
    """Set the HTTP timeout for checksum and database requests."""

    def _apply(cfg: DownloadOptions) -> None:
        cfg.request_timeout_seconds = seconds

    return _apply
