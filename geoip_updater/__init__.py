"""Self-updating MaxMind GeoIP2 database cache."""

from .errors import (
    ArchiveFormatError,
    BadStatusError,
    CacheClosedError,
    DatabaseIOError,
    DatabaseNotFoundError,
    DatabaseOpenError,
    DatabaseRollbackError,
    FetchError,
    FirstDownloadError,
    GeoIPUpdaterError,
    InvalidParametersError,
    NetworkError,
    RefreshError,
)
from .fetcher import DatabaseFetcher
from .models import StorePaths
from .options import (
    DownloadOptions,
    apply_options,
    with_backoff,
    with_error_func,
    with_first_download_wait,
    with_request_timeout,
    with_retries,
    with_success_func,
    with_update_interval,
)
from .reader import DatabaseReader, FileReader, Reader, open_database, open_url
from .refresher import DatabaseRefresher
from .store import DatabaseStore
from .urls import MAXMIND_DOWNLOAD_FORMAT, DownloadSuffix, maxmind_download_url

__all__ = [
    # Entry points
    "open_url",
    "open_database",
    "maxmind_download_url",
    "MAXMIND_DOWNLOAD_FORMAT",
    "DownloadSuffix",
    # Errors
    "GeoIPUpdaterError",
    "InvalidParametersError",
    "DatabaseNotFoundError",
    "FirstDownloadError",
    "CacheClosedError",
    "FetchError",
    "NetworkError",
    "BadStatusError",
    "ArchiveFormatError",
    "DatabaseIOError",
    "DatabaseOpenError",
    "DatabaseRollbackError",
    "RefreshError",
    # Options
    "DownloadOptions",
    "apply_options",
    "with_update_interval",
    "with_retries",
    "with_success_func",
    "with_error_func",
    "with_first_download_wait",
    "with_backoff",
    "with_request_timeout",
    # Models
    "StorePaths",
    # Components (for advanced usage/testing)
    "Reader",
    "FileReader",
    "DatabaseReader",
    "DatabaseFetcher",
    "DatabaseStore",
    "DatabaseRefresher",
]
