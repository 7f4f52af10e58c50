"""Custom exceptions for the GeoIP database cache."""


class GeoIPUpdaterError(Exception):
    """Base exception for GeoIP cache errors."""

    pass


class InvalidParametersError(GeoIPUpdaterError, ValueError):
    """
    Raised when required arguments are missing or out of range.

    This can happen when:
    - License key, edition ID or store directory is empty
    - Retry count is negative
    - An interval or timeout is not positive
    - reload() is called with an empty temp path
    """

    pass


class DatabaseNotFoundError(GeoIPUpdaterError):
    """Raised when an expected local database file does not exist."""

    pass


class FirstDownloadError(GeoIPUpdaterError):
    """
    Raised when no database became available within the first-download wait.

    This can happen when:
    - No local database exists and MaxMind is unreachable
    - The license key is rejected (401)
    - The first download is slower than the configured wait
    """

    pass


class CacheClosedError(GeoIPUpdaterError):
    """Raised when a lookup or reload hits a cache that was already closed."""

    pass


# --- Fetch errors ---


class FetchError(GeoIPUpdaterError):
    """Base exception for checksum and database download failures."""

    pass


class NetworkError(FetchError):
    """
    Raised when an HTTP request fails at the transport level.

    This can happen when:
    - DNS resolution or connection fails
    - The request times out
    - The connection drops mid-stream
    """

    pass


class BadStatusError(FetchError):
    """Raised when the download service answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        """
        Initialize BadStatusError.

        Args:
            message: Error message
            status_code: HTTP status code returned by the server
        """
        super().__init__(message)
        self.status_code = status_code


class ArchiveFormatError(FetchError):
    """
    Raised when the downloaded archive cannot be used.

    This can happen when:
    - The body is not valid gzip
    - The tar stream is truncated or corrupted
    - No .mmdb entry is present in the archive
    """

    pass


# --- Disk errors ---


class DatabaseIOError(GeoIPUpdaterError):
    """
    Raised when a filesystem operation in the swap protocol fails.

    This can happen when:
    - The store directory cannot be created
    - Renaming the new database into place fails
    - Writing the temp file or checksum sidecar fails
    """

    pass


class DatabaseOpenError(DatabaseIOError):
    """Raised when the database reader rejects the newly placed file."""

    pass


class DatabaseRollbackError(DatabaseIOError):
    """
    Raised when restoring the backup after a failed swap also fails.

    The on-disk state is inconsistent: no current database file exists.
    The original failure is available as __cause__.
    """

    pass


# --- Refresh loop ---


class RefreshError(GeoIPUpdaterError):
    """
    Wraps a failure of the background refresh loop.

    Passed to the on_error callback; never raised out of the loop.
    """

    def __init__(self, message: str, stage: str):
        """
        Initialize RefreshError.

        Args:
            message: Error message
            stage: Loop stage that failed ("checksum", "download" or "cycle")
        """
        super().__init__(message)
        self.stage = stage
