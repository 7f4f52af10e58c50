"""MaxMind direct download URLs."""

from __future__ import annotations

from enum import Enum

from .errors import InvalidParametersError

# https://dev.maxmind.com/geoip/updating-databases#directly-downloading-databases
MAXMIND_DOWNLOAD_FORMAT = (
    "https://download.maxmind.com/app/geoip_download"
    "?license_key={license_key}&edition_id={edition_id}&suffix={suffix}"
)


class DownloadSuffix(str, Enum):
    """Suffix parameter selecting which file the download service returns."""

    GZIP = "tar.gz"
    MD5 = "tar.gz.md5"


def maxmind_download_url(
    license_key: str, edition_id: str, suffix: DownloadSuffix | str
) -> str:
    """
    Build a MaxMind download URL.

    Args:
        license_key: MaxMind license key
        edition_id: Database edition, e.g. "GeoLite2-City"
        suffix: DownloadSuffix.GZIP for the archive, DownloadSuffix.MD5 for its checksum

    Returns:
        The URL with all three values substituted verbatim

    Raises:
        InvalidParametersError: If any argument is empty
    """
    suffix_value = suffix.value if isinstance(suffix, DownloadSuffix) else suffix
    if not license_key or not edition_id or not suffix_value:
        raise InvalidParametersError(
            "license_key, edition_id and suffix are required to build a download URL"
        )
    return MAXMIND_DOWNLOAD_FORMAT.format(
        license_key=license_key,
        edition_id=edition_id,
        suffix=suffix_value,
    )
