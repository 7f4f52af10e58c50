"""
Command-line configuration management.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any

from .options import (
    DownloadOption,
    with_first_download_wait,
    with_retries,
    with_update_interval,
)


def add_args(parser: argparse.ArgumentParser) -> None:
    """
    Add cache arguments to the parser.

    Arguments can be overridden by environment variables.
    """

    parser.add_argument(
        "--license_key",
        type=str,
        help="MaxMind license key.",
        default=os.environ.get("MAXMIND_LICENSE_KEY", ""),
    )

    parser.add_argument(
        "--edition_id",
        type=str,
        help="MaxMind database edition (GeoLite2-Country, GeoLite2-City, ...).",
        default=os.environ.get("MAXMIND_EDITION_ID", "GeoLite2-Country"),
    )

    parser.add_argument(
        "--store_dir",
        type=str,
        help="Directory holding the database and its checksum.",
        default=os.environ.get("GEOIP_STORE_DIR", "./geoip_data"),
    )

    parser.add_argument(
        "--update_interval",
        type=float,
        help="Seconds between update checks.",
        default=float(os.environ.get("GEOIP_UPDATE_INTERVAL", "3600")),
    )

    parser.add_argument(
        "--retries",
        type=int,
        help="Attempts per update stage before waiting for the next interval.",
        default=int(os.environ.get("GEOIP_RETRIES", "3")),
    )

    parser.add_argument(
        "--first_download_wait",
        type=float,
        help="Seconds to wait for the first download when no local database exists.",
        default=float(os.environ.get("GEOIP_FIRST_DOWNLOAD_WAIT", "60")),
    )

    parser.add_argument(
        "--log_level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
        default=os.environ.get("LOG_LEVEL", "INFO"),
    )


def get_config(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse arguments and return configuration."""
    parser = build_parser()
    config = parser.parse_args(argv)

    # Convert paths to Path objects
    config.store_dir = Path(config.store_dir)

    return config


def build_parser() -> argparse.ArgumentParser:
    """Create the geoip-updater argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="geoip-updater",
        description="Self-updating MaxMind GeoIP database",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_args(parser)

    commands = parser.add_subparsers(dest="command", required=True)

    lookup = commands.add_parser("lookup", help="Look up IP addresses and exit.")
    lookup.add_argument("ips", nargs="+", help="IP addresses to look up.")
    lookup.add_argument(
        "--method",
        type=str,
        choices=[
            "country",
            "city",
            "asn",
            "anonymous_ip",
            "connection_type",
            "domain",
            "enterprise",
            "isp",
        ],
        default="country",
        help="Lookup method matching the database edition.",
    )

    commands.add_parser("watch", help="Keep the database updated until interrupted.")

    return parser


def check_config(config: argparse.Namespace) -> None:
    """
    Validate configuration.

    Raises:
        ValueError: If configuration is invalid.
    """
    if not config.license_key:
        raise ValueError(
            "--license_key is required (or set MAXMIND_LICENSE_KEY env var)"
        )

    if not config.edition_id:
        raise ValueError("--edition_id is required (or set MAXMIND_EDITION_ID env var)")

    if config.retries < 0:
        raise ValueError("--retries must be >= 0")

    if config.update_interval <= 0:
        raise ValueError("--update_interval must be > 0")

    if config.first_download_wait <= 0:
        raise ValueError("--first_download_wait must be > 0")


def config_to_options(config: argparse.Namespace) -> list[DownloadOption]:
    """Translate parsed arguments into open_url options."""
    return [
        with_update_interval(config.update_interval),
        with_retries(config.retries),
        with_first_download_wait(config.first_download_wait),
    ]


def config_to_dict(config: argparse.Namespace) -> dict[str, Any]:
    """Convert config to dictionary for logging."""
    return {
        "license_key": "***" if config.license_key else "",
        "edition_id": config.edition_id,
        "store_dir": str(config.store_dir),
        "update_interval": config.update_interval,
        "retries": config.retries,
        "first_download_wait": config.first_download_wait,
        "log_level": config.log_level,
    }


def setup_logging(level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
