"""
geoip-updater CLI - keep a MaxMind database current and query it.

Usage:
    geoip-updater --license_key KEY lookup 81.2.69.142 --method city
    geoip-updater --license_key KEY --edition_id GeoLite2-City watch
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv
from geoip2.errors import AddressNotFoundError

from .config import (
    check_config,
    config_to_dict,
    config_to_options,
    get_config,
    setup_logging,
)
from .errors import GeoIPUpdaterError
from .options import with_error_func, with_success_func
from .reader import DatabaseReader, open_url

logger = logging.getLogger(__name__)


async def _open(config: argparse.Namespace) -> DatabaseReader:
    return await open_url(
        config.license_key,
        config.edition_id,
        config.store_dir,
        *config_to_options(config),
        with_success_func(lambda: logger.info("Database update applied")),
        with_error_func(lambda e: logger.warning(f"Update attempt failed: {e}")),
    )


async def cmd_lookup(config: argparse.Namespace) -> int:
    """Execute the lookup command: one JSON line per IP."""
    failed = 0
    async with await _open(config) as reader:
        lookup = getattr(reader, config.method)
        for ip in config.ips:
            try:
                record = lookup(ip)
                print(json.dumps({"ip": ip, "record": record.to_dict()}))
            except AddressNotFoundError:
                print(json.dumps({"ip": ip, "record": None}))
            except (ValueError, TypeError) as e:
                print(json.dumps({"ip": ip, "error": str(e)}))
                failed += 1
    return 1 if failed else 0


async def cmd_watch(config: argparse.Namespace) -> int:
    """Execute the watch command: refresh until interrupted."""
    async with await _open(config) as reader:
        logger.info(
            f"Serving {reader.path} (checksum {reader.checksum or 'unknown'}), "
            f"checking every {config.update_interval}s"
        )
        await asyncio.Event().wait()
    return 0


async def run(config: argparse.Namespace) -> int:
    if config.command == "lookup":
        return await cmd_lookup(config)
    elif config.command == "watch":
        return await cmd_watch(config)
    print(f"ERROR: Unknown command: {config.command}", file=sys.stderr)
    return 2


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    load_dotenv()
    config = get_config(args)
    setup_logging(config.log_level)

    try:
        check_config(config)
        logger.info(f"Configuration: {config_to_dict(config)}")
        return asyncio.run(run(config))
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except GeoIPUpdaterError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
