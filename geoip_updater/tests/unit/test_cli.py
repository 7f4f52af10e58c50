"""Unit tests for the geoip-updater CLI."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from geoip2.errors import AddressNotFoundError

from geoip_updater import FirstDownloadError
from geoip_updater.cli import main


class _Record:
    def __init__(self, ip: str):
        self.ip = ip

    def to_dict(self) -> dict:
        return {"country": {"iso_code": "GB"}, "traits": {"ip_address": self.ip}}


class _StubReader:
    """Minimal async-closable reader for CLI tests."""

    def __init__(self):
        self.closed = False

    def country(self, ip: str) -> _Record:
        if ip == "0.0.0.0":
            raise AddressNotFoundError(f"The address {ip} is not in the database.")
        if ip == "bogus":
            raise ValueError(f"'{ip}' does not appear to be an IPv4 or IPv6 address")
        return _Record(ip)

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> _StubReader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("MAXMIND_LICENSE_KEY", raising=False)
    with patch("geoip_updater.cli.load_dotenv"):
        yield


class TestLookupCommand:
    """Tests for `geoip-updater lookup`."""

    def test_prints_one_json_line_per_ip(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        reader = _StubReader()
        with patch("geoip_updater.cli.open_url", AsyncMock(return_value=reader)):
            code = main(["--license_key", "k", "lookup", "81.2.69.142", "0.0.0.0"])

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert code == 0
        assert lines[0]["ip"] == "81.2.69.142"
        assert lines[0]["record"]["country"]["iso_code"] == "GB"
        assert lines[1] == {"ip": "0.0.0.0", "record": None}
        assert reader.closed

    def test_invalid_ip_sets_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch(
            "geoip_updater.cli.open_url", AsyncMock(return_value=_StubReader())
        ):
            code = main(["--license_key", "k", "lookup", "bogus"])

        line = json.loads(capsys.readouterr().out)
        assert code == 1
        assert "does not appear" in line["error"]

    def test_missing_license_key(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("geoip_updater.cli.open_url") as open_url:
            code = main(["lookup", "1.1.1.1"])

        assert code == 2
        assert "license_key" in capsys.readouterr().err
        open_url.assert_not_called()

    def test_open_failure(self, capsys: pytest.CaptureFixture[str]) -> None:
        failing = AsyncMock(side_effect=FirstDownloadError("No database after 60s"))
        with patch("geoip_updater.cli.open_url", failing):
            code = main(["--license_key", "k", "lookup", "1.1.1.1"])

        assert code == 1
        assert "No database" in capsys.readouterr().err
