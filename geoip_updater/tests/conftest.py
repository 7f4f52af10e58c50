"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from geoip_updater.tests.fakes import FakeMaxMind, FakeOpener


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Directory the cache stores its files in (not created yet)."""
    return tmp_path / "geoip"


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def maxmind() -> FakeMaxMind:
    return FakeMaxMind()
