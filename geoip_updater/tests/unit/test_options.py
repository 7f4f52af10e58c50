"""Unit tests for download options."""

from __future__ import annotations

import pytest

from geoip_updater import (
    DownloadOptions,
    InvalidParametersError,
    apply_options,
    with_backoff,
    with_error_func,
    with_first_download_wait,
    with_request_timeout,
    with_retries,
    with_success_func,
    with_update_interval,
)


class TestDefaults:
    """Tests for default option values."""

    def test_defaults(self) -> None:
        """Defaults: 10s first wait, hourly updates, one attempt."""
        cfg = apply_options()

        assert cfg.first_download_wait_seconds == 10.0
        assert cfg.update_interval_seconds == 3600.0
        assert cfg.retries == 1
        assert cfg.on_success() is None
        assert cfg.on_error(RuntimeError("x")) is None

    def test_defaults_are_valid(self) -> None:
        """Default options pass validation."""
        DownloadOptions().validate()


class TestOptionFunctions:
    """Each option function sets exactly its own field."""

    def test_with_update_interval(self) -> None:
        cfg = apply_options(with_update_interval(5.0))
        assert cfg.update_interval_seconds == 5.0
        assert cfg.retries == 1

    def test_with_retries(self) -> None:
        cfg = apply_options(with_retries(4))
        assert cfg.retries == 4
        assert cfg.update_interval_seconds == 3600.0

    def test_with_success_func(self) -> None:
        calls = []

        def on_success():
            calls.append(True)

        cfg = apply_options(with_success_func(on_success))
        cfg.on_success()

        assert calls == [True]

    def test_with_error_func(self) -> None:
        errors = []
        cfg = apply_options(with_error_func(errors.append))
        error = RuntimeError("boom")
        cfg.on_error(error)

        assert errors == [error]

    def test_with_first_download_wait(self) -> None:
        cfg = apply_options(with_first_download_wait(2.5))
        assert cfg.first_download_wait_seconds == 2.5

    def test_with_backoff(self) -> None:
        cfg = apply_options(with_backoff(1.0, 30.0, multiplier=2.0, jitter_seconds=0.1))

        assert cfg.backoff_initial_seconds == 1.0
        assert cfg.backoff_max_seconds == 30.0
        assert cfg.backoff_multiplier == 2.0
        assert cfg.backoff_jitter_seconds == 0.1

    def test_with_request_timeout(self) -> None:
        cfg = apply_options(with_request_timeout(12.0))
        assert cfg.request_timeout_seconds == 12.0

    def test_later_options_win(self) -> None:
        cfg = apply_options(with_retries(2), with_retries(7))
        assert cfg.retries == 7

    def test_applying_does_not_validate(self) -> None:
        """Invalid values are accepted until validate() is called."""
        cfg = apply_options(with_retries(-1))

        assert cfg.retries == -1
        with pytest.raises(InvalidParametersError, match="retries"):
            cfg.validate()


class TestValidate:
    """Tests for DownloadOptions.validate."""

    def test_zero_retries_allowed(self) -> None:
        apply_options(with_retries(0)).validate()

    @pytest.mark.parametrize(
        "option",
        [
            with_update_interval(0),
            with_first_download_wait(-1),
            with_request_timeout(0),
            with_backoff(-1.0, 10.0),
            with_backoff(1.0, 10.0, multiplier=0),
        ],
    )
    def test_rejects_out_of_range(self, option) -> None:
        with pytest.raises(InvalidParametersError):
            apply_options(option).validate()

    def test_invalid_parameters_is_value_error(self) -> None:
        """InvalidParametersError can be caught as ValueError."""
        with pytest.raises(ValueError):
            apply_options(with_retries(-3)).validate()
