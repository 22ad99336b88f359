"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from vetscheduler.config import AppConfig, HorizonConfig, _safe_int, _validate_config, load_config


def with_scheduling(**overrides) -> AppConfig:
    config = AppConfig()
    return replace(config, scheduling=replace(config.scheduling, **overrides))


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_default_interval_bounds(self):
        config = AppConfig()
        assert config.scheduling.min_slot_interval_minutes == 10
        assert config.scheduling.max_slot_interval_minutes == 120
        assert config.scheduling.default_slot_interval_minutes == 30

    def test_default_horizon(self):
        config = AppConfig()
        assert config.horizon.past_days == 1
        assert config.horizon.future_days == 30

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="SCHEDULER_TIMEZONE"):
            _validate_config(with_scheduling(timezone="Mars/Olympus_Mons"))

    def test_min_interval_below_one(self):
        with pytest.raises(ValueError, match="MIN_SLOT_INTERVAL_MINUTES"):
            _validate_config(with_scheduling(min_slot_interval_minutes=0))

    def test_max_interval_below_min(self):
        with pytest.raises(ValueError, match="MAX_SLOT_INTERVAL_MINUTES"):
            _validate_config(with_scheduling(min_slot_interval_minutes=30, max_slot_interval_minutes=20))

    def test_default_interval_outside_range(self):
        with pytest.raises(ValueError, match="DEFAULT_SLOT_INTERVAL_MINUTES"):
            _validate_config(with_scheduling(default_slot_interval_minutes=5))

    def test_negative_horizon(self):
        horizon = HorizonConfig.__new__(HorizonConfig)
        object.__setattr__(horizon, "past_days", -1)
        object.__setattr__(horizon, "future_days", 30)
        config = replace(AppConfig(), horizon=horizon)

        with pytest.raises(ValueError, match="BOOKING_HORIZON_PAST_DAYS"):
            _validate_config(config)

    def test_config_is_frozen(self):
        config = AppConfig()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"  # type: ignore[misc]

    def test_load_config_returns_validated_config(self):
        assert isinstance(load_config(), AppConfig)


class TestSafeInt:
    def test_default_used_when_unset(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("VETSCHEDULER_TEST_INT", "15")
        assert _safe_int("VETSCHEDULER_TEST_INT", "1") == 15

    def test_bad_value_names_the_variable(self, monkeypatch):
        monkeypatch.setenv("VETSCHEDULER_TEST_INT", "fifteen")
        with pytest.raises(ValueError, match="VETSCHEDULER_TEST_INT"):
            _safe_int("VETSCHEDULER_TEST_INT", "1")
