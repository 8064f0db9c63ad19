"""
Unit tests for the config module.

Tests: Settings defaults, environment variable override, bounds.
"""

import pytest
from pydantic import ValidationError

from aibasket.config import Environment, Settings


class TestSettingsDefaults:
    def test_portfolio_rules(self, monkeypatch):
        monkeypatch.delenv("MAX_ALLOCATIONS", raising=False)
        s = Settings(_env_file=None)
        assert s.max_allocations == 10
        assert s.max_slippage_bps == 500
        assert s.rebalance_threshold_bps == 100

    def test_default_environment(self):
        s = Settings(_env_file=None)
        assert s.env in tuple(Environment)

    def test_base_asset_is_an_address(self):
        s = Settings(_env_file=None)
        assert s.base_asset.startswith("0x")
        assert len(s.base_asset) == 42
        assert s.base_asset_decimals == 18

    def test_events_not_persisted_by_default(self, monkeypatch):
        monkeypatch.delenv("PERSIST_EVENTS", raising=False)
        assert Settings(_env_file=None).persist_events is False

    def test_oracle_bounds(self):
        s = Settings(_env_file=None)
        assert s.oracle_max_age_seconds > 0
        assert s.oracle_timeout_seconds > 0


class TestSettingsOverride:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("REBALANCE_THRESHOLD_BPS", "250")
        monkeypatch.setenv("ADMIN_PRINCIPAL", "ops-multisig")
        s = Settings(_env_file=None)
        assert s.rebalance_threshold_bps == 250
        assert s.admin_principal == "ops-multisig"

    def test_slippage_out_of_range(self, monkeypatch):
        monkeypatch.setenv("MAX_SLIPPAGE_BPS", "10001")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
