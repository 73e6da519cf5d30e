"""Tests for BillingConfig and the YAML loader (billing_config/)."""

from decimal import ROUND_HALF_UP, Decimal

import pytest
import yaml

from billing_config import CONFIG_PATH_ENV, BillingConfig, get_active_config
from billing_config.loader import compute_checksum, load_config, load_yaml_file
from billing_kernel.domain.currency import CurrencyRegistry


class TestBillingConfigDefaults:
    def test_defaults(self):
        config = BillingConfig.with_defaults()
        assert config.default_currency == "EUR"
        assert config.default_threshold == Decimal("1.50")
        assert config.default_payment_terms_days == 30
        assert config.hours_per_day == Decimal("8")
        assert config.invoice_number_prefix == "INV"
        assert config.correction_status == "sent"

    def test_initialization_logged(self, captured_logs):
        BillingConfig()
        assert any(r["message"] == "billing_config_initialized" for r in captured_logs())


class TestBillingConfigValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_currency": "XXX"},
            {"default_threshold": Decimal("-0.01")},
            {"default_payment_terms_days": -1},
            {"hours_per_day": Decimal("0")},
            {"hours_per_day": Decimal("25")},
            {"invoice_number_prefix": " "},
            {"invoice_number_width": 0},
            {"rounding": "ROUND_FLOOR"},
            {"correction_status": "draft"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            BillingConfig(**kwargs)


class TestFromDict:
    def test_strings_become_decimals(self):
        config = BillingConfig.from_dict(
            {"default_threshold": "0.50", "hours_per_day": 7.5, "rounding": ROUND_HALF_UP}
        )
        assert config.default_threshold == Decimal("0.50")
        assert config.hours_per_day == Decimal("7.5")
        assert config.rounding == ROUND_HALF_UP

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown billing config keys"):
            BillingConfig.from_dict({"treshold": "1.00"})

    def test_currency_overrides_registered(self):
        config = BillingConfig.from_dict(
            {
                "default_currency": "XTS",
                "currencies": [{"code": "XTS", "decimal_places": 4, "name": "Test"}],
            }
        )
        assert config.default_currency == "XTS"
        assert CurrencyRegistry.get_decimal_places("XTS") == 4


class TestLoader:
    def test_load_nested_section(self, tmp_path):
        path = tmp_path / "billing.yaml"
        path.write_text(
            yaml.safe_dump(
                {"billing": {"default_currency": "USD", "default_payment_terms_days": 14}}
            )
        )
        config = load_config(path)
        assert config.default_currency == "USD"
        assert config.default_payment_terms_days == 14

    def test_load_flat_mapping(self, tmp_path):
        path = tmp_path / "billing.yaml"
        path.write_text("invoice_number_prefix: RE\ninvoice_number_width: 4\n")
        config = load_config(path)
        assert config.invoice_number_prefix == "RE"
        assert config.invoice_number_width == 4

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}
        assert load_config(path).default_currency == "EUR"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": "2"}) == compute_checksum({"b": "2", "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestGetActiveConfig:
    def test_defaults_without_path(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        config = get_active_config()
        assert config == BillingConfig()
        trace = [r for r in captured_logs() if r["message"] == "BILLING_CONFIG_TRACE"]
        assert trace[0]["source"] == "defaults"
        assert trace[0]["checksum"] == compute_checksum(config.to_dict())

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "billing.yaml"
        path.write_text("billing:\n  default_threshold: '0.00'\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
        assert get_active_config().default_threshold == Decimal("0.00")
