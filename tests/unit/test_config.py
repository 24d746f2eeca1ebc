"""Unit tests for settings loading and secret resolution."""

import boto3
import pytest
from moto import mock_aws

from labpay.config import Settings
from labpay.models.errors import ConfigurationError
from labpay.services.ssm_service import get_ssm_service, resolve_secret


class TestFromEnv:
    """Environment parsing."""

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.environment == "dev"
        assert settings.platform_fee_pct == 0.18
        assert settings.platform_fee_cents is None
        assert settings.state_backend == "memory"
        assert settings.checkout_success_path == "/flight-lab-success"
        assert settings.event_ledger_retention_seconds == 3600

    def test_reads_variables(self):
        settings = Settings.from_env(
            {
                "ENVIRONMENT": "prod",
                "STRIPE_SECRET_KEY": "sk_live_abc",
                "PLATFORM_FEE_PCT": "0.2",
                "PLATFORM_FEE_CENTS": "500",
                "CHECKOUT_CURRENCY": " EUR ",
                "ALLOWED_ORIGINS": "https://a.example.com, https://b.example.com",
                "LABPAY_STATE_BACKEND": "dynamodb",
                "DEBUG_STRIPE_ERRORS": "true",
            }
        )

        assert settings.is_production
        assert settings.is_live_mode
        assert settings.platform_fee_pct == 0.2
        assert settings.platform_fee_cents == 500
        assert settings.currency == "eur"
        assert settings.allowed_origins == ["https://a.example.com", "https://b.example.com"]
        assert settings.state_backend == "dynamodb"
        assert settings.debug_errors is True

    def test_rejects_non_secret_stripe_key(self):
        with pytest.raises(ConfigurationError, match="STRIPE_SECRET_KEY"):
            Settings.from_env({"STRIPE_SECRET_KEY": "pk_test_abc"})

    @pytest.mark.parametrize("variable", ["PLATFORM_FEE_PCT", "PLATFORM_FEE_CENTS"])
    def test_rejects_unparseable_fee(self, variable):
        with pytest.raises(ConfigurationError, match="platform fee"):
            Settings.from_env({variable: "lots"})

    def test_rejects_out_of_range_fee(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"PLATFORM_FEE_PCT": "1.5"})

    def test_rejects_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            Settings.from_env({"LABPAY_STATE_BACKEND": "redis"})


class TestDerivedDurations:
    """Session and seat hold lifetimes derived from settings."""

    def test_session_lifetime_has_margin(self):
        settings = Settings(checkout_expiry_seconds=1800)
        assert settings.session_lifetime_seconds == 1860

    def test_unpaid_hold_outlives_session(self):
        settings = Settings(cache_ttl_seconds=300.0)
        assert settings.seat_hold_seconds == settings.session_lifetime_seconds + 300

    def test_paid_hold_covers_settlement_and_cache(self):
        settings = Settings(cache_ttl_seconds=300.0, settlement_lag_seconds=120.0)
        assert settings.committed_hold_seconds == 420

    def test_expiry_stays_within_a_day(self):
        with pytest.raises(ValueError):
            Settings(checkout_expiry_seconds=86400)


class TestResolveSecret:
    """Secrets come from settings first, then SSM when enabled."""

    def test_value_from_settings(self):
        assert resolve_secret(Settings(webflow_token="wf_abc"), "webflow_token") == "wf_abc"

    def test_missing_without_ssm(self):
        with pytest.raises(ConfigurationError, match="WEBFLOW_TOKEN"):
            resolve_secret(Settings(), "webflow_token")

    def test_fetched_from_ssm(self):
        with mock_aws():
            boto3.client("ssm").put_parameter(
                Name="/labpay/test/make/forwarding_secret",
                Value="from_ssm",
                Type="SecureString",
            )
            get_ssm_service().clear_cache()
            settings = Settings(environment="test", use_ssm=True)

            assert resolve_secret(settings, "make_forwarding_secret") == "from_ssm"
            get_ssm_service().clear_cache()

    def test_missing_ssm_parameter(self):
        with mock_aws():
            get_ssm_service().clear_cache()
            settings = Settings(environment="test", use_ssm=True, ssm_prefix="/nowhere")

            with pytest.raises(ConfigurationError, match="STRIPE_WEBHOOK_SECRET"):
                resolve_secret(settings, "stripe_webhook_secret")
