"""Tests for configuration guards."""

import pytest

from billing_auth import config


def test_dev_secret_refused_in_production(monkeypatch):
    monkeypatch.setattr(config, "ENVIRONMENT", "production")
    monkeypatch.setattr(config, "JWT_SECRET", config.DEV_JWT_SECRET)
    with pytest.raises(RuntimeError):
        config.check_production_settings()


def test_real_secret_accepted_in_production(monkeypatch):
    monkeypatch.setattr(config, "ENVIRONMENT", "production")
    monkeypatch.setattr(config, "JWT_SECRET", "a-real-secret-from-the-environment")
    config.check_production_settings()


def test_dev_secret_allowed_in_development(monkeypatch):
    monkeypatch.setattr(config, "ENVIRONMENT", "development")
    monkeypatch.setattr(config, "JWT_SECRET", config.DEV_JWT_SECRET)
    config.check_production_settings()


@pytest.mark.parametrize(
    "override, host, expected",
    [("auto", "", False), ("auto", "smtp.example.com", True), ("false", "smtp.example.com", False), ("true", "", True)],
)
def test_smtp_enabled(monkeypatch, override, host, expected):
    monkeypatch.setattr(config, "_SMTP_ENABLED_OVERRIDE", override)
    monkeypatch.setattr(config, "SMTP_HOST", host)
    monkeypatch.setattr(config, "SMTP_USERNAME", "user")
    monkeypatch.setattr(config, "SMTP_PASSWORD", "pass")
    assert config.smtp_enabled() is expected
