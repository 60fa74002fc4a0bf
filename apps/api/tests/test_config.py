import pytest

import config
from config import validate_security_settings


STRONG_SECRET = "a-very-long-and-random-jwt-secret-value"


def test_default_jwt_secret_is_rejected(monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", "change_me_in_production")
    with pytest.raises(ValueError, match="JWT_SECRET"):
        validate_security_settings()


def test_plaintext_code_fallback_is_refused_in_production(monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", STRONG_SECRET)
    monkeypatch.setattr(config.settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(config.settings, "OTP_DEV_LOG_FALLBACK", True)
    with pytest.raises(ValueError, match="OTP_DEV_LOG_FALLBACK"):
        validate_security_settings()


def test_dev_auth_is_refused_in_production(monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", STRONG_SECRET)
    monkeypatch.setattr(config.settings, "ENVIRONMENT", "prod")
    monkeypatch.setattr(config.settings, "OTP_DEV_LOG_FALLBACK", False)
    monkeypatch.setattr(config.settings, "ENABLE_DEV_AUTH", True)
    with pytest.raises(ValueError, match="ENABLE_DEV_AUTH"):
        validate_security_settings()


def test_development_may_log_codes(monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", STRONG_SECRET)
    monkeypatch.setattr(config.settings, "ENVIRONMENT", "development")
    monkeypatch.setattr(config.settings, "OTP_DEV_LOG_FALLBACK", True)
    monkeypatch.setattr(config.settings, "ENABLE_DEV_AUTH", True)
    validate_security_settings()
