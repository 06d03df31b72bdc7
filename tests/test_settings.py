# tests/test_settings.py
import pytest

from app.config.setting import settings, validate_settings
from app.config.settings.development import BackendDevSettings
from app.config.settings.production import BackendProdSettings
from app.config.settings.testing import BackendTestSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("INTENT_SERVICE_TIMEOUT", "INTENT_SERVICE_FALLBACK", "TRUST_USER_HEADERS",
                 "MAX_QUERY_LENGTH", "LOG_TO_FILE", "DEFAULT_TABLE_SIZE"):
        monkeypatch.delenv(name, raising=False)


def test_test_environment_selected():
    assert isinstance(settings, BackendTestSettings)
    assert settings.INTENT_SERVICE_ENABLED is False
    assert validate_settings() is True


def test_development_overrides():
    dev = BackendDevSettings()
    assert dev.INTENT_SERVICE_TIMEOUT == 30.0
    assert dev.LOG_TO_FILE is False
    assert dev.DEFAULT_TABLE_SIZE == 100


def test_production_overrides():
    prod = BackendProdSettings()
    assert prod.INTENT_SERVICE_TIMEOUT == 5.0
    assert prod.INTENT_SERVICE_FALLBACK is True
    assert prod.TRUST_USER_HEADERS is False
    assert prod.MAX_QUERY_LENGTH == 500
    assert prod.privileged_role_set == {"admin"}
