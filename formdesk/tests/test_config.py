from pathlib import Path

import pytest
from pydantic import ValidationError

from formdesk.app.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("FORMDESK_DEFAULT_TEMPLATE", raising=False)
    settings = Settings(_env_file=None)

    assert settings.request_timeout_seconds == 120.0
    assert settings.persistence_debounce_seconds == 0.5
    assert settings.default_template == "designation"
    assert settings.autosave_values is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FORMDESK_DOCUMENT_SERVICE_URL", "https://docs.example.org/generate/")
    monkeypatch.setenv("FORMDESK_PERSISTENCE_DEBOUNCE_MS", "0")
    monkeypatch.setenv("FORMDESK_AUTOSAVE_VALUES", "true")
    monkeypatch.setenv("FORMDESK_LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.document_service_url == "https://docs.example.org/generate"
    assert settings.persistence_debounce_seconds == 0.0
    assert settings.autosave_values is True
    assert settings.log_level == "DEBUG"


def test_storage_path_is_expanded():
    settings = Settings(_env_file=None, storage_path=Path("~/forms.json"))

    assert "~" not in str(settings.storage_path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"document_service_url": "ftp://docs.example.org"},
        {"default_template": "unknown"},
        {"log_level": "LOUD"},
        {"request_timeout_seconds": 0},
        {"persistence_debounce_ms": -1},
    ],
)
def test_invalid_values_fail_fast(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_settings_are_immutable():
    settings = Settings(_env_file=None)

    with pytest.raises(ValidationError):
        settings.log_level = "DEBUG"
