"""
Tests for settings loading and validation
"""
import pytest
from pydantic import ValidationError

from config import Settings, create_settings

def test_defaults(monkeypatch):
    monkeypatch.delenv("LOGO_URL", raising=False)
    config = Settings(_env_file=None)
    assert config.BRAND_NAME == "TentaGen"
    assert config.SHORT_TITLE_MAX_LENGTH == 60
    assert not config.is_logo_configured()

def test_log_level_is_uppercased():
    assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

@pytest.mark.parametrize("overrides", [
    {"LOG_LEVEL": "chatty"},
    {"LOGO_FETCH_TIMEOUT": 0},
    {"LOGO_FETCH_TIMEOUT": 45},
    {"SHORT_TITLE_MAX_LENGTH": 5},
])
def test_out_of_range_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)

def test_logo_configured():
    assert Settings(_env_file=None, LOGO_URL="https://example.org/logo.png").is_logo_configured()
    assert not Settings(_env_file=None, LOGO_URL="   ").is_logo_configured()

def test_bad_environment_falls_back_to_defaults(monkeypatch, caplog):
    monkeypatch.setenv("LOGO_FETCH_TIMEOUT", "99")
    config = create_settings()
    assert config.LOGO_FETCH_TIMEOUT == 5.0
    assert "Configuration warning" in caplog.text
