"""Unit tests for recordconcerns.config.settings."""
import pytest
from pydantic import ValidationError

from recordconcerns.config.settings import Environment, LogLevel, Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.environment is Environment.DEVELOPMENT
    assert settings.log_level is LogLevel.INFO
    assert settings.hashid_min_length == 8
    assert settings.slug_separator == "-"
    assert settings.slug_max_length == 255


def test_salt_falls_back_to_app_name():
    settings = Settings(_env_file=None, app_name="shop")
    assert settings.default_hashid_salt == "shop"
    assert Settings(_env_file=None, app_name="shop", hashid_salt="pepper").default_hashid_salt == "pepper"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("RECORDCONCERNS_SLUG_SEPARATOR", "_")
    monkeypatch.setenv("RECORDCONCERNS_HASHID_MIN_LENGTH", "12")
    settings = get_settings()
    assert settings.slug_separator == "_"
    assert settings.hashid_min_length == 12


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_empty_separator_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, slug_separator="")


def test_negative_min_length_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, hashid_min_length=-1)


def test_production_forbids_sql_echo():
    with pytest.raises(ValidationError, match="db_echo"):
        Settings(_env_file=None, environment="production", db_echo=True)


def test_production_without_echo_is_fine():
    settings = Settings(_env_file=None, environment="production")
    assert settings.environment is Environment.PRODUCTION
