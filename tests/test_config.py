"""
Tests for settings resolution and the config file.
"""

import pytest
from bib_auditor.config import (
    AuditorSettings, load_settings, read_config_file, write_config_value
)
from bib_auditor.exceptions import ConfigurationError


def test_defaults(tmp_path):
    """Test the built-in defaults."""
    settings = load_settings(path=tmp_path / "none", environ={})

    assert settings.max_chars == 2_000_000
    assert settings.timeout == 30.0
    assert settings.context_before_words == 100
    assert settings.context_after_words == 50
    assert settings.max_workers == 4


def test_precedence(tmp_path):
    """Test that file < environment < overrides."""
    config_file = tmp_path / "config"
    config_file.write_text("# limits\ntimeout=10\nmax_workers=2\nbogus=1\n", encoding="utf-8")
    environ = {"BIB_AUDITOR_TIMEOUT": "20", "BIB_AUDITOR_CONTEXT_AFTER": "5"}

    settings = load_settings(path=config_file, environ=environ, context_before_words=7)
    assert settings.timeout == 20.0
    assert settings.max_workers == 2
    assert settings.context_after_words == 5
    assert settings.context_before_words == 7

    settings = load_settings(path=config_file, environ=environ, timeout=5, max_chars=None)
    assert settings.timeout == 5.0
    assert settings.max_chars == 2_000_000


@pytest.mark.parametrize("key,value", [
    ("max_chars", "0"),
    ("timeout", "-1"),
    ("max_workers", "many"),
    ("context_before_words", "-3"),
])
def test_invalid_values(key, value):
    """Test that bad values raise ConfigurationError."""
    with pytest.raises(ConfigurationError):
        AuditorSettings().with_overrides(**{key: value})


def test_invalid_environment_value(tmp_path):
    """Test that a bad environment value is rejected."""
    with pytest.raises(ConfigurationError):
        load_settings(path=tmp_path / "none", environ={"BIB_AUDITOR_MAX_CHARS": "-1"})


def test_unknown_override():
    """Test that unknown settings are rejected."""
    with pytest.raises(ConfigurationError) as exc_info:
        AuditorSettings().with_overrides(colour="blue")
    assert exc_info.value.key == "colour"


def test_write_and_read_config(tmp_path):
    """Test persisting settings while keeping existing ones."""
    config_file = tmp_path / "nested" / "config"

    assert write_config_value("timeout", "12", config_file) == config_file
    write_config_value("max_workers", "3", config_file)

    assert read_config_file(config_file) == {"timeout": "12", "max_workers": "3"}
    settings = load_settings(path=config_file, environ={})
    assert settings.timeout == 12.0
    assert settings.max_workers == 3


def test_write_invalid_value(tmp_path):
    """Test that invalid values are not written."""
    config_file = tmp_path / "config"
    with pytest.raises(ConfigurationError):
        write_config_value("timeout", "soon", config_file)
    assert not config_file.exists()
