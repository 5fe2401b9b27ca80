"""Contains the tests for reading the settings from the environment."""

import logging
import os
from pathlib import Path

import pytest

from ytpubsub.models import ServiceSettings

ENV_VARS = [
    "HOST", "SECRET", "YOUTUBE_KEY", "CHANNEL_IDS", "DATA_DIR", "PORT", "LOG_LEVEL", "NGROK_TOKEN"
]


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Fixture for an environment without any of the settings."""
    monkeypatch.setattr(os, "environ", os.environ.copy())

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    return monkeypatch


def test_defaults(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test the settings of an empty environment."""
    settings = ServiceSettings.from_env(dotenv_path=tmp_path / ".env")

    assert settings.host is None
    assert settings.callback_url is None
    assert settings.secret is None
    assert settings.youtube_key is None
    assert settings.channel_ids == []
    assert settings.data_dir is None
    assert settings.port == 1337
    assert settings.path == "/hubbub"
    assert settings.log_level == logging.INFO
    assert settings.ngrok_token is None


def test_from_env(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test reading every setting."""
    env.setenv("HOST", "example.com")
    env.setenv("SECRET", "abc")
    env.setenv("YOUTUBE_KEY", "key")
    env.setenv("CHANNEL_IDS", " first, second ,,")
    env.setenv("DATA_DIR", str(tmp_path))
    env.setenv("PORT", "8080")
    env.setenv("LOG_LEVEL", "debug")
    env.setenv("NGROK_TOKEN", "token")

    settings = ServiceSettings.from_env(dotenv_path=tmp_path / ".env")

    assert settings.callback_url == "https://example.com/hubbub"
    assert settings.secret == "abc"
    assert settings.youtube_key == "key"
    assert settings.channel_ids == ["first", "second"]
    assert settings.data_dir == tmp_path
    assert settings.port == 8080
    assert settings.log_level == logging.DEBUG
    assert settings.ngrok_token == "token"


def test_dotenv(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test reading the settings from a .env file."""
    dotenv_path = tmp_path / ".env"
    dotenv_path.write_text("HOST=example.com\nCHANNEL_IDS=first\n")

    settings = ServiceSettings.from_env(dotenv_path=dotenv_path)

    assert settings.host == "example.com"
    assert settings.channel_ids == ["first"]


def test_invalid(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test the settings that cannot be read."""
    env.setenv("LOG_LEVEL", "LOUD")
    with pytest.raises(ValueError):
        ServiceSettings.from_env(dotenv_path=tmp_path / ".env")

    env.setenv("LOG_LEVEL", "INFO")
    env.setenv("PORT", "port")
    with pytest.raises(ValueError):
        ServiceSettings.from_env(dotenv_path=tmp_path / ".env")
