"""Tests for YAML settings loading."""
import pydantic
import pytest
import yaml

from pairchat import config
from pairchat.config import AppSettings, ChatSettings, load_settings


@pytest.fixture(autouse=True)
def clear_cached_config():
    config.reset_config()
    yield
    config.reset_config()


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_loads_settings_and_secrets(tmp_path):
    settings_file = write_yaml(tmp_path / "settings.yaml", {
        "server": {"port": 9100},
        "chat": {"max_content_length": 128},
        "storage": {"messages_db_path": str(tmp_path / "m.duckdb")},
    })
    secrets_file = write_yaml(tmp_path / "secrets.yaml", {
        "jwt": {"secret_key": "s3cret"},
    })

    settings = load_settings(settings_file, secrets_file)

    assert settings.server.port == 9100
    assert settings.server.host == "0.0.0.0"
    assert settings.chat.max_content_length == 128
    assert settings.storage.messages_db_path.endswith("m.duckdb")
    assert settings.storage.users_db_path == "users.duckdb"
    assert settings.secrets.jwt.secret_key == "s3cret"
    assert settings.secrets.jwt.algorithm == "HS256"


def test_missing_files_fall_back_to_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.yaml", tmp_path / "absent-secrets.yaml")
    assert settings == AppSettings()


def test_empty_file_is_defaults(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_settings(empty, empty).chat.max_content_length == 4096


def test_content_limit_must_be_positive():
    with pytest.raises(pydantic.ValidationError):
        ChatSettings(max_content_length=0)


def test_env_overrides_file_locations(tmp_path, monkeypatch):
    settings_file = write_yaml(tmp_path / "custom.yaml", {"logging": {"level": "debug"}})
    monkeypatch.setenv("PAIRCHAT_SETTINGS_FILE", str(settings_file))
    monkeypatch.setenv("PAIRCHAT_SECRETS_FILE", str(tmp_path / "none.yaml"))

    assert load_settings().logging.level == "debug"


def test_get_config_is_cached_until_reset(tmp_path, monkeypatch):
    settings_file = write_yaml(tmp_path / "a.yaml", {"server": {"port": 1111}})
    monkeypatch.setenv("PAIRCHAT_SETTINGS_FILE", str(settings_file))
    monkeypatch.setenv("PAIRCHAT_SECRETS_FILE", str(tmp_path / "none.yaml"))

    first = config.get_config()
    write_yaml(settings_file, {"server": {"port": 2222}})
    assert config.get_config() is first

    config.reset_config()
    assert config.get_config().server.port == 2222


@pytest.mark.parametrize("name", ["uvicorn.access", "httpx", "httpcore", "websockets"])
def test_noisy_loggers_pinned_to_warning(name):
    import logging

    import pairchat.main  # noqa: F401  (configures logging on import)

    assert logging.getLogger(name).level == logging.WARNING
