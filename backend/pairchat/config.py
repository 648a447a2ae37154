"""pairchat application configuration.

Loads settings from two YAML files:
  * pairchat.settings.yaml  — non-secret configuration
  * pairchat.secrets.yaml   — secrets (never committed)

Either path can be overridden with the PAIRCHAT_SETTINGS_FILE and
PAIRCHAT_SECRETS_FILE environment variables.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("pairchat.settings.yaml")
SECRETS_FILE  = Path("pairchat.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class JWTSecrets(BaseModel):
    secret_key: str = "change-me-in-production"
    algorithm:  str = "HS256"


class Secrets(BaseModel):
    jwt: JWTSecrets = Field(default_factory=JWTSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:   str  = "0.0.0.0"
    port:   int  = 8000
    reload: bool = False


class LoggingSettings(BaseModel):
    level: str = "info"


class ChatSettings(BaseModel):
    """Limits applied by the message router."""
    max_content_length: int = 4096  # bytes, UTF-8 encoded

    @field_validator("max_content_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_content_length must be positive")
        return value


class StorageSettings(BaseModel):
    messages_db_path: str = "messages.duckdb"
    users_db_path:    str = "users.duckdb"


class AuthSettings(BaseModel):
    token_expire_minutes: int = 60 * 24
    query_param:          str = "token"


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    auth:    AuthSettings    = Field(default_factory=AuthSettings)
    secrets: Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_settings(
    settings_file: Optional[Path] = None,
    secrets_file: Optional[Path] = None,
) -> AppSettings:
    """Load and merge settings + secrets into a single *AppSettings* object."""
    settings_path = settings_file or Path(os.environ.get("PAIRCHAT_SETTINGS_FILE", SETTINGS_FILE))
    secrets_path  = secrets_file or Path(os.environ.get("PAIRCHAT_SECRETS_FILE", SECRETS_FILE))

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data

    app_settings = AppSettings(**settings_data)
    if app_settings.secrets.jwt.secret_key == JWTSecrets().secret_key:
        logger.warning("Using the default JWT secret; set jwt.secret_key in %s", secrets_path)
    logger.info(
        "Settings loaded (server=%s:%s, max_content_length=%d)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.chat.max_content_length,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_settings()
    return _config


def reset_config() -> None:
    """Drop the cached settings so the next get_config() reloads from disk."""
    global _config
    _config = None
