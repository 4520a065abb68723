"""
Application settings: an optional YAML file, overridden by environment.

Every field can be set from the environment with the ``FLOWBUILDER_`` prefix;
nested SMTP fields use a double underscore, e.g. ``FLOWBUILDER_SMTP__HOST``.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "FLOWBUILDER_"


class SmtpSettings(BaseModel):
    host: Optional[str] = None
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    from_email: Optional[str] = None
    from_name: str = "Automation Flow Builder"
    use_ssl: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_nested_delimiter="__")

    database_path: Optional[str] = None  # None keeps everything in memory
    notifier: Literal["log", "smtp"] = "log"
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    log_level: str = "INFO"
    message_preview_chars: int = Field(default=50, ge=1)
    recent_executions_limit: int = Field(default=50, ge=1)

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings,
                                   dotenv_settings, file_secret_settings):
        # environment wins over values passed in from the settings file
        return env_settings, init_settings


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file, then apply FLOWBUILDER_* overrides.
    """
    raw: Dict[str, Any] = {}
    if path:
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        raw.update(data)

    try:
        return Settings(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}")
