from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .types import DEFAULT_MODEL, ModelFamily

CONFIG_FILENAME = "novelai.toml"
DEFAULT_ENDPOINT = "https://image.novelai.net/ai/generate-image"


class GenerationConfig(BaseModel):
    """Session settings for the transport; immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")
    api_endpoint: str = DEFAULT_ENDPOINT
    auth_token: str = Field(repr=False)
    timeout_sec: Optional[float] = Field(default=120.0, gt=0)


class ApiSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    endpoint: str = DEFAULT_ENDPOINT
    token: Optional[str] = Field(default=None, repr=False)
    token_env: str = "NOVELAI_TOKEN"
    timeout_sec: float = Field(default=120.0, gt=0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    default_model: str = DEFAULT_MODEL
    save_dir: Optional[Path] = None
    repeat_interval_sec: float = Field(default=5.0, ge=0)
    api: ApiSettings = ApiSettings()

    @field_validator("default_model")
    @classmethod
    def validate_default_model(cls, v: str) -> str:
        known = [m.value for m in ModelFamily]
        if v not in known:
            raise ValueError(f"default_model '{v}' is not a known model. Available models: {known}")
        return v

    def generation_config(self) -> GenerationConfig:
        """Build the transport settings, resolving the token from the environment.

        Raises:
            ConfigError: If no token is configured inline or in the environment.
        """
        token = self.api.token or os.environ.get(self.api.token_env)
        if not token:
            raise ConfigError(
                f"No API token configured. Set {self.api.token_env} "
                f"or add 'token' under [api] in {CONFIG_FILENAME}"
            )
        return GenerationConfig(
            api_endpoint=self.api.endpoint,
            auth_token=token,
            timeout_sec=self.api.timeout_sec,
        )


class ConfigError(Exception):
    """Unusable settings; ``path`` names the offending file when there is one."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


def _parse_toml(config_path: Path) -> dict:
    if sys.version_info >= (3, 11):
        import tomllib
    else:
        import tomli as tomllib

    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(
            f"Config file not found. Create {CONFIG_FILENAME} or pass --config", config_path
        ) from e
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read TOML: {e}", config_path) from e


def load_config(config_path: Path) -> AppConfig:
    """Read and validate one ``novelai.toml``."""
    data = _parse_toml(config_path)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", config_path) from e


def load_config_or_default(config_path: Optional[Path] = None, start_dir: Optional[Path] = None) -> AppConfig:
    """Load ``config_path`` if given, else the nearest ``novelai.toml`` at or above
    ``start_dir`` (default: the working directory), else built-in defaults.
    """
    if config_path is not None:
        return load_config(config_path)

    here = (start_dir or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return load_config(candidate)
    return AppConfig()
