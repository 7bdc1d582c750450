"""Configuration schema using Pydantic."""

import json
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from matterhook.errors import ConfigError


class SourceConfig(BaseModel):
    """Matterbridge API connection."""

    url: str = ""
    username: str = ""
    password: str = ""


class WebhookConfig(BaseModel):
    """Outbound webhook configuration."""

    url: str = ""
    prefix: str = ""  # Only forward messages starting with this text (empty = all)
    timeout: float = Field(default=30.0, gt=0)
    fail_on_error_status: bool = False  # Count non-2xx replies as errors


class BackoffConfig(BaseModel):
    """Reconnect backoff policy."""

    initial_delay: float = Field(default=0.5, gt=0)
    max_delay: float = Field(default=60.0, gt=0)
    multiplier: float = Field(default=2.0, gt=1)
    jitter: bool = True


class RelayConfig(BaseModel):
    """Pipeline configuration."""

    queue_size: int = Field(default=0, ge=0)  # 0 = synchronous hand-off


class TelemetryConfig(BaseModel):
    """Prometheus metrics endpoint."""

    enabled: bool = False
    metrics_host: str = "0.0.0.0"
    metrics_port: int = Field(default=9464, gt=0, lt=65536)


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = "INFO"
    format: str = "console"  # "console" or "json"


class Config(BaseModel):
    """Root configuration."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def has_credentials(self) -> bool:
        """True when both source username and password are set."""
        return bool(self.source.username and self.source.password)

    def validate_required(self) -> None:
        """Raise ConfigError unless both the API and webhook URLs are set."""
        if not self.source.url or not self.webhook.url:
            raise ConfigError("the api and webhook urls must be set")


# Environment variable -> (section, field)
ENV_VARS: dict[str, tuple[str, str]] = {
    "MATTERBRIDGE_API_URL": ("source", "url"),
    "MATTERBRIDGE_API_USERNAME": ("source", "username"),
    "MATTERBRIDGE_API_PASSWORD": ("source", "password"),
    "WEBHOOK_URL": ("webhook", "url"),
    "MESSAGE_PREFIX": ("webhook", "prefix"),
    "ENABLE_TELEMETRY": ("telemetry", "enabled"),
    "METRICS_PORT": ("telemetry", "metrics_port"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "RELAY_QUEUE_SIZE": ("relay", "queue_size"),
}

_TRUTHY = {"yes", "true", "1", "on"}


def get_config_path() -> Path:
    """Get the config file path."""
    return Path.home() / ".matterhook" / "config.json"


def apply_env(config: Config, env: Mapping[str, str] | None = None) -> Config:
    """Return a copy of ``config`` with environment overrides applied."""
    env = os.environ if env is None else env
    data = config.model_dump()

    for var, (section, key) in ENV_VARS.items():
        value = env.get(var)
        if value is None:
            continue
        if key == "enabled":
            data[section][key] = value.strip().lower() in _TRUTHY
        else:
            data[section][key] = value

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid environment configuration: {e}") from e


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from file, then overlay environment variables."""
    config_path = path or get_config_path()
    config = Config()

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            config = Config(**data)
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            raise ConfigError(f"invalid config file {config_path}: {e}") from e

    return apply_env(config, env)


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(config.model_dump_json(indent=2))
