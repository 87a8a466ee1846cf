"""Configuration management."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from feed_mailer.core.errors import ConfigError

QUEUE_BACKENDS = ("directory", "memory")


@dataclass
class FeedConfig:
    """Feed source settings."""
    url: str = ""
    timeout: float = 30.0


@dataclass
class EmailConfig:
    """SMTP and message settings."""
    from_address: str = ""
    to_address: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    username: Optional[str] = None  # falls back to from_address
    password: str = field(default="", repr=False)
    subject: str = "New feeds updated!"
    timeout: float = 30.0


@dataclass
class QueueConfig:
    """Queue settings."""
    backend: str = "directory"
    directory: Path = Path("queue")
    poll_interval: float = 1.0


@dataclass
class SchedulerConfig:
    """Scheduler settings."""
    interval_seconds: float = 60.0


@dataclass
class RenderConfig:
    """Rendering settings."""
    escape_html: bool = False


@dataclass
class Settings:
    """Application settings."""

    feed: FeedConfig = field(default_factory=FeedConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    @property
    def feed_url(self) -> str:
        return self.feed.url

    @property
    def smtp_username(self) -> str:
        return self.email.username or self.email.from_address

    def validate(self) -> "Settings":
        """Raise ConfigError if anything required is missing or malformed."""
        missing = []
        if not self.feed.url:
            missing.append("FEED_URL")
        if not self.email.from_address:
            missing.append("EMAIL_FROM")
        if not self.email.to_address:
            missing.append("EMAIL_TO")
        if not self.email.smtp_host:
            missing.append("SMTP_SERVER")
        if not self.email.password:
            missing.append("SMTP_PASSWORD")

        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        if not 0 < self.email.smtp_port < 65536:
            raise ConfigError(f"SMTP port out of range: {self.email.smtp_port}")

        if self.queue.backend not in QUEUE_BACKENDS:
            raise ConfigError(
                f"Unknown queue backend '{self.queue.backend}', expected one of {', '.join(QUEUE_BACKENDS)}"
            )

        if self.scheduler.interval_seconds <= 0:
            raise ConfigError("Scheduler interval must be positive")

        return self


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return config


def _apply_section(section: object, values: object, name: str) -> None:
    """Copy YAML values onto a config section, converting to the field types."""
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")

    known = {f.name: f for f in fields(section)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{name}.{key}'")
        setattr(section, key, _coerce(value, getattr(section, key), f"{name}.{key}"))


def _coerce(value: object, current: object, name: str) -> object:
    if value is None:
        return current
    try:
        if isinstance(current, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        if isinstance(current, Path):
            return Path(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e
    return str(value)


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)
    settings = Settings()

    if isinstance(config.get("email"), dict) and "password" in config["email"]:
        raise ConfigError("email.password is not read from the config file, set SMTP_PASSWORD")

    for name in ("feed", "email", "queue", "scheduler", "render"):
        if name in config:
            _apply_section(getattr(settings, name), config.pop(name), name)

    if config:
        raise ConfigError(f"Unknown configuration sections: {', '.join(sorted(config))}")

    # Environment overrides YAML; the password comes from environment only
    env_overrides = {
        "FEED_URL": (settings.feed, "url"),
        "EMAIL_FROM": (settings.email, "from_address"),
        "EMAIL_TO": (settings.email, "to_address"),
        "SMTP_SERVER": (settings.email, "smtp_host"),
        "SMTP_PORT": (settings.email, "smtp_port"),
        "SMTP_USERNAME": (settings.email, "username"),
    }
    for env_name, (section, attr) in env_overrides.items():
        value = os.getenv(env_name)
        if value:
            setattr(section, attr, _coerce(value, getattr(section, attr), env_name))

    settings.email.password = os.getenv("SMTP_PASSWORD", "")

    return settings
