"""
Settings Module for AreWeUp

Bootstrap configuration management using Pydantic Settings.
Supports environment variables, .env files, and runtime configuration.
The probing core never reads these settings directly: the entry point
turns them into a ``ResolverDefaults`` value and passes that in.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import Defaults
from exceptions import ConfigurationError


@dataclass(frozen=True)
class ResolverDefaults:
    """
    Defaults merged into every endpoint that omits the matching field.

    Built once per process from the bootstrap settings and handed to
    the config resolver.
    """

    customer_id: str = ""
    send_metric: bool = False
    ignore_tls_errors: bool = False
    timeout_millis: int = Defaults.TIMEOUT_MILLIS
    alert_topic: str = ""
    alert_subject: str = ""


class BaseSettingsConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )


class ProbeDefaultSettings(BaseSettingsConfig):
    """
    Probe Default Settings

    Where the health check document lives and the values applied to
    endpoints that do not set them.
    """

    model_config = SettingsConfigDict(
        env_prefix="AREWEUP_",
        env_file=".env",
        extra="ignore"
    )

    config_location: str = Field(
        default="",
        description="File path or http(s) URL of the health check document"
    )
    default_customer_id: str = Field(
        default="",
        description="Customer id used for metric dimensions when an endpoint has none"
    )
    alert_topic: str = Field(
        default="",
        description="Notification topic alerts go to when an endpoint has none"
    )
    default_subject: str = Field(
        default="",
        description="Alert subject used when an endpoint has none"
    )
    ignore_tls_errors: bool = Field(
        default=False,
        description="Tolerate TLS validation errors on HTTPS probes by default"
    )
    send_metric: bool = Field(
        default=False,
        description="Emit availability/latency metrics by default"
    )
    force_refresh: bool = Field(
        default=False,
        description="Re-read the health check document on every invocation"
    )
    timeout_millis: int = Field(
        default=Defaults.TIMEOUT_MILLIS,
        gt=0,
        description="Default TCP/UDP timeout in milliseconds"
    )
    http_timeout_seconds: float = Field(
        default=Defaults.HTTP_TIMEOUT_SECONDS,
        gt=0,
        le=600,
        description="Transport timeout applied to HTTP/HTTPS probes"
    )

    @field_validator("config_location", "default_customer_id", "alert_topic", "default_subject")
    @classmethod
    def strip_strings(cls, v: str) -> str:
        """Environment values often carry stray whitespace."""
        return v.strip()


class LoggingSettings(BaseSettingsConfig):
    """
    Logging Configuration Settings

    Controls the loguru sinks configured at start-up.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    console_enabled: bool = Field(
        default=True,
        description="Log to stdout"
    )
    colorize: bool = Field(
        default=True,
        description="Colorize console output"
    )
    file_enabled: bool = Field(
        default=False,
        description="Also log to a rotating file"
    )
    file_path: Path = Field(
        default=Path("logs/areweup.log"),
        description="Log file path"
    )
    rotation: str = Field(
        default="10 MB",
        description="Log file rotation size or interval"
    )
    retention: str = Field(
        default="7 days",
        description="How long rotated log files are kept"
    )
    serialize: bool = Field(
        default=False,
        description="Write the log file as JSON lines"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize and validate the level name."""
        level = v.strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class NotificationSettings(BaseSettingsConfig):
    """
    Notification Channel Settings

    Alerts go to Telegram when a bot token is configured; otherwise
    they are only written to the log.
    """

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        extra="ignore"
    )

    bot_token: Optional[SecretStr] = Field(
        default=None,
        description="Telegram Bot API token from @BotFather"
    )
    send_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for a failed alert send"
    )
    parse_mode: str = Field(
        default="HTML",
        description="Message parse mode (HTML, Markdown, MarkdownV2)"
    )

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.bot_token.get_secret_value())


class MetricsSettings(BaseSettingsConfig):
    """
    Metrics Sink Settings

    Availability and latency datapoints are stored through SQLAlchemy.
    """

    model_config = SettingsConfigDict(
        env_prefix="METRICS_",
        env_file=".env",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Store metric datapoints at all"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///data/areweup_metrics.db",
        description="SQLAlchemy async database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debug mode)"
    )


class Settings(BaseSettingsConfig):
    """
    Main Application Settings

    Aggregates every settings group.
    """

    app_name: str = Field(
        default="AreWeUp",
        description="Application name"
    )

    # Nested settings
    probes: ProbeDefaultSettings = Field(
        default_factory=ProbeDefaultSettings
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings
    )
    notifications: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    metrics: MetricsSettings = Field(
        default_factory=MetricsSettings
    )

    def validate_bootstrap(self) -> List[str]:
        """
        Check the settings an invocation cannot run without.

        Returns:
            One message per problem; empty when the settings are usable
        """
        return [message for _, message in self._bootstrap_problems()]

    def ensure_bootstrap(self) -> None:
        """
        Raise unless the settings can drive an invocation.

        Raises:
            ConfigurationError: Every problem is listed under
                ``details["problems"]``
        """
        problems = self._bootstrap_problems()
        if not problems:
            return

        raise ConfigurationError(
            f"{len(problems)} bootstrap setting(s) are missing or inconsistent",
            config_key=", ".join(key for key, _ in problems)
        ).with_details(problems=[message for _, message in problems])

    def _bootstrap_problems(self) -> List[Tuple[str, str]]:
        problems: List[Tuple[str, str]] = []

        if not self.probes.config_location:
            problems.append((
                "AREWEUP_CONFIG_LOCATION",
                "The AREWEUP_CONFIG_LOCATION setting was null or empty."
            ))

        if not self.probes.alert_topic:
            problems.append((
                "AREWEUP_ALERT_TOPIC",
                "You must specify a default alert topic (AREWEUP_ALERT_TOPIC)."
            ))

        if self.probes.send_metric and not self.probes.default_customer_id:
            problems.append((
                "AREWEUP_DEFAULT_CUSTOMER_ID",
                "The default customer id was empty and sending metrics by default was specified."
            ))

        return problems

    def to_defaults(self) -> ResolverDefaults:
        """Build the defaults value consumed by the config resolver."""
        return ResolverDefaults(
            customer_id=self.probes.default_customer_id,
            send_metric=self.probes.send_metric,
            ignore_tls_errors=self.probes.ignore_tls_errors,
            timeout_millis=self.probes.timeout_millis,
            alert_topic=self.probes.alert_topic,
            alert_subject=self.probes.default_subject,
        )

    def to_dict(self, *, exclude_secrets: bool = True) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        data = self.model_dump()

        if exclude_secrets:
            def remove_secrets(obj: Any) -> Any:
                if isinstance(obj, dict):
                    return {
                        k: remove_secrets(v)
                        for k, v in obj.items()
                        if "token" not in k.lower()
                        and "secret" not in k.lower()
                    }
                return obj

            data = remove_secrets(data)

        return data


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure a single settings instance
    is used throughout the process lifetime.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
