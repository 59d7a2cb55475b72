"""
Configuration Package for AreWeUp

This package contains all configuration-related modules including:
- Bootstrap settings with environment variable support
- Constants and enums used throughout the application
- The health check document loader and resolver (import
  ``config.loader`` and ``config.resolver`` directly)
"""

from config.settings import (
    Settings,
    ProbeDefaultSettings,
    LoggingSettings,
    NotificationSettings,
    MetricsSettings,
    ResolverDefaults,
    get_settings
)

from config.constants import (
    Protocol,
    HTTPMethods,
    OutcomeLevel,
    MetricNames,
    Defaults,
    UdpErrorKind,
    UdpErrorTables,
    FieldAliases
)

__all__ = [
    # Settings
    "Settings",
    "ProbeDefaultSettings",
    "LoggingSettings",
    "NotificationSettings",
    "MetricsSettings",
    "ResolverDefaults",
    "get_settings",

    # Constants
    "Protocol",
    "HTTPMethods",
    "OutcomeLevel",
    "MetricNames",
    "Defaults",
    "UdpErrorKind",
    "UdpErrorTables",
    "FieldAliases"
]
