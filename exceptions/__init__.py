"""
Exceptions Package for AreWeUp

Provides the exception hierarchy for error handling
throughout the application.
"""

from exceptions.base import (
    AreWeUpException,
    ConfigurationError,
    ConfigSourceError
)

from exceptions.validation import (
    ConfigParseError,
    MissingFieldError,
    InvalidTargetError
)

from exceptions.monitoring import (
    ProbeTransportError,
    ReportingError,
    MetricPublishError,
    AlertPublishError
)

__all__ = [
    # Base exceptions
    "AreWeUpException",
    "ConfigurationError",
    "ConfigSourceError",

    # Validation exceptions
    "ConfigParseError",
    "MissingFieldError",
    "InvalidTargetError",

    # Monitoring exceptions
    "ProbeTransportError",
    "ReportingError",
    "MetricPublishError",
    "AlertPublishError"
]
