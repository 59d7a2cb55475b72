"""
Validation Exception Classes for AreWeUp

Provides specialized exceptions for health check document errors:
malformed JSON, wrong field types, missing required fields and
invalid targets. Any of these aborts the whole invocation.
"""

from __future__ import annotations

from typing import Any, Optional

from exceptions.base import AreWeUpException


class ConfigParseError(AreWeUpException):
    """
    Config Parse Error

    Raised when the configuration document is not well-formed or an
    endpoint is incomplete after defaulting. Parent of all document
    validation errors.
    """

    default_error_code = 3000

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        protocol: Optional[str] = None,
        index: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize config parse error.

        Args:
            message: Error message
            field: The endpoint field that failed validation
            value: The invalid value (sanitized)
            protocol: The document section the endpoint belongs to
            index: Position of the endpoint within its section
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if field:
            self.details["field"] = field

        if value is not None:
            self.details["value"] = self._sanitize_value(value)

        if protocol:
            self.details["protocol"] = protocol

        if index is not None:
            self.details["index"] = index

    @staticmethod
    def _sanitize_value(value: Any) -> str:
        """
        Sanitize value for logging.

        Args:
            value: The value to sanitize

        Returns:
            Sanitized string representation
        """
        str_value = str(value)

        # Truncate long values
        if len(str_value) > 100:
            str_value = str_value[:100] + "..."

        return str_value


class MissingFieldError(ConfigParseError):
    """
    Missing Field Error

    Raised when a required endpoint field (target, or port for
    TCP/UDP) is absent after defaults have been applied.
    """

    default_error_code = 3001

    def __init__(
        self,
        field: str,
        protocol: Optional[str] = None,
        index: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        location = f"{protocol}[{index}]" if protocol is not None else "endpoint"
        super().__init__(
            f"Required field '{field}' is missing from {location}",
            field=field,
            protocol=protocol,
            index=index,
            **kwargs
        )


class InvalidTargetError(ConfigParseError):
    """
    Invalid Target Error

    Raised when an endpoint target is empty or cannot be parsed into a
    well-formed URL (web probes) or host name / IP address (network probes).
    """

    default_error_code = 3002

    def __init__(
        self,
        message: str = "Invalid endpoint target",
        target: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, field="target", value=target, **kwargs)

        if reason:
            self.details["reason"] = reason
