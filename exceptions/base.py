"""
Base Exception Classes for AreWeUp

Provides the foundation exception hierarchy from which all
other exceptions inherit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class AreWeUpException(Exception):
    """
    Base Exception Class

    All custom exceptions in AreWeUp inherit from this class.
    Provides common functionality for error handling, logging,
    and serialization.

    Attributes:
        message: Human-readable error message
        error_code: Numeric error code for categorization
        details: Additional error details as dictionary
        cause: The underlying exception, if any
        timestamp: When the exception occurred
    """

    # Default error code
    default_error_code: int = 1000

    def __init__(
        self,
        message: str = "An error occurred",
        error_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Numeric error code
            details: Additional error details
            cause: The underlying exception that caused this one
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    @property
    def full_message(self) -> str:
        """Get full error message with code."""
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def log_format(self) -> str:
        """
        Format exception for logging.

        Returns:
            Formatted string for logging
        """
        parts = [
            f"Exception: {self.__class__.__name__}",
            f"Code: {self.error_code}",
            f"Message: {self.message}"
        ]

        if self.details:
            parts.append(f"Details: {self.details}")

        if self.cause:
            parts.append(f"Cause: {self.cause}")

        return " | ".join(parts)

    def with_details(self, **kwargs: Any) -> "AreWeUpException":
        """
        Add additional details to the exception.

        Args:
            **kwargs: Key-value pairs to add to details

        Returns:
            Self for chaining
        """
        self.details.update(kwargs)
        return self

    def __str__(self) -> str:
        """String representation."""
        return self.full_message

    def __repr__(self) -> str:
        """Detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code}, "
            f"details={self.details})"
        )


class ConfigurationError(AreWeUpException):
    """
    Configuration Error

    Raised when the bootstrap settings are unusable, e.g. no
    configuration location or no default alert topic.
    """

    default_error_code = 1100

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_key: The configuration key that caused the error
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if config_key:
            self.details["config_key"] = config_key


class ConfigSourceError(ConfigurationError):
    """
    Config Source Error

    Raised when the raw health check document cannot be fetched
    from its file path or URL. Aborts the invocation.
    """

    default_error_code = 1150

    def __init__(
        self,
        message: str,
        location: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if location:
            self.details["location"] = location
