"""
Monitoring Exception Classes for AreWeUp

Exceptions raised while probing endpoints and reporting outcomes.
Neither kind ever aborts an invocation: probe transport errors are
turned into failing outcomes inside the probe, reporting errors are
logged by the reporter.
"""

from __future__ import annotations

from typing import Any, Optional

from exceptions.base import AreWeUpException


class ProbeTransportError(AreWeUpException):
    """
    Probe Transport Error

    A network-layer failure during a single probe: timeout, reset,
    DNS failure, TLS failure and so on.
    """

    default_error_code = 4000

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        protocol: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if target:
            self.details["target"] = target

        if protocol:
            self.details["protocol"] = protocol


class ReportingError(AreWeUpException):
    """
    Reporting Error

    Raised by a metrics sink or notification channel when a datapoint
    or alert could not be delivered.
    """

    default_error_code = 5000

    def __init__(
        self,
        message: str,
        sink: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if sink:
            self.details["sink"] = sink


class MetricPublishError(ReportingError):
    """A datapoint could not be written to the metrics sink."""

    default_error_code = 5001


class AlertPublishError(ReportingError):
    """An alert could not be published to the notification channel."""

    default_error_code = 5002

    def __init__(
        self,
        message: str,
        topic: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if topic:
            self.details["topic"] = topic
