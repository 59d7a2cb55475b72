"""
Constants Module for AreWeUp

Contains all constant values, enumerations and static lookup tables
used by the probes, the resolver and the reporter.
"""

from __future__ import annotations

import errno
from enum import Enum
from typing import Dict, Final, FrozenSet, Tuple


class Protocol(str, Enum):
    """
    Probe Protocols

    The five kinds of health check a configuration document may declare.
    The value doubles as the ``Protocol`` metric dimension.
    """

    HTTP = "HTTP"
    HTTPS = "HTTPS"
    TCP = "TCP"
    UDP = "UDP"
    ICMP = "ICMP"

    @property
    def is_web(self) -> bool:
        """HTTP and HTTPS share the web request options."""
        return self in (Protocol.HTTP, Protocol.HTTPS)

    @property
    def requires_port(self) -> bool:
        """TCP and UDP cannot be probed without a port."""
        return self in (Protocol.TCP, Protocol.UDP)

    @property
    def document_key(self) -> str:
        """Top-level key of this protocol's array in the configuration document."""
        return self.value.capitalize()


class HTTPMethods(str, Enum):
    """HTTP Methods accepted for web probes."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"

    @classmethod
    def with_body(cls) -> FrozenSet[str]:
        """Methods for which a configured body is attached to the request."""
        return frozenset({cls.POST.value, cls.PUT.value, cls.PATCH.value})


class OutcomeLevel(str, Enum):
    """Severity a probe attaches to its outcome message."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class MetricNames:
    """
    Metric Sink Vocabulary

    Namespace, metric names, units and dimension names written
    to the metrics sink for every reported outcome.
    """

    NAMESPACE: Final[str] = "AWS/AreWeUp"

    AVAILABILITY: Final[str] = "Availability"
    LATENCY: Final[str] = "Latency"

    UNIT_COUNT: Final[str] = "Count"
    UNIT_MILLISECONDS: Final[str] = "Milliseconds"

    DIMENSION_PATH: Final[str] = "Path"
    DIMENSION_CUSTOMER_ID: Final[str] = "CustomerId"
    DIMENSION_PROTOCOL: Final[str] = "Protocol"


class Defaults:
    """
    Default Values

    Values applied when neither the endpoint nor the bootstrap
    defaults provide one.
    """

    # Network defaults
    TIMEOUT_MILLIS: Final[int] = 500
    ICMP_TIMEOUT_MILLIS: Final[int] = 1000

    # Web defaults
    HTTP_METHOD: Final[HTTPMethods] = HTTPMethods.HEAD
    EXPECTED_STATUS: Final[int] = 200
    HTTP_PORT: Final[int] = 80
    HTTPS_PORT: Final[int] = 443
    HTTP_TIMEOUT_SECONDS: Final[float] = 30.0
    USER_AGENT: Final[str] = "AreWeUp/1.0 (Availability Monitor)"

    # UDP defaults
    UDP_PAYLOAD: Final[bytes] = b"\x00"
    UDP_RECEIVE_BUFFER_SIZE: Final[int] = 512


class UdpErrorKind(str, Enum):
    """
    Transport error kinds a UDP exchange can surface.

    UDP gives no handshake, so the kind of socket error is the only
    signal about whether anything is listening.
    """

    CONNECTION_RESET = "connection-reset"
    TIMED_OUT = "timed-out"
    ACCESS_DENIED = "access-denied"
    ALREADY_CONNECTED = "already-connected"
    IO_PENDING = "io-pending"
    CONNECTION_REFUSED = "connection-refused"
    OTHER = "other"


class UdpErrorTables:
    """
    Classification tables for UDP transport errors.

    ``OK_KINDS`` mean the host answered or may simply not reply, and are
    reported as up. ``WARNING_KINDS`` mean the packet was explicitly
    rejected and are reported as down with a warning. Access-denied sits
    in ``WARNING_KINDS`` only.
    """

    ERRNO_KINDS: Final[Dict[int, UdpErrorKind]] = {
        errno.ECONNRESET: UdpErrorKind.CONNECTION_RESET,
        errno.ETIMEDOUT: UdpErrorKind.TIMED_OUT,
        errno.EACCES: UdpErrorKind.ACCESS_DENIED,
        errno.EPERM: UdpErrorKind.ACCESS_DENIED,
        errno.EISCONN: UdpErrorKind.ALREADY_CONNECTED,
        errno.EINPROGRESS: UdpErrorKind.IO_PENDING,
        errno.EALREADY: UdpErrorKind.IO_PENDING,
        errno.EWOULDBLOCK: UdpErrorKind.IO_PENDING,
        errno.ECONNREFUSED: UdpErrorKind.CONNECTION_REFUSED,
    }

    OK_KINDS: Final[FrozenSet[UdpErrorKind]] = frozenset({
        UdpErrorKind.CONNECTION_RESET,
        UdpErrorKind.TIMED_OUT,
        UdpErrorKind.ALREADY_CONNECTED,
        UdpErrorKind.IO_PENDING,
    })

    WARNING_KINDS: Final[FrozenSet[UdpErrorKind]] = frozenset({
        UdpErrorKind.CONNECTION_REFUSED,
        UdpErrorKind.ACCESS_DENIED,
    })


class FieldAliases:
    """
    Accepted document field names, per resolved attribute.

    Matching is case-insensitive; the first entry is the canonical
    name the resolver writes defaults under.
    """

    TARGET: Final[Tuple[str, ...]] = ("Path", "Target")
    CUSTOMER_ID: Final[Tuple[str, ...]] = ("CustomerId",)
    SEND_METRIC: Final[Tuple[str, ...]] = ("SendToCloudWatch", "SendMetric")
    ALERT_TOPIC: Final[Tuple[str, ...]] = ("SNSTopicArn", "AlertTopic")
    ALERT_SUBJECT: Final[Tuple[str, ...]] = ("Subject", "AlertSubject")
    TIMEOUT: Final[Tuple[str, ...]] = ("Timeout", "TimeoutMillis")
    PORT: Final[Tuple[str, ...]] = ("Port",)
    METHOD: Final[Tuple[str, ...]] = ("Method",)
    BODY: Final[Tuple[str, ...]] = ("Content", "Body")
    CONTENT_TYPE: Final[Tuple[str, ...]] = ("ContentType",)
    PREVENT_REDIRECT: Final[Tuple[str, ...]] = ("PreventAutoRedirect", "PreventRedirect")
    REDIRECT_HEADERS: Final[Tuple[str, ...]] = (
        "RedirectHeadersToValidate",
        "RedirectHeaderExpectations",
    )
    COOKIES: Final[Tuple[str, ...]] = ("CookiesToValidate", "CookiesRequired")
    EXPECTED_STATUS: Final[Tuple[str, ...]] = ("ExpectedResponse", "ExpectedStatus")
    IGNORE_TLS: Final[Tuple[str, ...]] = ("IgnoreSslErrors", "IgnoreTlsErrors")
    PAYLOAD: Final[Tuple[str, ...]] = ("Payload",)
    RECEIVE_BUFFER: Final[Tuple[str, ...]] = ("ReceiveBufferSize",)
