"""
============================================================================
AREWEUP - PROBE MODELS
============================================================================
Value objects passed between the resolver, the probes and the reporter.

EndpointRequest           ← one resolved endpoint, tagged by protocol
├── WebOptions            ← HTTP/HTTPS only
└── UdpOptions            ← UDP only
ProbeOutcome              ← verdict of one probe
HealthCheckConfiguration  ← five ordered collections of requests

All of them are frozen: a request is built once per invocation and is
safe to probe concurrently.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from config.constants import Defaults, OutcomeLevel, Protocol
from utils.validators import URLValidator


# ============================================================================
# REQUEST PAYLOADS
# ============================================================================

@dataclass(frozen=True)
class WebOptions:
    """Options shared by HTTP and HTTPS requests."""

    method: str = Defaults.HTTP_METHOD.value
    body: Optional[str] = None
    content_type: Optional[str] = None
    prevent_redirect: bool = False
    # (header name, expected value) pairs, checked on a 3xx when prevent_redirect is set
    redirect_header_expectations: Tuple[Tuple[str, str], ...] = ()
    cookies_required: Tuple[str, ...] = ()
    expected_status: int = Defaults.EXPECTED_STATUS
    ignore_tls_errors: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "body": self.body,
            "contentType": self.content_type,
            "preventRedirect": self.prevent_redirect,
            "redirectHeaderExpectations": dict(self.redirect_header_expectations),
            "cookiesRequired": list(self.cookies_required),
            "expectedStatus": self.expected_status,
            "ignoreTlsErrors": self.ignore_tls_errors,
        }


@dataclass(frozen=True)
class UdpOptions:
    """Options for UDP requests."""

    payload: bytes = Defaults.UDP_PAYLOAD
    receive_buffer_size: int = Defaults.UDP_RECEIVE_BUFFER_SIZE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": base64.b64encode(self.payload).decode("ascii"),
            "receiveBufferSize": self.receive_buffer_size,
        }


# ============================================================================
# ENDPOINT REQUEST
# ============================================================================

@dataclass(frozen=True)
class EndpointRequest:
    """
    A fully resolved endpoint check.

    Parameters
    ----------
    protocol : Protocol
        Which probe runs this request.
    target : str
        URL for web requests, host name or IP address otherwise.
        Never empty.
    port : int | None
        Required for TCP/UDP; optional for web requests; ignored for ICMP.
    web : WebOptions | None
        Present exactly when ``protocol.is_web``.
    udp : UdpOptions | None
        Present exactly when ``protocol`` is UDP.
    """

    protocol: Protocol
    target: str
    customer_id: str = ""
    send_metric: bool = False
    alert_topic: str = ""
    alert_subject: str = ""
    timeout_millis: int = Defaults.TIMEOUT_MILLIS
    port: Optional[int] = None
    web: Optional[WebOptions] = None
    udp: Optional[UdpOptions] = None

    def __post_init__(self) -> None:
        if not isinstance(self.protocol, Protocol):
            raise TypeError(f"protocol must be a Protocol, got {type(self.protocol).__name__}")
        if not self.target or not self.target.strip():
            raise ValueError("target must be a non-empty string")
        if self.protocol.is_web and self.web is None:
            raise ValueError(f"{self.protocol.value} requests need web options")
        if self.protocol is Protocol.UDP and self.udp is None:
            raise ValueError("UDP requests need udp options")

    @property
    def metric_path(self) -> str:
        """Value of the ``Path`` metric dimension."""
        if self.protocol.is_web:
            return URLValidator.metric_path(self.target)
        return self.target

    @property
    def display_name(self) -> str:
        if self.protocol.requires_port:
            return f"{self.target}:{self.port}"
        return self.target

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "protocol": self.protocol.value,
            "target": self.target,
            "customerId": self.customer_id,
            "sendMetric": self.send_metric,
            "alertTopic": self.alert_topic,
            "alertSubject": self.alert_subject,
            "timeoutMillis": self.timeout_millis,
            "port": self.port,
        }
        if self.web is not None:
            data.update(self.web.to_dict())
        if self.udp is not None:
            data.update(self.udp.to_dict())
        return data


# ============================================================================
# PROBE OUTCOME
# ============================================================================

@dataclass(frozen=True)
class ProbeOutcome:
    """
    Verdict of a single probe.

    ``latency_ms`` is set only on success; elapsed time of a failed
    attempt is never reported.
    """

    success: bool
    message: str
    latency_ms: Optional[float] = None
    level: OutcomeLevel = OutcomeLevel.INFO

    def __post_init__(self) -> None:
        if not self.success and self.latency_ms is not None:
            raise ValueError("a failed outcome cannot carry latency")
        if self.success and (self.latency_ms is None or self.latency_ms < 0):
            raise ValueError("a successful outcome needs a non-negative latency")

    @classmethod
    def up(cls, message: str, latency_ms: float) -> "ProbeOutcome":
        return cls(True, message, max(0.0, latency_ms), OutcomeLevel.INFO)

    @classmethod
    def down(cls, message: str, warning: bool = False) -> "ProbeOutcome":
        level = OutcomeLevel.WARNING if warning else OutcomeLevel.ERROR
        return cls(False, message, None, level)


# ============================================================================
# HEALTH CHECK CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class HealthCheckConfiguration:
    """Resolved endpoints of one configuration document, per protocol."""

    http: Tuple[EndpointRequest, ...] = field(default_factory=tuple)
    https: Tuple[EndpointRequest, ...] = field(default_factory=tuple)
    tcp: Tuple[EndpointRequest, ...] = field(default_factory=tuple)
    udp: Tuple[EndpointRequest, ...] = field(default_factory=tuple)
    icmp: Tuple[EndpointRequest, ...] = field(default_factory=tuple)

    def by_protocol(self, protocol: Protocol) -> Tuple[EndpointRequest, ...]:
        return getattr(self, protocol.value.lower())

    def __iter__(self) -> Iterator[EndpointRequest]:
        for protocol in Protocol:
            yield from self.by_protocol(protocol)

    def __len__(self) -> int:
        return sum(len(self.by_protocol(protocol)) for protocol in Protocol)

    def to_dict(self) -> Dict[str, Any]:
        return {
            protocol.document_key: [request.to_dict() for request in self.by_protocol(protocol)]
            for protocol in Protocol
        }
