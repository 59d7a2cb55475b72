"""
============================================================================
AREWEUP - MONITORING PACKAGE
============================================================================
Probe execution and result classification:
    • models      — EndpointRequest, ProbeOutcome, HealthCheckConfiguration
    • probes      — HTTP/HTTPS, TCP, UDP and ICMP probes + ProbeRouter
    • dispatcher  — runs every endpoint of a configuration concurrently
    • reporter    — logs outcomes, writes metrics, publishes alerts
    • sinks       — MetricsSink / NotificationChannel protocols and channels

File layout
-----------
monitoring/
├── __init__.py          ← this file
├── models.py
├── probes.py
├── dispatcher.py
├── reporter.py
└── sinks.py

============================================================================
"""

from monitoring.models import (
    EndpointRequest, WebOptions, UdpOptions, ProbeOutcome, HealthCheckConfiguration
)
from monitoring.probes import (
    HTTPProbe, TCPProbe, UDPProbe, ICMPProbe, ProbeRouter, classify_udp_error
)
from monitoring.dispatcher import HealthCheckDispatcher
from monitoring.reporter import ResultReporter
from monitoring.sinks import (
    MetricsSink, NotificationChannel, LogMetricsSink, LogNotificationChannel,
    TelegramNotificationChannel
)

__all__ = [
    # Models
    "EndpointRequest",
    "WebOptions",
    "UdpOptions",
    "ProbeOutcome",
    "HealthCheckConfiguration",

    # Probes
    "HTTPProbe",
    "TCPProbe",
    "UDPProbe",
    "ICMPProbe",
    "ProbeRouter",
    "classify_udp_error",

    # Dispatch & reporting
    "HealthCheckDispatcher",
    "ResultReporter",

    # Collaborators
    "MetricsSink",
    "NotificationChannel",
    "LogMetricsSink",
    "LogNotificationChannel",
    "TelegramNotificationChannel",
]
