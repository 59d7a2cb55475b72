"""
============================================================================
AREWEUP - RESULT REPORTER
============================================================================
Consumes each probe outcome:

1. logs the outcome message at the outcome's level
2. if the request asks for metrics, writes an Availability datapoint
   (1 / 0) and, on success, a Latency datapoint
3. on failure, publishes an alert to the request's topic

Metric and alert failures are logged here and never propagate, so one
endpoint's reporting problem cannot affect another's.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

from typing import Dict

from config.constants import MetricNames
from exceptions import ReportingError
from monitoring.models import EndpointRequest, ProbeOutcome
from monitoring.sinks import MetricsSink, NotificationChannel
from utils.logger import get_logger, log_outcome


logger = get_logger("ResultReporter")


class ResultReporter:
    """
    Routes outcomes to the log, the metrics sink and the notification channel.

    Parameters
    ----------
    metrics_sink : MetricsSink
        Shared, safe for concurrent use.
    notification_channel : NotificationChannel
        Shared, safe for concurrent use.
    """

    def __init__(self, metrics_sink: MetricsSink, notification_channel: NotificationChannel):
        self.metrics_sink = metrics_sink
        self.notification_channel = notification_channel

    async def report(self, request: EndpointRequest, outcome: ProbeOutcome) -> None:
        if request is None or outcome is None:
            raise ValueError("request and outcome are required")

        log_outcome(logger, outcome.level.value, outcome.message)

        if request.send_metric:
            await self._send_metrics(request, outcome)

        if not outcome.success:
            await self._send_alert(request, outcome)

    @staticmethod
    def dimensions(request: EndpointRequest) -> Dict[str, str]:
        return {
            MetricNames.DIMENSION_PATH: request.metric_path,
            MetricNames.DIMENSION_CUSTOMER_ID: request.customer_id,
            MetricNames.DIMENSION_PROTOCOL: request.protocol.value,
        }

    async def _send_metrics(self, request: EndpointRequest, outcome: ProbeOutcome) -> None:
        dimensions = self.dimensions(request)

        datapoints = [
            (MetricNames.AVAILABILITY, 1.0 if outcome.success else 0.0, MetricNames.UNIT_COUNT),
        ]
        if outcome.latency_ms is not None:
            datapoints.append(
                (MetricNames.LATENCY, float(outcome.latency_ms), MetricNames.UNIT_MILLISECONDS)
            )

        for metric_name, value, unit in datapoints:
            try:
                await self.metrics_sink.put_metric(
                    MetricNames.NAMESPACE, metric_name, value, unit, dimensions
                )
            except ReportingError as e:
                logger.error(f"[Reporter] {metric_name} metric for {request.display_name} not stored: {e.log_format()}")
            except Exception as e:
                logger.opt(exception=e).error(
                    f"[Reporter] Unexpected error storing {metric_name} metric for {request.display_name}: {e}"
                )

    async def _send_alert(self, request: EndpointRequest, outcome: ProbeOutcome) -> None:
        subject = request.alert_subject or None

        try:
            await self.notification_channel.publish(request.alert_topic, outcome.message, subject)
        except ReportingError as e:
            logger.error(f"[Reporter] Alert for {request.display_name} not published: {e.log_format()}")
        except Exception as e:
            logger.opt(exception=e).error(
                f"[Reporter] Unexpected error publishing alert for {request.display_name}: {e}"
            )
