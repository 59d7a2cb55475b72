"""
============================================================================
AREWEUP - METRICS SINKS & NOTIFICATION CHANNELS
============================================================================
The two outbound collaborators of the reporter, as structural protocols,
plus the channels that ship with the agent.

MetricsSink               ← put_metric(namespace, name, value, unit, dimensions)
├── LogMetricsSink        ← writes datapoints to the log only
└── database.SqlMetricsSink (see the database package)

NotificationChannel       ← publish(topic, body, subject)
├── TelegramNotificationChannel ← aiogram Bot, topic = chat id
└── LogNotificationChannel      ← writes alerts to the log only

Implementations raise a ``ReportingError`` subclass when delivery fails;
the reporter catches and logs it.

Retry
-----
Telegram sends are retried up to ``max_retries`` times with exponential
back-off. A flood-control answer from Telegram waits the advertised
``retry_after`` instead.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import html
from typing import Dict, Optional, Protocol, Union, runtime_checkable

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramRetryAfter

from exceptions import AlertPublishError
from utils.logger import get_logger


logger = get_logger("Sinks")


# ============================================================================
# COLLABORATOR PROTOCOLS
# ============================================================================

@runtime_checkable
class MetricsSink(Protocol):
    """Destination for availability and latency datapoints."""

    async def put_metric(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None:
        ...


@runtime_checkable
class NotificationChannel(Protocol):
    """Destination for failure alerts."""

    async def publish(self, topic: str, body: str, subject: Optional[str] = None) -> None:
        ...


# ============================================================================
# LOG-ONLY IMPLEMENTATIONS
# ============================================================================

class LogMetricsSink:
    """Used when the metrics database is disabled."""

    async def put_metric(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None:
        logger.debug(f"[Metric] {namespace}/{metric_name} = {value} {unit} {dimensions}")


class LogNotificationChannel:
    """Used when no Telegram bot token is configured."""

    async def publish(self, topic: str, body: str, subject: Optional[str] = None) -> None:
        title = f"{subject}: " if subject else ""
        logger.warning(f"[Alert → {topic}] {title}{body}")


# ============================================================================
# TELEGRAM CHANNEL
# ============================================================================

class TelegramNotificationChannel:
    """
    Publishes alerts as Telegram messages.

    Parameters
    ----------
    bot : aiogram.Bot
        Bot used to send messages. The channel closes its session on
        ``close()``.
    max_retries : int
        Extra attempts after the first failed send.
    parse_mode : str
        Telegram parse mode; text is HTML-escaped when it is ``HTML``.
    """

    def __init__(
        self,
        bot: Bot,
        max_retries: int = 2,
        parse_mode: str = "HTML",
        initial_delay: float = 1.0
    ):
        self.bot = bot
        self._max_retries = max_retries
        self._parse_mode = parse_mode
        self._initial_delay = initial_delay

    @classmethod
    def from_token(cls, token: str, **kwargs) -> "TelegramNotificationChannel":
        return cls(Bot(token=token), **kwargs)

    @staticmethod
    def _chat_id(topic: str) -> Union[int, str]:
        # Numeric chat ids are sent as integers, "@channel" names as-is
        try:
            return int(topic)
        except ValueError:
            return topic

    def format_message(self, body: str, subject: Optional[str] = None) -> str:
        if self._parse_mode.upper() == "HTML":
            body = html.escape(body)
            if subject:
                return f"<b>{html.escape(subject)}</b>\n\n{body}"
            return body

        return f"{subject}\n\n{body}" if subject else body

    async def publish(self, topic: str, body: str, subject: Optional[str] = None) -> None:
        """
        Send the alert, retrying with exponential back-off.

        Raises
        ------
        AlertPublishError
            Every attempt failed.
        """
        if not topic:
            raise AlertPublishError("No alert topic (chat id) was given", sink="telegram")

        chat_id = self._chat_id(topic)
        text = self.format_message(body, subject)

        delay = self._initial_delay
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries + 1):
            try:
                await self.bot.send_message(
                    chat_id=chat_id,
                    text=text,
                    parse_mode=self._parse_mode,
                )
                logger.info(f"[Telegram] ✓ Alert sent to {topic}: {(subject or body)[:60]}")
                return

            except TelegramAPIError as e:
                last_error = e
                logger.warning(
                    f"[Telegram] Send attempt {attempt + 1}/{self._max_retries + 1} "
                    f"failed for {topic}: {e}"
                )
                if attempt < self._max_retries:
                    wait = e.retry_after if isinstance(e, TelegramRetryAfter) else delay
                    await asyncio.sleep(wait)
                    delay *= 2  # exponential back-off

        raise AlertPublishError(
            f"All {self._max_retries + 1} send attempts exhausted",
            topic=topic,
            sink="telegram",
            cause=last_error
        )

    async def close(self) -> None:
        await self.bot.session.close()
