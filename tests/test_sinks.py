import pytest
from aiogram.exceptions import TelegramNetworkError

from exceptions import AlertPublishError
from monitoring.sinks import (
    LogMetricsSink,
    LogNotificationChannel,
    MetricsSink,
    NotificationChannel,
    TelegramNotificationChannel,
)


class FakeBot:
    """Fails the first ``failures`` sends with a network error."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.sent = []

    async def send_message(self, chat_id, text, parse_mode=None):
        if self.failures > 0:
            self.failures -= 1
            raise TelegramNetworkError(method=None, message="connection reset")
        self.sent.append((chat_id, text, parse_mode))


def test_log_collaborators_satisfy_the_protocols():
    assert isinstance(LogMetricsSink(), MetricsSink)
    assert isinstance(LogNotificationChannel(), NotificationChannel)


@pytest.mark.asyncio
async def test_numeric_topic_is_sent_as_chat_id():
    bot = FakeBot()
    channel = TelegramNotificationChannel(bot, initial_delay=0)

    await channel.publish("-100123", "db is down", "Database")

    assert bot.sent == [(-100123, "<b>Database</b>\n\ndb is down", "HTML")]


@pytest.mark.asyncio
async def test_channel_name_topic_is_kept():
    bot = FakeBot()

    await TelegramNotificationChannel(bot, initial_delay=0).publish("@oncall", "down")

    assert bot.sent[0][0] == "@oncall"
    assert bot.sent[0][1] == "down"


def test_html_is_escaped():
    channel = TelegramNotificationChannel(FakeBot())

    assert channel.format_message("<b>500</b> & more", "a<b") == "<b>a&lt;b</b>\n\n&lt;b&gt;500&lt;/b&gt; &amp; more"


def test_plain_parse_mode_is_not_escaped():
    channel = TelegramNotificationChannel(FakeBot(), parse_mode="MarkdownV2")

    assert channel.format_message("x < y", "Subject") == "Subject\n\nx < y"


@pytest.mark.asyncio
async def test_transient_failures_are_retried():
    bot = FakeBot(failures=2)

    await TelegramNotificationChannel(bot, max_retries=2, initial_delay=0).publish("1", "down")

    assert len(bot.sent) == 1


@pytest.mark.asyncio
async def test_exhausted_retries_raise():
    bot = FakeBot(failures=5)

    with pytest.raises(AlertPublishError) as exc_info:
        await TelegramNotificationChannel(bot, max_retries=1, initial_delay=0).publish("1", "down")

    assert bot.sent == []
    assert exc_info.value.details["topic"] == "1"


@pytest.mark.asyncio
async def test_missing_topic_raises_without_sending():
    bot = FakeBot()

    with pytest.raises(AlertPublishError):
        await TelegramNotificationChannel(bot).publish("", "down")

    assert bot.sent == []
