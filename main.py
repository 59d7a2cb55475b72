"""
============================================================================
AREWEUP - MAIN APPLICATION
============================================================================
Entry point for ONE monitoring invocation. A periodic trigger (cron, a
systemd timer, a scheduler) runs this module; the process probes every
configured endpoint once, reports, and exits.

Startup Order
-------------
1.  Load settings & configure logging
2.  Validate bootstrap settings (config location, alert topic, ...)
3.  Build collaborators: metrics sink (SQL or log) and notification
    channel (Telegram or log)
4.  Load and resolve the health check document

Invocation
----------
``run_once()`` re-reads the document first when AREWEUP_FORCE_REFRESH is
set (except right after startup, which has just read it), then
dispatches every endpoint concurrently.

Shutdown Order (reverse)
-------------------------
Close the notification channel → close the metrics database → exit

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import sys
from typing import Optional

from config.loader import load_config_bytes
from config.resolver import resolve
from config.settings import Settings, get_settings
from database import DatabaseManager, SqlMetricsSink
from exceptions import ConfigParseError, ConfigSourceError, ConfigurationError, ReportingError
from monitoring.dispatcher import HealthCheckDispatcher
from monitoring.models import HealthCheckConfiguration
from monitoring.probes import HTTPProbe, ProbeRouter
from monitoring.reporter import ResultReporter
from monitoring.sinks import (
    LogMetricsSink,
    LogNotificationChannel,
    MetricsSink,
    NotificationChannel,
    TelegramNotificationChannel,
)
from utils.logger import get_logger, setup_logging


logger = get_logger("Main")


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class AreWeUpApplication:
    """
    Top-level application orchestrator.

    Owns every collaborator and is the single place that knows the
    startup / shutdown order. Collaborators may be injected (tests do);
    otherwise they are built from the settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        metrics_sink: Optional[MetricsSink] = None,
        notification_channel: Optional[NotificationChannel] = None,
        configure_logging: bool = True
    ):
        self.settings = settings or get_settings()

        # --- collaborators (populated during startup) ---
        self.metrics_sink = metrics_sink
        self.notification_channel = notification_channel
        self.db_manager: Optional[DatabaseManager] = None
        self.reporter: Optional[ResultReporter] = None
        self.configuration: Optional[HealthCheckConfiguration] = None

        self._configure_logging = configure_logging
        # Set by startup() so the first forced refresh is not a second read
        self._loaded_at_startup = False

    # ==================================================================
    # PHASE 1 — BOOTSTRAP SETTINGS
    # ==================================================================

    def _validate_settings(self) -> bool:
        logger.info("── Phase 1: Bootstrap settings ───────────────────")
        try:
            self.settings.ensure_bootstrap()
        except ConfigurationError as e:
            for problem in e.details["problems"]:
                logger.error(f"  ✗ {problem}")
            logger.debug(e.log_format())
            return False

        logger.info(f"  ✓ Configuration source: {self.settings.probes.config_location}")
        logger.debug(f"  Effective settings: {self.settings.to_dict()}")
        return True

    # ==================================================================
    # PHASE 2 — COLLABORATORS
    # ==================================================================

    async def _init_metrics_sink(self) -> None:
        if self.metrics_sink is not None:
            return

        if not self.settings.metrics.enabled:
            logger.info("  • Metrics database disabled, datapoints go to the log")
            self.metrics_sink = LogMetricsSink()
            return

        self.db_manager = DatabaseManager(self.settings.metrics)
        try:
            await self.db_manager.connect()
            self.metrics_sink = SqlMetricsSink(self.db_manager)
            logger.info("  ✓ Metrics database ready")
        except ReportingError as e:
            logger.warning(f"  ⚠ Metrics database unavailable, falling back to the log: {e}")
            self.db_manager = None
            self.metrics_sink = LogMetricsSink()

    def _init_notification_channel(self) -> None:
        if self.notification_channel is not None:
            return

        notifications = self.settings.notifications
        if notifications.enabled:
            self.notification_channel = TelegramNotificationChannel.from_token(
                notifications.bot_token.get_secret_value(),
                max_retries=notifications.send_retries,
                parse_mode=notifications.parse_mode,
            )
            logger.info("  ✓ Alerts go to Telegram")
        else:
            self.notification_channel = LogNotificationChannel()
            logger.info("  • No Telegram bot token, alerts go to the log")

    # ==================================================================
    # PHASE 3 — HEALTH CHECK DOCUMENT
    # ==================================================================

    async def load_configuration(self) -> HealthCheckConfiguration:
        """
        Fetch and resolve the health check document.

        Raises:
            ConfigSourceError: The document could not be fetched
            ConfigParseError: The document is malformed or incomplete
        """
        raw_document = await load_config_bytes(
            self.settings.probes.config_location,
            timeout=self.settings.probes.http_timeout_seconds
        )
        self.configuration = resolve(raw_document, self.settings.to_defaults())
        logger.info(f"  ✓ Loaded {len(self.configuration)} endpoint(s)")
        return self.configuration

    # ==================================================================
    # FULL STARTUP SEQUENCE
    # ==================================================================

    async def startup(self) -> bool:
        """
        Execute the complete startup sequence.
        Returns False (and logs errors) if any critical phase fails.
        """
        if self._configure_logging:
            setup_logging(self.settings.logging)

        if not self._validate_settings():
            return False

        logger.info("── Phase 2: Collaborators ────────────────────────")
        await self._init_metrics_sink()
        self._init_notification_channel()
        self.reporter = ResultReporter(self.metrics_sink, self.notification_channel)

        logger.info("── Phase 3: Health check document ────────────────")
        try:
            await self.load_configuration()
        except (ConfigSourceError, ConfigParseError) as e:
            logger.error(f"  ✗ {e.log_format()}")
            return False

        self._loaded_at_startup = True
        return True

    # ==================================================================
    # ONE INVOCATION
    # ==================================================================

    async def run_once(self) -> None:
        """
        Probe every configured endpoint once.

        Raises:
            ConfigSourceError, ConfigParseError: A forced refresh failed
        """
        if self.reporter is None:
            raise RuntimeError("startup() must succeed before run_once()")

        just_loaded, self._loaded_at_startup = self._loaded_at_startup, False

        if self.configuration is None or (self.settings.probes.force_refresh and not just_loaded):
            logger.info("Refreshing health check document")
            await self.load_configuration()

        # A fresh cookie jar per invocation
        router = ProbeRouter(
            http_probe=HTTPProbe(timeout_seconds=self.settings.probes.http_timeout_seconds)
        )
        dispatcher = HealthCheckDispatcher(self.reporter, router)
        await dispatcher.execute(self.configuration)

    # ==================================================================
    # SHUTDOWN SEQUENCE
    # ==================================================================

    async def shutdown(self) -> None:
        """
        Release collaborators in reverse order.
        A failure in one step doesn't prevent the others from cleaning up.
        """
        if isinstance(self.notification_channel, TelegramNotificationChannel):
            try:
                await self.notification_channel.close()
            except Exception as e:
                logger.error(f"  ✗ Error closing Telegram session: {e}")

        if self.db_manager is not None:
            try:
                await self.db_manager.disconnect()
            except Exception as e:
                logger.error(f"  ✗ Error closing metrics database: {e}")


# ============================================================================
# MAIN
# ============================================================================

async def main() -> int:
    """
    Run one invocation; returns the process exit code.
    """
    app = AreWeUpApplication()

    try:
        if not await app.startup():
            logger.error("✗ Startup failed — no checks were run")
            return 1

        await app.run_once()
        return 0

    except (ConfigSourceError, ConfigParseError) as e:
        logger.error(f"✗ Invocation aborted: {e.log_format()}")
        return 1

    finally:
        await app.shutdown()


# ============================================================================
# SCRIPT ENTRY POINT
# ============================================================================

def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
