"""
============================================================================
AREWEUP - HEALTH CHECK DISPATCHER
============================================================================
Runs every endpoint of a resolved configuration once, concurrently, and
hands each outcome to the reporter.

HealthCheckDispatcher
├── execute()             ← fans out one task per endpoint via asyncio.gather
└── _run_guarded()        ← probe + report; an unexpected probe exception
                            becomes a failing outcome that is still reported

Wall-clock time of one ``execute()`` is roughly the slowest probe, not
the sum: there is no worker pool, every probe runs at once.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import json
import time
from typing import Optional

from monitoring.models import EndpointRequest, HealthCheckConfiguration, ProbeOutcome
from monitoring.probes import ProbeRouter
from monitoring.reporter import ResultReporter
from utils.logger import get_logger


logger = get_logger("Dispatcher")


class HealthCheckDispatcher:
    """
    Fan-out / fan-in coordinator for one invocation.

    Parameters
    ----------
    reporter : ResultReporter
        Receives every outcome.
    router : ProbeRouter | None
        Probe selection; a default router (fresh cookie jar) when omitted.
    """

    def __init__(self, reporter: ResultReporter, router: Optional[ProbeRouter] = None):
        self.reporter = reporter
        self.router = router or ProbeRouter()

    async def execute(self, config: HealthCheckConfiguration) -> None:
        """
        Probe and report every endpoint in ``config``.

        Returns once every launched probe has been reported.
        """
        if config is None:
            raise ValueError("config must not be None")

        logger.debug(f"[Dispatcher] Configuration: {json.dumps(config.to_dict())}")

        requests = list(config)
        if not requests:
            logger.info("[Dispatcher] No endpoints configured, nothing to check")
            return

        start_time = time.perf_counter()

        tasks = [
            asyncio.create_task(self._run_guarded(request))
            for request in requests
        ]
        # Wait for all, but don't let one failure crash the rest
        results = await asyncio.gather(*tasks, return_exceptions=True)

        # Anything left here escaped both the probe and the reporter
        for request, result in zip(requests, results):
            if isinstance(result, BaseException):
                logger.opt(exception=result).error(
                    f"[Dispatcher] Check for {request.display_name} raised: {result}"
                )

        logger.info(
            f"[Dispatcher] Checked {len(requests)} endpoint(s) in "
            f"{time.perf_counter() - start_time:.2f}s"
        )

    async def _run_guarded(self, request: EndpointRequest) -> None:
        try:
            outcome = await self.router.probe(request)
        except Exception as e:
            logger.opt(exception=e).error(
                f"[Dispatcher] {request.protocol.value} probe of {request.display_name} failed unexpectedly"
            )
            outcome = ProbeOutcome.down(
                f"{request.protocol.value} check for {request.display_name} failed with an "
                f"unexpected error: {type(e).__name__}: {e}"
            )

        await self.reporter.report(request, outcome)
