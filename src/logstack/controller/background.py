"""Logging stack controller background processing."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta

from aiojobs import Scheduler
from safir.datetime import current_datetime
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .services.reconcile import ReconcileManager

__all__ = ["BackgroundTaskManager"]


class BackgroundTaskManager:
    """Manage the controller background reconciliation task.

    The controller has no watches. Instead, it periodically reconciles every
    desired-state object, which makes each pass independent of anything that
    happened in earlier passes.

    This class is created during startup and tracked as part of the
    `~logstack.controller.factory.ProcessContext`.

    Parameters
    ----------
    reconcile_manager
        Service that performs a reconciliation pass.
    reconcile_interval
        How frequently to reconcile.
    slack_client
        Optional Slack webhook client for alerts.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        reconcile_manager: ReconcileManager,
        reconcile_interval: timedelta,
        slack_client: SlackWebhookClient | None,
        logger: BoundLogger,
    ) -> None:
        self._reconcile_manager = reconcile_manager
        self._interval = reconcile_interval
        self._slack = slack_client
        self._logger = logger

        self._scheduler: Scheduler | None = None

    async def start(self) -> None:
        """Start all background tasks.

        Intended to be called during controller startup. A reconciliation
        pass is run in the foreground first so that the logging stack is
        converged before the controller reports that it is ready.
        """
        if self._scheduler:
            msg = "Background tasks already running, cannot start"
            self._logger.warning(msg)
            return
        self._scheduler = Scheduler()

        self._logger.info("Performing initial reconciliation")
        await self._run_once(
            self._reconcile_manager.reconcile, "reconciling objects"
        )

        self._logger.info("Starting background tasks")
        await self._scheduler.spawn(
            self._loop(
                self._reconcile_manager.reconcile,
                self._interval,
                "reconciling objects",
            )
        )

    async def stop(self) -> None:
        """Stop the background tasks."""
        if not self._scheduler:
            msg = "Background tasks were already stopped"
            self._logger.warning(msg)
            return
        self._logger.info("Stopping background tasks")
        await self._scheduler.close()
        self._scheduler = None

    async def _loop(
        self,
        call: Callable[[], Awaitable[None]],
        interval: timedelta,
        description: str,
    ) -> None:
        """Wrap a coroutine in a periodic scheduling loop.

        The provided coroutine is run on every interval. This method always
        delays by the interval first before running the coroutine for the
        first time, since `start` has already run it once.

        Parameters
        ----------
        call
            Async function to run repeatedly.
        interval
            Scheduling interval to use.
        description
            Description of the background task for error reporting.
        """
        while True:
            await asyncio.sleep(interval.total_seconds())
            start = current_datetime(microseconds=True)
            await self._run_once(call, description)
            elapsed = current_datetime(microseconds=True) - start
            if elapsed >= interval:
                msg = f"{description.capitalize()} is running continuously"
                self._logger.warning(msg, elapsed=elapsed.total_seconds())

    async def _run_once(
        self, call: Callable[[], Awaitable[None]], description: str
    ) -> None:
        """Run a background task once, reporting any uncaught exception."""
        try:
            await call()
        except Exception as e:
            # Log the exception but otherwise continue as normal. The next
            # pass gives whatever the problem was time to be resolved.
            msg = f"Uncaught exception {description}"
            self._logger.exception(msg)
            if self._slack:
                await self._slack.post_uncaught_exception(e)
