"""Component factory and process-wide context management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from kubernetes_asyncio.client.api_client import ApiClient
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .background import BackgroundTaskManager
from .config import Config
from .services.builder.elasticsearch import ElasticsearchBuilder
from .services.builder.kibana import KibanaBuilder
from .services.elasticsearch import ElasticsearchReconciler
from .services.kibana import KibanaReconciler
from .services.reconcile import ReconcileManager
from .storage.kubernetes.custom import (
    ElasticsearchStorage,
    KibanaStorage,
    ProxyStorage,
)

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process global application state.

    This object holds all of the per-process singletons and is managed by
    `~logstack.controller.dependencies.context.ContextDependency`. It is used
    by the `Factory` class as a source of dependencies to inject into created
    service and storage objects.
    """

    config: Config
    """Logging stack controller configuration."""

    kubernetes_client: ApiClient
    """Shared Kubernetes client."""

    background: BackgroundTaskManager
    """Manager for background reconciliation."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the controller configuration.

        Parameters
        ----------
        config
            Logging stack controller configuration.

        Returns
        -------
        ProcessContext
            Shared context for a controller process.
        """
        kubernetes_client = ApiClient()
        logger = structlog.get_logger(__name__)
        factory = Factory(config, kubernetes_client, logger)
        return cls(
            config=config,
            kubernetes_client=kubernetes_client,
            background=BackgroundTaskManager(
                reconcile_manager=factory.create_reconcile_manager(),
                reconcile_interval=config.reconcile_interval,
                slack_client=factory.create_slack_client(),
                logger=logger,
            ),
        )

    async def aclose(self) -> None:
        """Free allocated resources."""
        await self.kubernetes_client.close()

    async def start(self) -> None:
        """Start the background tasks running."""
        await self.background.start()

    async def stop(self) -> None:
        """Stop the background tasks.

        Called during shutdown, or before recreating the process context using
        a different configuration.
        """
        await self.background.stop()


class Factory:
    """Build logging stack controller components.

    Parameters
    ----------
    config
        Controller configuration.
    kubernetes_client
        Shared Kubernetes client.
    logger
        Logger to use for messages.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for controller components.

        Intended for command-line tools or the test suite. The background
        tasks are not started.

        Parameters
        ----------
        config
            Controller configuration.

        Yields
        ------
        Factory
            Newly-created factory. Must be used as a context manager.
        """
        logger = structlog.get_logger(__name__)
        factory = cls(config, ApiClient(), logger)
        async with aclosing(factory):
            yield factory

    def __init__(
        self,
        config: Config,
        kubernetes_client: ApiClient,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._kubernetes_client = kubernetes_client
        self._logger = logger

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._kubernetes_client.close()

    def create_elasticsearch_builder(self) -> ElasticsearchBuilder:
        """Create builder for Elasticsearch objects.

        Returns
        -------
        ElasticsearchBuilder
            Newly-created builder.
        """
        return ElasticsearchBuilder(self._config.defaults)

    def create_elasticsearch_reconciler(self) -> ElasticsearchReconciler:
        """Create reconciler for ``Elasticsearch`` objects.

        Returns
        -------
        ElasticsearchReconciler
            Newly-created reconciler.
        """
        return ElasticsearchReconciler(
            builder=self.create_elasticsearch_builder(),
            api_client=self._kubernetes_client,
            logger=self._logger,
        )

    def create_kibana_reconciler(self) -> KibanaReconciler:
        """Create reconciler for ``Kibana`` objects.

        Returns
        -------
        KibanaReconciler
            Newly-created reconciler.
        """
        return KibanaReconciler(
            builder=KibanaBuilder(self._config.defaults),
            proxy_trusted_ca_namespace=self._config.proxy_trusted_ca_namespace,
            api_client=self._kubernetes_client,
            logger=self._logger,
        )

    def create_reconcile_manager(self) -> ReconcileManager:
        """Create service that reconciles all desired-state objects.

        Returns
        -------
        ReconcileManager
            Newly-created reconcile manager.
        """
        client = self._kubernetes_client
        return ReconcileManager(
            namespace=self._config.namespace,
            reconcile_timeout=self._config.reconcile_timeout,
            elasticsearch_reconciler=self.create_elasticsearch_reconciler(),
            kibana_reconciler=self.create_kibana_reconciler(),
            elasticsearch_storage=ElasticsearchStorage(client, self._logger),
            kibana_storage=KibanaStorage(client, self._logger),
            proxy_storage=ProxyStorage(client, self._logger),
            slack_client=self.create_slack_client(),
            logger=self._logger,
        )

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a client for sending messages to Slack.

        Returns
        -------
        SlackWebhookClient or None
            Configured Slack client if a Slack webhook was configured,
            otherwise `None`.
        """
        if not self._config.slack_webhook:
            return None
        return SlackWebhookClient(
            self._config.slack_webhook.get_secret_value(),
            self._config.name,
            self._logger,
        )
