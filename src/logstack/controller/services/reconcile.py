"""Periodic reconciliation of all desired-state objects."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from functools import partial
from typing import Any

import sentry_sdk
from pydantic import ValidationError
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from ..constants import PROXY_CONFIG_NAME
from ..exceptions import InvalidConfigurationError, KubernetesError
from ..models.domain.elasticsearch import Elasticsearch
from ..models.domain.kibana import Kibana
from ..models.domain.kubernetes import ManagementState
from ..models.domain.proxy import ClusterProxy
from ..storage.kubernetes.custom import (
    ElasticsearchStorage,
    KibanaStorage,
    ProxyStorage,
)
from ..timeout import Timeout
from .elasticsearch import ElasticsearchReconciler
from .kibana import KibanaReconciler

__all__ = ["ReconcileManager"]


class ReconcileManager:
    """Reconcile every desired-state object in the watched namespace.

    Objects are reconciled one at a time, so the same object is never
    reconciled concurrently. A failure reconciling one object is reported and
    does not prevent the other objects from being reconciled. Nothing is
    cached between passes.

    Parameters
    ----------
    namespace
        Namespace in which to find desired-state objects.
    reconcile_timeout
        Timeout for reconciling a single object.
    elasticsearch_reconciler
        Reconciler for ``Elasticsearch`` objects.
    kibana_reconciler
        Reconciler for ``Kibana`` objects.
    elasticsearch_storage
        Storage for ``Elasticsearch`` objects.
    kibana_storage
        Storage for ``Kibana`` objects.
    proxy_storage
        Storage for the cluster proxy configuration.
    slack_client
        Optional Slack webhook client for alerts.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        namespace: str,
        reconcile_timeout: timedelta,
        elasticsearch_reconciler: ElasticsearchReconciler,
        kibana_reconciler: KibanaReconciler,
        elasticsearch_storage: ElasticsearchStorage,
        kibana_storage: KibanaStorage,
        proxy_storage: ProxyStorage,
        slack_client: SlackWebhookClient | None,
        logger: BoundLogger,
    ) -> None:
        self._namespace = namespace
        self._timeout = reconcile_timeout
        self._elasticsearch = elasticsearch_reconciler
        self._kibana = kibana_reconciler
        self._elasticsearch_storage = elasticsearch_storage
        self._kibana_storage = kibana_storage
        self._proxy_storage = proxy_storage
        self._slack = slack_client
        self._logger = logger

    async def reconcile(self) -> None:
        """Reconcile all ``Elasticsearch`` and ``Kibana`` objects.

        Raises
        ------
        KubernetesError
            Raised if the desired-state objects could not be listed. Failures
            reconciling individual objects are reported but not raised.
        """
        self._logger.debug("Starting reconciliation pass")
        timeout = Timeout("Listing objects", self._timeout)
        elasticsearches = await self._elasticsearch_storage.list(
            self._namespace, timeout
        )
        kibanas = await self._kibana_storage.list(self._namespace, timeout)
        proxy = await self._read_proxy(timeout)

        for obj in elasticsearches:
            await self._reconcile_object(
                obj, "Elasticsearch", self._reconcile_elasticsearch
            )
        for obj in kibanas:
            await self._reconcile_object(
                obj, "Kibana", partial(self._reconcile_kibana, proxy=proxy)
            )
        self._logger.debug("Finished reconciliation pass")

    def _parse_error(
        self, kind: str, obj: dict[str, Any], exc: ValidationError
    ) -> InvalidConfigurationError:
        """Convert a failure to parse a desired-state object."""
        metadata = obj.get("metadata") or {}
        name = metadata.get("name")
        return InvalidConfigurationError(
            f"Invalid {kind} {name}: {exc}",
            kind=kind,
            namespace=metadata.get("namespace", self._namespace),
            name=name,
        )

    async def _read_proxy(self, timeout: Timeout) -> ClusterProxy | None:
        """Read the optional cluster proxy configuration.

        Clusters without a proxy configuration, or on which it cannot be
        read, are treated as having no proxy.
        """
        try:
            obj = await self._proxy_storage.read(PROXY_CONFIG_NAME, timeout)
        except KubernetesError as e:
            msg = "Cannot read cluster proxy configuration, ignoring"
            self._logger.warning(msg, error=str(e))
            return None
        if not obj:
            return None
        return ClusterProxy.from_object(obj)

    async def _reconcile_elasticsearch(
        self, obj: dict[str, Any], timeout: Timeout
    ) -> None:
        try:
            elasticsearch = Elasticsearch.from_object(obj)
        except ValidationError as e:
            raise self._parse_error("Elasticsearch", obj, e) from e
        if elasticsearch.spec.management_state == ManagementState.UNMANAGED:
            self._logger.debug(
                "Skipping unmanaged Elasticsearch", name=elasticsearch.name
            )
            return
        await self._elasticsearch.reconcile(elasticsearch, timeout)

    async def _reconcile_kibana(
        self,
        obj: dict[str, Any],
        timeout: Timeout,
        *,
        proxy: ClusterProxy | None,
    ) -> None:
        try:
            kibana = Kibana.from_object(obj)
        except ValidationError as e:
            raise self._parse_error("Kibana", obj, e) from e
        if kibana.spec.management_state == ManagementState.UNMANAGED:
            self._logger.debug("Skipping unmanaged Kibana", name=kibana.name)
            return
        await self._kibana.reconcile(kibana, proxy, timeout)

    async def _reconcile_object(
        self,
        obj: dict[str, Any],
        kind: str,
        call: Callable[[dict[str, Any], Timeout], Awaitable[None]],
    ) -> None:
        """Reconcile one object, reporting any failure."""
        name = obj.get("metadata", {}).get("name")
        logger = self._logger.bind(kind=kind, name=name)
        timeout = Timeout(f"Reconciling {kind} {name}", self._timeout)
        try:
            async with timeout.enforce():
                await call(obj, timeout)
        except Exception as e:
            logger.exception(f"Error reconciling {kind}")
            await self._maybe_post_exception(e)

    async def _maybe_post_exception(self, exc: Exception) -> None:
        """Post an exception to an external service.

        This will post the exception to Slack if Slack reporting is configured
        and Sentry if Sentry is enabled.

        Parameters
        ----------
        exc
            Exception to post.
        """
        sentry_sdk.capture_exception(exc)
        if not self._slack:
            return
        if isinstance(exc, SlackException):
            await self._slack.post_exception(exc)
        else:
            await self._slack.post_uncaught_exception(exc)
