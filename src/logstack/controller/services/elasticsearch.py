"""Reconciliation of Elasticsearch cluster configuration."""

from __future__ import annotations

from kubernetes_asyncio.client import ApiClient
from structlog.stdlib import BoundLogger

from ..models.domain.elasticsearch import Elasticsearch
from ..storage.kubernetes.deleter import ConfigMapStorage
from ..timeout import Timeout
from .builder.elasticsearch import ElasticsearchBuilder

__all__ = ["ElasticsearchReconciler"]


class ElasticsearchReconciler:
    """Converge the configuration of an Elasticsearch cluster.

    Parameters
    ----------
    builder
        Builder for the Elasticsearch Kubernetes objects.
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        builder: ElasticsearchBuilder,
        api_client: ApiClient,
        logger: BoundLogger,
    ) -> None:
        self._builder = builder
        self._logger = logger
        self._config_map = ConfigMapStorage(api_client, logger)

    async def reconcile(
        self, elasticsearch: Elasticsearch, timeout: Timeout
    ) -> None:
        """Converge the configuration ``ConfigMap`` of a cluster.

        The desired-state object is validated before anything is written.

        Parameters
        ----------
        elasticsearch
            Desired-state object.
        timeout
            Timeout for the whole reconciliation.

        Raises
        ------
        ControllerTimeoutError
            Raised if the timeout expired.
        InvalidConfigurationError
            Raised if the desired-state object is invalid.
        KubernetesError
            Raised if any Kubernetes API call fails.
        """
        name = elasticsearch.name
        namespace = elasticsearch.namespace
        logger = self._logger.bind(
            kind="Elasticsearch", name=name, namespace=namespace
        )
        plan = self._builder.build_plan(elasticsearch)
        logger.debug(
            "Planned topology",
            discovery_address=plan.discovery_address,
            replica_count=plan.replica_count,
            index_mode=plan.index_mode.value,
        )

        desired = self._builder.build_config_map(elasticsearch, plan)
        existing = await self._config_map.read(name, namespace, timeout)
        if not existing:
            await self._config_map.create(namespace, desired, timeout)
        elif not self._builder.is_config_map_converged(existing, desired):
            body = self._builder.update_config_map(existing, desired)
            await self._config_map.replace(namespace, body, timeout)
