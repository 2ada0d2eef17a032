"""Storage layer for Kubernetes custom objects."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...timeout import Timeout

__all__ = [
    "ClusterCustomStorage",
    "ConsoleLinkStorage",
    "CustomStorage",
    "ElasticsearchStorage",
    "KibanaStorage",
    "ProxyStorage",
    "RouteStorage",
]


class CustomStorage:
    """Storage layer for namespaced Kubernetes custom objects.

    Normally, this class should be subclassed to specialize it for a specific
    custom object type, which provides a slightly nicer API, but it can be
    used as-is if desired.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    group
        API group for the custom objects to handle.
    version
        API version for the custom objects to handle.
    plural
        API plural under which those custom objects are managed.
    kind
        Name of the custom object kind, used for error reporting.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        api_client: ApiClient,
        group: str,
        version: str,
        plural: str,
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._group = group
        self._version = version
        self._plural = plural
        self._kind = kind
        self._logger = logger

    async def create(
        self, namespace: str, body: dict[str, Any], timeout: Timeout
    ) -> None:
        """Create a new custom object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            Custom object to create.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body["metadata"]["name"]
        msg = f"Creating {self._kind}"
        self._logger.info(msg, name=name, namespace=namespace)
        try:
            await self._api.create_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error creating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def list(
        self, namespace: str, timeout: Timeout
    ) -> list[dict[str, Any]]:
        """List the custom objects in a namespace.

        Parameters
        ----------
        namespace
            Namespace in which to list custom objects.
        timeout
            Timeout on operation.

        Returns
        -------
        list of dict
            List of custom objects found.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            objs = await self._api.list_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error listing objects",
                e,
                kind=self._kind,
                namespace=namespace,
            ) from e
        return objs["items"]

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> dict[str, Any] | None:
        """Read a custom object.

        Parameters
        ----------
        name
            Name of the custom object.
        namespace
            Namespace of the custom object.
        timeout
            Timeout on operation.

        Returns
        -------
        dict or None
            Custom object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._api.get_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def replace(
        self, namespace: str, body: dict[str, Any], timeout: Timeout
    ) -> None:
        """Replace an existing custom object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            Modified custom object, including the resource version it was
            read with.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body["metadata"]["name"]
        msg = f"Updating {self._kind}"
        self._logger.info(msg, name=name, namespace=namespace)
        try:
            await self._api.replace_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error updating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e


class ClusterCustomStorage:
    """Storage layer for cluster-scoped Kubernetes custom objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    group
        API group for the custom objects to handle.
    version
        API version for the custom objects to handle.
    plural
        API plural under which those custom objects are managed.
    kind
        Name of the custom object kind, used for error reporting.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        api_client: ApiClient,
        group: str,
        version: str,
        plural: str,
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._group = group
        self._version = version
        self._plural = plural
        self._kind = kind
        self._logger = logger

    async def create(self, body: dict[str, Any], timeout: Timeout) -> None:
        """Create a new cluster-scoped custom object.

        Parameters
        ----------
        body
            Custom object to create.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body["metadata"]["name"]
        self._logger.info(f"Creating {self._kind}", name=name)
        try:
            await self._api.create_cluster_custom_object(
                self._group,
                self._version,
                self._plural,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error creating object", e, kind=self._kind, name=name
            ) from e

    async def read(
        self, name: str, timeout: Timeout
    ) -> dict[str, Any] | None:
        """Read a cluster-scoped custom object.

        Parameters
        ----------
        name
            Name of the custom object.
        timeout
            Timeout on operation.

        Returns
        -------
        dict or None
            Custom object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._api.get_cluster_custom_object(
                self._group,
                self._version,
                self._plural,
                name,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object", e, kind=self._kind, name=name
            ) from e

    async def replace(self, body: dict[str, Any], timeout: Timeout) -> None:
        """Replace an existing cluster-scoped custom object.

        Parameters
        ----------
        body
            Modified custom object, including the resource version it was
            read with.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body["metadata"]["name"]
        self._logger.info(f"Updating {self._kind}", name=name)
        try:
            await self._api.replace_cluster_custom_object(
                self._group,
                self._version,
                self._plural,
                name,
                body,
                _request_timeout=timeout.left(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error updating object", e, kind=self._kind, name=name
            ) from e


class ConsoleLinkStorage(ClusterCustomStorage):
    """Storage layer for OpenShift ``ConsoleLink`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group="console.openshift.io",
            version="v1",
            plural="consolelinks",
            kind="ConsoleLink",
            logger=logger,
        )


class ElasticsearchStorage(CustomStorage):
    """Storage layer for ``Elasticsearch`` desired-state objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group="logging.openshift.io",
            version="v1",
            plural="elasticsearches",
            kind="Elasticsearch",
            logger=logger,
        )


class KibanaStorage(CustomStorage):
    """Storage layer for ``Kibana`` desired-state objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group="logging.openshift.io",
            version="v1",
            plural="kibanas",
            kind="Kibana",
            logger=logger,
        )


class ProxyStorage(ClusterCustomStorage):
    """Storage layer for the cluster-wide ``Proxy`` configuration.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group="config.openshift.io",
            version="v1",
            plural="proxies",
            kind="Proxy",
            logger=logger,
        )


class RouteStorage(CustomStorage):
    """Storage layer for OpenShift ``Route`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client,
            group="route.openshift.io",
            version="v1",
            plural="routes",
            kind="Route",
            logger=logger,
        )
