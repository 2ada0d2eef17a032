"""Generic Kubernetes object storage supporting create, read, and replace.

Provides a generic Kubernetes object management class and instantiations of
that class for Kubernetes object types that are never deleted by the
controller. Objects the controller creates are removed by Kubernetes garbage
collection when their owner is deleted, so most object types only need these
operations.

For object types that need to support deletion, see
`~logstack.controller.storage.kubernetes.deleter.KubernetesObjectDeleter`,
which subclasses `KubernetesObjectCreator` and adds delete support.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1Deployment,
    V1Secret,
    V1Service,
    V1ServiceAccount,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import KubernetesModel
from ...timeout import Timeout

__all__ = [
    "DeploymentStorage",
    "KubernetesObjectCreator",
    "SecretStorage",
    "ServiceAccountStorage",
    "ServiceStorage",
]


class KubernetesObjectCreator[T: KubernetesModel]:
    """Generic Kubernetes object storage supporting create, read, and replace.

    This class provides a wrapper around any namespaced Kubernetes object type
    that implements create, read, and replace operations with logging and
    exception conversion.

    This class is not meant to be used directly by code outside of the
    Kubernetes storage layer. Use one of the kind-specific storage classes
    built on top of it instead.

    Parameters
    ----------
    create_method
        Method to create this type of object.
    read_method
        Method to read this type of object.
    replace_method
        Method to replace this type of object.
    object_type
        Type of object being acted on.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        create_method: Callable[..., Awaitable[Any]],
        read_method: Callable[..., Awaitable[Any]],
        replace_method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._create = create_method
        self._read = read_method
        self._replace = replace_method
        self._type = object_type
        self._kind = kind
        self._logger = logger

    async def create(self, namespace: str, body: T, timeout: Timeout) -> None:
        """Create a new Kubernetes object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            New object.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        msg = f"Creating {self._kind}"
        self._logger.info(msg, name=body.metadata.name, namespace=namespace)
        try:
            await self._create(
                namespace, body, _request_timeout=timeout.left()
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error creating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=body.metadata.name,
            ) from e

    async def read(
        self, name: str, namespace: str, timeout: Timeout
    ) -> T | None:
        """Read a Kubernetes object.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.
        timeout
            Timeout on operation.

        Returns
        -------
        typing.Any or None
            Kubernetes object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._read(
                name, namespace, _request_timeout=timeout.left()
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

    async def replace(self, namespace: str, body: T, timeout: Timeout) -> None:
        """Replace an existing Kubernetes object.

        The body should be the object as read from Kubernetes with the
        controller's changes applied, so that its resource version guards
        against concurrent modification.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            Modified object.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server, including
            a conflict if the object was modified since it was read.
        """
        name = body.metadata.name
        msg = f"Updating {self._kind}"
        self._logger.info(msg, name=name, namespace=namespace)
        try:
            await self._replace(
                name, namespace, body, _request_timeout=timeout.left()
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error updating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e


class DeploymentStorage(KubernetesObjectCreator[V1Deployment]):
    """Storage layer for ``Deployment`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.AppsV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_deployment,
            read_method=api.read_namespaced_deployment,
            replace_method=api.replace_namespaced_deployment,
            object_type=V1Deployment,
            kind="Deployment",
            logger=logger,
        )


class SecretStorage(KubernetesObjectCreator[V1Secret]):
    """Storage layer for ``Secret`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_secret,
            read_method=api.read_namespaced_secret,
            replace_method=api.replace_namespaced_secret,
            object_type=V1Secret,
            kind="Secret",
            logger=logger,
        )


class ServiceAccountStorage(KubernetesObjectCreator[V1ServiceAccount]):
    """Storage layer for ``ServiceAccount`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_service_account,
            read_method=api.read_namespaced_service_account,
            replace_method=api.replace_namespaced_service_account,
            object_type=V1ServiceAccount,
            kind="ServiceAccount",
            logger=logger,
        )


class ServiceStorage(KubernetesObjectCreator[V1Service]):
    """Storage layer for ``Service`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_service,
            read_method=api.read_namespaced_service,
            replace_method=api.replace_namespaced_service,
            object_type=V1Service,
            kind="Service",
            logger=logger,
        )
