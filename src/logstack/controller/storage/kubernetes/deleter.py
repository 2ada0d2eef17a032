"""Generic Kubernetes object storage including delete.

Provides a generic Kubernetes object management class and instantiations of
that class for Kubernetes object types that the controller deletes as well as
creates, reads, and replaces. The only objects the controller deletes are the
ones left behind by older versions of the controller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1ConfigMap,
    V1Role,
    V1RoleBinding,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import KubernetesModel
from ...timeout import Timeout
from .creator import KubernetesObjectCreator

__all__ = [
    "ConfigMapStorage",
    "KubernetesObjectDeleter",
    "RoleBindingStorage",
    "RoleStorage",
]


class KubernetesObjectDeleter[T: KubernetesModel](KubernetesObjectCreator[T]):
    """Generic Kubernetes object storage supporting delete.

    This class provides a wrapper around any Kubernetes object type that
    implements create, read, replace, and delete with logging and exception
    conversion. It is separate from
    `~logstack.controller.storage.kubernetes.creator.KubernetesObjectCreator`
    primarily to avoid having to implement the delete method in the mock for
    every object type we manage, even if we never call it.

    Parameters
    ----------
    create_method
        Method to create this type of object.
    delete_method
        Method to delete this type of object.
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
        delete_method: Callable[..., Awaitable[Any]],
        read_method: Callable[..., Awaitable[Any]],
        replace_method: Callable[..., Awaitable[Any]],
        object_type: type[T],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        super().__init__(
            create_method=create_method,
            read_method=read_method,
            replace_method=replace_method,
            object_type=object_type,
            kind=kind,
            logger=logger,
        )
        self._delete = delete_method

    async def delete(
        self, name: str, namespace: str, timeout: Timeout
    ) -> bool:
        """Delete a Kubernetes object.

        If the object does not exist, this is silently treated as success.

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
        bool
            `True` if the object was deleted, `False` if it did not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            await self._delete(
                name, namespace, _request_timeout=timeout.left()
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise KubernetesError.from_exception(
                "Error deleting object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e
        msg = f"Deleted {self._kind}"
        self._logger.info(msg, name=name, namespace=namespace)
        return True


class ConfigMapStorage(KubernetesObjectDeleter[V1ConfigMap]):
    """Storage layer for ``ConfigMap`` objects.

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
            create_method=api.create_namespaced_config_map,
            delete_method=api.delete_namespaced_config_map,
            read_method=api.read_namespaced_config_map,
            replace_method=api.replace_namespaced_config_map,
            object_type=V1ConfigMap,
            kind="ConfigMap",
            logger=logger,
        )


class RoleStorage(KubernetesObjectDeleter[V1Role]):
    """Storage layer for ``Role`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.RbacAuthorizationV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_role,
            delete_method=api.delete_namespaced_role,
            read_method=api.read_namespaced_role,
            replace_method=api.replace_namespaced_role,
            object_type=V1Role,
            kind="Role",
            logger=logger,
        )


class RoleBindingStorage(KubernetesObjectDeleter[V1RoleBinding]):
    """Storage layer for ``RoleBinding`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.RbacAuthorizationV1Api(api_client)
        super().__init__(
            create_method=api.create_namespaced_role_binding,
            delete_method=api.delete_namespaced_role_binding,
            read_method=api.read_namespaced_role_binding,
            replace_method=api.replace_namespaced_role_binding,
            object_type=V1RoleBinding,
            kind="RoleBinding",
            logger=logger,
        )
