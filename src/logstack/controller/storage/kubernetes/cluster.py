"""Storage layer for ``ClusterRoleBinding`` objects."""

from __future__ import annotations

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1ClusterRoleBinding,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...timeout import Timeout

__all__ = ["ClusterRoleBindingStorage"]


class ClusterRoleBindingStorage:
    """Storage layer for ``ClusterRoleBinding`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        self._api = client.RbacAuthorizationV1Api(api_client)
        self._logger = logger

    async def create(
        self, body: V1ClusterRoleBinding, timeout: Timeout
    ) -> None:
        """Create a new cluster role binding.

        Parameters
        ----------
        body
            Cluster role binding to create.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body.metadata.name
        self._logger.info("Creating ClusterRoleBinding", name=name)
        try:
            await self._api.create_cluster_role_binding(
                body, _request_timeout=timeout.left()
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error creating object",
                e,
                kind="ClusterRoleBinding",
                name=name,
            ) from e

    async def read(
        self, name: str, timeout: Timeout
    ) -> V1ClusterRoleBinding | None:
        """Read a cluster role binding.

        Parameters
        ----------
        name
            Name of the cluster role binding.
        timeout
            Timeout on operation.

        Returns
        -------
        kubernetes_asyncio.client.V1ClusterRoleBinding or None
            Cluster role binding, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._api.read_cluster_role_binding(
                name, _request_timeout=timeout.left()
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object", e, kind="ClusterRoleBinding", name=name
            ) from e

    async def replace(
        self, body: V1ClusterRoleBinding, timeout: Timeout
    ) -> None:
        """Replace an existing cluster role binding.

        Parameters
        ----------
        body
            Modified cluster role binding.
        timeout
            Timeout on operation.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body.metadata.name
        self._logger.info("Updating ClusterRoleBinding", name=name)
        try:
            await self._api.replace_cluster_role_binding(
                name, body, _request_timeout=timeout.left()
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error updating object",
                e,
                kind="ClusterRoleBinding",
                name=name,
            ) from e
