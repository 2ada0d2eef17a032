"""Mock for the Kubernetes API.

This extends the Safir mock with the additional support required to test the
logging stack controller: the apps and RBAC APIs, cluster-scoped custom
objects, ``replace`` calls for core objects, and a log of writes.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

from kubernetes_asyncio import client, config
from kubernetes_asyncio.client import (
    V1ClusterRoleBinding,
    V1ConfigMap,
    V1Deployment,
    V1Role,
    V1RoleBinding,
    V1Service,
    V1ServiceAccount,
    V1Status,
)
from safir.testing.kubernetes import MockKubernetesApi

__all__ = ["MockLogstackKubernetesApi", "patch_kubernetes"]


class MockLogstackKubernetesApi(MockKubernetesApi):
    """Mock Kubernetes API for testing.

    Unlike the Safir mock, objects are copied when they are stored and when
    they are read, as they would be by a real API server, so a caller
    modifying an object it read does not change the stored object until it
    replaces it. Objects are assigned a UID when created if they do not have
    one.

    Attributes
    ----------
    writes
        Every write performed, as a tuple of the action (``create``,
        ``replace``, or ``delete``), the kind, the namespace (`None` for
        cluster-scoped objects), and the name. Tests use this to check that
        objects that already match their desired state are not touched.
    """

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[str, str, str | None, str]] = []

    def clear_writes_for_test(self) -> None:
        """Forget all recorded writes."""
        self.writes = []

    def get_all_objects_for_test(self, kind: str) -> list[Any]:
        """Return copies of all objects of a given kind.

        Namespaced objects are returned first, sorted by namespace and name,
        followed by any cluster-scoped objects of that kind sorted by name.

        Parameters
        ----------
        kind
            The Kubernetes kind, such as ``Deployment`` or ``ConsoleLink``.

        Returns
        -------
        list of Any
            Copies of all objects of that kind.
        """
        results = super().get_all_objects_for_test(kind)
        key = self._custom_kinds.get(kind, kind)
        cluster = self._cluster_objects.get(key, {})
        results.extend(obj for _, obj in sorted(cluster.items()))
        return copy.deepcopy(results)

    # CONFIGMAP API

    async def replace_namespaced_config_map(
        self,
        name: str,
        namespace: str,
        body: V1ConfigMap,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_namespaced_config_map", name, namespace)
        self._update_metadata(body, "v1", "ConfigMap", namespace)
        await self._store_object(
            namespace, "ConfigMap", name, body, replace=True
        )

    # CUSTOM OBJECT API

    async def create_cluster_custom_object(
        self,
        group: str,
        version: str,
        plural: str,
        body: dict[str, Any],
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error(
            "create_cluster_custom_object", group, version, plural, body
        )
        assert body["apiVersion"] == f"{group}/{version}"
        key = f"{group}/{version}/{plural}"
        self._custom_kinds.setdefault(body["kind"], key)
        await self._store_cluster_object(key, body["metadata"]["name"], body)

    async def get_cluster_custom_object(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        *,
        _request_timeout: float | None = None,
    ) -> dict[str, Any]:
        self._maybe_error(
            "get_cluster_custom_object", group, version, plural, name
        )
        return self._get_cluster_object(f"{group}/{version}/{plural}", name)

    async def list_namespaced_custom_object(
        self,
        group: str,
        version: str,
        namespace: str,
        plural: str,
        *,
        field_selector: str | None = None,
        label_selector: str | None = None,
        resource_version: str | None = None,
        timeout_seconds: int | None = None,
        watch: bool = False,
        _preload_content: bool = True,
        _request_timeout: float | None = None,
    ) -> Any:
        """List custom objects in a namespace.

        The Safir mock expects model objects when listing, so listing is done
        here for custom objects. A namespace with no objects returns an empty
        list, as it does in Kubernetes. Watches are passed to the Safir mock.
        """
        if watch:
            return await super().list_namespaced_custom_object(
                group,
                version,
                namespace,
                plural,
                field_selector=field_selector,
                label_selector=label_selector,
                resource_version=resource_version,
                timeout_seconds=timeout_seconds,
                watch=watch,
                _preload_content=_preload_content,
                _request_timeout=_request_timeout,
            )
        self._maybe_error(
            "list_namespaced_custom_object", group, version, namespace, plural
        )
        key = f"{group}/{version}/{plural}"
        objs = self._objects.get(namespace, {}).get(key, {})
        return {"items": [copy.deepcopy(o) for _, o in sorted(objs.items())]}

    async def replace_cluster_custom_object(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        body: dict[str, Any],
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error(
            "replace_cluster_custom_object", group, version, plural, name, body
        )
        assert body["apiVersion"] == f"{group}/{version}"
        key = f"{group}/{version}/{plural}"
        await self._store_cluster_object(key, name, body, replace=True)

    # DEPLOYMENT API

    async def create_namespaced_deployment(
        self,
        namespace: str,
        body: V1Deployment,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("create_namespaced_deployment", namespace, body)
        self._update_metadata(body, "apps/v1", "Deployment", namespace)
        name = body.metadata.name
        await self._store_object(namespace, "Deployment", name, body)

    async def read_namespaced_deployment(
        self,
        name: str,
        namespace: str,
        *,
        _request_timeout: float | None = None,
    ) -> V1Deployment:
        self._maybe_error("read_namespaced_deployment", name, namespace)
        return self._get_object(namespace, "Deployment", name)

    async def replace_namespaced_deployment(
        self,
        name: str,
        namespace: str,
        body: V1Deployment,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_namespaced_deployment", name, namespace)
        self._update_metadata(body, "apps/v1", "Deployment", namespace)
        await self._store_object(
            namespace, "Deployment", name, body, replace=True
        )

    # RBAC API

    async def create_cluster_role_binding(
        self,
        body: V1ClusterRoleBinding,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("create_cluster_role_binding", body)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "ClusterRoleBinding"
        )
        name = body.metadata.name
        await self._store_cluster_object("ClusterRoleBinding", name, body)

    async def read_cluster_role_binding(
        self, name: str, *, _request_timeout: float | None = None
    ) -> V1ClusterRoleBinding:
        self._maybe_error("read_cluster_role_binding", name)
        return self._get_cluster_object("ClusterRoleBinding", name)

    async def replace_cluster_role_binding(
        self,
        name: str,
        body: V1ClusterRoleBinding,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_cluster_role_binding", name, body)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "ClusterRoleBinding"
        )
        await self._store_cluster_object(
            "ClusterRoleBinding", name, body, replace=True
        )

    async def create_namespaced_role(
        self,
        namespace: str,
        body: V1Role,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("create_namespaced_role", namespace, body)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "Role", namespace
        )
        await self._store_object(namespace, "Role", body.metadata.name, body)

    async def delete_namespaced_role(
        self,
        name: str,
        namespace: str,
        *,
        _request_timeout: float | None = None,
    ) -> V1Status:
        self._maybe_error("delete_namespaced_role", name, namespace)
        return self._delete_object(namespace, "Role", name, "Foreground")

    async def create_namespaced_role_binding(
        self,
        namespace: str,
        body: V1RoleBinding,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("create_namespaced_role_binding", namespace, body)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "RoleBinding", namespace
        )
        name = body.metadata.name
        await self._store_object(namespace, "RoleBinding", name, body)

    async def delete_namespaced_role_binding(
        self,
        name: str,
        namespace: str,
        *,
        _request_timeout: float | None = None,
    ) -> V1Status:
        self._maybe_error("delete_namespaced_role_binding", name, namespace)
        return self._delete_object(
            namespace, "RoleBinding", name, "Foreground"
        )

    async def read_namespaced_role(
        self,
        name: str,
        namespace: str,
        *,
        _request_timeout: float | None = None,
    ) -> V1Role:
        self._maybe_error("read_namespaced_role", name, namespace)
        return self._get_object(namespace, "Role", name)

    async def replace_namespaced_role(
        self,
        name: str,
        namespace: str,
        body: V1Role,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_namespaced_role", name, namespace)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "Role", namespace
        )
        await self._store_object(namespace, "Role", name, body, replace=True)

    async def read_namespaced_role_binding(
        self,
        name: str,
        namespace: str,
        *,
        _request_timeout: float | None = None,
    ) -> V1RoleBinding:
        self._maybe_error("read_namespaced_role_binding", name, namespace)
        return self._get_object(namespace, "RoleBinding", name)

    async def replace_namespaced_role_binding(
        self,
        name: str,
        namespace: str,
        body: V1RoleBinding,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_namespaced_role_binding", name, namespace)
        self._update_metadata(
            body, "rbac.authorization.k8s.io/v1", "RoleBinding", namespace
        )
        await self._store_object(
            namespace, "RoleBinding", name, body, replace=True
        )

    # SERVICE API

    async def replace_namespaced_service(
        self,
        name: str,
        namespace: str,
        body: V1Service,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error("replace_namespaced_service", name, namespace)
        self._update_metadata(body, "v1", "Service", namespace)
        await self._store_object(
            namespace, "Service", name, body, replace=True
        )

    # SERVICEACCOUNT API

    async def replace_namespaced_service_account(
        self,
        name: str,
        namespace: str,
        body: V1ServiceAccount,
        *,
        _request_timeout: float | None = None,
    ) -> None:
        self._maybe_error(
            "replace_namespaced_service_account", name, namespace
        )
        self._update_metadata(body, "v1", "ServiceAccount", namespace)
        await self._store_object(
            namespace, "ServiceAccount", name, body, replace=True
        )

    # Internal helper functions.

    def _delete_object(
        self, namespace: str, key: str, name: str, propagation_policy: str
    ) -> V1Status:
        status = super()._delete_object(
            namespace, key, name, propagation_policy
        )
        self.writes.append(("delete", self._kind_for(key), namespace, name))
        return status

    def _get_cluster_object(self, key: str, name: str) -> Any:
        return copy.deepcopy(super()._get_cluster_object(key, name))

    def _get_object(self, namespace: str, key: str, name: str) -> Any:
        return copy.deepcopy(super()._get_object(namespace, key, name))

    def _kind_for(self, key: str) -> str:
        """Map the storage key of an object back to its kind."""
        for kind, custom_key in self._custom_kinds.items():
            if custom_key == key:
                return kind
        return key

    def _prepare(self, obj: Any, current: Any | None) -> Any:
        """Copy an object for storage and set its UID.

        New objects are assigned a UID if they do not have one. Replaced
        objects keep the UID of the stored object, since it is immutable.
        """
        obj = copy.deepcopy(obj)
        if isinstance(obj, dict):
            if current is not None:
                obj["metadata"]["uid"] = current["metadata"].get("uid")
            else:
                obj["metadata"].setdefault("uid", str(uuid4()))
        elif current is not None:
            obj.metadata.uid = current.metadata.uid
        elif not obj.metadata.uid:
            obj.metadata.uid = str(uuid4())
        return obj

    async def _store_cluster_object(
        self, key: str, name: str, obj: Any, *, replace: bool = False
    ) -> None:
        current = super()._get_cluster_object(key, name) if replace else None
        obj = self._prepare(obj, current)
        await super()._store_cluster_object(key, name, obj, replace=replace)
        action = "replace" if replace else "create"
        self.writes.append((action, self._kind_for(key), None, name))

    async def _store_object(
        self,
        namespace: str,
        key: str,
        name: str,
        obj: Any,
        *,
        replace: bool = False,
    ) -> None:
        current = None
        if replace:
            current = super()._get_object(namespace, key, name)
        obj = self._prepare(obj, current)
        await super()._store_object(namespace, key, name, obj, replace=replace)
        action = "replace" if replace else "create"
        self.writes.append((action, self._kind_for(key), namespace, name))


def patch_kubernetes() -> Iterator[MockLogstackKubernetesApi]:
    """Replace the Kubernetes API with a mock class.

    Copied from `safir.testing.kubernetes.patch_kubernetes` with changes to
    the type of the mock class and the list of patched APIs.

    Returns
    -------
    MockLogstackKubernetesApi
        The mock Kubernetes API object.
    """
    mock_api = MockLogstackKubernetesApi()
    with patch.object(config, "load_incluster_config"):
        patchers = []
        for api in (
            "AppsV1Api",
            "CoreV1Api",
            "CustomObjectsApi",
            "RbacAuthorizationV1Api",
        ):
            patcher = patch.object(client, api)
            mock_class = patcher.start()
            mock_class.return_value = mock_api
            patchers.append(patcher)
        mock_api_client = Mock(spec=client.ApiClient)
        mock_api_client.close = AsyncMock()
        with patch.object(client, "ApiClient") as mock_client:
            mock_client.return_value = mock_api_client
            os.environ["KUBERNETES_PORT"] = "tcp://10.0.0.1:443"
            yield mock_api
            del os.environ["KUBERNETES_PORT"]
        for patcher in patchers:
            patcher.stop()
