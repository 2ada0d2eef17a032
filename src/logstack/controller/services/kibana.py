"""Reconciliation of the Kibana resource set."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio.client import ApiClient, V1ConfigMap
from structlog.stdlib import BoundLogger

from ..constants import (
    DEPRECATED_SHARING_CONFIG_NAME,
    DEPRECATED_SHARING_ROLE_BINDING_NAME,
    DEPRECATED_SHARING_ROLE_NAME,
    KIBANA_INSTANCE_NAME,
    KIBANA_PROXY_NAME,
    KIBANA_TRUSTED_CA_NAME,
)
from ..exceptions import DependencyMissingError, KubernetesError
from ..models.domain.kibana import Kibana
from ..models.domain.proxy import ClusterProxy
from ..storage.kubernetes.cluster import ClusterRoleBindingStorage
from ..storage.kubernetes.creator import (
    DeploymentStorage,
    SecretStorage,
    ServiceAccountStorage,
    ServiceStorage,
)
from ..storage.kubernetes.custom import ConsoleLinkStorage, RouteStorage
from ..storage.kubernetes.deleter import (
    ConfigMapStorage,
    RoleBindingStorage,
    RoleStorage,
)
from ..timeout import Timeout
from .builder.kibana import KibanaBuilder
from .trust import calculate_trusted_ca_hash, get_trusted_ca_payload

__all__ = ["KibanaReconciler"]


class KibanaReconciler:
    """Converge the Kubernetes objects for a ``Kibana`` object.

    Every call to `reconcile` reads the current state of all objects, so the
    reconciler holds no state between calls and a single instance can be
    used for every ``Kibana`` object. Callers must not reconcile the same
    object concurrently.

    Parameters
    ----------
    builder
        Builder for the Kibana Kubernetes objects.
    proxy_trusted_ca_namespace
        Namespace holding the custom trusted CA bundle named by the cluster
        proxy configuration.
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        builder: KibanaBuilder,
        proxy_trusted_ca_namespace: str,
        api_client: ApiClient,
        logger: BoundLogger,
    ) -> None:
        self._builder = builder
        self._proxy_namespace = proxy_trusted_ca_namespace
        self._logger = logger
        self._config_map = ConfigMapStorage(api_client, logger)
        self._console_link = ConsoleLinkStorage(api_client, logger)
        self._cluster_role_binding = ClusterRoleBindingStorage(
            api_client, logger
        )
        self._deployment = DeploymentStorage(api_client, logger)
        self._role = RoleStorage(api_client, logger)
        self._role_binding = RoleBindingStorage(api_client, logger)
        self._route = RouteStorage(api_client, logger)
        self._secret = SecretStorage(api_client, logger)
        self._service = ServiceStorage(api_client, logger)
        self._service_account = ServiceAccountStorage(api_client, logger)

    async def reconcile(
        self, kibana: Kibana, proxy: ClusterProxy | None, timeout: Timeout
    ) -> None:
        """Converge all Kubernetes objects for a ``Kibana`` object.

        Objects that don't exist are created, objects that differ from the
        desired state are updated in place, and objects that already match
        are left alone, so calling this repeatedly with unchanged inputs only
        performs reads after the first call.

        Parameters
        ----------
        kibana
            Desired-state object.
        proxy
            Cluster-wide proxy configuration, if any.
        timeout
            Timeout for the whole reconciliation.

        Raises
        ------
        ControllerTimeoutError
            Raised if the timeout expired.
        DependencyMissingError
            Raised if the trusted CA bundle could not be read or a required
            ``Secret`` does not exist. If a ``Secret`` is missing, all other
            objects are still converged before this is raised.
        KubernetesError
            Raised if any Kubernetes API call fails. Objects converged before
            the failure are left as they are.
        """
        namespace = kibana.namespace
        logger = self._logger.bind(
            kind="Kibana", name=kibana.name, namespace=namespace
        )
        logger.debug("Reconciling Kibana")

        # Fingerprint the trusted CA bundles before building the deployment.
        bundle = await self._ensure_trusted_ca_bundle(kibana, timeout)
        custom = await self._read_proxy_trusted_ca(proxy, logger, timeout)
        ca_hash = calculate_trusted_ca_hash(
            get_trusted_ca_payload(bundle), custom
        )

        await self._converge_service_account(kibana, timeout)
        await self._converge_cluster_role_binding(kibana, timeout)
        missing = await self._find_missing_secrets(namespace, timeout)
        if missing:
            msg = "Skipping Deployment because of missing secrets"
            logger.warning(msg, secrets=missing)
        else:
            await self._converge_deployment(kibana, ca_hash, timeout)
        await self._converge_service(kibana, timeout)
        route = await self._converge_route(kibana, timeout)
        host = route.get("spec", {}).get("host") if route else None
        await self._converge_console_links(kibana, host, timeout)
        await self._delete_deprecated(namespace, timeout)

        if missing:
            msg = f"Required secrets do not exist: {', '.join(missing)}"
            raise DependencyMissingError(
                msg, kind="Secret", namespace=namespace, name=missing[0]
            )
        logger.debug("Reconciled Kibana", trusted_ca_hash=ca_hash)

    async def _converge_cluster_role_binding(
        self, kibana: Kibana, timeout: Timeout
    ) -> None:
        desired = self._builder.build_cluster_role_binding(kibana)
        name = desired.metadata.name
        existing = await self._cluster_role_binding.read(name, timeout)
        if not existing:
            await self._cluster_role_binding.create(desired, timeout)
        elif not self._builder.is_cluster_role_binding_converged(
            existing, desired
        ):
            body = self._builder.update_cluster_role_binding(existing, desired)
            await self._cluster_role_binding.replace(body, timeout)

    async def _converge_console_links(
        self, kibana: Kibana, host: str | None, timeout: Timeout
    ) -> None:
        for desired in self._builder.build_console_links(kibana, host):
            name = desired["metadata"]["name"]
            existing = await self._console_link.read(name, timeout)
            if not existing:
                await self._console_link.create(desired, timeout)
            elif not self._builder.is_custom_object_converged(
                existing, desired
            ):
                body = self._builder.update_custom_object(existing, desired)
                await self._console_link.replace(body, timeout)

    async def _converge_deployment(
        self, kibana: Kibana, ca_hash: str, timeout: Timeout
    ) -> None:
        namespace = kibana.namespace
        desired = self._builder.build_deployment(kibana, ca_hash)
        existing = await self._deployment.read(
            KIBANA_INSTANCE_NAME, namespace, timeout
        )
        if not existing:
            await self._deployment.create(namespace, desired, timeout)
        elif not self._builder.is_deployment_converged(existing, desired):
            body = self._builder.update_deployment(existing, desired)
            await self._deployment.replace(namespace, body, timeout)

    async def _converge_route(
        self, kibana: Kibana, timeout: Timeout
    ) -> dict[str, Any] | None:
        """Converge the route and return it as stored in Kubernetes.

        The stored route is needed for the host assigned by the router, which
        may be filled in only after the route is created.
        """
        namespace = kibana.namespace
        desired = self._builder.build_route(kibana)
        existing = await self._route.read(
            KIBANA_INSTANCE_NAME, namespace, timeout
        )
        if not existing:
            await self._route.create(namespace, desired, timeout)
        elif not self._builder.is_custom_object_converged(existing, desired):
            body = self._builder.update_custom_object(existing, desired)
            await self._route.replace(namespace, body, timeout)
        else:
            return existing
        return await self._route.read(KIBANA_INSTANCE_NAME, namespace, timeout)

    async def _converge_service(
        self, kibana: Kibana, timeout: Timeout
    ) -> None:
        namespace = kibana.namespace
        desired = self._builder.build_service(kibana)
        existing = await self._service.read(
            KIBANA_INSTANCE_NAME, namespace, timeout
        )
        if not existing:
            await self._service.create(namespace, desired, timeout)
        elif not self._builder.is_service_converged(existing, desired):
            body = self._builder.update_service(existing, desired)
            await self._service.replace(namespace, body, timeout)

    async def _converge_service_account(
        self, kibana: Kibana, timeout: Timeout
    ) -> None:
        namespace = kibana.namespace
        desired = self._builder.build_service_account(kibana)
        existing = await self._service_account.read(
            KIBANA_INSTANCE_NAME, namespace, timeout
        )
        if not existing:
            await self._service_account.create(namespace, desired, timeout)
        elif not self._builder.is_service_account_converged(
            existing, desired
        ):
            body = self._builder.update_service_account(existing, desired)
            await self._service_account.replace(namespace, body, timeout)

    async def _delete_deprecated(
        self, namespace: str, timeout: Timeout
    ) -> None:
        """Delete the objects used for sharing by older controllers.

        These are deleted whether or not the console links that replace them
        exist yet.
        """
        await self._config_map.delete(
            DEPRECATED_SHARING_CONFIG_NAME, namespace, timeout
        )
        await self._role.delete(
            DEPRECATED_SHARING_ROLE_NAME, namespace, timeout
        )
        await self._role_binding.delete(
            DEPRECATED_SHARING_ROLE_BINDING_NAME, namespace, timeout
        )

    async def _ensure_trusted_ca_bundle(
        self, kibana: Kibana, timeout: Timeout
    ) -> V1ConfigMap:
        """Read the trusted CA bundle, creating it if it doesn't exist.

        The data of an existing bundle is never modified, since it is
        maintained by the platform.
        """
        namespace = kibana.namespace
        bundle = await self._config_map.read(
            KIBANA_TRUSTED_CA_NAME, namespace, timeout
        )
        if bundle:
            return bundle
        desired = self._builder.build_trusted_ca_bundle(kibana)
        await self._config_map.create(namespace, desired, timeout)
        bundle = await self._config_map.read(
            KIBANA_TRUSTED_CA_NAME, namespace, timeout
        )
        if not bundle:
            raise DependencyMissingError(
                "Trusted CA bundle does not exist",
                kind="ConfigMap",
                namespace=namespace,
                name=KIBANA_TRUSTED_CA_NAME,
            )
        return bundle

    async def _find_missing_secrets(
        self, namespace: str, timeout: Timeout
    ) -> list[str]:
        """Return the names of required secrets that do not exist."""
        missing = []
        for name in (KIBANA_INSTANCE_NAME, KIBANA_PROXY_NAME):
            if not await self._secret.read(name, namespace, timeout):
                missing.append(name)
        return missing

    async def _read_proxy_trusted_ca(
        self,
        proxy: ClusterProxy | None,
        logger: BoundLogger,
        timeout: Timeout,
    ) -> str:
        """Read the custom trusted CA bundle of the cluster proxy.

        Failing to read the custom bundle is not fatal. Kibana then only gets
        the default trusted CAs.

        Returns
        -------
        str
            PEM-encoded certificates, or the empty string if there is no
            custom bundle or it could not be read.
        """
        if not proxy or not proxy.trusted_ca_name:
            return ""
        name = proxy.trusted_ca_name
        try:
            config_map = await self._config_map.read(
                name, self._proxy_namespace, timeout
            )
        except KubernetesError as e:
            msg = "Cannot read proxy trusted CA bundle, ignoring"
            logger.warning(msg, trusted_ca=name, error=str(e))
            return ""
        if not config_map:
            msg = "Proxy trusted CA bundle not found, ignoring"
            logger.warning(msg, trusted_ca=name)
            return ""
        return get_trusted_ca_payload(config_map)
