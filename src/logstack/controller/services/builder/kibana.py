"""Construction of Kubernetes objects for Kibana."""

from __future__ import annotations

import json
from typing import Any

from kubernetes_asyncio.client import (
    RbacV1Subject,
    V1ClusterRoleBinding,
    V1ConfigMap,
    V1ConfigMapVolumeSource,
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EnvVar,
    V1EnvVarSource,
    V1KeyToPath,
    V1LabelSelector,
    V1ObjectMeta,
    V1OwnerReference,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceFieldSelector,
    V1RoleRef,
    V1SecretVolumeSource,
    V1Service,
    V1ServiceAccount,
    V1ServicePort,
    V1ServiceSpec,
    V1Volume,
    V1VolumeMount,
)
from kubernetes_asyncio.client import (
    V1ResourceRequirements as KubernetesResources,
)

from ...config import Defaults
from ...constants import (
    APP_LOGS_CONSOLE_LINK_NAME,
    CONSOLE_LINK_SECTION,
    CONSOLE_LINK_TEXT,
    INFRA_LOGS_CONSOLE_LINK_NAME,
    INJECT_TRUSTED_CA_BUNDLE_LABEL,
    KIBANA_INSTANCE_NAME,
    KIBANA_PROXY_NAME,
    KIBANA_TRUSTED_CA_NAME,
    TRUSTED_CA_BUNDLE_HASH_ANNOTATION,
    TRUSTED_CA_BUNDLE_KEY,
    TRUSTED_CA_BUNDLE_MOUNT_DIR,
    TRUSTED_CA_BUNDLE_MOUNT_FILE,
)
from ...models.domain.kibana import Kibana
from ...models.domain.kubernetes import ResourceRequirements
from ...units import normalize_resources
from .compare import (
    has_ownership,
    is_converged,
    is_equal,
    merge_ownership,
)

__all__ = ["KibanaBuilder"]

_PROXY_PORT = 3000
_PROXY_PORT_NAME = "oaproxy"
_OAUTH_REDIRECT_ANNOTATION = (
    "serviceaccounts.openshift.io/oauth-redirectreference.first"
)


class KibanaBuilder:
    """Construct Kubernetes objects for a Kibana deployment.

    Every object is built from scratch from the ``Kibana`` desired-state
    object and the configured defaults. The comparison methods decide
    whether an object read from Kubernetes needs to be updated, and the
    update methods apply the desired state to that object while preserving
    everything the controller does not own.

    Parameters
    ----------
    defaults
        Default images and resources.
    """

    def __init__(self, defaults: Defaults) -> None:
        self._defaults = defaults

    def build_cluster_role_binding(
        self, kibana: Kibana
    ) -> V1ClusterRoleBinding:
        """Construct the binding allowing the proxy to review tokens."""
        metadata = self._build_metadata(
            kibana, f"kibana-auth-delegator-{kibana.namespace}"
        )
        metadata.namespace = None
        return V1ClusterRoleBinding(
            metadata=metadata,
            role_ref=V1RoleRef(
                api_group="rbac.authorization.k8s.io",
                kind="ClusterRole",
                name="system:auth-delegator",
            ),
            subjects=[
                RbacV1Subject(
                    kind="ServiceAccount",
                    name=KIBANA_INSTANCE_NAME,
                    namespace=kibana.namespace,
                )
            ],
        )

    def build_console_links(
        self, kibana: Kibana, route_host: str | None
    ) -> list[dict[str, Any]]:
        """Construct the console links pointing to Kibana.

        Parameters
        ----------
        kibana
            Desired-state object.
        route_host
            Host assigned to the Kibana route, if the router has assigned
            one yet.

        Returns
        -------
        list of dict
            ``ConsoleLink`` objects for application and infrastructure logs.
        """
        href = f"https://{route_host or ''}"
        links = []
        for name in (APP_LOGS_CONSOLE_LINK_NAME, INFRA_LOGS_CONSOLE_LINK_NAME):
            metadata = self._build_metadata(kibana, name)
            metadata.namespace = None
            links.append(
                {
                    "apiVersion": "console.openshift.io/v1",
                    "kind": "ConsoleLink",
                    "metadata": metadata.to_dict(serialize=True),
                    "spec": {
                        "href": href,
                        "location": "ApplicationMenu",
                        "text": CONSOLE_LINK_TEXT,
                        "applicationMenu": {"section": CONSOLE_LINK_SECTION},
                    },
                }
            )
        return links

    def build_deployment(self, kibana: Kibana, ca_hash: str) -> V1Deployment:
        """Construct the Kibana deployment.

        Parameters
        ----------
        kibana
            Desired-state object.
        ca_hash
            Fingerprint of the trusted CA bundle, recorded as a pod template
            annotation so that a change to the bundle restarts the pods.

        Returns
        -------
        kubernetes_asyncio.client.V1Deployment
            Deployment for Kibana and its OAuth proxy.
        """
        spec = kibana.spec
        labels = self._build_labels()
        return V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=self._build_metadata(kibana, KIBANA_INSTANCE_NAME),
            spec=V1DeploymentSpec(
                replicas=spec.replicas,
                selector=V1LabelSelector(match_labels=labels),
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(
                        labels=labels,
                        annotations={
                            TRUSTED_CA_BUNDLE_HASH_ANNOTATION: ca_hash
                        },
                    ),
                    spec=V1PodSpec(
                        containers=[
                            self._build_kibana_container(kibana),
                            self._build_proxy_container(kibana),
                        ],
                        node_selector=spec.node_selector or None,
                        service_account_name=KIBANA_INSTANCE_NAME,
                        tolerations=[
                            t.to_kubernetes() for t in spec.tolerations
                        ]
                        or None,
                        volumes=[
                            V1Volume(
                                name=KIBANA_INSTANCE_NAME,
                                secret=V1SecretVolumeSource(
                                    secret_name=KIBANA_INSTANCE_NAME
                                ),
                            ),
                            V1Volume(
                                name=KIBANA_PROXY_NAME,
                                secret=V1SecretVolumeSource(
                                    secret_name=KIBANA_PROXY_NAME
                                ),
                            ),
                            V1Volume(
                                name=KIBANA_TRUSTED_CA_NAME,
                                config_map=V1ConfigMapVolumeSource(
                                    name=KIBANA_TRUSTED_CA_NAME,
                                    items=[
                                        V1KeyToPath(
                                            key=TRUSTED_CA_BUNDLE_KEY,
                                            path=TRUSTED_CA_BUNDLE_MOUNT_FILE,
                                        )
                                    ],
                                ),
                            ),
                        ],
                    ),
                ),
            ),
        )

    def build_route(self, kibana: Kibana) -> dict[str, Any]:
        """Construct the ``Route`` exposing Kibana outside the cluster."""
        metadata = self._build_metadata(kibana, KIBANA_INSTANCE_NAME)
        return {
            "apiVersion": "route.openshift.io/v1",
            "kind": "Route",
            "metadata": metadata.to_dict(serialize=True),
            "spec": {
                "to": {
                    "kind": "Service",
                    "name": KIBANA_INSTANCE_NAME,
                    "weight": 100,
                },
                "port": {"targetPort": _PROXY_PORT_NAME},
                "tls": {
                    "termination": "reencrypt",
                    "insecureEdgeTerminationPolicy": "Redirect",
                },
            },
        }

    def build_service(self, kibana: Kibana) -> V1Service:
        """Construct the ``Service`` in front of the OAuth proxy."""
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self._build_metadata(kibana, KIBANA_INSTANCE_NAME),
            spec=V1ServiceSpec(
                ports=[
                    V1ServicePort(
                        name=_PROXY_PORT_NAME,
                        port=443,
                        protocol="TCP",
                        target_port=_PROXY_PORT_NAME,
                    )
                ],
                selector=self._build_labels(),
            ),
        )

    def build_service_account(self, kibana: Kibana) -> V1ServiceAccount:
        """Construct the ``ServiceAccount`` used by the Kibana pods.

        The annotation registers the service account as an OAuth client whose
        redirect URI is the Kibana route.
        """
        metadata = self._build_metadata(kibana, KIBANA_INSTANCE_NAME)
        reference = {
            "kind": "OAuthRedirectReference",
            "apiVersion": "v1",
            "reference": {"kind": "Route", "name": KIBANA_INSTANCE_NAME},
        }
        annotation = json.dumps(reference)
        metadata.annotations = {_OAUTH_REDIRECT_ANNOTATION: annotation}
        return V1ServiceAccount(
            api_version="v1", kind="ServiceAccount", metadata=metadata
        )

    def build_trusted_ca_bundle(self, kibana: Kibana) -> V1ConfigMap:
        """Construct the empty trusted CA bundle ``ConfigMap``.

        The label asks the platform to inject the cluster trusted CA bundle
        into the ``ConfigMap``. The controller never modifies the data after
        creation.
        """
        metadata = self._build_metadata(kibana, KIBANA_TRUSTED_CA_NAME)
        metadata.labels[INJECT_TRUSTED_CA_BUNDLE_LABEL] = "true"
        return V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=metadata,
            data={TRUSTED_CA_BUNDLE_KEY: ""},
        )

    def is_cluster_role_binding_converged(
        self, existing: V1ClusterRoleBinding, desired: V1ClusterRoleBinding
    ) -> bool:
        """Determine whether a cluster role binding needs an update."""
        if not self._has_ownership(existing.metadata, desired.metadata):
            return False
        return is_converged(
            [s.to_dict() for s in desired.subjects],
            [s.to_dict() for s in existing.subjects or []],
        )

    def is_custom_object_converged(
        self, existing: dict[str, Any], desired: dict[str, Any]
    ) -> bool:
        """Determine whether a ``Route`` or ``ConsoleLink`` needs an update."""
        metadata = existing.get("metadata") or {}
        if not has_ownership(desired["metadata"], metadata):
            return False
        return is_converged(desired["spec"], existing.get("spec"))

    def is_deployment_converged(
        self, existing: V1Deployment, desired: V1Deployment
    ) -> bool:
        """Determine whether the Kibana deployment needs an update.

        The trusted CA bundle fingerprint annotation is compared exactly, so
        a rotated bundle always forces an update even if nothing else
        changed. Pod settings taken from the ``Kibana`` object are compared
        exactly, so removing one from the desired state removes it from the
        deployment. Fields that Kubernetes fills in with defaults are only
        required to contain the desired values.
        """
        if not self._has_ownership(existing.metadata, desired.metadata):
            return False
        template = existing.spec.template
        annotations = template.metadata.annotations or {}
        wanted = desired.spec.template.metadata.annotations
        ca_hash = wanted[TRUSTED_CA_BUNDLE_HASH_ANNOTATION]
        if annotations.get(TRUSTED_CA_BUNDLE_HASH_ANNOTATION) != ca_hash:
            return False
        if existing.spec.replicas != desired.spec.replicas:
            return False
        return self._is_pod_spec_converged(
            template.spec.to_dict(), desired.spec.template.spec.to_dict()
        )

    def is_service_converged(
        self, existing: V1Service, desired: V1Service
    ) -> bool:
        """Determine whether the Kibana service needs an update."""
        if not self._has_ownership(existing.metadata, desired.metadata):
            return False
        return is_converged(desired.spec.to_dict(), existing.spec.to_dict())

    def is_service_account_converged(
        self, existing: V1ServiceAccount, desired: V1ServiceAccount
    ) -> bool:
        """Determine whether the service account needs an update."""
        if not self._has_ownership(existing.metadata, desired.metadata):
            return False
        annotations = existing.metadata.annotations or {}
        return is_converged(desired.metadata.annotations, annotations)

    def update_cluster_role_binding(
        self, existing: V1ClusterRoleBinding, desired: V1ClusterRoleBinding
    ) -> V1ClusterRoleBinding:
        """Apply the desired subjects to an existing cluster role binding.

        The role reference of a binding is immutable, so only the subjects
        and ownership are updated.
        """
        self._merge_ownership(existing.metadata, desired.metadata)
        existing.subjects = desired.subjects
        return existing

    def update_custom_object(
        self, existing: dict[str, Any], desired: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply the desired spec fields to an existing custom object.

        Fields of the existing spec that the controller does not set, such as
        the host assigned to a route, are preserved.
        """
        metadata = existing.setdefault("metadata", {})
        merge_ownership(desired["metadata"], metadata)
        existing.setdefault("spec", {}).update(desired["spec"])
        return existing

    def update_deployment(
        self, existing: V1Deployment, desired: V1Deployment
    ) -> V1Deployment:
        """Apply the desired state to an existing Kibana deployment."""
        self._merge_ownership(existing.metadata, desired.metadata)
        existing.spec.replicas = desired.spec.replicas
        template = existing.spec.template
        wanted = desired.spec.template
        template.metadata.labels = {
            **(template.metadata.labels or {}),
            **wanted.metadata.labels,
        }
        template.metadata.annotations = {
            **(template.metadata.annotations or {}),
            **wanted.metadata.annotations,
        }
        template.spec.containers = wanted.spec.containers
        template.spec.node_selector = wanted.spec.node_selector
        template.spec.service_account_name = wanted.spec.service_account_name
        template.spec.tolerations = wanted.spec.tolerations
        template.spec.volumes = wanted.spec.volumes
        return existing

    def update_service(
        self, existing: V1Service, desired: V1Service
    ) -> V1Service:
        """Apply the desired ports and selector to an existing service."""
        self._merge_ownership(existing.metadata, desired.metadata)
        existing.spec.ports = desired.spec.ports
        existing.spec.selector = desired.spec.selector
        return existing

    def update_service_account(
        self, existing: V1ServiceAccount, desired: V1ServiceAccount
    ) -> V1ServiceAccount:
        """Add the OAuth redirect annotation to an existing service account."""
        self._merge_ownership(existing.metadata, desired.metadata)
        existing.metadata.annotations = {
            **(existing.metadata.annotations or {}),
            **desired.metadata.annotations,
        }
        return existing

    def _build_kibana_container(self, kibana: Kibana) -> V1Container:
        """Construct the container running Kibana itself."""
        url = f"https://elasticsearch.{kibana.namespace}.svc:9200"
        memory_limit = V1EnvVarSource(
            resource_field_ref=V1ResourceFieldSelector(
                container_name="kibana", resource="limits.memory"
            )
        )
        return V1Container(
            name="kibana",
            image=self._defaults.kibana_image,
            env=[
                V1EnvVar(name="ELASTICSEARCH_URL", value=url),
                V1EnvVar(name="KIBANA_MEMORY_LIMIT", value_from=memory_limit),
            ],
            resources=self._build_resources(
                kibana.spec.resources,
                cpu_request=self._defaults.kibana_cpu_request,
                memory_limit=self._defaults.kibana_memory_limit,
                memory_request=self._defaults.kibana_memory_request,
            ),
            volume_mounts=[
                V1VolumeMount(
                    name=KIBANA_INSTANCE_NAME,
                    mount_path="/etc/kibana/keys",
                    read_only=True,
                )
            ],
        )

    def _build_labels(self) -> dict[str, str]:
        """Construct the labels identifying the Kibana pods."""
        return {
            "component": "kibana",
            "logging-infra": "kibana",
            "provider": "openshift",
        }

    def _build_metadata(self, kibana: Kibana, name: str) -> V1ObjectMeta:
        """Construct the metadata for an object.

        This adds the standard labels and an owner reference to the
        desired-state object so that Kubernetes deletes the object when the
        ``Kibana`` object is deleted.
        """
        owner = V1OwnerReference(
            api_version="logging.openshift.io/v1",
            kind="Kibana",
            name=kibana.name,
            uid=kibana.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )
        return V1ObjectMeta(
            name=name,
            namespace=kibana.namespace,
            labels=self._build_labels(),
            owner_references=[owner],
        )

    def _build_proxy_container(self, kibana: Kibana) -> V1Container:
        """Construct the container running the OAuth proxy."""
        client_id = f"system:serviceaccount:{kibana.namespace}:kibana"
        token_path = "/var/run/secrets/kubernetes.io/serviceaccount"
        return V1Container(
            name=KIBANA_PROXY_NAME,
            image=self._defaults.proxy_image,
            args=[
                f"--upstream-ca={token_path}/ca.crt",
                f"--https-address=:{_PROXY_PORT}",
                "-provider=openshift",
                f"-client-id={client_id}",
                f"-client-secret-file={token_path}/token",
                "-cookie-secret-file=/secret/session-secret",
                "-upstream=http://localhost:5601",
                "-scope=user:info user:check-access user:list-projects",
                "--tls-cert=/secret/server-cert",
                "-tls-key=/secret/server-key",
                "-pass-access-token",
                "-skip-provider-button",
            ],
            ports=[
                V1ContainerPort(
                    container_port=_PROXY_PORT,
                    name=_PROXY_PORT_NAME,
                    protocol="TCP",
                )
            ],
            resources=self._build_resources(
                kibana.spec.proxy.resources,
                cpu_request=self._defaults.proxy_cpu_request,
                memory_limit=self._defaults.proxy_memory_limit,
                memory_request=self._defaults.proxy_memory_request,
            ),
            volume_mounts=[
                V1VolumeMount(
                    name=KIBANA_PROXY_NAME,
                    mount_path="/secret",
                    read_only=True,
                ),
                V1VolumeMount(
                    name=KIBANA_TRUSTED_CA_NAME,
                    mount_path=TRUSTED_CA_BUNDLE_MOUNT_DIR,
                    read_only=True,
                ),
            ],
        )

    def _build_resources(
        self,
        resources: ResourceRequirements | None,
        *,
        cpu_request: str,
        memory_limit: str,
        memory_request: str,
    ) -> KubernetesResources:
        """Use the requested resources, or fall back on the defaults."""
        if resources:
            return resources.to_kubernetes()
        return KubernetesResources(
            limits={"memory": memory_limit},
            requests={"cpu": cpu_request, "memory": memory_request},
        )

    def _has_ownership(
        self, existing: V1ObjectMeta, desired: V1ObjectMeta
    ) -> bool:
        """Check for the controller's labels and owner reference."""
        return has_ownership(
            desired.to_dict(serialize=True), existing.to_dict(serialize=True)
        )

    def _is_container_converged(
        self, existing: dict[str, Any], desired: dict[str, Any]
    ) -> bool:
        """Compare containers, allowing server defaults in list entries."""
        for field in ("name", "image", "args"):
            if not is_equal(desired[field], existing.get(field)):
                return False
        wanted = normalize_resources(desired["resources"])
        if wanted != normalize_resources(existing.get("resources")):
            return False
        for field in ("env", "ports", "volume_mounts"):
            value = existing.get(field)
            if desired[field] is None:
                if not is_equal(None, value):
                    return False
            elif not is_converged(desired[field], value):
                return False
        return True

    def _is_pod_spec_converged(
        self, existing: dict[str, Any], desired: dict[str, Any]
    ) -> bool:
        """Compare pod specs, in the form returned by ``to_dict``."""
        for field in ("node_selector", "service_account_name", "tolerations"):
            if not is_equal(desired[field], existing.get(field)):
                return False
        if not is_converged(desired["volumes"], existing.get("volumes")):
            return False
        containers = existing.get("containers") or []
        if len(containers) != len(desired["containers"]):
            return False
        return all(
            self._is_container_converged(e, d)
            for e, d in zip(containers, desired["containers"])
        )

    def _merge_ownership(
        self, existing: V1ObjectMeta, desired: V1ObjectMeta
    ) -> None:
        """Add the controller's labels and owner reference to metadata."""
        existing.labels = {**(existing.labels or {}), **desired.labels}
        owners = list(existing.owner_references or [])
        present = {(o.kind, o.name, o.uid) for o in owners}
        for owner in desired.owner_references:
            if (owner.kind, owner.name, owner.uid) not in present:
                owners.append(owner)
        existing.owner_references = owners
