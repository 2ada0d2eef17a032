"""Construction of Kubernetes objects for Elasticsearch clusters."""

from __future__ import annotations

from typing import Any

import yaml
from kubernetes_asyncio.client import (
    V1ConfigMap,
    V1ObjectMeta,
    V1OwnerReference,
    V1ResourceRequirements,
)

from ...config import Defaults
from ...exceptions import InvalidConfigurationError
from ...models.domain.elasticsearch import Elasticsearch, ElasticsearchNode
from ...models.domain.topology import NodeRole, TopologyPlan
from ..topology import data_node_count, master_node_count, plan_topology
from .compare import has_ownership

__all__ = ["ElasticsearchBuilder"]


class ElasticsearchBuilder:
    """Construct Kubernetes objects for an Elasticsearch cluster.

    Parameters
    ----------
    defaults
        Default images, resources, and paths.
    """

    def __init__(self, defaults: Defaults) -> None:
        self._defaults = defaults

    def build_plan(self, elasticsearch: Elasticsearch) -> TopologyPlan:
        """Validate an ``Elasticsearch`` object and plan its topology.

        Parameters
        ----------
        elasticsearch
            Desired-state object.

        Returns
        -------
        TopologyPlan
            Derived topology of the cluster.

        Raises
        ------
        InvalidConfigurationError
            Raised if the index mode is invalid, if too many master nodes
            were requested, or if the redundancy policy cannot be satisfied
            by the data nodes.
        """
        spec = elasticsearch.spec
        kind = "Elasticsearch"
        name = elasticsearch.name
        namespace = elasticsearch.namespace
        masters = master_node_count(spec.nodes)
        if masters > self._defaults.max_master_count:
            maximum = self._defaults.max_master_count
            msg = f"Requested {masters} master nodes, maximum is {maximum}"
            raise InvalidConfigurationError(
                msg, kind=kind, namespace=namespace, name=name
            )
        try:
            plan = plan_topology(
                cluster_name=name,
                namespace=namespace,
                node_count=data_node_count(spec.nodes),
                policy=spec.redundancy_policy,
                index_mode=spec.index_mode,
            )
        except InvalidConfigurationError as e:
            e.kind = kind
            e.namespace = namespace
            e.name = name
            raise
        if plan.replica_count < 0:
            msg = (
                f"Redundancy policy {spec.redundancy_policy} needs at least"
                " one data node"
            )
            raise InvalidConfigurationError(
                msg,
                value=spec.redundancy_policy,
                kind=kind,
                namespace=namespace,
                name=name,
            )
        return plan

    def build_config_map(
        self, elasticsearch: Elasticsearch, plan: TopologyPlan
    ) -> V1ConfigMap:
        """Construct the configuration ``ConfigMap`` of a cluster.

        Parameters
        ----------
        elasticsearch
            Desired-state object.
        plan
            Validated topology of the cluster.

        Returns
        -------
        kubernetes_asyncio.client.V1ConfigMap
            ``ConfigMap`` named after the cluster.
        """
        nodes = elasticsearch.spec.nodes
        return V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=self._build_metadata(elasticsearch),
            data={
                "elasticsearch.yml": self._build_elasticsearch_yml(
                    elasticsearch, plan
                ),
                "jvm.options": self._build_jvm_options(),
                "log4j2.properties": self._build_log4j2_properties(),
                "index_settings": (
                    f"PRIMARY_SHARDS={data_node_count(nodes)}\n"
                    f"REPLICA_SHARDS={plan.replica_count}\n"
                ),
            },
        )

    def build_node_resources(
        self, elasticsearch: Elasticsearch, node: ElasticsearchNode
    ) -> V1ResourceRequirements:
        """Determine the resources of a group of Elasticsearch nodes.

        Each quantity comes from the node group if set there, otherwise from
        the node spec of the cluster, otherwise from the defaults. Nodes that
        are only masters get the smaller master CPU defaults.

        Parameters
        ----------
        elasticsearch
            Desired-state object.
        node
            Node group.

        Returns
        -------
        kubernetes_asyncio.client.V1ResourceRequirements
            Resources for each node in the group.
        """
        defaults = self._defaults
        if set(node.roles) == {NodeRole.MASTER}:
            limits = {"cpu": defaults.master_cpu_limit}
            requests = {"cpu": defaults.master_cpu_request}
        else:
            limits = {"cpu": defaults.cpu_limit}
            requests = {"cpu": defaults.cpu_request}
        limits["memory"] = defaults.memory_limit
        requests["memory"] = defaults.memory_request
        overrides = (elasticsearch.spec.node_spec.resources, node.resources)
        for resources in overrides:
            if not resources:
                continue
            limits.update(resources.limits or {})
            requests.update(resources.requests or {})
        return V1ResourceRequirements(limits=limits, requests=requests)

    def is_config_map_converged(
        self, existing: V1ConfigMap, desired: V1ConfigMap
    ) -> bool:
        """Determine whether the configuration ``ConfigMap`` needs an update.

        The controller owns all of the data, so it must match exactly. The
        ``ConfigMap`` must also carry the controller's labels and owner
        reference.
        """
        if not has_ownership(
            desired.metadata.to_dict(serialize=True),
            existing.metadata.to_dict(serialize=True),
        ):
            return False
        return (existing.data or {}) == desired.data

    def update_config_map(
        self, existing: V1ConfigMap, desired: V1ConfigMap
    ) -> V1ConfigMap:
        """Apply the desired data and ownership to a ``ConfigMap``."""
        existing.data = desired.data
        existing.metadata.labels = {
            **(existing.metadata.labels or {}),
            **desired.metadata.labels,
        }
        owners = list(existing.metadata.owner_references or [])
        uids = {o.uid for o in owners}
        owners.extend(
            o for o in desired.metadata.owner_references if o.uid not in uids
        )
        existing.metadata.owner_references = owners
        return existing

    def _build_elasticsearch_yml(
        self, elasticsearch: Elasticsearch, plan: TopologyPlan
    ) -> str:
        """Render the main Elasticsearch configuration file."""
        nodes = elasticsearch.spec.nodes
        masters = master_node_count(nodes)
        total = sum(n.node_count for n in nodes)
        certs = self._defaults.certs_path
        config: dict[str, Any] = {
            "cluster": {"name": elasticsearch.name},
            "node": {
                "name": "${DC_NAME}",
                "master": "${IS_MASTER}",
                "data": "${HAS_DATA}",
                "max_local_storage_nodes": 1,
            },
            "network": {"host": "0.0.0.0"},
            "discovery.zen": {
                "ping.unicast.hosts": plan.discovery_address,
                "minimum_master_nodes": masters // 2 + 1,
            },
            "gateway": {
                "recover_after_nodes": total // 2 + 1,
                "expected_nodes": total,
                "recover_after_time": "5m",
            },
            "openshift.kibana.index.mode": plan.index_mode.value,
            "path": {
                "data": f"/elasticsearch/persistent/{elasticsearch.name}/data",
                "logs": f"/elasticsearch/persistent/{elasticsearch.name}/logs",
            },
            "searchguard": {
                "ssl.transport.keystore_filepath": f"{certs}/searchguard.key",
                "ssl.transport.truststore_filepath": (
                    f"{certs}/searchguard.truststore"
                ),
                "ssl.http.keystore_filepath": f"{certs}/key",
                "ssl.http.truststore_filepath": f"{certs}/truststore",
            },
        }
        return yaml.safe_dump(config, default_flow_style=False)

    def _build_jvm_options(self) -> str:
        """Render the JVM options, including the heap dump location."""
        lines = [
            "-XX:+UseConcMarkSweepGC",
            "-XX:CMSInitiatingOccupancyFraction=75",
            "-XX:+UseCMSInitiatingOccupancyOnly",
            "-XX:+HeapDumpOnOutOfMemoryError",
            f"-XX:HeapDumpPath={self._defaults.heap_dump_location}",
            f"-Des.path.conf={self._defaults.config_path}",
            "-Dlog4j2.disable.jmx=true",
        ]
        return "\n".join(lines) + "\n"

    def _build_log4j2_properties(self) -> str:
        """Render the Elasticsearch logging configuration."""
        root = self._defaults.root_logger
        lines = [
            "status = error",
            "appender.console.type = Console",
            "appender.console.name = console",
            "appender.console.layout.type = PatternLayout",
            "appender.console.layout.pattern ="
            " [%d{ISO8601}][%-5p][%-25c{1.}] %marker%m%n",
            "appender.rolling.type = RollingFile",
            "appender.rolling.name = rolling",
            "appender.rolling.fileName ="
            " ${sys:es.logs.base_path}${sys:file.separator}"
            "${sys:es.logs.cluster_name}.log",
            "appender.rolling.layout.type = PatternLayout",
            "appender.rolling.layout.pattern ="
            " [%d{ISO8601}][%-5p][%-25c{1.}] %marker%.-10000m%n",
            "appender.rolling.filePattern ="
            " ${sys:es.logs.base_path}${sys:file.separator}"
            "${sys:es.logs.cluster_name}-%d{yyyy-MM-dd}.log",
            "appender.rolling.policies.type = Policies",
            "appender.rolling.policies.time.type = TimeBasedTriggeringPolicy",
            "appender.rolling.policies.time.interval = 1",
            "rootLogger.level = info",
            f"rootLogger.appenderRef.{root}.ref = {root}",
        ]
        return "\n".join(lines) + "\n"

    def _build_metadata(self, elasticsearch: Elasticsearch) -> V1ObjectMeta:
        """Construct metadata owned by the ``Elasticsearch`` object."""
        owner = V1OwnerReference(
            api_version="logging.openshift.io/v1",
            kind="Elasticsearch",
            name=elasticsearch.name,
            uid=elasticsearch.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )
        return V1ObjectMeta(
            name=elasticsearch.name,
            namespace=elasticsearch.namespace,
            labels={
                "cluster-name": elasticsearch.name,
                "component": "elasticsearch",
            },
            owner_references=[owner],
        )
