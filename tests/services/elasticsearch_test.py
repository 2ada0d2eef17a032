"""Tests for reconciliation of Elasticsearch cluster configuration."""

from __future__ import annotations

from datetime import timedelta

import pytest
import yaml
from kubernetes_asyncio.client import V1ConfigMap, V1ObjectMeta

from logstack.controller.config import Defaults
from logstack.controller.exceptions import InvalidConfigurationError
from logstack.controller.factory import Factory
from logstack.controller.models.domain.elasticsearch import (
    Elasticsearch,
    ElasticsearchNode,
)
from logstack.controller.models.domain.topology import NodeRole
from logstack.controller.services.builder.elasticsearch import (
    ElasticsearchBuilder,
)
from logstack.controller.timeout import Timeout

from ..support.data import read_input_elasticsearch
from ..support.kubernetes import MockLogstackKubernetesApi


async def reconcile(factory: Factory, elasticsearch: Elasticsearch) -> None:
    reconciler = factory.create_elasticsearch_reconciler()
    timeout = Timeout("Reconciling Elasticsearch", timedelta(seconds=30))
    await reconciler.reconcile(elasticsearch, timeout)


@pytest.mark.asyncio
async def test_config_map(
    factory: Factory, mock_kubernetes: MockLogstackKubernetesApi
) -> None:
    elasticsearch = read_input_elasticsearch("standard")
    namespace = elasticsearch.namespace

    await reconcile(factory, elasticsearch)

    config_map = await mock_kubernetes.read_namespaced_config_map(
        "elasticsearch", namespace
    )
    owners = config_map.metadata.owner_references
    assert [(o.kind, o.name) for o in owners] == [
        ("Elasticsearch", "elasticsearch")
    ]
    assert owners[0].uid == elasticsearch.metadata.uid

    config = yaml.safe_load(config_map.data["elasticsearch.yml"])
    assert config["cluster"]["name"] == "elasticsearch"
    assert config["discovery.zen"] == {
        "ping.unicast.hosts": "elasticsearch-cluster.openshift-logging.svc",
        "minimum_master_nodes": 2,
    }
    assert config["openshift.kibana.index.mode"] == "unique"
    assert config["gateway"]["expected_nodes"] == 8
    certs = "/etc/openshift/elasticsearch/secret"
    assert config["searchguard"]["ssl.http.keystore_filepath"] == (
        f"{certs}/key"
    )

    # Five data nodes with multiple redundancy give two replicas.
    assert config_map.data["index_settings"] == (
        "PRIMARY_SHARDS=5\nREPLICA_SHARDS=2\n"
    )
    log4j2 = config_map.data["log4j2.properties"]
    assert "rootLogger.appenderRef.rolling.ref = rolling" in log4j2
    jvm_options = config_map.data["jvm.options"].splitlines()
    heap_dump = "/elasticsearch/persistent/heapdump.hprof"
    assert f"-XX:HeapDumpPath={heap_dump}" in jvm_options
    config_path = "/usr/share/java/elasticsearch/config"
    assert f"-Des.path.conf={config_path}" in jvm_options


@pytest.mark.asyncio
async def test_update(
    factory: Factory, mock_kubernetes: MockLogstackKubernetesApi
) -> None:
    elasticsearch = read_input_elasticsearch("standard")
    namespace = elasticsearch.namespace
    await reconcile(factory, elasticsearch)
    mock_kubernetes.clear_writes_for_test()

    await reconcile(factory, elasticsearch)
    assert mock_kubernetes.writes == []

    elasticsearch.spec.redundancy_policy = "FullRedundancy"
    await reconcile(factory, elasticsearch)
    assert mock_kubernetes.writes == [
        ("replace", "ConfigMap", namespace, "elasticsearch")
    ]
    config_map = await mock_kubernetes.read_namespaced_config_map(
        "elasticsearch", namespace
    )
    assert config_map.data["index_settings"] == (
        "PRIMARY_SHARDS=5\nREPLICA_SHARDS=4\n"
    )


@pytest.mark.asyncio
async def test_invalid(
    factory: Factory, mock_kubernetes: MockLogstackKubernetesApi
) -> None:
    elasticsearch = read_input_elasticsearch("standard")
    elasticsearch.spec.index_mode = "bogus"
    with pytest.raises(InvalidConfigurationError) as excinfo:
        await reconcile(factory, elasticsearch)
    assert excinfo.value.value == "bogus"
    assert excinfo.value.kind == "Elasticsearch"
    assert excinfo.value.name == "elasticsearch"

    elasticsearch = read_input_elasticsearch("standard")
    elasticsearch.spec.nodes[0].node_count = 4
    with pytest.raises(InvalidConfigurationError) as excinfo:
        await reconcile(factory, elasticsearch)
    assert "4 master nodes" in str(excinfo.value)

    elasticsearch = read_input_elasticsearch("standard")
    elasticsearch.spec.redundancy_policy = "FullRedundancy"
    elasticsearch.spec.nodes = [
        ElasticsearchNode(roles=[NodeRole.MASTER], node_count=1)
    ]
    with pytest.raises(InvalidConfigurationError):
        await reconcile(factory, elasticsearch)

    assert mock_kubernetes.writes == []


@pytest.mark.asyncio
async def test_repair_ownership(
    factory: Factory, mock_kubernetes: MockLogstackKubernetesApi
) -> None:
    elasticsearch = read_input_elasticsearch("standard")
    namespace = elasticsearch.namespace
    config_map = V1ConfigMap(
        metadata=V1ObjectMeta(
            name="elasticsearch",
            namespace=namespace,
            labels={"example.com/team": "logging"},
        ),
        data={"elasticsearch.yml": "cluster.name: old\n"},
    )
    await mock_kubernetes.create_namespaced_config_map(namespace, config_map)
    config_map = await mock_kubernetes.read_namespaced_config_map(
        "elasticsearch", namespace
    )
    uid = config_map.metadata.uid

    await reconcile(factory, elasticsearch)
    config_map = await mock_kubernetes.read_namespaced_config_map(
        "elasticsearch", namespace
    )
    assert config_map.metadata.uid == uid
    owners = config_map.metadata.owner_references
    assert [(o.kind, o.uid) for o in owners] == [
        ("Elasticsearch", elasticsearch.metadata.uid)
    ]
    assert config_map.metadata.labels == {
        "example.com/team": "logging",
        "cluster-name": "elasticsearch",
        "component": "elasticsearch",
    }

    # Ownership alone is enough to force an update.
    config_map.metadata.owner_references = None
    await mock_kubernetes.replace_namespaced_config_map(
        "elasticsearch", namespace, config_map
    )
    mock_kubernetes.clear_writes_for_test()
    await reconcile(factory, elasticsearch)
    assert mock_kubernetes.writes == [
        ("replace", "ConfigMap", namespace, "elasticsearch")
    ]
    mock_kubernetes.clear_writes_for_test()
    await reconcile(factory, elasticsearch)
    assert mock_kubernetes.writes == []


def test_node_resources() -> None:
    elasticsearch = read_input_elasticsearch("standard")
    builder = ElasticsearchBuilder(Defaults())
    master, data = elasticsearch.spec.nodes

    resources = builder.build_node_resources(elasticsearch, master)
    assert resources.limits == {"cpu": "100m", "memory": "8Gi"}
    assert resources.requests == {"cpu": "100m", "memory": "2Gi"}

    resources = builder.build_node_resources(elasticsearch, data)
    assert resources.limits == {"cpu": "2000m", "memory": "8Gi"}
    assert resources.requests == {"cpu": "100m", "memory": "2Gi"}

    elasticsearch.spec.node_spec.resources = None
    resources = builder.build_node_resources(elasticsearch, data)
    assert resources.limits == {"cpu": "2000m", "memory": "4Gi"}
    assert resources.requests == {"cpu": "100m", "memory": "1Gi"}


def test_max_master_count() -> None:
    elasticsearch = read_input_elasticsearch("standard")
    builder = ElasticsearchBuilder(Defaults(max_master_count=1))
    with pytest.raises(InvalidConfigurationError):
        builder.build_plan(elasticsearch)

    builder = ElasticsearchBuilder(Defaults(max_master_count=5))
    elasticsearch.spec.nodes[0].node_count = 5
    plan = builder.build_plan(elasticsearch)
    assert plan.replica_count == 2
