"""Topology planning for Elasticsearch clusters.

Everything in this module is a pure function of its arguments. Nothing here
talks to Kubernetes, so these functions can be called wherever a derived
topology value is needed while building objects.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..exceptions import InvalidConfigurationError
from ..models.domain.elasticsearch import ElasticsearchNode
from ..models.domain.topology import (
    IndexMode,
    NodeRole,
    RedundancyPolicy,
    TopologyPlan,
)

__all__ = [
    "DEFAULT_INDEX_MODE",
    "data_node_count",
    "discovery_address",
    "master_node_count",
    "plan_topology",
    "replica_count",
    "validate_index_mode",
]

DEFAULT_INDEX_MODE = IndexMode.SHARED_OPS
"""Index mode used when none is specified."""


def validate_index_mode(mode: str) -> IndexMode:
    """Validate the Kibana index mode.

    Parameters
    ----------
    mode
        Index mode from the desired-state object. The empty string selects
        the default.

    Returns
    -------
    IndexMode
        Validated index mode.

    Raises
    ------
    InvalidConfigurationError
        Raised if the mode is not empty and not a recognized mode. An invalid
        mode is never replaced by the default.
    """
    if not mode:
        return DEFAULT_INDEX_MODE
    try:
        return IndexMode(mode)
    except ValueError:
        msg = f"Invalid Kibana index mode provided [{mode}]"
        raise InvalidConfigurationError(msg, value=mode) from None


def discovery_address(cluster_name: str, namespace: str) -> str:
    """Construct the unicast discovery address of a cluster.

    Parameters
    ----------
    cluster_name
        Name of the Elasticsearch cluster.
    namespace
        Namespace of the cluster.

    Returns
    -------
    str
        Name of the headless service used by nodes to find each other.
    """
    return f"{cluster_name}-cluster.{namespace}.svc"


def replica_count(node_count: int, policy: RedundancyPolicy | str) -> int:
    """Calculate the number of replicas of each primary shard.

    The result is not clamped. With full redundancy and no data nodes this
    returns -1, and callers must treat a negative count as an invalid
    topology.

    Parameters
    ----------
    node_count
        Number of data nodes.
    policy
        Redundancy policy. Unrecognized values are allowed.

    Returns
    -------
    int
        Number of replicas.
    """
    match policy:
        case RedundancyPolicy.FULL:
            return node_count - 1
        case RedundancyPolicy.MULTIPLE:
            # Truncate toward zero so that no data nodes means no replicas.
            return max(node_count - 1, 0) // 2
        case RedundancyPolicy.SINGLE:
            return 1
        case RedundancyPolicy.ZERO:
            return 0
        case _:
            # TODO(logstack): Reject unknown redundancy policies with
            # InvalidConfigurationError once existing objects are migrated.
            return 1


def data_node_count(nodes: Iterable[ElasticsearchNode]) -> int:
    """Count the data nodes of a cluster.

    Parameters
    ----------
    nodes
        Node groups of the cluster.

    Returns
    -------
    int
        Total number of nodes with the data role.
    """
    return sum(n.node_count for n in nodes if NodeRole.DATA in n.roles)


def master_node_count(nodes: Iterable[ElasticsearchNode]) -> int:
    """Count the master-eligible nodes of a cluster.

    Parameters
    ----------
    nodes
        Node groups of the cluster.

    Returns
    -------
    int
        Total number of nodes with the master role.
    """
    return sum(n.node_count for n in nodes if NodeRole.MASTER in n.roles)


def plan_topology(
    *,
    cluster_name: str,
    namespace: str,
    node_count: int,
    policy: RedundancyPolicy | str,
    index_mode: str,
) -> TopologyPlan:
    """Compute the derived topology of a cluster.

    Parameters
    ----------
    cluster_name
        Name of the Elasticsearch cluster.
    namespace
        Namespace of the cluster.
    node_count
        Number of data nodes.
    policy
        Redundancy policy.
    index_mode
        Requested Kibana index mode.

    Returns
    -------
    TopologyPlan
        Derived topology. The replica count is not validated.

    Raises
    ------
    InvalidConfigurationError
        Raised if the index mode is invalid.
    """
    return TopologyPlan(
        discovery_address=discovery_address(cluster_name, namespace),
        replica_count=replica_count(node_count, policy),
        index_mode=validate_index_mode(index_mode),
    )
