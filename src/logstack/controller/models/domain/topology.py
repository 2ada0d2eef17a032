"""Models for the topology of an Elasticsearch cluster."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "IndexMode",
    "NodeRole",
    "RedundancyPolicy",
    "TopologyPlan",
]


class IndexMode(str, Enum):
    """How Kibana indices are shared between users."""

    UNIQUE = "unique"
    """Every user gets their own Kibana index."""

    SHARED_OPS = "shared_ops"
    """Operations users share a single Kibana index."""


class NodeRole(str, Enum):
    """Roles an Elasticsearch node may take on."""

    CLIENT = "client"
    DATA = "data"
    MASTER = "master"


class RedundancyPolicy(str, Enum):
    """Durability tier controlling how many replicas of each shard exist."""

    ZERO = "ZeroRedundancy"
    """No replicas. Only suitable for ephemeral or test deployments."""

    SINGLE = "SingleRedundancy"
    """One replica of each shard."""

    MULTIPLE = "MultipleRedundancy"
    """Replicas on half of the remaining data nodes."""

    FULL = "FullRedundancy"
    """Replicas on every other data node."""


@dataclass(frozen=True, slots=True)
class TopologyPlan:
    """Derived topology of an Elasticsearch cluster.

    This is recomputed on every reconciliation and only ever stored as part of
    the objects built from it.
    """

    discovery_address: str
    """Address other cluster members use to find each other."""

    replica_count: int
    """Number of replicas of each primary shard.

    May be negative for a degenerate node inventory, in which case the caller
    must treat the plan as invalid.
    """

    index_mode: IndexMode
    """Kibana index mode."""
