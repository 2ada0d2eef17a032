"""Models for the ``Elasticsearch`` desired-state custom object."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .kubernetes import (
    CustomObjectMetadata,
    ManagementState,
    ResourceRequirements,
)
from .topology import NodeRole

__all__ = [
    "Elasticsearch",
    "ElasticsearchNode",
    "ElasticsearchNodeSpec",
    "ElasticsearchSpec",
]


class ElasticsearchNodeSpec(BaseModel):
    """Settings shared by all nodes unless overridden per node group."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    image: str | None = Field(None, title="Elasticsearch image")

    resources: ResourceRequirements | None = Field(
        None, title="Default resources for all nodes"
    )


class ElasticsearchNode(BaseModel):
    """A group of Elasticsearch nodes sharing the same roles."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    roles: list[NodeRole] = Field(..., title="Roles of the nodes")

    node_count: int = Field(..., title="Number of nodes", ge=0)

    resources: ResourceRequirements | None = Field(
        None,
        title="Resources for these nodes",
        description="Overrides the resources from the node spec",
    )


class ElasticsearchSpec(BaseModel):
    """Desired state of an Elasticsearch cluster."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    management_state: ManagementState = Field(
        ManagementState.MANAGED,
        title="Management state",
        description="Unmanaged objects are ignored by the controller",
    )

    redundancy_policy: str = Field(
        "",
        title="Redundancy policy",
        description=(
            "One of ``FullRedundancy``, ``MultipleRedundancy``,"
            " ``SingleRedundancy``, or ``ZeroRedundancy``. Unrecognized values"
            " are accepted and result in one replica per shard."
        ),
    )

    index_mode: str = Field(
        "",
        title="Kibana index mode",
        description="``unique`` or ``shared_ops``, default ``shared_ops``",
    )

    node_spec: ElasticsearchNodeSpec = Field(
        default_factory=ElasticsearchNodeSpec, title="Default node settings"
    )

    nodes: list[ElasticsearchNode] = Field(
        default_factory=list, title="Node groups"
    )


class Elasticsearch(BaseModel):
    """An ``Elasticsearch`` custom object as read from Kubernetes."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    metadata: CustomObjectMetadata = Field(..., title="Object metadata")

    spec: ElasticsearchSpec = Field(
        default_factory=ElasticsearchSpec, title="Desired state"
    )

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Self:
        """Parse a custom object returned by the Kubernetes API.

        Parameters
        ----------
        obj
            Custom object as a dictionary.

        Returns
        -------
        Elasticsearch
            Parsed object.

        Raises
        ------
        pydantic.ValidationError
            Raised if the object is not a valid ``Elasticsearch`` object.
        """
        return cls.model_validate(obj)

    @property
    def name(self) -> str:
        """Name of the object, also used as the cluster name."""
        return self.metadata.name

    @property
    def namespace(self) -> str:
        """Namespace of the object."""
        if not self.metadata.namespace:
            msg = f"Elasticsearch {self.metadata.name} has no namespace"
            raise ValueError(msg)
        return self.metadata.namespace
