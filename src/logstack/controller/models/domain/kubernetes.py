"""Data types for interacting with Kubernetes."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, Self

from kubernetes_asyncio.client import (
    V1ObjectMeta,
    V1ResourceRequirements,
    V1Toleration,
)
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "CustomObjectMetadata",
    "KubernetesModel",
    "ManagementState",
    "ResourceRequirements",
    "TaintEffect",
    "Toleration",
    "TolerationOperator",
]


class KubernetesModel(Protocol):
    """Protocol for Kubernetes object models.

    kubernetes-asyncio_ doesn't currently expose type information, so this
    tells mypy that all the object models we deal with will have a metadata
    attribute.
    """

    metadata: V1ObjectMeta

    def to_dict(self, *, serialize: bool = False) -> dict[str, Any]: ...


class ManagementState(str, Enum):
    """Whether the controller manages the resources of an object."""

    MANAGED = "Managed"
    UNMANAGED = "Unmanaged"


class TaintEffect(Enum):
    """Possible effects of a pod toleration."""

    NO_SCHEDULE = "NoSchedule"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"


class TolerationOperator(Enum):
    """Possible operators for a toleration."""

    EQUAL = "Equal"
    EXISTS = "Exists"


class ResourceRequirements(BaseModel):
    """Resource limits and requests for a container.

    Quantities are kept as the Kubernetes strings (``100m``, ``4Gi``) since
    they are only passed through to the created objects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    limits: dict[str, str] | None = Field(
        None, title="Resource limits", examples=[{"memory": "4Gi"}]
    )

    requests: dict[str, str] | None = Field(
        None, title="Resource requests", examples=[{"cpu": "100m"}]
    )

    def to_kubernetes(self) -> V1ResourceRequirements:
        """Convert to the equivalent Kubernetes model.

        Returns
        -------
        kubernetes_asyncio.client.models.V1ResourceRequirements
            Corresponding Kubernetes resource requirements.
        """
        return V1ResourceRequirements(
            limits=dict(self.limits) if self.limits else None,
            requests=dict(self.requests) if self.requests else None,
        )


class Toleration(BaseModel):
    """Represents a single pod toleration rule.

    Toleration rules describe what Kubernetes node taints a pod will tolerate,
    meaning that the pod can still be scheduled on that node even though the
    node is marked as tained.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    effect: TaintEffect | None = Field(
        None,
        title="Taint effect",
        description=(
            "Taint effect to match. If `None`, match all taint effects."
        ),
    )

    key: str | None = Field(
        None,
        title="Taint key",
        description=(
            "Taint key to match. If `None`, `operator` must be `Exists`,"
            " and this combination is used to match all taints."
        ),
    )

    operator: TolerationOperator = Field(
        TolerationOperator.EQUAL,
        title="Match operator",
        description=(
            "`Exists` is equivalent to a wildcard for value and matches all"
            " possible taints of a given catgory."
        ),
    )

    toleration_seconds: int | None = Field(
        None,
        title="Duration of toleration",
        description=(
            "Defines the length of time a `NoExecute` taint is tolerated and"
            " is ignored for other taint effects."
        ),
    )

    value: str | None = Field(
        None,
        title="Taint value",
        description=(
            "Taint value to match. Must be `None` if the operator is `Exists`."
        ),
    )

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.operator == TolerationOperator.EXISTS:
            if self.value:
                raise ValueError("Toleration value not supported with Exists")
        elif not self.key:
            raise ValueError("Toleration key must be specified")
        return self

    def to_kubernetes(self) -> V1Toleration:
        """Convert to the equivalent Kubernetes model.

        Returns
        -------
        kubernetes_asyncio.client.models.V1Toleration
            Corresponding Kubernetes toleration.
        """
        return V1Toleration(
            effect=self.effect.value if self.effect else None,
            key=self.key,
            operator=self.operator.value,
            toleration_seconds=self.toleration_seconds,
            value=self.value,
        )


class CustomObjectMetadata(BaseModel):
    """The subset of object metadata used for desired-state objects."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    name: str = Field(..., title="Name of object")

    namespace: str | None = Field(
        None,
        title="Namespace of object",
        description="Not set for cluster-scoped objects",
    )

    uid: str = Field(
        ...,
        title="Unique identifier",
        description="Used to construct owner references to this object",
    )
