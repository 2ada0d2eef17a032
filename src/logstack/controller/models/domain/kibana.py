"""Models for the ``Kibana`` desired-state custom object."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .kubernetes import (
    CustomObjectMetadata,
    ManagementState,
    ResourceRequirements,
    Toleration,
)

__all__ = [
    "Kibana",
    "KibanaProxySpec",
    "KibanaSpec",
]


class KibanaProxySpec(BaseModel):
    """Settings for the OAuth proxy in front of Kibana."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    resources: ResourceRequirements | None = Field(
        None,
        title="Proxy resources",
        description="If not set, the configured defaults are used",
    )


class KibanaSpec(BaseModel):
    """Desired state of a Kibana deployment."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    management_state: ManagementState = Field(
        ManagementState.MANAGED,
        title="Management state",
        description="Unmanaged objects are ignored by the controller",
    )

    replicas: int = Field(1, title="Number of Kibana pods", ge=0)

    resources: ResourceRequirements | None = Field(
        None,
        title="Kibana resources",
        description="If not set, the configured defaults are used",
    )

    proxy: KibanaProxySpec = Field(
        default_factory=KibanaProxySpec, title="OAuth proxy settings"
    )

    node_selector: dict[str, str] = Field(
        default_factory=dict, title="Node selector for Kibana pods"
    )

    tolerations: list[Toleration] = Field(
        default_factory=list, title="Tolerations for Kibana pods"
    )


class Kibana(BaseModel):
    """A ``Kibana`` custom object as read from Kubernetes."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )

    metadata: CustomObjectMetadata = Field(..., title="Object metadata")

    spec: KibanaSpec = Field(
        default_factory=KibanaSpec, title="Desired state"
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
        Kibana
            Parsed object.

        Raises
        ------
        pydantic.ValidationError
            Raised if the object is not a valid ``Kibana`` object.
        """
        return cls.model_validate(obj)

    @property
    def name(self) -> str:
        """Name of the object."""
        return self.metadata.name

    @property
    def namespace(self) -> str:
        """Namespace of the object."""
        if not self.metadata.namespace:
            raise ValueError(f"Kibana {self.metadata.name} has no namespace")
        return self.metadata.namespace
