"""Model for the cluster-wide proxy configuration."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ClusterProxy",
    "ProxySpec",
    "TrustedCAReference",
]


class TrustedCAReference(BaseModel):
    """Reference to a ``ConfigMap`` holding additional trusted CAs."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field("", title="Name of the ConfigMap")


class ProxySpec(BaseModel):
    """The subset of the proxy spec used by the controller."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    trusted_ca: TrustedCAReference = Field(
        default_factory=TrustedCAReference,
        title="Custom trusted CA bundle",
        alias="trustedCA",
    )


class ClusterProxy(BaseModel):
    """Cluster-wide ``Proxy`` configuration object."""

    model_config = ConfigDict(extra="ignore")

    spec: ProxySpec = Field(default_factory=ProxySpec, title="Proxy spec")

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Self:
        """Parse a custom object returned by the Kubernetes API.

        Parameters
        ----------
        obj
            Custom object as a dictionary.

        Returns
        -------
        ClusterProxy
            Parsed object.
        """
        return cls.model_validate(obj)

    @property
    def trusted_ca_name(self) -> str | None:
        """Name of the custom trusted CA ``ConfigMap``, if any."""
        return self.spec.trusted_ca.name or None
