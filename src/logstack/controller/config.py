"""Global configuration parsing."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Annotated, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict
from safir.logging import LogLevel, Profile
from safir.pydantic import HumanTimedelta

from .constants import PROXY_TRUSTED_CA_NAMESPACE, RECONCILE_INTERVAL

__all__ = [
    "Config",
    "Defaults",
]


class Defaults(BaseModel):
    """Static defaults used when building Kubernetes objects.

    These values are used wherever the desired-state object does not specify
    something. The model is frozen so that a single instance can be shared by
    every builder; tests construct their own instance to override values.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )

    master_cpu_limit: Annotated[
        str, Field(title="CPU limit for master-only nodes")
    ] = "100m"

    master_cpu_request: Annotated[
        str, Field(title="CPU request for master-only nodes")
    ] = "100m"

    cpu_limit: Annotated[
        str, Field(title="CPU limit for Elasticsearch nodes")
    ] = "4000m"

    cpu_request: Annotated[
        str, Field(title="CPU request for Elasticsearch nodes")
    ] = "100m"

    memory_limit: Annotated[
        str, Field(title="Memory limit for Elasticsearch nodes")
    ] = "4Gi"

    memory_request: Annotated[
        str, Field(title="Memory request for Elasticsearch nodes")
    ] = "1Gi"

    elasticsearch_image: Annotated[
        str, Field(title="Default Elasticsearch image")
    ] = "quay.io/openshift/origin-logging-elasticsearch5"

    max_master_count: Annotated[
        int,
        Field(
            title="Maximum number of master nodes",
            description="Clusters requesting more master nodes are rejected",
            ge=1,
        ),
    ] = 3

    certs_path: Annotated[
        str, Field(title="Path to Elasticsearch certificates")
    ] = "/etc/openshift/elasticsearch/secret"

    config_path: Annotated[
        str, Field(title="Path to Elasticsearch configuration")
    ] = "/usr/share/java/elasticsearch/config"

    heap_dump_location: Annotated[
        str, Field(title="Path to Elasticsearch heap dumps")
    ] = "/elasticsearch/persistent/heapdump.hprof"

    root_logger: Annotated[
        str, Field(title="Elasticsearch root logger appender")
    ] = "rolling"

    kibana_image: Annotated[str, Field(title="Default Kibana image")] = (
        "quay.io/openshift/origin-logging-kibana6"
    )

    kibana_cpu_request: Annotated[
        str, Field(title="CPU request for Kibana")
    ] = "100m"

    kibana_memory_limit: Annotated[
        str, Field(title="Memory limit for Kibana")
    ] = "736Mi"

    kibana_memory_request: Annotated[
        str, Field(title="Memory request for Kibana")
    ] = "736Mi"

    proxy_image: Annotated[
        str, Field(title="Default OAuth proxy image")
    ] = "quay.io/openshift/origin-oauth-proxy"

    proxy_cpu_request: Annotated[
        str, Field(title="CPU request for the OAuth proxy")
    ] = "100m"

    proxy_memory_limit: Annotated[
        str, Field(title="Memory limit for the OAuth proxy")
    ] = "256Mi"

    proxy_memory_request: Annotated[
        str, Field(title="Memory request for the OAuth proxy")
    ] = "256Mi"


class Config(BaseSettings):
    """Logging stack controller configuration."""

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )

    defaults: Annotated[
        Defaults,
        Field(
            title="Defaults for created objects",
            description=(
                "Images, resource limits and requests, and paths used when"
                " the desired-state object does not say otherwise"
            ),
        ),
    ] = Defaults()

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            description="Python logging level",
            examples=[LogLevel.INFO],
        ),
    ] = LogLevel.INFO

    name: Annotated[
        str,
        Field(
            title="Name of application",
            description="Used when reporting problems to Slack",
        ),
    ] = "logstack"

    namespace: Annotated[
        str,
        Field(
            title="Watched namespace",
            description=(
                "Namespace in which ``Elasticsearch`` and ``Kibana`` objects"
                " are reconciled"
            ),
        ),
    ] = "openshift-logging"

    path_prefix: Annotated[
        str, Field(title="URL prefix for controller API")
    ] = "/logstack"

    profile: Annotated[
        Profile,
        Field(
            title="Application logging profile",
            description=(
                "``production`` uses JSON logging. ``development`` uses"
                " logging that may be easier for humans to read but that"
                " cannot be easily parsed by computers or Google Log Explorer."
            ),
            examples=[Profile.development],
        ),
    ] = Profile.production

    proxy_trusted_ca_namespace: Annotated[
        str,
        Field(
            title="Namespace of the proxy trusted CA",
            description=(
                "Namespace in which to find the ``ConfigMap`` named by the"
                " trusted CA of the cluster-wide proxy configuration"
            ),
        ),
    ] = PROXY_TRUSTED_CA_NAMESPACE

    reconcile_interval: Annotated[
        HumanTimedelta,
        Field(
            title="Interval between reconciliations",
            description=(
                "How often to reconcile every managed object, regardless of"
                " whether anything changed"
            ),
        ),
    ] = RECONCILE_INTERVAL

    reconcile_timeout: Annotated[
        HumanTimedelta,
        Field(
            title="Timeout for reconciling one object",
            description=(
                "Total time allowed for all Kubernetes API calls made while"
                " reconciling a single desired-state object"
            ),
        ),
    ] = timedelta(minutes=1)

    slack_webhook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook for alerts",
            description=(
                "If set, reconciliation failures and any uncaught exceptions"
                " will be reported to Slack via this webhook"
            ),
            validation_alias="LOGSTACK_SLACK_WEBHOOK",
        ),
    ] = None

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load the controller configuration from a YAML file.

        Settings taken from the environment, such as the Slack webhook, are
        merged with the contents of the file.

        Parameters
        ----------
        path
            Path to the configuration file.
        """
        with path.open("r") as f:
            return cls(**(yaml.safe_load(f) or {}))
