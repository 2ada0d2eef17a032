"""Logging stack controller command-line interface."""

from __future__ import annotations

from pathlib import Path

import click
import uvicorn
import yaml
from pydantic import ValidationError
from safir.click import display_help

from .controller.config import Config, Defaults
from .controller.exceptions import InvalidConfigurationError
from .controller.models.domain.elasticsearch import Elasticsearch
from .controller.services.builder.elasticsearch import ElasticsearchBuilder

__all__ = [
    "controller",
    "help",
    "main",
    "plan",
]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(
    package_name="logstack-operator", message="%(version)s"
)
def main() -> None:
    """Command-line interface for the logging stack controller."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command()
@click.option(
    "--port", default=8080, type=int, show_default=True, help="Port to use"
)
def controller(port: int) -> None:
    """Start the logging stack controller."""
    uvicorn.run(
        "logstack.controller.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
    )


@main.command()
@click.argument(
    "path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--config-path",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Controller configuration file with defaults to use",
)
@click.option(
    "--namespace",
    "-n",
    default="openshift-logging",
    show_default=True,
    help="Namespace if the object does not specify one",
)
def plan(path: Path, config_path: Path | None, namespace: str) -> None:
    """Print the topology of an Elasticsearch object.

    PATH is a YAML file containing an ``Elasticsearch`` object, such as the
    output of ``kubectl get elasticsearch -o yaml``.
    """
    if config_path:
        defaults = Config.from_file(config_path).defaults
    else:
        defaults = Defaults()
    builder = ElasticsearchBuilder(defaults)
    with path.open("r") as f:
        obj = yaml.safe_load(f) or {}

    # Objects that were never stored in Kubernetes have no UID.
    metadata = obj.setdefault("metadata", {})
    metadata.setdefault("namespace", namespace)
    metadata.setdefault("uid", "")
    try:
        elasticsearch = Elasticsearch.from_object(obj)
        topology = builder.build_plan(elasticsearch)
    except (InvalidConfigurationError, ValidationError) as e:
        raise click.ClickException(str(e)) from e

    nodes = []
    for node in elasticsearch.spec.nodes:
        resources = builder.build_node_resources(elasticsearch, node)
        nodes.append(
            {
                "roles": [r.value for r in node.roles],
                "nodeCount": node.node_count,
                "resources": {
                    "limits": resources.limits,
                    "requests": resources.requests,
                },
            }
        )
    output = {
        "discoveryAddress": topology.discovery_address,
        "replicaCount": topology.replica_count,
        "indexMode": topology.index_mode.value,
        "image": defaults.elasticsearch_image,
        "configPath": defaults.config_path,
        "nodes": nodes,
    }
    click.echo(yaml.safe_dump(output, sort_keys=False), nl=False)
