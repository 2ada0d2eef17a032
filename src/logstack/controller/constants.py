"""Global constants."""

from datetime import timedelta
from pathlib import Path

__all__ = [
    "APP_LOGS_CONSOLE_LINK_NAME",
    "CONFIGURATION_PATH",
    "CONSOLE_LINK_SECTION",
    "CONSOLE_LINK_TEXT",
    "DEPRECATED_SHARING_CONFIG_NAME",
    "DEPRECATED_SHARING_ROLE_BINDING_NAME",
    "DEPRECATED_SHARING_ROLE_NAME",
    "INFRA_LOGS_CONSOLE_LINK_NAME",
    "INJECT_TRUSTED_CA_BUNDLE_LABEL",
    "KIBANA_INSTANCE_NAME",
    "KIBANA_PROXY_NAME",
    "KIBANA_TRUSTED_CA_NAME",
    "PROXY_CONFIG_NAME",
    "PROXY_TRUSTED_CA_NAMESPACE",
    "RECONCILE_INTERVAL",
    "TRUSTED_CA_BUNDLE_HASH_ANNOTATION",
    "TRUSTED_CA_BUNDLE_KEY",
    "TRUSTED_CA_BUNDLE_MOUNT_DIR",
    "TRUSTED_CA_BUNDLE_MOUNT_FILE",
]

APP_LOGS_CONSOLE_LINK_NAME = "logging-kibana-app-logs"
"""Name of the console link to the application logs in Kibana."""

INFRA_LOGS_CONSOLE_LINK_NAME = "logging-kibana-infra-logs"
"""Name of the console link to the infrastructure logs in Kibana."""

CONSOLE_LINK_SECTION = "Monitoring"
"""Application menu section in which the console links are shown."""

CONSOLE_LINK_TEXT = "Logging"
"""Text displayed for the console links."""

CONFIGURATION_PATH = Path("/etc/logstack/config.yaml")
"""Default path to controller configuration."""

DEPRECATED_SHARING_CONFIG_NAME = "sharing-config"
"""Name of the ``ConfigMap`` that used to publish the Kibana URLs.

Older versions of the controller published the Kibana URLs in this
``ConfigMap`` along with a ``Role`` and ``RoleBinding`` granting every
authenticated user read access to it. They have been replaced by console
links and are deleted if found.
"""

DEPRECATED_SHARING_ROLE_NAME = "sharing-config-reader"
"""Name of the ``Role`` granting read access to the sharing config."""

DEPRECATED_SHARING_ROLE_BINDING_NAME = (
    "openshift-logging-sharing-config-reader-binding"
)
"""Name of the ``RoleBinding`` granting read access to the sharing config."""

INJECT_TRUSTED_CA_BUNDLE_LABEL = "config.openshift.io/inject-trusted-cabundle"
"""Label asking the platform to inject the cluster CA bundle."""

KIBANA_INSTANCE_NAME = "kibana"
"""Name of the Kibana ``Deployment``, ``Service``, ``Route``, and secret."""

KIBANA_PROXY_NAME = "kibana-proxy"
"""Name of the OAuth proxy container and its secret."""

KIBANA_TRUSTED_CA_NAME = "kibana-trusted-ca-bundle"
"""Name of the ``ConfigMap`` holding the trusted CA bundle for Kibana."""


PROXY_CONFIG_NAME = "cluster"
"""Name of the cluster-wide ``Proxy`` configuration object."""

PROXY_TRUSTED_CA_NAMESPACE = "openshift-config"
"""Namespace holding the ``ConfigMap`` named by the proxy trusted CA."""

RECONCILE_INTERVAL = timedelta(minutes=5)
"""Default interval between reconciliation passes."""

TRUSTED_CA_BUNDLE_HASH_ANNOTATION = "logging.openshift.io/trustedCABundleHash"
"""Pod template annotation holding the trusted CA bundle fingerprint.

Any change to this annotation changes the pod template, so Kubernetes rolls
out new pods that pick up the rotated certificates.
"""

TRUSTED_CA_BUNDLE_KEY = "ca-bundle.crt"
"""Key in the trusted CA bundle ``ConfigMap`` holding the certificates."""

TRUSTED_CA_BUNDLE_MOUNT_DIR = "/etc/pki/ca-trust/extracted/pem/"
"""Directory at which the trusted CA bundle is mounted in the proxy."""

TRUSTED_CA_BUNDLE_MOUNT_FILE = "tls-ca-bundle.pem"
"""File name under which the trusted CA bundle is mounted."""
