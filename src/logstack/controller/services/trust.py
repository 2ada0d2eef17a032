"""Fingerprinting of trusted CA bundles."""

from __future__ import annotations

import hashlib

from kubernetes_asyncio.client import V1ConfigMap

from ..constants import TRUSTED_CA_BUNDLE_KEY

__all__ = [
    "calculate_trusted_ca_hash",
    "get_trusted_ca_payload",
]


def get_trusted_ca_payload(config_map: V1ConfigMap | None) -> str:
    """Extract the certificate payload from a trusted CA bundle.

    Parameters
    ----------
    config_map
        ``ConfigMap`` holding the bundle, or `None` if it does not exist.

    Returns
    -------
    str
        PEM-encoded certificates, or the empty string if there are none.
    """
    if not config_map or not config_map.data:
        return ""
    return config_map.data.get(TRUSTED_CA_BUNDLE_KEY) or ""


def calculate_trusted_ca_hash(*payloads: str) -> str:
    """Calculate the fingerprint of trusted CA bundles.

    Only the certificate bytes contribute to the fingerprint, so bundles with
    the same certificates but different object metadata hash identically.
    Empty payloads are skipped, so adding a custom bundle that is empty or
    unreadable does not change the fingerprint of the default bundle.

    Parameters
    ----------
    *payloads
        PEM-encoded certificate payloads, in a stable order.

    Returns
    -------
    str
        Hex-encoded SHA-256 digest, or the empty string if every payload is
        empty.
    """
    certificates = [p for p in payloads if p]
    if not certificates:
        return ""
    digest = hashlib.sha256()
    for certificate in certificates:
        digest.update(certificate.encode())
    return digest.hexdigest()
