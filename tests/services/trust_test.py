"""Tests for trusted CA bundle fingerprinting."""

from __future__ import annotations

import hashlib

from kubernetes_asyncio.client import V1ConfigMap, V1ObjectMeta

from logstack.controller.services.trust import (
    calculate_trusted_ca_hash,
    get_trusted_ca_payload,
)

CERT_A = "-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"
CERT_B = "-----BEGIN CERTIFICATE-----\nBBBB\n-----END CERTIFICATE-----\n"


def test_payload() -> None:
    assert get_trusted_ca_payload(None) == ""
    config_map = V1ConfigMap(metadata=V1ObjectMeta(name="bundle"))
    assert get_trusted_ca_payload(config_map) == ""
    config_map.data = {"other": CERT_A}
    assert get_trusted_ca_payload(config_map) == ""
    config_map.data = {"ca-bundle.crt": CERT_A}
    assert get_trusted_ca_payload(config_map) == CERT_A


def test_hash() -> None:
    expected = hashlib.sha256(CERT_A.encode()).hexdigest()
    assert calculate_trusted_ca_hash(CERT_A) == expected
    assert calculate_trusted_ca_hash(CERT_A, "") == expected
    assert calculate_trusted_ca_hash("", CERT_A) == expected
    assert calculate_trusted_ca_hash() == ""
    assert calculate_trusted_ca_hash("", "") == ""

    combined = calculate_trusted_ca_hash(CERT_A, CERT_B)
    assert combined == hashlib.sha256((CERT_A + CERT_B).encode()).hexdigest()
    assert combined != expected
    assert calculate_trusted_ca_hash(CERT_B) != expected

    # The hash is stable across calls.
    assert calculate_trusted_ca_hash(CERT_A, CERT_B) == combined
