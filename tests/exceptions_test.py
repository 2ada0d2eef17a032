"""Tests for formatting of controller exceptions."""

from __future__ import annotations

from kubernetes_asyncio.client import ApiException
from safir.slack.blockkit import SlackCodeBlock, SlackTextBlock

from logstack.controller.exceptions import (
    DependencyMissingError,
    KubernetesError,
    ReconcileError,
)


def test_reconcile_error() -> None:
    exc = DependencyMissingError(
        "Required secrets do not exist: kibana",
        kind="Secret",
        namespace="openshift-logging",
        name="kibana",
    )
    expected = (
        "Required secrets do not exist: kibana"
        " (Secret openshift-logging/kibana)"
    )
    assert str(exc) == expected
    message = exc.to_slack()
    assert message.message == expected
    assert SlackTextBlock(
        heading="Object", text="Secret openshift-logging/kibana"
    ) in message.blocks

    info = exc.to_sentry()
    assert info.tags["kind"] == "Secret"
    assert info.tags["namespace"] == "openshift-logging"
    assert info.tags["name"] == "kibana"

    exc = ReconcileError("Something failed")
    assert str(exc) == "Something failed"
    assert exc.to_slack().blocks == []

    exc = ReconcileError(
        "Cannot list", kind="Kibana", namespace="openshift-logging"
    )
    assert str(exc) == "Cannot list (Kibana in namespace openshift-logging)"


def test_kubernetes_error() -> None:
    api_exc = ApiException(status=409, reason="Conflict")
    api_exc.body = "object was modified"
    exc = KubernetesError.from_exception(
        "Error updating object",
        api_exc,
        kind="Deployment",
        namespace="openshift-logging",
        name="kibana",
    )
    assert exc.status == 409
    assert str(exc) == (
        "Error updating object (Deployment openshift-logging/kibana,"
        " status 409): object was modified"
    )

    message = exc.to_slack()
    assert message.message == (
        "Error updating object (Deployment openshift-logging/kibana,"
        " status 409)"
    )
    assert [f.heading for f in message.fields] == ["Failed at", "Status"]
    assert SlackCodeBlock(
        heading="Error", code="object was modified"
    ) in message.blocks

    info = exc.to_sentry()
    assert info.tags["status"] == "409"
    assert info.attachments["body"] == "object was modified"

    # Without a body, the reason is used instead.
    exc = KubernetesError.from_exception(
        "Error reading object", ApiException(status=500, reason="Oops")
    )
    assert exc.body == "Oops"
    assert str(exc) == "Error reading object (status 500): Oops"
