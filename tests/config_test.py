"""Tests for loading the controller configuration."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError
from safir.logging import LogLevel, Profile

from logstack.controller.config import Config, Defaults

from .support.data import data_path


def test_config() -> None:
    config = Config.from_file(data_path("standard") / "config.yaml")
    assert config.log_level == LogLevel.DEBUG
    assert config.profile == Profile.development
    assert config.namespace == "openshift-logging"
    assert config.reconcile_interval == timedelta(minutes=5)
    assert config.reconcile_timeout == timedelta(seconds=30)
    assert config.proxy_trusted_ca_namespace == "openshift-config"
    assert config.slack_webhook is None

    # Unset defaults keep their built-in values.
    defaults = config.defaults
    assert defaults.kibana_image == (
        "registry.example.com/logging/kibana6:latest"
    )
    assert defaults.cpu_limit == "4000m"
    assert defaults.memory_request == "1Gi"
    assert defaults.max_master_count == 3
    assert defaults.root_logger == "rolling"


def test_empty_config(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("")
    config = Config.from_file(path)
    assert config.name == "logstack"
    assert config.path_prefix == "/logstack"
    assert config.reconcile_interval == timedelta(minutes=5)
    assert config.defaults == Defaults()


def test_slack_webhook(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    webhook = "https://slack.example.com/webhook"
    monkeypatch.setenv("LOGSTACK_SLACK_WEBHOOK", webhook)
    config = Config.from_file(data_path("standard") / "config.yaml")
    assert config.slack_webhook
    assert config.slack_webhook.get_secret_value() == webhook


def test_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("unknownSetting: true\n")
    with pytest.raises(ValidationError):
        Config.from_file(path)

    path.write_text("defaults:\n  maxMasterCount: 0\n")
    with pytest.raises(ValidationError):
        Config.from_file(path)


def test_defaults_frozen() -> None:
    defaults = Defaults(cpu_limit="2")
    assert defaults.cpu_limit == "2"
    with pytest.raises(ValidationError):
        defaults.cpu_limit = "3"  # type: ignore[misc]
