"""Tests for the cumulative timeout on Kubernetes operations."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from logstack.controller.exceptions import ControllerTimeoutError
from logstack.controller.timeout import Timeout


@pytest.mark.asyncio
async def test_timeout() -> None:
    timeout = Timeout("Reconciling Kibana", timedelta(seconds=10))
    assert 0 < timeout.left() <= 10
    assert timeout.elapsed() >= 0

    timeout = Timeout("Reconciling Kibana", timedelta(milliseconds=50))
    with pytest.raises(ControllerTimeoutError) as excinfo:
        async with timeout.enforce():
            await asyncio.sleep(1)
    assert "Reconciling Kibana timed out" in str(excinfo.value)

    with pytest.raises(ControllerTimeoutError):
        timeout.left()
