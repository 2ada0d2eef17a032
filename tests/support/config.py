"""Build test configurations for the logging stack controller."""

from __future__ import annotations

from logstack.controller.config import Config
from logstack.controller.dependencies.config import config_dependency
from logstack.controller.dependencies.context import context_dependency

from .data import data_path

__all__ = ["configure"]


async def configure(directory: str) -> Config:
    """Configure or reconfigure with a test configuration.

    If the global process context was already initialized, stop the
    background processes and restart them with the new configuration.

    Parameters
    ----------
    directory
        Configuration directory to use.

    Returns
    -------
    Config
        New configuration.
    """
    config_dependency.set_path(data_path(directory) / "config.yaml")
    config = config_dependency.config
    if context_dependency.is_initialized:
        await context_dependency.aclose()
        await context_dependency.initialize(config)
    return config
