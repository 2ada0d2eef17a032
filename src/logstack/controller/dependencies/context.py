"""Process context management.

The controller has no per-request state, so unlike a typical request
context dependency this only manages the process-global
`~logstack.controller.factory.ProcessContext` across the application
lifespan.
"""

from ..config import Config
from ..factory import ProcessContext

__all__ = ["ContextDependency", "context_dependency"]


class ContextDependency:
    """Manage the process-global context of the controller."""

    def __init__(self) -> None:
        self._process_context: ProcessContext | None = None

    @property
    def is_initialized(self) -> bool:
        """Whether the process context has been initialized."""
        return self._process_context is not None

    @property
    def process_context(self) -> ProcessContext:
        """The process-global context.

        Raises
        ------
        RuntimeError
            Raised if the context has not been initialized.
        """
        if not self._process_context:
            raise RuntimeError("ContextDependency not initialized")
        return self._process_context

    async def initialize(self, config: Config) -> None:
        """Initialize the process-global shared context.

        This starts the background reconciliation, which performs one
        reconciliation pass before returning.

        Parameters
        ----------
        config
            Config for the controller.
        """
        if self._process_context:
            await self._process_context.stop()
            await self._process_context.aclose()
        self._process_context = await ProcessContext.from_config(config)
        await self._process_context.start()

    async def aclose(self) -> None:
        """Clean up the per-process configuration."""
        if self._process_context:
            await self._process_context.stop()
            await self._process_context.aclose()
        self._process_context = None


context_dependency = ContextDependency()
"""The dependency that manages the process context."""
