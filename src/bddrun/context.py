"""Per-scenario execution context."""

import logging
from typing import Any, List, Optional, Tuple

from .exceptions import ContextReleasedError
from .types import Cleanup

__all__ = ["ExecutionContext"]

logger = logging.getLogger(__name__)


class ExecutionContext:
    """
    State holder handed to step implementations and instance-scope hooks.

    One instance is created per scenario (and per outline example row) and released once
    the scenario finished. Attribute lookups fall through to the optional ``parent``
    namespace, which lets suite-level state set by static hooks reach the steps. Writes
    always stay local to the context.
    """

    def __init__(self, parent: Optional[Any] = None):
        """Initialize an empty context.

        Args:
            parent (Optional[Any]): Read-only fallback namespace for attribute lookups.
        """
        object.__setattr__(self, "_parent", parent)
        object.__setattr__(self, "_cleanups", [])
        object.__setattr__(self, "_released", False)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup failed.
        if name.startswith("_"):
            raise AttributeError(name)
        parent = self._parent
        if parent is not None and hasattr(parent, name):
            return getattr(parent, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if self._released:
            raise ContextReleasedError(f"Context attribute {name!r} assigned after release")
        object.__setattr__(self, name, value)

    def __contains__(self, name: str) -> bool:
        if name in self.__dict__:
            return True
        return self._parent is not None and hasattr(self._parent, name)

    @property
    def released(self) -> bool:
        return self._released

    def add_cleanup(self, cleanup: Cleanup, *args: Any, **kwargs: Any) -> None:
        """Registers a callable executed when the context is released.

        Cleanups run in reverse registration order.

        Args:
            cleanup (Cleanup): Callable to run.
            *args (Any): Positional arguments for the callable.
            **kwargs (Any): Keyword arguments for the callable.
        """
        if self._released:
            raise ContextReleasedError("Cleanup registered after release")
        cleanups: List[Tuple[Cleanup, tuple, dict]] = self._cleanups
        cleanups.append((cleanup, args, kwargs))

    def release(self) -> None:
        """Runs the registered cleanups and marks the context as released.

        A failing cleanup is logged and the remaining cleanups still run. Releasing twice
        is a no-op.
        """
        if self._released:
            return

        cleanups: List[Tuple[Cleanup, tuple, dict]] = self._cleanups
        while cleanups:
            cleanup, args, kwargs = cleanups.pop()
            try:
                cleanup(*args, **kwargs)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Context cleanup %r failed", cleanup)

        object.__setattr__(self, "_released", True)
