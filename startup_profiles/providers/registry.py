"""Registry of provider factories contributed by host plugins.

Host plugins contribute providers either by calling ``register`` or by
declaring an entry point in the ``startup_profiles.providers`` group::

    [project.entry-points."startup_profiles.providers"]
    my-provider = "my_plugin.profiles:MyProvider"

The first provider that can be constructed wins. A factory that raises is
logged and skipped instead of breaking startup.
"""

import logging
from importlib.metadata import entry_points
from typing import Optional

from ..utils.deferred_log import DeferredLogger
from .base import ProfileProvider, ProviderFactory

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "startup_profiles.providers"


class ProviderRegistry:
    """Ordered, named provider factories."""

    def __init__(self, log: Optional[DeferredLogger] = None):
        self._factories: dict[str, ProviderFactory] = {}
        self._log = log

    def register(self, name: str, factory: ProviderFactory) -> None:
        """Register a factory; re-registering a name replaces it in place."""
        self._factories[name] = factory

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    @property
    def names(self) -> list[str]:
        return list(self._factories)

    def discover(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Register all factories advertised through entry points.

        Returns:
            Number of entry points registered
        """
        discovered = 0
        for entry_point in _select_entry_points(group):
            if entry_point.name in self._factories:
                continue
            self.register(entry_point.name, _EntryPointFactory(entry_point))
            discovered += 1
        if discovered:
            logger.debug(f"Discovered {discovered} profile provider(s) in '{group}'")
        return discovered

    def first_provider(self) -> Optional[ProfileProvider]:
        """Construct and return the first provider that can be created."""
        for name, factory in self._factories.items():
            try:
                return factory()
            except Exception as e:
                message = (
                    f"Could not create profile provider instance from '{name}': {e}. "
                    "No profiles will be processed from it."
                )
                if self._log is not None:
                    self._log.error(message, exc_info=e)
                else:
                    logger.error(message, exc_info=e)
        return None


class _EntryPointFactory:
    """Loads the entry point lazily and calls it."""

    def __init__(self, entry_point):
        self.entry_point = entry_point

    def __call__(self) -> ProfileProvider:
        target = self.entry_point.load()
        provider = target()
        if not isinstance(provider, ProfileProvider):
            raise TypeError(
                f"{self.entry_point.value} did not produce a ProfileProvider "
                f"but {type(provider).__name__}"
            )
        return provider


def _select_entry_points(group: str):
    eps = entry_points()
    if hasattr(eps, "select"):
        return list(eps.select(group=group))
    return list(eps.get(group, []))
