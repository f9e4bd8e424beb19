"""Profile provider interface and provider selection.

A provider tells the manager which profiles to apply and where they live.
Several providers may be configured; they are ranked by priority and the
first one that actually requests profiles is the active one.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Callable, Optional

from ..errors import MissingProfileLocationError

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], "ProfileProvider"]

# -profileList values may be separated by commas, semicolons or colons
PROFILE_LIST_SEPARATORS = re.compile(r"[,;:]")


def split_profile_list(value: str) -> list[str]:
    """Split a profile list string, dropping empty names."""
    return [name.strip() for name in PROFILE_LIST_SEPARATORS.split(value) if name.strip()]


class ProfileProvider(ABC):
    """Source of requested profile names plus the location they are fetched from."""

    @abstractmethod
    def requested_profiles(self) -> list[str]:
        """Ordered profile names; later profiles override earlier ones."""

    @abstractmethod
    def profiles_location(self) -> str:
        """URI of the profiles: ``file:`` for a local directory, ``http(s):`` for a server."""

    def resolve_variable(self, name: str) -> Optional[str]:
        """Value of ``${custom:<name>}`` or None if the provider does not know it."""
        return None

    @property
    def cache_key(self) -> str:
        """Directory name of this provider's remote profile cache."""
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(profiles={self.requested_profiles()!r})"


class EmptyProfileProvider(ProfileProvider):
    """Fallback provider that requests nothing."""

    def requested_profiles(self) -> list[str]:
        return []

    def profiles_location(self) -> str:
        raise MissingProfileLocationError("The empty profile provider has no location")


class StaticProfileProvider(ProfileProvider):
    """Provider with a fixed profile list, location and custom variables."""

    def __init__(
        self,
        profiles: Sequence[str],
        location: Optional[str],
        variables: Optional[dict[str, str]] = None,
    ):
        self._profiles = list(profiles)
        self._location = location
        self._variables = dict(variables or {})

    def requested_profiles(self) -> list[str]:
        return list(self._profiles)

    def profiles_location(self) -> str:
        if self._location is None:
            raise MissingProfileLocationError("No profile location was provided")
        return self._location

    def resolve_variable(self, name: str) -> Optional[str]:
        return self._variables.get(name)


def memoize_factory(factory: ProviderFactory) -> ProviderFactory:
    """Wrap a factory so that the provider is constructed at most once."""
    instance: list[ProfileProvider] = []

    def memoized() -> ProfileProvider:
        if not instance:
            instance.append(factory())
        return instance[0]

    memoized.__wrapped__ = factory  # type: ignore[attr-defined]
    return memoized


def select_provider(candidates: Sequence[ProviderFactory]) -> ProfileProvider:
    """Pick the active provider.

    Args:
        candidates: Provider factories in decreasing priority

    Returns:
        The first provider requesting at least one profile, or an
        EmptyProfileProvider if none does
    """
    for factory in candidates:
        provider = factory()
        if provider.requested_profiles():
            logger.debug(f"Selected profile provider {provider!r}")
            return provider
    return EmptyProfileProvider()
