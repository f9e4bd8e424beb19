"""Startup profile management.

Ties the pipeline together:
- Provider selection (one active provider, memoized)
- Resolution of every provider's profiles, downloading remote ones
- Combination into one preferences file registered with the host
- Batched logging, flushed once the apply sequence is over
"""

import functools
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Optional, Union

import requests

from .errors import MissingProfileLocationError
from .host import DefaultPreferenceStore, PreferenceHost
from .loader.merger import PreferenceCombiner
from .loader.properties import PropertiesFormatError
from .models.schemas import Profile, ProfileSettings
from .profiles.resolver import ProfileResolver
from .providers.base import (
    EmptyProfileProvider,
    ProfileProvider,
    ProviderFactory,
    memoize_factory,
    select_provider,
)
from .providers.cli import CommandlineProfileProvider, parse_startup_arguments
from .providers.registry import ProviderRegistry
from .providers.workspace import WorkspaceProfileProvider
from .storage.download import ProfileDownloader
from .utils.deferred_log import DeferredLogger

logger = logging.getLogger(__name__)


class ProfileManager:
    """Applies the profiles requested by a set of providers.

    Providers are given as factories in increasing priority: profiles of a
    later provider override those of an earlier one. Each factory is called
    at most once per manager.
    """

    def __init__(
        self,
        providers: Sequence[ProviderFactory],
        settings: Optional[ProfileSettings] = None,
        host: Optional[PreferenceHost] = None,
        system_properties: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        session: Optional[requests.Session] = None,
        log: Optional[DeferredLogger] = None,
    ):
        """Initialize profile manager.

        Args:
            providers: Provider factories, lowest priority first
            settings: Profile settings (defaults if None)
            host: Host default-configuration store (in-memory store if None)
            system_properties: Values of ``${sysprop:...}`` (process defaults if None)
            environ: Values of ``${env:...}`` (os.environ if None)
            session: HTTP session for remote profiles
            log: Deferred logger shared with the providers, if they log
        """
        self.settings = settings or ProfileSettings()
        self.host = host or DefaultPreferenceStore()
        self._log = log or DeferredLogger()
        self._providers = [memoize_factory(factory) for factory in providers]
        self._active_provider: Optional[ProfileProvider] = None
        self._applied_profiles: list[Profile] = []

        self.downloader = ProfileDownloader(self.settings, log=self._log, session=session)
        self.resolver = ProfileResolver(self.settings, self.downloader, log=self._log)
        self.combiner = PreferenceCombiner(
            self.settings,
            self.host,
            log=self._log,
            environ=environ,
            system_properties=system_properties,
        )

    @property
    def providers(self) -> list[ProfileProvider]:
        """Provider instances, lowest priority first."""
        return [factory() for factory in self._providers]

    @property
    def active_provider(self) -> ProfileProvider:
        """Highest-priority provider requesting profiles, selected once."""
        if self._active_provider is None:
            self._active_provider = select_provider(list(reversed(self._providers)))
        return self._active_provider

    def apply_profiles(self, overwrite: bool = False) -> Optional[Path]:
        """Resolve, combine and register the requested profiles.

        Args:
            overwrite: Replace a customization file that is already pinned

        Returns:
            Path of the combined preferences file, or None if nothing was
            registered with the host

        Raises:
            UnsupportedLocationSchemeError: If a provider location is neither
                file nor http(s)
        """
        self.downloader.reset_status()
        try:
            profiles: list[Profile] = []
            for provider in self.providers:
                profiles.extend(self.resolver.fetch_profile_contents(provider))

            try:
                combined_file = self.combiner.apply_preferences(profiles, overwrite)
            except (OSError, PropertiesFormatError) as e:
                self._log.error(f"Could not apply preferences from profiles: {e}", exc_info=e)
                return None

            if combined_file is not None:
                self._applied_profiles = profiles
            return combined_file
        finally:
            self._log.flush(logger)

    def requested_profiles(self) -> list[str]:
        """Names requested by all providers, lowest priority first."""
        return [name for provider in self.providers for name in provider.requested_profiles()]

    def applied_profiles(self) -> list[Profile]:
        """Profiles merged by the last apply call that registered a file."""
        return list(self._applied_profiles)

    def local_profiles_location(
        self, provider: Optional[ProfileProvider] = None
    ) -> Optional[Path]:
        """Local directory of a provider's profiles (the active one by default).

        Returns:
            Local profile root, or None if the provider has no location

        Raises:
            UnsupportedLocationSchemeError: If the location is neither file nor http(s)
        """
        provider = provider or self.active_provider
        if isinstance(provider, EmptyProfileProvider):
            return None
        try:
            return self.resolver.local_profiles_location(provider)
        except MissingProfileLocationError:
            return None

    def download_was_successful(self) -> Optional[bool]:
        """True/False for the remote fetches of the last apply call, None if there were none."""
        return self.downloader.status.as_optional()

    def close(self) -> None:
        self.downloader.close()


def build_profile_manager(
    argv: Optional[list[str]] = None,
    workspace_dir: Optional[Union[str, Path]] = None,
    settings: Optional[ProfileSettings] = None,
    registry: Optional[ProviderRegistry] = None,
    host: Optional[PreferenceHost] = None,
    **kwargs,
) -> ProfileManager:
    """Create a manager with the standard provider chain.

    Priority, lowest first: plugin-contributed provider, workspace
    descriptor, command line.

    Args:
        argv: Application arguments (None to use sys.argv)
        workspace_dir: Workspace whose ``.profiles`` descriptor is read
        settings: Profile settings (environment overrides applied if None)
        registry: Plugin provider registry (entry points discovered if None)
        host: Host default-configuration store; by default a store pinned to
            ``-pluginCustomization`` if that argument is present
        **kwargs: Passed on to ProfileManager

    Returns:
        Configured ProfileManager
    """
    settings = settings or ProfileSettings.from_environment()
    log = kwargs.pop("log", None) or DeferredLogger()

    if registry is None:
        registry = ProviderRegistry(log=log)
        registry.discover()

    factories: list[ProviderFactory] = []
    if registry.names:
        factories.append(lambda: registry.first_provider() or EmptyProfileProvider())
    if workspace_dir is not None:
        factories.append(functools.partial(WorkspaceProfileProvider, workspace_dir))
    factories.append(
        functools.partial(CommandlineProfileProvider, argv, settings.installation_dir)
    )

    if host is None:
        host = DefaultPreferenceStore(parse_startup_arguments(argv).plugin_customization)

    return ProfileManager(factories, settings=settings, host=host, log=log, **kwargs)
