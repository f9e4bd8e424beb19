"""Resolution of requested profile names into local profile directories."""

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from ..errors import MissingProfileLocationError, UnsupportedLocationSchemeError
from ..models.schemas import Profile, ProfileSettings
from ..storage.download import ProfileDownloader
from ..utils.deferred_log import DeferredLogger

if TYPE_CHECKING:
    from ..providers.base import ProfileProvider

logger = logging.getLogger(__name__)

LOCAL_SCHEME = "file"
REMOTE_SCHEME_PREFIX = "http"


def is_local_location(location: str) -> bool:
    return urlparse(location).scheme.lower() == LOCAL_SCHEME


def is_remote_location(location: str) -> bool:
    return urlparse(location).scheme.lower().startswith(REMOTE_SCHEME_PREFIX)


def file_uri_to_path(location: str) -> Path:
    """Local path of a ``file:`` URI."""
    parsed = urlparse(location)
    path = url2pathname(parsed.path)
    if parsed.netloc and parsed.netloc.lower() != "localhost":
        path = f"//{parsed.netloc}{path}"
    return Path(path)


def profiles_in(provider: "ProfileProvider", root: Path) -> list[Profile]:
    """Requested profiles of ``provider`` that exist as directories inside ``root``.

    Names are kept in requested order. A name whose normalized path leaves
    the root (``../evil``) or that has no directory (``gone``) is dropped
    without error.
    """
    base = os.path.normpath(os.path.abspath(root))
    profiles = []
    for name in provider.requested_profiles():
        candidate = os.path.normpath(os.path.join(base, name))
        if not os.path.isdir(candidate):
            continue
        try:
            inside = os.path.commonpath([base, candidate]) == base
        except ValueError:
            # different drives
            inside = False
        if not inside:
            logger.debug(f"Ignoring profile '{name}' outside of {base}")
            continue
        profiles.append(Profile(name=name, provider=provider, directory=Path(candidate)))
    return profiles


class ProfileResolver:
    """Turns a provider's requested profiles into local directories."""

    def __init__(
        self,
        settings: ProfileSettings,
        downloader: Optional[ProfileDownloader] = None,
        log: Optional[DeferredLogger] = None,
    ):
        self.settings = settings
        self._log = log or DeferredLogger()
        self.downloader = downloader or ProfileDownloader(settings, log=self._log)

    def profile_root(self, provider: "ProfileProvider") -> Optional[Path]:
        """Root directory of the provider's profiles, downloading remote ones.

        Returns:
            Local root, or None if the provider contributes nothing

        Raises:
            UnsupportedLocationSchemeError: If the location is neither file nor http(s)
        """
        location = provider.profiles_location()
        if is_local_location(location):
            return file_uri_to_path(location)
        if is_remote_location(location):
            return self.downloader.download_profiles(provider)
        raise UnsupportedLocationSchemeError(location, urlparse(location).scheme)

    def fetch_profile_contents(self, provider: "ProfileProvider") -> list[Profile]:
        """Resolve the requested profiles of ``provider``.

        Args:
            provider: Provider whose profiles are resolved

        Returns:
            Existing profile directories in requested order; empty if the
            provider requests nothing

        Raises:
            UnsupportedLocationSchemeError: If the location is neither file nor http(s)
        """
        if not provider.requested_profiles():
            return []

        try:
            root = self.profile_root(provider)
        except MissingProfileLocationError as e:
            self._log.error(f"Profiles requested by {provider!r} cannot be applied: {e}")
            return []
        if root is None:
            return []

        profiles = profiles_in(provider, root)
        self._log.debug(
            f"Resolved profiles {[p.name for p in profiles]} of {provider!r} in {root}"
        )
        return profiles

    def local_profiles_location(self, provider: "ProfileProvider") -> Path:
        """Where the provider's profiles are (or would be) stored locally.

        Does not download anything.

        Raises:
            UnsupportedLocationSchemeError: If the location is neither file nor http(s)
        """
        location = provider.profiles_location()
        if is_local_location(location):
            return file_uri_to_path(location)
        if is_remote_location(location):
            return self.downloader.cache_root(provider)
        raise UnsupportedLocationSchemeError(location, urlparse(location).scheme)
