"""Profile provider reading the application's command line.

Recognized arguments (anywhere in the argument vector, everything else is
ignored):

    -profileList <names>        comma-, semicolon- or colon-separated names
    -profileLocation <location> URI, or a filesystem path resolved against
                                the installation directory
    -pluginCustomization <file> externally pinned default preferences
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from ..errors import MissingProfileLocationError
from .base import ProfileProvider, split_profile_list

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="startup-profiles",
        add_help=False,
        allow_abbrev=False,
        exit_on_error=False,
    )
    # nargs="?" so that a trailing flag without value is ignored, not an error
    parser.add_argument("-profileList", dest="profile_list", nargs="?", default=None)
    parser.add_argument(
        "-profileLocation", dest="profile_location", nargs="?", default=None
    )
    parser.add_argument(
        "-pluginCustomization", dest="plugin_customization", nargs="?", default=None
    )
    return parser


def parse_startup_arguments(args: Optional[list[str]] = None) -> argparse.Namespace:
    """Extract the profile-related arguments, ignoring all others."""
    if args is None:
        args = sys.argv[1:]
    namespace, _unknown = _build_parser().parse_known_args(list(args))
    return namespace


def location_to_uri(
    value: str, installation_dir: Optional[Union[str, Path]] = None
) -> str:
    """Turn a -profileLocation value into a URI.

    Values that already carry a scheme are returned unchanged. Anything else
    is a filesystem path: relative paths are resolved against the
    installation directory (if known) and the result is made absolute.
    Single-letter schemes are Windows drive letters, not URI schemes.
    """
    parsed = urlparse(value)
    if parsed.scheme and len(parsed.scheme) > 1:
        return value

    path = Path(value).expanduser()
    if installation_dir is not None:
        path = Path(installation_dir) / path
    return path.absolute().as_uri()


class CommandlineProfileProvider(ProfileProvider):
    """Provider configured through -profileList and -profileLocation."""

    def __init__(
        self,
        args: Optional[list[str]] = None,
        installation_dir: Optional[Union[str, Path]] = None,
    ):
        """Initialize from an argument vector.

        Args:
            args: Application arguments (None to use sys.argv)
            installation_dir: Base for relative -profileLocation paths
        """
        namespace = parse_startup_arguments(args)

        self._requested_profiles: list[str] = []
        if namespace.profile_list:
            self._requested_profiles = split_profile_list(namespace.profile_list)

        self._profiles_location: Optional[str] = None
        if namespace.profile_location:
            self._profiles_location = location_to_uri(
                namespace.profile_location, installation_dir
            )

    def requested_profiles(self) -> list[str]:
        return list(self._requested_profiles)

    def profiles_location(self) -> str:
        if self._profiles_location is None:
            raise MissingProfileLocationError("No profile location was provided")
        return self._profiles_location
