"""Preference merging and the combined preferences file.

Handles merging preference files of several profiles with a fixed
precedence: within a profile, files are merged in sorted path order; across
profiles, later profiles override earlier ones. The caller orders profiles
from lowest to highest priority.
"""

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..models.schemas import Profile, ProfileSettings
from ..profiles.variables import VariableReplacementChain
from ..storage.persistence import PreferencePersistence
from ..utils.deferred_log import DeferredLogger
from . import properties

if TYPE_CHECKING:
    from ..host import PreferenceHost

logger = logging.getLogger(__name__)

INSTANCE_SCOPE_PREFIX = "/instance/"


def merge_preferences(
    base: Mapping[str, str], override: Mapping[str, str], source: str = ""
) -> dict[str, str]:
    """Merge two preference maps, values of ``override`` winning.

    Args:
        base: Preferences merged so far
        override: Preferences of the next source
        source: Name of the next source, for debug logging

    Returns:
        Merged preferences (insertion order of ``base`` first)
    """
    result = dict(base)
    overridden = [key for key, value in override.items() if key in result and result[key] != value]
    result.update(override)
    if overridden:
        logger.debug(f"{source or 'Preferences'} overrides {len(overridden)} key(s): {overridden}")
    return result


def strip_instance_scope(props: Mapping[str, str]) -> dict[str, str]:
    """Rewrite ``/instance/<key>`` keys to ``<key>`` so they apply as defaults.

    A prefixed key wins over an unprefixed duplicate.
    """
    result: dict[str, str] = {}
    for key, value in props.items():
        if not key.startswith(INSTANCE_SCOPE_PREFIX):
            result.setdefault(key, value)
    for key, value in props.items():
        if key.startswith(INSTANCE_SCOPE_PREFIX):
            result[key[len(INSTANCE_SCOPE_PREFIX):]] = value
    return result


class PreferenceCombiner:
    """Builds the combined preferences file and hands it to the host."""

    def __init__(
        self,
        settings: ProfileSettings,
        host: "PreferenceHost",
        log: Optional[DeferredLogger] = None,
        persistence: Optional[PreferencePersistence] = None,
        environ: Optional[Mapping[str, str]] = None,
        system_properties: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings
        self.host = host
        self._log = log or DeferredLogger()
        self.persistence = persistence or PreferencePersistence(log=self._log)
        self._environ = environ
        self._system_properties = system_properties

    def preference_files(self, profile: Profile) -> list[Path]:
        """Preference files of a profile, recursively, in sorted path order."""
        extensions = set(self.settings.preference_extensions)
        return sorted(
            path
            for path in profile.directory.rglob("*")
            if path.is_file() and path.suffix.lower() in extensions
        )

    def load_profile(self, profile: Profile) -> dict[str, str]:
        """Merged and variable-substituted preferences of one profile."""
        files = self.preference_files(profile)
        props: dict[str, str] = {}
        for path in files:
            props = merge_preferences(
                props, properties.load_file(path, encoding="utf-8"), source=str(path)
            )
        chain = VariableReplacementChain.for_profile(
            profile,
            origin_headers_file=self.settings.origin_headers_file,
            environ=self._environ,
            system_properties=self._system_properties,
            log=self._log,
        )
        return chain.replace_all(props)

    def combine(self, profiles: Sequence[Profile]) -> dict[str, str]:
        """Combined preferences of ``profiles``, later ones overriding earlier ones."""
        combined: dict[str, str] = {}
        for profile in profiles:
            combined = merge_preferences(
                combined, self.load_profile(profile), source=f'Profile "{profile.name}"'
            )
            self._log.debug(f'Applied profile "{profile.name}" from {profile.directory}')
        return strip_instance_scope(combined)

    def apply_preferences(
        self, profiles: Sequence[Profile], overwrite: bool = False
    ) -> Optional[Path]:
        """Combine ``profiles`` and register the result as the host's defaults.

        Args:
            profiles: Profiles from lowest to highest priority
            overwrite: Replace a customization file that is already pinned

        Returns:
            Path of the combined file, or None if an external override is
            pinned and ``overwrite`` is False

        Raises:
            OSError: If preference files cannot be read or no file can be written
            properties.PropertiesFormatError: If a preference file is malformed
        """
        if not overwrite and self.host.is_config_overridden():
            self._log.debug("Default preferences are already provided externally, not applying profiles")
            return None

        combined = self.combine(profiles)
        target = self.persistence.save_properties(combined, self.settings.combined_file)
        self.host.set_config_override(target)
        logger.debug(f"Combined {len(combined)} preferences from {len(profiles)} profile(s) into {target}")
        return target
