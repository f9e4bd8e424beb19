"""Profile provider configured inside the workspace.

A workspace requests profiles through a descriptor file
``<workspace>/.profiles/profiles.{yaml,yml,json,ini}``, for example::

    profiles: [base, team]
    location: https://profiles.example.com/profiles   # optional
    variables:
      region: eu-west

Without ``location`` the profiles are the sub-directories of
``<workspace>/.profiles`` itself. A relative ``location`` path is resolved
against the workspace.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..errors import MissingProfileLocationError
from ..loader.file import ConfigurationError, FileLoader
from .base import ProfileProvider, split_profile_list
from .cli import location_to_uri

logger = logging.getLogger(__name__)

WORKSPACE_PROFILES_DIR = ".profiles"
DESCRIPTOR_NAME = "profiles"


class WorkspaceProfileProvider(ProfileProvider):
    """Provider reading its profile list from the workspace descriptor."""

    def __init__(
        self,
        workspace_dir: Union[str, Path],
        file_loader: Optional[FileLoader] = None,
    ):
        self.workspace_dir = Path(workspace_dir)
        self.profiles_dir = self.workspace_dir / WORKSPACE_PROFILES_DIR
        self._loader = file_loader or FileLoader()

        self._requested_profiles: list[str] = []
        self._location: Optional[str] = None
        self._variables: dict[str, str] = {}
        self.descriptor: Optional[Path] = self._loader.find_first(
            self.profiles_dir / DESCRIPTOR_NAME
        )

        if self.descriptor is not None:
            self._read_descriptor(self.descriptor)

    def _read_descriptor(self, descriptor: Path) -> None:
        try:
            data = self._loader.load_file(descriptor)
        except ConfigurationError as e:
            # An unreadable descriptor requests nothing
            logger.warning(f"Ignoring workspace profile descriptor {descriptor}: {e}")
            return

        self._requested_profiles = self._parse_profiles(data.get("profiles"))

        location = data.get("location")
        if location:
            self._location = location_to_uri(str(location), self.workspace_dir)
        else:
            self._location = self.profiles_dir.absolute().as_uri()

        variables = data.get("variables") or {}
        if isinstance(variables, dict):
            self._variables = {str(k): str(v) for k, v in variables.items()}
        else:
            logger.warning(f"'variables' in {descriptor} is not a mapping, ignoring it")

    @staticmethod
    def _parse_profiles(value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return split_profile_list(value)
        if isinstance(value, (list, tuple)):
            return [str(name).strip() for name in value if str(name).strip()]
        logger.warning(f"Unsupported 'profiles' value in workspace descriptor: {value!r}")
        return []

    def requested_profiles(self) -> list[str]:
        return list(self._requested_profiles)

    def profiles_location(self) -> str:
        if self._location is None:
            raise MissingProfileLocationError(
                f"No workspace profile descriptor found in {self.profiles_dir}"
            )
        return self._location

    def resolve_variable(self, name: str) -> Optional[str]:
        return self._variables.get(name)
