"""Host side of the combined preferences hand-over.

The host application owns its default-configuration store. The profile
pipeline only needs to know whether somebody already pinned a customization
file and to register the combined file otherwise.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from .loader import properties

logger = logging.getLogger(__name__)


class PreferenceHost(ABC):
    """Check-and-set access to the host's default-configuration file."""

    @abstractmethod
    def is_config_overridden(self) -> bool:
        """True if a default-configuration file is already pinned."""

    @abstractmethod
    def set_config_override(self, path: Path) -> None:
        """Pin ``path`` as the default-configuration file."""


class DefaultPreferenceStore(PreferenceHost):
    """Default preferences read from one customization file.

    Keys are ``<qualifier>/<name>``, e.g. ``org.example.ui/theme=dark``.
    The file is read lazily on first access, as Latin-1 property text.
    """

    def __init__(self, customization_file: Optional[Union[str, Path]] = None):
        self._customization_file = Path(customization_file) if customization_file else None
        self._defaults: Optional[dict[str, str]] = None

    @property
    def customization_file(self) -> Optional[Path]:
        return self._customization_file

    def is_config_overridden(self) -> bool:
        return self._customization_file is not None

    def set_config_override(self, path: Path) -> None:
        self._customization_file = Path(path)
        self._defaults = None
        logger.debug(f"Default preferences now read from {self._customization_file}")

    def defaults(self) -> dict[str, str]:
        """All default preferences, empty if no file is pinned or it is missing."""
        if self._defaults is None:
            self._defaults = {}
            if self._customization_file is not None and self._customization_file.is_file():
                self._defaults = properties.load_file(self._customization_file, encoding="latin-1")
        return self._defaults

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.defaults().get(key, default)
