"""File-based settings loader.

Supports loading structured settings from JSON, YAML, and INI files. The
workspace profile provider uses it to read its ``profiles.*`` descriptor.
"""

import configparser
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)


class ConfigFormat(Enum):
    """Supported settings file formats."""

    JSON = "json"
    YAML = "yaml"
    YML = "yml"
    INI = "ini"


class ConfigurationError(Exception):
    """Base exception for settings file errors."""

    pass


class FileLoadError(ConfigurationError):
    """Exception raised when file loading fails."""

    pass


class FormatError(ConfigurationError):
    """Exception raised when file format is unsupported or invalid."""

    pass


class FileLoader:
    """Settings file loader with support for multiple formats.

    Supports:
    - JSON files
    - YAML files
    - INI files (sections become nested dictionaries)
    - Picking the first existing candidate of several formats
    """

    FORMAT_MAP = {
        ".json": ConfigFormat.JSON,
        ".yaml": ConfigFormat.YAML,
        ".yml": ConfigFormat.YML,
        ".ini": ConfigFormat.INI,
    }

    def __init__(self, encoding: str = "utf-8"):
        """Initialize the file loader.

        Args:
            encoding: File encoding to use
        """
        self.encoding = encoding

    def load_file(
        self, file_path: Union[str, Path], format: Optional[ConfigFormat] = None
    ) -> dict[str, Any]:
        """Load settings from a single file.

        Args:
            file_path: Path to settings file
            format: File format (auto-detected if None)

        Returns:
            Settings dictionary, empty if the file does not exist

        Raises:
            FileLoadError: If file cannot be loaded
            FormatError: If file format is unsupported or content is invalid
        """
        path = Path(file_path)

        if not path.exists():
            logger.debug(f"Settings file not found: {path}")
            return {}

        if not path.is_file():
            raise FileLoadError(f"Path is not a file: {path}")

        if format is None:
            format = self._detect_format(path)

        try:
            with open(path, encoding=self.encoding) as f:
                content = f.read()
        except OSError as e:
            raise FileLoadError(f"Failed to read file {path}: {e}")

        config = self._parse_content(content, format)
        if not isinstance(config, dict):
            raise FormatError(f"Settings file {path} does not contain a mapping")

        logger.debug(f"Loaded settings from {path} ({format.value})")
        return config

    def find_first(self, base: Union[str, Path]) -> Optional[Path]:
        """Return the first existing ``base.<ext>`` file in format-map order."""
        base = Path(base)
        for suffix in self.FORMAT_MAP:
            candidate = base.with_name(base.name + suffix)
            if candidate.is_file():
                return candidate
        return None

    def _detect_format(self, path: Path) -> ConfigFormat:
        """Auto-detect settings file format from extension.

        Raises:
            FormatError: If format cannot be detected
        """
        suffix = path.suffix.lower()

        if suffix in self.FORMAT_MAP:
            return self.FORMAT_MAP[suffix]

        raise FormatError(f"Unsupported file format: {suffix}")

    def _parse_content(self, content: str, format: ConfigFormat) -> Any:
        """Parse settings content based on format.

        Raises:
            FormatError: If parsing fails
        """
        try:
            if format == ConfigFormat.JSON:
                return json.loads(content)

            elif format in (ConfigFormat.YAML, ConfigFormat.YML):
                return yaml.safe_load(content) or {}

            elif format == ConfigFormat.INI:
                parser = configparser.ConfigParser(interpolation=None)
                parser.read_string(content)

                config: dict[str, Any] = dict(parser.defaults())
                for section_name in parser.sections():
                    config[section_name] = {
                        key: value
                        for key, value in parser[section_name].items()
                        if key not in parser.defaults()
                    }
                return config

            else:
                raise FormatError(f"Unsupported format: {format}")

        except FormatError:
            raise
        except Exception as e:
            raise FormatError(f"Failed to parse {format.value} content: {e}")
