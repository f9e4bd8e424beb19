"""Environment variable settings loader.

Reads prefixed environment variables according to a schema and converts
them to the schema's types. Used to let the process environment override
profile settings such as download timeouts without touching any file.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EnvironmentError(Exception):
    """Exception raised for environment variable errors."""

    pass


class TypeConversionError(EnvironmentError):
    """Exception raised when type conversion fails."""

    pass


class EnvironmentLoader:
    """Schema-driven loader of prefixed environment variables.

    Supports:
    - Prefix filtering (e.g. STARTUP_PROFILES_)
    - Conversion to str, int, float, bool and comma-separated lists
    - Unconvertible values logged and skipped
    """

    def __init__(self, prefix: str = "", environ: Optional[Mapping[str, str]] = None):
        """Initialize the environment loader.

        Args:
            prefix: Prefix that relevant variables start with
            environ: Environment mapping (defaults to os.environ)
        """
        self.prefix = prefix
        self._environ = environ

        self._converters: dict[str, Callable[[str], Any]] = {
            "str": str,
            "int": int,
            "float": float,
            "bool": self._convert_bool,
            "list": self._convert_list,
        }

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def load_with_schema(self, schema: dict[str, dict[str, Any]]) -> dict[str, Any]:
        """Load environment variables according to a schema.

        Values that cannot be converted are logged and ignored.

        Args:
            schema: Mapping of config key to {"type": <converter name>}

        Returns:
            Configuration dictionary containing only the keys that were found

        Raises:
            TypeConversionError: If the schema names an unknown type
        """
        config: dict[str, Any] = {}

        for key, spec in schema.items():
            env_key = f"{self.prefix}{key.upper()}"
            env_value = self.environ.get(env_key)
            if env_value is None:
                continue

            try:
                config[key] = self._convert(env_value, spec.get("type", "str"))
            except ValueError as e:
                logger.warning(f"Ignoring {env_key}, cannot convert '{env_value}': {e}")

        return config

    def _convert(self, value: str, value_type: str) -> Any:
        converter = self._converters.get(value_type)
        if converter is None:
            raise TypeConversionError(f"Unknown type: {value_type}")
        return converter(value.strip())

    def _convert_bool(self, value: str) -> bool:
        """Convert string to boolean."""
        value = value.lower()
        if value in ("true", "yes", "on", "1"):
            return True
        elif value in ("false", "no", "off", "0"):
            return False
        else:
            raise ValueError(f"Cannot convert '{value}' to boolean")

    def _convert_list(self, value: str) -> list[str]:
        """Convert comma-separated string to list."""
        return [item.strip() for item in value.split(",") if item.strip()]
