"""Pydantic settings and record types for the startup profile pipeline.

This module defines:
- ProfileSettings: where the pipeline keeps its state and how it talks to
  remote profile servers
- Profile: a requested profile that resolved to a local directory
- DownloadStatus: tri-state outcome of the remote fetches of one apply call
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ..loader.env import EnvironmentLoader
    from ..providers.base import ProfileProvider

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class Profile:
    """Named profile directory contributed by a provider."""

    name: str
    provider: "ProfileProvider"
    directory: Path


class DownloadStatus(str, Enum):
    """Outcome of the remote fetches performed by one apply call."""

    UNSET = "unset"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def as_optional(self) -> Optional[bool]:
        if self is DownloadStatus.UNSET:
            return None
        return self is DownloadStatus.SUCCEEDED


# =============================================================================
# Base Configuration Classes
# =============================================================================


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )


class ProfileSettings(BaseConfig):
    """Settings of the profile manager."""

    state_dir: Path = Field(
        default=Path(".startup_profiles"),
        description="Writable state area holding the cache and the combined file",
    )
    installation_dir: Optional[Path] = Field(
        default=None,
        description="Directory that relative -profileLocation paths resolve against",
    )
    cache_dir_name: str = Field(
        default="profiles", description="Name of the remote cache directory"
    )
    combined_file_name: str = Field(
        default="combined-preferences.epf",
        description="File name of the combined preferences",
    )
    origin_headers_file: str = Field(
        default=".originHeaders",
        description="File name of the persisted response headers",
    )
    preference_extensions: list[str] = Field(
        default_factory=lambda: [".epf"],
        description="Extensions of preference files inside a profile",
    )
    archive_media_type: str = Field(
        default="application/zip",
        description="Content type a profile server must answer with",
    )
    profiles_query_parameter: str = Field(
        default="profiles", description="Query parameter carrying the profile list"
    )
    connect_timeout_ms: int = Field(
        default=2000, ge=0, description="Connect timeout for profile downloads"
    )
    read_timeout_ms: int = Field(
        default=2000, ge=0, description="Read timeout for profile downloads"
    )
    verify_tls: bool = Field(
        default=True, description="Verify TLS certificates of profile servers"
    )
    lock_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the cache lock before giving up",
    )

    @field_validator("preference_extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        """Ensure every extension starts with a dot and is lowercase."""
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        if not normalized:
            raise ValueError("At least one preference file extension is required")
        return normalized

    @property
    def cache_dir(self) -> Path:
        """Directory holding one cache root per remote provider."""
        return self.state_dir / self.cache_dir_name

    @property
    def combined_file(self) -> Path:
        return self.state_dir / self.combined_file_name

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) timeout in seconds as expected by requests."""
        return (self.connect_timeout_ms / 1000.0, self.read_timeout_ms / 1000.0)

    @classmethod
    def from_environment(
        cls,
        env_loader: Optional["EnvironmentLoader"] = None,
        **overrides: Any,
    ) -> "ProfileSettings":
        """Build settings, letting STARTUP_PROFILES_* variables override defaults.

        Explicit keyword overrides win over the environment.
        """
        from ..loader.env import EnvironmentLoader

        loader = env_loader or EnvironmentLoader(prefix=ENV_PREFIX)
        values = loader.load_with_schema(SETTINGS_ENV_SCHEMA)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


ENV_PREFIX = "STARTUP_PROFILES_"

# Settings that may be overridden from the process environment
SETTINGS_ENV_SCHEMA: dict[str, dict[str, Any]] = {
    "state_dir": {"type": "str"},
    "installation_dir": {"type": "str"},
    "connect_timeout_ms": {"type": "int"},
    "read_timeout_ms": {"type": "int"},
    "verify_tls": {"type": "bool"},
    "lock_timeout": {"type": "float"},
    "preference_extensions": {"type": "list"},
}
