"""Startup profiles.

Resolves, downloads, merges and applies layered configuration profiles
during application startup.
"""

from .errors import (
    BadContentTypeError,
    DownloadError,
    DownloadFailedError,
    MissingProfileLocationError,
    ProfileError,
    UnsupportedLocationSchemeError,
)
from .host import DefaultPreferenceStore, PreferenceHost
from .manager import ProfileManager, build_profile_manager
from .models.schemas import DownloadStatus, Profile, ProfileSettings
from .providers.base import ProfileProvider, StaticProfileProvider

__version__ = "1.0.0"

__all__ = [
    "ProfileManager",
    "build_profile_manager",
    "ProfileProvider",
    "StaticProfileProvider",
    "PreferenceHost",
    "DefaultPreferenceStore",
    "Profile",
    "ProfileSettings",
    "DownloadStatus",
    "ProfileError",
    "MissingProfileLocationError",
    "UnsupportedLocationSchemeError",
    "DownloadError",
    "BadContentTypeError",
    "DownloadFailedError",
]
