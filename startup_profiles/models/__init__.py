"""Settings model and record types."""

from .schemas import BaseConfig, DownloadStatus, Profile, ProfileSettings

__all__ = ["BaseConfig", "DownloadStatus", "Profile", "ProfileSettings"]
