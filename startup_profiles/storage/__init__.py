"""Profile cache and preference file persistence."""

from .download import ProfileDownloader
from .persistence import PreferencePersistence, PreferencePersistenceError

__all__ = ["ProfileDownloader", "PreferencePersistence", "PreferencePersistenceError"]
