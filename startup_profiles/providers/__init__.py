"""Profile providers and provider selection."""

from .base import (
    EmptyProfileProvider,
    ProfileProvider,
    StaticProfileProvider,
    select_provider,
)
from .cli import CommandlineProfileProvider
from .registry import ProviderRegistry
from .workspace import WorkspaceProfileProvider

__all__ = [
    "ProfileProvider",
    "EmptyProfileProvider",
    "StaticProfileProvider",
    "CommandlineProfileProvider",
    "WorkspaceProfileProvider",
    "ProviderRegistry",
    "select_provider",
]
