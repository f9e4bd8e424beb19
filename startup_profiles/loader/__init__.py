"""Loaders for property text, structured settings files and the environment.

The preference combiner lives in ``loader.merger`` and is imported from
there directly.
"""

from . import properties
from .env import EnvironmentLoader
from .file import FileLoader

__all__ = ["properties", "FileLoader", "EnvironmentLoader"]
