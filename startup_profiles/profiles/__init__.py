"""Profile resolution and variable substitution."""

from .resolver import ProfileResolver, profiles_in
from .variables import VariableReplacementChain, unescape_variables

__all__ = [
    "ProfileResolver",
    "profiles_in",
    "VariableReplacementChain",
    "unescape_variables",
]
