"""Variable substitution in preference values.

Values may reference variables as ``${<kind>:<name>}``. Five replacers run
in fixed order:

    env      process environment variables
    sysprop  process-level properties (user.name, os.name, ...)
    profile  ``name`` / ``location`` of the profile being applied
    origin   response headers persisted by the last profile download
    custom   whatever the profile's provider resolves

Unknown names leave the token untouched. A token written with a doubled
dollar (``$${custom:var}``) is escaped: no replacer touches it and the final
pass turns it into the literal text ``${custom:var}``.
"""

import getpass
import logging
import os
import platform
import re
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..loader import properties
from ..utils.deferred_log import DeferredLogger

if TYPE_CHECKING:
    from ..models.schemas import Profile
    from ..providers.base import ProfileProvider

logger = logging.getLogger(__name__)

ESCAPED_VARIABLE_PATTERN = re.compile(r"\$(\$\{[^:}]+:[^}]+\})")


def unescape_variables(value: str) -> str:
    """Turn escaped ``$${kind:name}`` tokens into literal ``${kind:name}``."""
    return ESCAPED_VARIABLE_PATTERN.sub(r"\1", value)


def default_system_properties() -> dict[str, str]:
    """Process-level properties available as ``${sysprop:...}``."""
    try:
        user_name = getpass.getuser()
    except (KeyError, OSError):
        user_name = ""
    props = {
        "user.name": user_name,
        "user.home": str(Path.home()),
        "user.dir": os.getcwd(),
        "os.name": platform.system(),
        "os.arch": platform.machine(),
        "os.version": platform.release(),
        "python.version": platform.python_version(),
        "file.separator": os.sep,
        "path.separator": os.pathsep,
        "line.separator": os.linesep,
        "tmp.dir": tempfile.gettempdir(),
    }
    return {key: value for key, value in props.items() if value}


class VariableReplacer(ABC):
    """Replaces ``${<kind>:<name>}`` tokens of one kind."""

    kind: str = ""

    def __init__(self, log: Optional[DeferredLogger] = None):
        self._log = log
        self._pattern = re.compile(r"(?<!\$)\$\{" + re.escape(self.kind) + r":([^}]+)\}")

    @abstractmethod
    def lookup(self, name: str) -> Optional[str]:
        """Value of the variable or None if unknown."""

    def replace_variables(self, value: str) -> str:
        return self._pattern.sub(self._substitute, value)

    def _substitute(self, match: re.Match) -> str:
        name = match.group(1)
        replacement = self.lookup(name)
        if replacement is None:
            if self._log is not None:
                self._log.debug(f"Unknown variable '{match.group(0)}', leaving it unchanged")
            return match.group(0)
        return replacement


class EnvVariableReplacer(VariableReplacer):
    kind = "env"

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        log: Optional[DeferredLogger] = None,
    ):
        super().__init__(log)
        self._environ = environ

    def lookup(self, name: str) -> Optional[str]:
        environ = os.environ if self._environ is None else self._environ
        return environ.get(name)


class SyspropVariableReplacer(VariableReplacer):
    kind = "sysprop"

    def __init__(
        self,
        system_properties: Optional[Mapping[str, str]] = None,
        log: Optional[DeferredLogger] = None,
    ):
        super().__init__(log)
        self._properties = (
            default_system_properties()
            if system_properties is None
            else system_properties
        )

    def lookup(self, name: str) -> Optional[str]:
        return self._properties.get(name)


class ProfileVariableReplacer(VariableReplacer):
    kind = "profile"

    def __init__(
        self,
        profile_name: str,
        profile_dir: Path,
        log: Optional[DeferredLogger] = None,
    ):
        super().__init__(log)
        self._values = {
            "name": profile_name,
            "location": str(Path(profile_dir).absolute()),
        }

    def lookup(self, name: str) -> Optional[str]:
        return self._values.get(name)


class OriginVariableReplacer(VariableReplacer):
    """Reads header values persisted next to the downloaded profiles."""

    kind = "origin"

    def __init__(self, origin_file: Path, log: Optional[DeferredLogger] = None):
        super().__init__(log)
        self.origin_file = Path(origin_file)
        self._headers: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        if self._headers is None:
            self._headers = {}
            if self.origin_file.is_file():
                try:
                    loaded = properties.load_file(self.origin_file, encoding="latin-1")
                    self._headers = {k.lower(): v for k, v in loaded.items()}
                except (OSError, properties.PropertiesFormatError) as e:
                    if self._log is not None:
                        self._log.error(
                            f"Could not read origin headers from {self.origin_file}: {e}",
                            exc_info=e,
                        )
        return self._headers

    def lookup(self, name: str) -> Optional[str]:
        return self._load().get(name.lower())


class CustomVariableReplacer(VariableReplacer):
    kind = "custom"

    def __init__(self, provider: "ProfileProvider", log: Optional[DeferredLogger] = None):
        super().__init__(log)
        self._provider = provider

    def lookup(self, name: str) -> Optional[str]:
        return self._provider.resolve_variable(name)


class VariableReplacementChain:
    """Runs replacers in order, then resolves escaped tokens."""

    def __init__(self, replacers: Sequence[VariableReplacer]):
        self.replacers = list(replacers)

    def replace(self, value: str) -> str:
        for replacer in self.replacers:
            value = replacer.replace_variables(value)
        # Must stay last: escaped tokens become literal only now
        return unescape_variables(value)

    def replace_all(self, props: Mapping[str, str]) -> dict[str, str]:
        return {key: self.replace(value) for key, value in props.items()}

    @classmethod
    def for_profile(
        cls,
        profile: "Profile",
        origin_headers_file: str = ".originHeaders",
        environ: Optional[Mapping[str, str]] = None,
        system_properties: Optional[Mapping[str, str]] = None,
        log: Optional[DeferredLogger] = None,
    ) -> "VariableReplacementChain":
        """Standard chain for the values of one profile."""
        origin_file = profile.directory.parent / origin_headers_file
        return cls(
            [
                EnvVariableReplacer(environ, log),
                SyspropVariableReplacer(system_properties, log),
                ProfileVariableReplacer(profile.name, profile.directory, log),
                OriginVariableReplacer(origin_file, log),
                CustomVariableReplacer(profile.provider, log),
            ]
        )
