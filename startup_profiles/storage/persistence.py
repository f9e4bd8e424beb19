"""Persistence of the combined preferences and the origin headers record.

Provides:
- Atomic writes (temp file in the target directory + rename)
- Byte-oriented output, so hosts reading the file as Latin-1 get what was written
- Fallback to a temporary file when the combined file exists but is read-only
"""

import contextlib
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from ..loader import properties
from ..utils.deferred_log import DeferredLogger


class PreferencePersistenceError(OSError):
    """Writing a properties file failed."""

    pass


class PreferencePersistence:
    """Writes property files the way the host expects to read them."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        log: Optional[DeferredLogger] = None,
    ):
        """Initialize persistence.

        Args:
            logger: Logger for immediate messages
            log: Deferred logger for messages emitted after the apply sequence
        """
        self.logger = logger or logging.getLogger(__name__)
        self._log = log

    def _atomic_write(self, file_path: Path, content: bytes) -> None:
        """Perform atomic write operation.

        Raises:
            PreferencePersistenceError: If write operation fails
        """
        temp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=file_path.parent,
                prefix=f".{file_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(content)
                temp_file.flush()
                os.fsync(temp_file.fileno())

            temp_path.replace(file_path)
            self.logger.debug(f"Atomic write completed: {file_path}")

        except OSError as e:
            if temp_path is not None and temp_path.exists():
                with contextlib.suppress(OSError):
                    temp_path.unlink()

            raise PreferencePersistenceError(f"Atomic write failed for {file_path}: {e}")

    def _fallback_file(self, file_path: Path) -> Path:
        """Create a temporary file standing in for ``file_path``."""
        fd, temp_name = tempfile.mkstemp(prefix=file_path.stem, suffix=file_path.suffix)
        os.close(fd)
        fallback = Path(temp_name)
        message = (
            f"Could not write combined preferences file '{file_path}', "
            f"will use temporary file '{fallback}' instead."
        )
        if self._log is not None:
            self._log.warning(message)
        else:
            self.logger.warning(message)
        return fallback

    def save_properties(
        self,
        props: Mapping[str, str],
        file_path: Path,
        comment: Optional[str] = "",
    ) -> Path:
        """Write properties to ``file_path``.

        A read-only ``file_path``, or a directory the atomic write cannot
        create its temp file in, makes the properties go to a temporary file
        instead.

        Returns:
            Absolute path of the file actually written
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        content = properties.dumps(props, comment=comment).encode("latin-1")

        target = file_path
        if file_path.exists() and not os.access(file_path, os.W_OK):
            target = self._fallback_file(file_path)
        else:
            try:
                self._atomic_write(file_path, content)
            except PreferencePersistenceError as e:
                self.logger.debug(str(e))
                target = self._fallback_file(file_path)

        if target != file_path:
            # mkstemp already created the fallback file, write it in place
            with open(target, "wb") as f:
                f.write(content)

        self.logger.debug(f"Wrote {len(props)} properties to {target}")
        return target.absolute()

    def save_origin_headers(self, headers: Mapping[str, str], cache_root: Path, file_name: str) -> Path:
        """Persist response headers as the origin record of ``cache_root``."""
        cache_root.mkdir(parents=True, exist_ok=True)
        record = cache_root / file_name
        self._atomic_write(record, properties.dumps(dict(headers), comment="").encode("latin-1"))
        return record
