"""Download and cache of remotely hosted profiles.

A remote provider's profiles are fetched as one zip archive and kept in a
cache root ``<state-dir>/profiles/<cache_key>/`` across process runs. The
cache is refreshed only when the server reports new content:

- no new profile names requested and a cache exists: conditional GET with
  ``If-Modified-Since`` set to the cache root's modification time
- 2xx: archive extracted next to the cache and renamed into its place
- 304: cache untouched, only the origin headers record is refreshed

Any failure leaves the previous cache in place and is reported through the
deferred logger and the download status.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from email.utils import formatdate
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import requests
from filelock import FileLock, Timeout

from ..errors import BadContentTypeError, DownloadError, DownloadFailedError
from ..models.schemas import DownloadStatus, ProfileSettings
from ..utils.deferred_log import DeferredLogger
from .persistence import PreferencePersistence

if TYPE_CHECKING:
    from ..providers.base import ProfileProvider

logger = logging.getLogger(__name__)

# Bytes of a text/* error body used as the failure message
ERROR_BODY_LIMIT = 4096
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ProfileDownloader:
    """Fetches remote profile archives into per-provider cache roots."""

    def __init__(
        self,
        settings: ProfileSettings,
        log: Optional[DeferredLogger] = None,
        session: Optional[requests.Session] = None,
        persistence: Optional[PreferencePersistence] = None,
    ):
        """Initialize the downloader.

        Args:
            settings: Profile settings (state directory, timeouts, media type)
            log: Deferred logger collecting messages of the current apply call
            session: HTTP session to use, a new one is created if omitted
            persistence: Writer of the origin headers record
        """
        self.settings = settings
        self._log = log or DeferredLogger()
        self._session = session
        self._persistence = persistence or PreferencePersistence(log=self._log)
        self.status = DownloadStatus.UNSET

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def reset_status(self) -> None:
        self.status = DownloadStatus.UNSET

    def cache_root(self, provider: "ProfileProvider") -> Path:
        """Directory holding the downloaded profiles of ``provider``."""
        return self.settings.cache_dir / provider.cache_key

    def _lock_path(self, provider: "ProfileProvider") -> Path:
        return self.settings.cache_dir / f".{provider.cache_key}.lock"

    def download_profiles(self, provider: "ProfileProvider") -> Optional[Path]:
        """Refresh the cache of ``provider`` and return its cache root.

        The returned directory may not exist if nothing was ever downloaded.

        Returns:
            Cache root, or None if the location cannot be turned into a request
        """
        location = provider.profiles_location()
        names = provider.requested_profiles()
        cache_root = self.cache_root(provider)

        try:
            request = self.session.prepare_request(
                requests.Request(
                    "GET",
                    location,
                    params={self.settings.profiles_query_parameter: ",".join(names)},
                )
            )
        except (requests.RequestException, ValueError) as e:
            self._log.error(
                f"Could not create HTTP request for downloading profiles from {location}: {e}",
                exc_info=e,
            )
            return None

        self._log.info(f"Downloading profiles from {request.url}")

        try:
            self.settings.cache_dir.mkdir(parents=True, exist_ok=True)
            # New profiles must not be answered from a stale conditional response
            if not self._new_profile_names(names, cache_root) and cache_root.is_dir():
                request.headers["If-Modified-Since"] = formatdate(
                    cache_root.stat().st_mtime, usegmt=True
                )

            send_kwargs = self.session.merge_environment_settings(
                request.url,
                proxies={},
                stream=True,
                verify=self.settings.verify_tls,
                cert=None,
            )
            with self.session.send(
                request,
                timeout=self.settings.timeout,
                allow_redirects=True,
                **send_kwargs,
            ) as response:
                self._process_response(provider, response, cache_root)

            if self.status is DownloadStatus.UNSET:
                self.status = DownloadStatus.SUCCEEDED

        except (
            requests.RequestException,
            Timeout,
            OSError,
            zipfile.BadZipFile,
            DownloadError,
        ) as e:
            self.status = DownloadStatus.FAILED
            if cache_root.is_dir():
                outcome = "Will use existing but potentially outdated profiles."
            else:
                outcome = "No profiles will be applied."
            self._log.error(
                f"Could not download profiles from {location}: {e}. {outcome}",
                exc_info=e,
            )

        return cache_root

    @staticmethod
    def _new_profile_names(names: list[str], cache_root: Path) -> list[str]:
        """Requested names without a cached directory yet."""
        if not cache_root.is_dir():
            return list(names)
        cached = {entry.name for entry in cache_root.iterdir() if entry.is_dir()}
        return [name for name in names if name not in cached]

    def _process_response(
        self,
        provider: "ProfileProvider",
        response: requests.Response,
        cache_root: Path,
    ) -> None:
        code = response.status_code
        if 200 <= code < 300:
            content_type = response.headers.get("Content-Type") or ""
            # A non-zip body would otherwise extract into an empty profile set
            if not content_type.startswith(self.settings.archive_media_type):
                raise BadContentTypeError(
                    "Server did not return a ZIP file containing the selected profiles"
                )
            self._replace_cache(provider, response, cache_root)
            self._save_headers(response, cache_root)
        elif code == 304:
            logger.debug(f"Profiles in {cache_root} are up to date")
            self._save_headers(response, cache_root)
        else:
            raise DownloadFailedError(extract_http_error(response), status_code=code)

    def _save_headers(self, response: requests.Response, cache_root: Path) -> None:
        self._persistence.save_origin_headers(
            dict(response.headers.items()),
            cache_root,
            self.settings.origin_headers_file,
        )

    def _replace_cache(
        self,
        provider: "ProfileProvider",
        response: requests.Response,
        cache_root: Path,
    ) -> None:
        fd, temp_name = tempfile.mkstemp(prefix="profile-download", suffix=".zip")
        temp_file = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)

            # Another process may be replacing the same cache root
            with FileLock(str(self._lock_path(provider)), timeout=self.settings.lock_timeout):
                temp_dir = Path(
                    tempfile.mkdtemp(prefix="profile-download", dir=self.settings.cache_dir)
                )
                try:
                    extract_archive(temp_file, temp_dir)
                    # Replace only once the new content is complete
                    if cache_root.exists():
                        shutil.rmtree(cache_root)
                    os.replace(temp_dir, cache_root)
                except Exception:
                    shutil.rmtree(temp_dir, ignore_errors=True)
                    raise
        finally:
            temp_file.unlink(missing_ok=True)

        logger.debug(f"Extracted profile archive into {cache_root}")


def extract_archive(archive: Path, target: Path) -> None:
    """Extract a zip archive, rejecting entries that would land outside ``target``.

    Raises:
        DownloadFailedError: If an entry escapes the target directory
        zipfile.BadZipFile: If the archive is corrupt
    """
    root = os.path.realpath(target)
    with zipfile.ZipFile(archive) as zf:
        for member in zf.infolist():
            destination = os.path.realpath(os.path.join(root, member.filename))
            if os.path.commonpath([root, destination]) != root:
                raise DownloadFailedError(
                    f"Archive entry '{member.filename}' points outside of the profile cache"
                )
        zf.extractall(root)


def extract_http_error(response: requests.Response) -> str:
    """Failure message of an error response.

    Prefers a short text body, then the reason phrase, then the status code.
    """
    content_type = response.headers.get("Content-Type") or ""
    if content_type.startswith("text/"):
        body = b""
        for chunk in response.iter_content(chunk_size=ERROR_BODY_LIMIT):
            body = chunk[:ERROR_BODY_LIMIT]
            break
        text = body.decode("ascii", errors="replace").strip()
        if text:
            return text

    if response.reason:
        return response.reason

    return f"Server returned status {response.status_code}"
