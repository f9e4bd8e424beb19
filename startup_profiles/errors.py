"""Exceptions raised by the profile pipeline."""


class ProfileError(Exception):
    """Base exception for profile resolution and application errors."""

    pass


class MissingProfileLocationError(ProfileError, ValueError):
    """A provider was asked for its location but has none."""

    pass


class UnsupportedLocationSchemeError(ProfileError, ValueError):
    """A provider location uses a URI scheme other than file or http(s).

    Fatal for the apply call: it is propagated, never swallowed.
    """

    def __init__(self, location: str, scheme: str):
        self.location = location
        self.scheme = scheme
        super().__init__(f"Profiles from '{scheme}' are not supported: {location}")


class DownloadError(ProfileError):
    """Remote profiles could not be fetched. Recoverable."""

    pass


class BadContentTypeError(DownloadError):
    """The profile server answered 2xx with something other than a zip archive."""

    pass


class DownloadFailedError(DownloadError):
    """The profile server answered with an error status or an unusable body."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)
