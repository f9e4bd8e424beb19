"""Shared fixtures: profile trees on disk and a local profile server."""

import io
import threading
import zipfile
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional

import pytest

from startup_profiles.models.schemas import ProfileSettings
from startup_profiles.providers.base import StaticProfileProvider
from startup_profiles.utils.deferred_log import DeferredLogger


def write_prefs(directory: Path, file_name: str, prefs: dict[str, str]) -> Path:
    """Write a preference file with one ``key=value`` line per entry."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file_name
    path.write_text("".join(f"{key}={value}\n" for key, value in prefs.items()), encoding="utf-8")
    return path


def make_zip(entries: dict[str, str]) -> bytes:
    """Zip archive with the given file name -> text content entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class LowPriorityProvider(StaticProfileProvider):
    """Static provider with its own cache key."""


class HighPriorityProvider(StaticProfileProvider):
    """Static provider with its own cache key."""


@dataclass
class CannedResponse:
    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None


@dataclass
class RecordedRequest:
    path: str
    headers: dict[str, str]


class _ProfileRequestHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        server = self.server.profile_server
        server.requests.append(RecordedRequest(self.path, dict(self.headers.items())))
        response = server.next_response()

        self.send_response(response.status, response.reason)
        for name, value in response.headers.items():
            self.send_header(name, value)
        body = b"" if response.status == 304 else response.body
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def log_message(self, format, *args):
        pass


class ProfileServer:
    """Serves canned responses and records the requests it receives."""

    def __init__(self):
        self.requests: list[RecordedRequest] = []
        self._responses: list[CannedResponse] = []
        self._default = CannedResponse(status=404, body=b"", headers={})
        self._lock = threading.Lock()
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), _ProfileRequestHandler)
        self._httpd.profile_server = self
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}/profiles"

    def respond(
        self,
        status: int = 200,
        body: bytes = b"",
        content_type: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Queue a response; the last queued response is repeated."""
        all_headers = dict(headers or {})
        if content_type is not None:
            all_headers["Content-Type"] = content_type
        with self._lock:
            self._responses.append(CannedResponse(status, body, all_headers, reason))

    def respond_zip(self, entries: dict[str, str], headers: Optional[dict[str, str]] = None) -> None:
        self.respond(200, make_zip(entries), "application/zip", headers)

    def next_response(self) -> CannedResponse:
        with self._lock:
            if len(self._responses) > 1:
                return self._responses.pop(0)
            if self._responses:
                return self._responses[0]
            return self._default

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join(timeout=5)


@pytest.fixture(autouse=True)
def no_proxy_environment(monkeypatch):
    """Keep requests to the local profile server away from any proxy."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")


@pytest.fixture
def profile_server():
    server = ProfileServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def settings(tmp_path):
    return ProfileSettings(state_dir=tmp_path / "state")


@pytest.fixture
def deferred_log():
    return DeferredLogger()


@pytest.fixture
def profile_root(tmp_path):
    """Local profile root with ``base`` and ``custom`` plus a sibling ``src``.

    Layout::

        tmp/profiles/base/base.epf
        tmp/profiles/custom/01-custom.epf
        tmp/profiles/custom/nested/02-custom.epf
        tmp/src/src.epf            (outside the root)
    """
    root = tmp_path / "profiles"
    write_prefs(
        root / "base",
        "base.epf",
        {
            "/instance/org.example.product/base-key": "base-value",
            "/instance/org.example.product/shared": "from-base",
        },
    )
    write_prefs(
        root / "custom",
        "01-custom.epf",
        {
            "/instance/org.example.product/shared": "from-custom",
            "/instance/org.example.product/custom-var": "bla/${custom:var}/foo",
            "/instance/org.example.product/non-variable": "bla/$${custom:var}/foo",
        },
    )
    write_prefs(
        root / "custom" / "nested",
        "02-custom.epf",
        {"org.example.other/nested-key": "nested-value"},
    )
    (root / "custom" / "notes.txt").write_text("not=a preference\n", encoding="utf-8")
    write_prefs(tmp_path / "src", "src.epf", {"org.example.product/src-key": "src"})
    return root
