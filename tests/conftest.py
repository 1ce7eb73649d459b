"""Shared pytest fixtures for the httptls tests.

Provides in-memory fakes for issuers, scripted httpcore backends and a local
HTTP server, so no test touches the network beyond 127.0.0.1.
"""

import hashlib
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpcore
import httpx
import pytest

from httptls import Manager, ManagerSettings, Response

# RFC 2617 section 3.5 example values
REALM = "testrealm@host.com"
NONCE = "dcd98b7102dd2f0e8b11d0f600bfb0c093"
OPAQUE = "5ccc069c403ebaf9f0171e9517f40e41"
USERNAME = "Mufasa"
PASSWORD = "Circle Of Life"


def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("latin-1")).hexdigest()


def expected_digest(method: str, uri: str, qop: bool = True) -> str:
    ha1 = md5_hex(f"{USERNAME}:{REALM}:{PASSWORD}")
    ha2 = md5_hex(f"{method}:{uri}")
    if qop:
        return md5_hex(f"{ha1}:{NONCE}:00000001:deadbeef:auth:{ha2}")
    return md5_hex(f"{ha1}:{NONCE}:{ha2}")


class FakeIssuer:
    """Records requests and answers each with the same canned response."""

    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.requests = []

    def http_no_body(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class AsyncFakeIssuer(FakeIssuer):
    async def http_no_body(self, request):
        return FakeIssuer.http_no_body(self, request)


class RecordingStream(httpcore.MockStream):
    """MockStream that also keeps what was written to it."""

    def __init__(self, buffer=(), read_error=None) -> None:
        super().__init__(list(buffer))
        self.read_error = read_error
        self.written = b""
        self.closed = False

    def read(self, max_bytes, timeout=None):
        if self.read_error is not None:
            raise self.read_error
        return super().read(max_bytes, timeout)

    def write(self, buffer, timeout=None):
        self.written += buffer

    def close(self):
        self.closed = True
        super().close()


class ScriptedBackend(httpcore.NetworkBackend):
    """Network backend handing out one prepared stream per connection."""

    def __init__(self, *streams) -> None:
        self.streams = [
            s if isinstance(s, httpcore.NetworkStream) else RecordingStream(s)
            for s in streams
        ]
        self.opened = []
        self.connected = []

    def connect_tcp(
        self, host, port, timeout=None, local_address=None, socket_options=None
    ):
        self.connected.append((host, port))
        stream = self.streams.pop(0)
        self.opened.append(stream)
        return stream


def mock_manager(handler, seen_proxies=None, **kwargs) -> Manager:
    """Manager whose every transport is an ``httpx.MockTransport``."""

    def transport_factory(proxy):
        if seen_proxies is not None:
            seen_proxies.append(proxy)
        return httpx.MockTransport(handler)

    return Manager(ManagerSettings(transport_factory=transport_factory, **kwargs))


def challenge_response(header_value=None, status_code=401, **kwargs) -> Response:
    headers = []
    if header_value is not None:
        headers.append(("WWW-Authenticate", header_value))
    return Response(status_code, headers=headers, **kwargs)


@pytest.fixture
def digest_challenge() -> str:
    return f'Digest realm="{REALM}", qop="auth", nonce="{NONCE}", opaque="{OPAQUE}"'


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _send(self, status, body=b"", headers=()):
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def do_HEAD(self):
        self.do_GET()

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        if self.path == "/echo-body":
            self._send(200, body)
        elif self.path == "/see-other":
            self._send(303, headers=[("Location", "/echo-method")])
        else:
            self._send(404)

    def do_GET(self):
        if self.path.startswith("/plain"):
            self._send(200, b"hello", [("Content-Type", "text/plain")])
        elif self.path == "/redirect":
            self._send(302, headers=[("Location", "/plain")])
        elif self.path == "/loop":
            self._send(302, headers=[("Location", "/loop")])
        elif self.path == "/echo-method":
            self._send(200, self.command.encode())
        elif self.path == "/set-cookie":
            self._send(
                302,
                headers=[("Set-Cookie", "sid=abc; Path=/"), ("Location", "/echo-cookie")],
            )
        elif self.path == "/echo-cookie":
            self._send(200, self.headers.get("Cookie", "").encode())
        elif self.path == "/chunked":
            self.send_response(200)
            self.send_header("Transfer-Encoding", "chunked")
            self.end_headers()
            self.wfile.write(b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n")
        elif self.path.startswith("/protected"):
            self._protected()
        else:
            self._send(404, b"not found")

    def _protected(self):
        challenge = (
            f'Digest realm="{REALM}", qop="auth", nonce="{NONCE}", opaque="{OPAQUE}"'
        )
        authorization = self.headers.get("Authorization")
        uri = self.path.split("?", 1)[0]
        if authorization and f'response="{expected_digest("GET", uri)}"' in authorization:
            self._send(200, b"welcome")
        else:
            self._send(401, headers=[("WWW-Authenticate", challenge)])


@pytest.fixture
def http_server():
    """Local threaded HTTP server; yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def make_issuer():
    return FakeIssuer


@pytest.fixture
def make_async_issuer():
    return AsyncFakeIssuer


@pytest.fixture
def make_stream():
    return RecordingStream


@pytest.fixture
def make_backend():
    return ScriptedBackend


@pytest.fixture
def make_mock_manager():
    return mock_manager


@pytest.fixture
def make_challenge():
    return challenge_response


@pytest.fixture
def digest_for():
    return expected_digest
