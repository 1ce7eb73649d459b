import dataclasses
import socket
import ssl

import httpcore
import httpx
import pytest

import httptls
from httptls import (
    ConfigurationError,
    ConnectionContext,
    ConnectionError,
    ConnectionTerminated,
    HttpExceptionRequest,
    InternalException,
    Manager,
    NoResponseData,
    NoResponseDataReceived,
    ProxyConfig,
    ProxyConnectException,
    Request,
    SockSettings,
    TLSHandshakeError,
    TLSSettings,
    TooManyRedirects,
    TransportConfig,
    default_retryable_exception,
    default_wrap_exception,
    get_global_manager,
    mk_manager_settings,
    mk_manager_settings_context,
    set_global_manager,
    tls_manager_settings,
    tls_retryable_exception,
    tls_wrap_exception,
)
from httptls import _manager

OK = b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok"


def _tls_eof():
    error = httpcore.ReadError("EOF occurred in violation of protocol")
    error.__context__ = ssl.SSLEOFError()
    return error


def _scripted_manager(backend, tls_policy=True, socks=None):
    settings = mk_manager_settings_context(
        ConnectionContext(network_backend=backend), TLSSettings(), socks
    )
    if not tls_policy:
        settings.retryable_exception = default_retryable_exception
        settings.wrap_exception = default_wrap_exception
    return Manager(settings)


class Flaky:
    """MockTransport handler raising ``errors`` in turn, then answering 200."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self, request):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return httpx.Response(200, content=b"ok")


# ============================================================================
# Settings
# ============================================================================


def test_settings_reject_socks_with_http_proxy(make_mock_manager):
    with pytest.raises(ConfigurationError):
        make_mock_manager(
            Flaky(), proxy=ProxyConfig("proxy.local"), socks=SockSettings("socks.local")
        )


def test_request_proxy_with_socks_settings_fails_before_connecting(make_backend):
    backend = make_backend()
    manager = _scripted_manager(backend, socks=SockSettings("127.0.0.1"))
    request = Request.from_url("http://example.com/", proxy=ProxyConfig("proxy.local"))

    with pytest.raises(ConfigurationError):
        manager.http_lbs(request)

    assert backend.connected == []


def test_socks_username_requires_password():
    with pytest.raises(ConfigurationError):
        SockSettings("socks.local", username="user")


def test_tls_manager_settings_policy():
    settings = tls_manager_settings()

    assert settings.retryable_exception is tls_retryable_exception
    assert settings.wrap_exception is tls_wrap_exception
    assert settings.socks is None
    assert settings.proxy is None


def test_timeouts_taken_from_transport_config():
    context = ConnectionContext(TransportConfig(connect_timeout=3.0, read_timeout=7.0))

    settings = mk_manager_settings_context(context, TLSSettings())

    assert settings.timeout.connect == 3.0
    assert settings.timeout.read == 7.0


def test_transport_config_has_only_timeouts():
    names = [f.name for f in dataclasses.fields(TransportConfig)]

    assert names == ["connect_timeout", "read_timeout"]


def test_exported_names_resolve():
    for name in httptls.__all__:
        assert getattr(httptls, name) is not None, name


# ============================================================================
# Exception policy
# ============================================================================


def test_retry_classification():
    tls_eof = ConnectionTerminated("eof")
    tls_eof.__context__ = ssl.SSLEOFError()

    assert default_retryable_exception(NoResponseData())
    assert not default_retryable_exception(tls_eof)
    assert tls_retryable_exception(tls_eof)
    assert tls_retryable_exception(ssl.SSLEOFError())
    assert tls_retryable_exception(NoResponseData())
    assert not tls_retryable_exception(ConnectionError("refused"))


def test_wrap_classification():
    request = Request.from_url("https://example.com/")
    tls_error = TLSHandshakeError("bad record")

    assert default_wrap_exception(request, tls_error) is tls_error

    wrapped = tls_wrap_exception(request, tls_error)
    assert isinstance(wrapped, HttpExceptionRequest)
    assert wrapped.request is request
    assert wrapped.content.exc is tls_error

    other = ValueError("not ours")
    assert tls_wrap_exception(request, other) is other


def test_idempotent_request_retried_once(make_mock_manager):
    handler = Flaky(NoResponseData("closed"))
    manager = make_mock_manager(handler)

    response = manager.http_lbs(Request.from_url("http://example.com/"))

    assert response.status_code == 200
    assert response.content == b"ok"
    assert handler.calls == 2


def test_retry_happens_only_once(make_mock_manager):
    handler = Flaky(NoResponseData("closed"), NoResponseData("closed"))
    manager = make_mock_manager(handler)

    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(Request.from_url("http://example.com/"))

    assert isinstance(excinfo.value.content, NoResponseDataReceived)
    assert handler.calls == 2


def test_post_not_retried(make_mock_manager):
    handler = Flaky(NoResponseData("closed"))
    manager = make_mock_manager(handler)

    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(Request.from_url("http://example.com/", method="POST"))

    assert isinstance(excinfo.value.content, NoResponseDataReceived)
    assert handler.calls == 1


def test_connection_error_wrapped_with_request(make_mock_manager):
    error = ConnectionError("refused")
    manager = make_mock_manager(Flaky(error))
    request = Request.from_url("http://example.com/", method="POST")

    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(request)

    assert excinfo.value.request is request
    assert isinstance(excinfo.value.content, InternalException)
    assert excinfo.value.content.exc is error
    assert excinfo.value.__cause__ is error


def test_tls_error_wrapped_only_under_tls_policy(make_mock_manager):
    request = Request.from_url("https://example.com/")

    with pytest.raises(TLSHandshakeError):
        make_mock_manager(Flaky(TLSHandshakeError("handshake"))).http_lbs(request)

    manager = make_mock_manager(
        Flaky(TLSHandshakeError("handshake")), wrap_exception=tls_wrap_exception
    )
    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(request)

    assert isinstance(excinfo.value.content.exc, TLSHandshakeError)


# ============================================================================
# Over scripted connections
# ============================================================================


def test_empty_reply_retried_on_a_new_connection(make_backend):
    backend = make_backend([], [OK])

    response = _scripted_manager(backend).http_lbs(
        Request.from_url("http://example.com/")
    )

    assert response.status_code == 200
    assert response.content == b"ok"
    assert backend.connected == [("example.com", 80), ("example.com", 80)]


def test_tls_eof_retried_under_tls_policy(make_backend, make_stream):
    backend = make_backend(make_stream(read_error=_tls_eof()), [OK])

    response = _scripted_manager(backend).http_lbs(
        Request.from_url("https://example.com/")
    )

    assert response.status_code == 200
    assert backend.connected == [("example.com", 443), ("example.com", 443)]


def test_tls_eof_raw_under_default_policy(make_backend, make_stream):
    backend = make_backend(make_stream(read_error=_tls_eof()))
    manager = _scripted_manager(backend, tls_policy=False)

    with pytest.raises(ConnectionTerminated):
        manager.http_lbs(Request.from_url("https://example.com/"))

    assert len(backend.connected) == 1


def test_request_wire_format(make_backend):
    backend = make_backend([OK])

    _scripted_manager(backend).http_lbs(
        Request.from_url("http://example.com/path?q=1", headers={"Accept": "*/*"})
    )

    written = backend.opened[0].written
    assert written.startswith(b"GET /path?q=1 HTTP/1.1\r\nHost: example.com\r\n")
    assert b"Accept: */*\r\n" in written


def test_plain_request_through_http_proxy(make_backend):
    backend = make_backend([OK])
    manager = _scripted_manager(backend)
    manager.settings.proxy = ProxyConfig("proxy.local", 3128)

    response = manager.http_lbs(Request.from_url("http://example.com/x"))

    assert response.status_code == 200
    assert backend.connected == [("proxy.local", 3128)]
    assert backend.opened[0].written.startswith(b"GET http://example.com/x HTTP/1.1\r\n")


def test_secure_request_tunnels_through_proxy(make_backend):
    backend = make_backend([b"HTTP/1.1 200 Connection established\r\n\r\n", OK])
    request = Request.from_url("https://example.com/x", proxy=ProxyConfig("proxy.local"))

    response = _scripted_manager(backend).http_lbs(request)

    written = backend.opened[0].written
    assert response.status_code == 200
    assert backend.connected == [("proxy.local", 8080)]
    assert written.startswith(b"CONNECT example.com:443 HTTP/1.1\r\n")
    assert b"GET /x HTTP/1.1\r\n" in written


def test_rejected_connect_raises_proxy_connect_exception(make_backend):
    backend = make_backend(
        [b"HTTP/1.1 407 Proxy Authentication Required\r\nContent-Length: 0\r\n\r\n"]
    )
    request = Request.from_url("https://example.com/", proxy=ProxyConfig("proxy.local"))

    with pytest.raises(HttpExceptionRequest) as excinfo:
        _scripted_manager(backend).http_lbs(request)

    content = excinfo.value.content
    assert isinstance(content, ProxyConnectException)
    assert (content.host, content.port, content.status_code) == ("example.com", 443, 407)


def test_request_routed_through_socks(make_backend):
    backend = make_backend(
        [b"\x05\x00", b"\x05\x00\x00\x01\x7f\x00\x00\x01\x00\x50", OK]
    )
    manager = _scripted_manager(backend, socks=SockSettings("socks.local"))

    response = manager.http_lbs(Request.from_url("http://example.com/"))

    assert response.status_code == 200
    assert backend.connected == [("socks.local", 1080)]
    assert b"\x03\x0bexample.com\x00\x50" in backend.opened[0].written


def test_transport_built_once_per_proxy(make_mock_manager):
    seen = []
    manager = make_mock_manager(Flaky(), seen_proxies=seen)
    proxy = ProxyConfig("proxy.local")

    manager.http_lbs(Request.from_url("http://example.com/"))
    manager.http_lbs(Request.from_url("http://example.com/", proxy=proxy))
    manager.http_lbs(Request.from_url("http://example.com/a", proxy=proxy))

    assert seen == [None, proxy]


# ============================================================================
# Cookies
# ============================================================================


def test_request_cookies_sent(make_mock_manager):
    jar = httpx.Cookies()
    jar.set("sid", "xyz", domain="example.com")
    manager = make_mock_manager(
        lambda request: httpx.Response(200, content=request.headers.get("Cookie", ""))
    )

    response = manager.http_lbs(Request.from_url("http://example.com/", cookie_jar=jar))

    assert response.content == b"sid=xyz"


def test_request_jar_left_untouched(make_mock_manager):
    jar = httpx.Cookies()
    manager = make_mock_manager(
        lambda request: httpx.Response(200, headers={"Set-Cookie": "sid=abc; Path=/"})
    )

    response = manager.http_lbs(Request.from_url("http://example.com/", cookie_jar=jar))

    assert response.cookie_jar.get("sid") == "abc"
    assert jar.get("sid") is None


# ============================================================================
# Against a local server
# ============================================================================


@pytest.fixture
def manager():
    with Manager(mk_manager_settings(TLSSettings())) as manager:
        yield manager


def test_get_with_body(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/plain"))

    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"] == "text/plain"
    assert response.request.path == "/plain"


def test_no_body_variant(manager, http_server):
    response = manager.http_no_body(Request.from_url(f"{http_server}/plain"))

    assert response.status_code == 200
    assert response.content == b""


def test_head_request(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/plain", method="HEAD"))

    assert response.status_code == 200
    assert response.content == b""


def test_chunked_body(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/chunked"))

    assert response.content == b"hello world"


def test_error_status_is_a_response(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/missing"))

    assert response.status_code == 404
    assert response.content == b"not found"


def test_follows_redirect(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/redirect"))

    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.request.path == "/plain"


def test_redirects_disabled(manager, http_server):
    response = manager.http_lbs(
        Request.from_url(f"{http_server}/redirect", redirect_count=0)
    )

    assert response.status_code == 302
    assert response.headers["Location"] == "/plain"


def test_too_many_redirects(manager, http_server):
    request = Request.from_url(f"{http_server}/loop", redirect_count=3)

    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(request)

    assert isinstance(excinfo.value.content, TooManyRedirects)
    assert len(excinfo.value.content.responses) == 4
    assert excinfo.value.request is request


def test_see_other_switches_to_get(manager, http_server):
    response = manager.http_lbs(
        Request.from_url(f"{http_server}/see-other", method="POST", content=b"x")
    )

    assert response.content == b"GET"
    assert response.request.method == "GET"
    assert response.request.content == b""


def test_post_body_sent(manager, http_server):
    response = manager.http_lbs(
        Request.from_url(f"{http_server}/echo-body", method="POST", content=b"payload")
    )

    assert response.content == b"payload"


def test_cookies_follow_redirects(manager, http_server):
    response = manager.http_lbs(Request.from_url(f"{http_server}/set-cookie"))

    assert response.content == b"sid=abc"
    assert response.cookie_jar.get("sid") == "abc"


def test_connection_refused_is_wrapped(manager):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with pytest.raises(HttpExceptionRequest) as excinfo:
        manager.http_lbs(Request.from_url(f"http://127.0.0.1:{port}/"))

    assert isinstance(excinfo.value.content, InternalException)
    assert isinstance(excinfo.value.content.exc, ConnectionError)


def test_trace_prints_exchange(http_server, capsys):
    settings = mk_manager_settings(TLSSettings())
    settings.trace = True

    with Manager(settings) as manager:
        manager.http_lbs(Request.from_url(f"{http_server}/plain"))

    out = capsys.readouterr().out
    assert "SENDING GET" in out
    assert "RECEIVED 200" in out


# ============================================================================
# Global manager
# ============================================================================


def test_global_manager_is_lazy_and_replaceable(monkeypatch, make_mock_manager):
    monkeypatch.setattr(_manager, "_global_manager", None)

    first = get_global_manager()
    assert get_global_manager() is first

    custom = make_mock_manager(Flaky())
    set_global_manager(custom)
    assert get_global_manager() is custom
