"""
HTTP engine: connection settings, request issuing and the global Manager.

This module provides:
- ManagerSettings, with TLS-aware constructors (``tls_manager_settings``,
  ``mk_manager_settings``, ``mk_manager_settings_context``)
- The retry and exception-wrapping policy for TLS transport errors
- Manager, which issues requests through httpx (redirects and cookies are
  httpx's) over transports built from the settings
- A lazily created, replaceable process-wide Manager
"""

from __future__ import annotations

import ssl
import threading
from dataclasses import dataclass, field
from typing import Callable, NoReturn, Optional

import httpx

from ._models._message import Request, Response
from ._transports import ConnectionContext, ConnectionProvider, ProviderTransport
from ._types import (
    ConfigurationError,
    HttpExceptionRequest,
    InternalException,
    NoResponseData,
    NoResponseDataReceived,
    ProxyConfig,
    ProxyConnectException,
    ProxyError,
    SockSettings,
    TLSHandshakeError,
    TLSSettings,
    TooManyRedirects,
    TransportError,
    caused_by,
)
from ._utils import IDEMPOTENT_METHODS, console, logger

TransportFactory = Callable[[Optional[ProxyConfig]], httpx.BaseTransport]


# ============================================================================
# Exception Policy
# ============================================================================


def default_retryable_exception(exc: BaseException) -> bool:
    """A peer closing a connection before answering is worth one more try."""
    return isinstance(exc, NoResponseData)


def tls_retryable_exception(exc: BaseException) -> bool:
    """TLS end-of-stream is retryable on top of the default policy."""
    return caused_by(exc, ssl.SSLEOFError) or default_retryable_exception(exc)


def _is_tls_failure(exc: BaseException) -> bool:
    return isinstance(exc, TLSHandshakeError) or caused_by(exc, ssl.SSLError)


def default_wrap_exception(request: Request, exc: BaseException) -> BaseException:
    """
    Tie plain I/O failures to the request that triggered them.

    TLS failures are left alone; ``tls_wrap_exception`` wraps them too.

    Returns:
        An ``HttpExceptionRequest``, or ``exc`` itself when it is not wrapped
    """
    if isinstance(exc, NoResponseData):
        return HttpExceptionRequest(request, NoResponseDataReceived())
    if _is_tls_failure(exc):
        return exc
    if isinstance(exc, (OSError, TransportError)):
        return HttpExceptionRequest(request, InternalException(exc))
    return exc


def tls_wrap_exception(request: Request, exc: BaseException) -> BaseException:
    """Also wrap TLS termination and handshake failures."""
    if not isinstance(exc, NoResponseData) and _is_tls_failure(exc):
        return HttpExceptionRequest(request, InternalException(exc))
    return default_wrap_exception(request, exc)


# ============================================================================
# Settings
# ============================================================================


@dataclass
class ManagerSettings:
    """
    How a Manager sends requests and treats their failures.

    Attributes:
        transport_factory: Builds the httpx transport for a proxy (None for
            direct connections); called once per proxy value
        timeout: httpx timeouts applied to every request
        retryable_exception: Whether an idempotent request may be retried once
        wrap_exception: Turns a low-level exception into the one raised
        proxy: HTTP proxy used when a request names none
        socks: SOCKS proxy the transports route through
        trace: Print every exchange to the rich console
    """

    transport_factory: TransportFactory
    timeout: httpx.Timeout = field(default_factory=lambda: httpx.Timeout(30.0))
    retryable_exception: Callable[[BaseException], bool] = default_retryable_exception
    wrap_exception: Callable[[Request, BaseException], BaseException] = (
        default_wrap_exception
    )
    proxy: Optional[ProxyConfig] = None
    socks: Optional[SockSettings] = None
    trace: bool = False

    def __post_init__(self) -> None:
        if self.proxy is not None and self.socks is not None:
            raise ConfigurationError("Cannot use SOCKS and HTTP proxying together")


def mk_manager_settings_context(
    context: Optional[ConnectionContext],
    tls: TLSSettings,
    socks: Optional[SockSettings] = None,
) -> ManagerSettings:
    """
    TLS-enabled settings sharing an existing ConnectionContext.

    Passing one context to several Managers lets them share SSL contexts.
    """
    provider = ConnectionProvider(context)
    config = provider.context.config

    def transport_factory(proxy: Optional[ProxyConfig]) -> httpx.BaseTransport:
        return ProviderTransport(provider, tls, socks=socks, proxy=proxy)

    return ManagerSettings(
        transport_factory=transport_factory,
        timeout=httpx.Timeout(config.read_timeout, connect=config.connect_timeout),
        retryable_exception=tls_retryable_exception,
        wrap_exception=tls_wrap_exception,
        socks=socks,
    )


def mk_manager_settings(
    tls: TLSSettings, socks: Optional[SockSettings] = None
) -> ManagerSettings:
    """TLS-enabled settings with the given TLS and SOCKS settings."""
    return mk_manager_settings_context(None, tls, socks)


def tls_manager_settings() -> ManagerSettings:
    """Default TLS-enabled settings (verified TLS, no SOCKS)."""
    return mk_manager_settings(TLSSettings())


# ============================================================================
# Tracing
# ============================================================================


def _render(first_line: str, headers: httpx.Headers) -> str:
    lines = [first_line]
    for name, value in headers.raw:
        lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    return "\n".join(lines)


def _trace_request(request: httpx.Request) -> None:
    console.print(
        f"\n[bold yellow]>>> SENDING {request.method} {request.url}:[/bold yellow]"
    )
    first_line = f"{request.method} {request.url.raw_path.decode('ascii')} HTTP/1.1"
    console.print(_render(first_line, request.headers), markup=False)
    console.print("=" * 80)


def _trace_response(response: httpx.Response) -> None:
    console.print(
        f"\n[bold green]<<< RECEIVED {response.status_code} "
        f"{response.reason_phrase} ({response.request.url.host}):[/bold green]"
    )
    first_line = (
        f"{response.http_version} {response.status_code} {response.reason_phrase}"
    )
    console.print(_render(first_line, response.headers), markup=False)
    console.print("=" * 80)


# ============================================================================
# Manager
# ============================================================================


class Manager:
    """
    Issues HTTP requests through httpx.

    Connections are pooled per proxy in transports built by the settings'
    ``transport_factory``. Each call gets its own short-lived ``httpx.Client``
    carrying the request's cookie jar and redirect budget, so the request's
    jar is never modified and the response carries an updated copy.

    Example:
        >>> with Manager(tls_manager_settings()) as manager:
        ...     response = manager.http_lbs(Request.from_url("https://example.com/"))
        >>> response.status_code
        200
    """

    def __init__(self, settings: Optional[ManagerSettings] = None) -> None:
        self.settings = settings or tls_manager_settings()
        self._transports: dict[Optional[ProxyConfig], httpx.BaseTransport] = {}
        self._lock = threading.Lock()

    def http_no_body(self, request: Request) -> Response:
        """Issue ``request`` and return the response without reading its body."""
        return self._perform_with_retry(request, read_body=False)

    def http_lbs(self, request: Request) -> Response:
        """Issue ``request`` and return the response with its full body."""
        return self._perform_with_retry(request, read_body=True)

    def _transport(self, proxy: Optional[ProxyConfig]) -> httpx.BaseTransport:
        with self._lock:
            transport = self._transports.get(proxy)
            if transport is None:
                transport = self.settings.transport_factory(proxy)
                self._transports[proxy] = transport
            return transport

    def _perform_with_retry(self, request: Request, read_body: bool) -> Response:
        try:
            return self._perform(request, read_body)
        except Exception as exc:
            if not (
                request.method in IDEMPOTENT_METHODS
                and self.settings.retryable_exception(exc)
            ):
                self._raise_wrapped(request, exc)
            logger.debug(f"Retrying {request.method} {request.url} after {exc!r}")

        try:
            return self._perform(request, read_body)
        except Exception as exc:
            self._raise_wrapped(request, exc)

    def _raise_wrapped(self, request: Request, exc: Exception) -> NoReturn:
        wrapped = self.settings.wrap_exception(request, exc)
        if wrapped is exc:
            raise exc
        raise wrapped from exc

    def _perform(self, request: Request, read_body: bool) -> Response:
        proxy = request.proxy or self.settings.proxy
        if proxy is not None and self.settings.socks is not None:
            raise ConfigurationError("Cannot use SOCKS and HTTP proxying together")

        seen: list[httpx.Response] = []
        hooks: dict[str, list[Callable]] = {"request": [], "response": [seen.append]}
        if self.settings.trace:
            hooks["request"].append(_trace_request)
            hooks["response"].append(_trace_response)

        client = httpx.Client(
            transport=self._transport(proxy),
            cookies=request.cookie_jar,
            timeout=self.settings.timeout,
            follow_redirects=request.redirect_count > 0,
            max_redirects=request.redirect_count,
            event_hooks=hooks,
            trust_env=False,
        )
        outgoing = client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.content or None,
        )

        try:
            response = client.send(outgoing, stream=not read_body)
        except httpx.TooManyRedirects as exc:
            redirects = [self._response(r, request, client.cookies) for r in seen]
            raise HttpExceptionRequest(request, TooManyRedirects(redirects)) from exc
        except ProxyError as exc:
            if exc.status_code is None:
                raise
            raise HttpExceptionRequest(
                request,
                ProxyConnectException(request.host, request.port, exc.status_code),
            ) from exc

        # Releases the connection; a streamed body is dropped unread
        response.close()

        result = self._response(response, request, client.cookies)
        logger.debug(f"{request.method} {request.url} -> {result.status_code}")
        return result

    @staticmethod
    def _response(
        response: httpx.Response, request: Request, cookies: httpx.Cookies
    ) -> Response:
        try:
            content = response.content
        except httpx.ResponseNotRead:
            content = b""

        final = response.request
        if str(final.url) != request.url:
            target = Request.from_url(final.url)
            request = request.replace(
                method=final.method,
                host=target.host,
                port=target.port,
                secure=target.secure,
                path=target.path,
                query=target.query,
                content=request.content if final.method == request.method else b"",
            )

        return Response(
            response.status_code,
            reason_phrase=response.reason_phrase,
            headers=response.headers,
            content=content,
            http_version=response.http_version,
            cookie_jar=cookies,
            request=request,
        )

    def close(self) -> None:
        """Close the pooled connections of every transport."""
        with self._lock:
            transports = list(self._transports.values())
            self._transports.clear()
        for transport in transports:
            transport.close()

    def __enter__(self) -> Manager:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Manager(proxy={self.settings.proxy}, socks={self.settings.socks})>"


# ============================================================================
# Global Manager
# ============================================================================

_global_manager: Optional[Manager] = None
_global_lock = threading.Lock()


def get_global_manager() -> Manager:
    """
    Return the process-wide Manager, creating it with TLS defaults on first use.
    """
    global _global_manager
    with _global_lock:
        if _global_manager is None:
            _global_manager = Manager(tls_manager_settings())
        return _global_manager


def set_global_manager(manager: Manager) -> None:
    """Replace the process-wide Manager."""
    global _global_manager
    with _global_lock:
        _global_manager = manager


__all__ = [
    "ManagerSettings",
    "Manager",
    "TransportFactory",
    "mk_manager_settings",
    "mk_manager_settings_context",
    "tls_manager_settings",
    "default_retryable_exception",
    "tls_retryable_exception",
    "default_wrap_exception",
    "tls_wrap_exception",
    "get_global_manager",
    "set_global_manager",
]
