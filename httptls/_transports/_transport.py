"""
httpx transport over the connection provider.

``ProviderBackend`` lets an httpcore pool obtain its TCP streams from a
``ConnectionProvider`` (so SOCKS routing applies to every connection);
``ProviderTransport`` puts that pool, or an httpcore HTTP proxy pool, behind
the ``httpx.BaseTransport`` interface.
"""

from __future__ import annotations

import time
import typing
from typing import Optional

import httpcore
import httpx

from .._types import ConfigurationError, ProxyConfig, SockSettings, TLSSettings
from ._errors import map_httpcore_exceptions
from ._provider import ConnectionProvider


class ProviderBackend(httpcore.NetworkBackend):
    """httpcore network backend that connects through a ConnectionProvider."""

    def __init__(
        self, provider: ConnectionProvider, socks: Optional[SockSettings] = None
    ) -> None:
        self.provider = provider
        self.socks = socks

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: typing.Optional[typing.Iterable[typing.Any]] = None,
    ) -> httpcore.NetworkStream:
        return self.provider.open(host, port, socks=self.socks, timeout=timeout)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class _ResponseStream(httpx.SyncByteStream):
    def __init__(self, stream: typing.Iterable[bytes]) -> None:
        self._stream = stream

    def __iter__(self) -> typing.Iterator[bytes]:
        with map_httpcore_exceptions():
            for part in self._stream:
                yield part

    def close(self) -> None:
        if hasattr(self._stream, "close"):
            self._stream.close()


class ProviderTransport(httpx.BaseTransport):
    """
    Sends httpx requests over connections opened by a ConnectionProvider.

    Without a proxy, connections go to the request's origin (through
    ``socks`` when set) and secure ones are upgraded with the SSL context
    built for ``tls``. With an HTTP proxy, plain requests are forwarded in
    absolute form and secure ones are tunneled with CONNECT.

    Failures surface as ``TransportError`` subclasses, never as httpcore
    exceptions.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        tls: TLSSettings,
        *,
        socks: Optional[SockSettings] = None,
        proxy: Optional[ProxyConfig] = None,
    ) -> None:
        if proxy is not None and socks is not None:
            raise ConfigurationError("Cannot use SOCKS and HTTP proxying together")

        self.tls = tls
        ssl_context = provider.context.ssl_context(tls)
        backend = ProviderBackend(provider, socks)

        if proxy is None:
            self._pool: httpcore.ConnectionPool = httpcore.ConnectionPool(
                ssl_context=ssl_context, network_backend=backend
            )
        else:
            self._pool = httpcore.HTTPProxy(
                proxy_url=proxy.url, ssl_context=ssl_context, network_backend=backend
            )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        assert isinstance(request.stream, httpx.SyncByteStream)

        extensions = dict(request.extensions)
        if self.tls.server_name:
            extensions.setdefault("sni_hostname", self.tls.server_name)

        req = httpcore.Request(
            method=request.method,
            url=httpcore.URL(
                scheme=request.url.raw_scheme,
                host=request.url.raw_host,
                port=request.url.port,
                target=request.url.raw_path,
            ),
            headers=request.headers.raw,
            content=request.stream,
            extensions=extensions,
        )

        with map_httpcore_exceptions():
            resp = self._pool.handle_request(req)

        assert isinstance(resp.stream, typing.Iterable)

        return httpx.Response(
            status_code=resp.status,
            headers=resp.headers,
            stream=_ResponseStream(resp.stream),
            extensions=resp.extensions,
        )

    def close(self) -> None:
        self._pool.close()
