"""
Connection provider: the single place connections are established.

Given a host, port and optional TLS / SOCKS settings it returns a live
``httpcore.NetworkStream``; ``open_via_proxy_tunnel`` performs the HTTP
proxy CONNECT dance before upgrading the tunneled stream to TLS in place.
"""

from __future__ import annotations

from typing import Callable, Optional

import httpcore

from .._types import ConfigurationError, SockSettings, TLSSettings
from .._utils import logger
from ._errors import map_httpcore_exceptions
from ._socks import socks5_connect
from ._tls import ConnectionContext

ConnectionCheck = Callable[[httpcore.NetworkStream], None]


class ConnectionProvider:
    """
    Opens direct, SOCKS-routed, TLS and proxy-tunneled connections.

    Example:
        >>> provider = ConnectionProvider()
        >>> stream = provider.open("example.com", 443, tls=TLSSettings())
        >>> stream.write(b"GET / HTTP/1.1\\r\\nHost: example.com\\r\\n\\r\\n")
        >>> head = stream.read(4096)
        >>> stream.close()
    """

    def __init__(self, context: Optional[ConnectionContext] = None) -> None:
        self.context = context or ConnectionContext.initialize()

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return self.context.config.connect_timeout if timeout is None else timeout

    def open(
        self,
        host: str,
        port: int,
        tls: Optional[TLSSettings] = None,
        socks: Optional[SockSettings] = None,
        timeout: Optional[float] = None,
    ) -> httpcore.NetworkStream:
        """
        Open a connection to ``host:port``.

        Args:
            host: Target host
            port: Target port
            tls: Make the connection secure with these settings
            socks: Route the connection through this SOCKS5 proxy
            timeout: Connect timeout (the context's when None)

        Raises:
            ConnectionError: If the connection cannot be established
            ProxyError: If the SOCKS proxy refuses the connection
            TLSHandshakeError: If the TLS handshake fails
            TimeoutError: If connecting takes longer than ``timeout``
        """
        timeout = self._timeout(timeout)
        via = f" via SOCKS {socks.host}:{socks.port}" if socks else ""
        logger.debug(f"Connecting to {host}:{port}{via}{' (TLS)' if tls else ''}")

        backend = self.context.network_backend
        with map_httpcore_exceptions():
            if socks is None:
                stream = backend.connect_tcp(host, port, timeout=timeout)
            else:
                stream = backend.connect_tcp(socks.host, socks.port, timeout=timeout)

        try:
            if socks is not None:
                socks5_connect(stream, host, port, socks, timeout)
        except BaseException:
            stream.close()
            raise

        if tls is not None:
            stream = self.start_tls(stream, tls, tls.server_name or host, timeout)
        return stream

    def start_tls(
        self,
        stream: httpcore.NetworkStream,
        tls: TLSSettings,
        server_name: str,
        timeout: Optional[float] = None,
    ) -> httpcore.NetworkStream:
        """
        Upgrade ``stream`` to TLS in place and return the secure stream.

        The plain stream is closed if the handshake fails.
        """
        with map_httpcore_exceptions():
            return stream.start_tls(
                self.context.ssl_context(tls),
                server_hostname=server_name,
                timeout=self._timeout(timeout),
            )

    def open_via_proxy_tunnel(
        self,
        connect_bytes: bytes,
        check_connection: ConnectionCheck,
        server_name: str,
        proxy_host: str,
        proxy_port: int,
        tls: TLSSettings,
        socks: Optional[SockSettings] = None,
    ) -> httpcore.NetworkStream:
        """
        Open a TLS connection tunneled through an HTTP proxy.

        Connects to the proxy, writes ``connect_bytes`` (the CONNECT request),
        lets ``check_connection`` validate the proxy's answer, then upgrades
        the same stream to TLS for ``server_name``.

        Raises:
            ConfigurationError: If ``socks`` is given (checked before connecting)
            ConnectionError: If the proxy cannot be reached
            TLSHandshakeError: If the TLS handshake fails
            Exception: Whatever ``check_connection`` raises
        """
        if socks is not None:
            raise ConfigurationError("Cannot use SOCKS and TLS proxying together")

        logger.debug(f"Tunneling to {server_name} via proxy {proxy_host}:{proxy_port}")

        stream = self.open(proxy_host, proxy_port)
        try:
            with map_httpcore_exceptions():
                stream.write(connect_bytes, timeout=self.context.config.read_timeout)
            check_connection(stream)
        except BaseException:
            stream.close()
            raise
        return self.start_tls(stream, tls, tls.server_name or server_name)

    def __repr__(self) -> str:
        return f"<ConnectionProvider({self.context!r})>"
