"""
Connection layer.

This package provides the connection-provider the HTTP engine relies on:
- Direct TCP connections on an httpcore network backend
- TLS connections (stdlib ssl), including in-place upgrades
- SOCKS5-routed connections (socksio)
- TLS tunnels through an HTTP proxy (CONNECT)
- An httpx transport that issues requests over those connections
"""

from .._types import (
    ConfigurationError,
    ConnectionError,
    ConnectionTerminated,
    ProxyError,
    SockSettings,
    TimeoutError,
    TLSHandshakeError,
    TLSSettings,
    TransportConfig,
    TransportError,
    WriteError,
)
from ._errors import map_httpcore_exceptions
from ._provider import ConnectionCheck, ConnectionProvider
from ._socks import socks5_connect
from ._tls import ConnectionContext, create_ssl_context
from ._transport import ProviderBackend, ProviderTransport

__all__ = [
    # Connections
    "ConnectionCheck",
    "ConnectionContext",
    "ConnectionProvider",
    "create_ssl_context",
    "socks5_connect",
    # httpx / httpcore glue
    "ProviderBackend",
    "ProviderTransport",
    "map_httpcore_exceptions",
    # Settings
    "TransportConfig",
    "TLSSettings",
    "SockSettings",
    # Exceptions
    "TransportError",
    "ConnectionError",
    "TLSHandshakeError",
    "ConnectionTerminated",
    "ProxyError",
    "WriteError",
    "TimeoutError",
    "ConfigurationError",
]
