"""
Type definitions and aliases for the HTTP engine.

This module centralizes configuration dataclasses, the transport exception
taxonomy and the request-level exceptions raised by the Manager.
"""

from __future__ import annotations

import typing
from dataclasses import dataclass
from typing import Optional

if typing.TYPE_CHECKING:
    from ._models._message import Request, Response


# =============================================================================
# Transport Configuration
# =============================================================================


@dataclass
class TransportConfig:
    """Socket level settings shared by every connection a provider opens."""

    # Timeouts (in seconds)
    connect_timeout: float = 30.0
    read_timeout: Optional[float] = 30.0


@dataclass(frozen=True)
class TLSSettings:
    """
    TLS settings used when a connection is made secure.

    Attributes:
        verify: Verify the server certificate and hostname
        ca_certs: Path to a CA bundle (system store when None)
        certfile: Client certificate chain for mutual TLS
        keyfile: Private key for ``certfile``
        server_name: SNI / hostname override (request host when None)
    """

    verify: bool = True
    ca_certs: Optional[str] = None
    certfile: Optional[str] = None
    keyfile: Optional[str] = None
    server_name: Optional[str] = None


@dataclass(frozen=True)
class SockSettings:
    """SOCKS5 proxy every connection is routed through (names resolve remotely)."""

    host: str
    port: int = 1080
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.username is None) != (self.password is None):
            raise ConfigurationError("SOCKS username and password go together")


@dataclass(frozen=True)
class ProxyConfig:
    """HTTP proxy (plain requests are forwarded, secure ones tunneled)."""

    host: str
    port: int = 8080

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


# =============================================================================
# Transport Exceptions
# =============================================================================


class TransportError(Exception):
    """Base exception for transport errors."""

    pass


class ConnectionError(TransportError):
    """Raised when a connection cannot be established."""

    pass


class TLSHandshakeError(ConnectionError):
    """Raised when the TLS handshake fails."""

    pass


class ConnectionTerminated(TransportError):
    """Raised when the peer tears the connection down mid-exchange."""

    pass


class NoResponseData(ConnectionTerminated):
    """Raised when the peer closes the connection before sending a status line."""

    pass


class WriteError(TransportError):
    """Raised when writing to a connection fails."""

    pass


class TimeoutError(TransportError):
    """Raised when operation times out."""

    pass


class ProxyError(ConnectionError):
    """
    Raised when a proxy refuses or garbles a tunnel request.

    ``status_code`` is set when an HTTP proxy answered CONNECT with a non-2xx
    status.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(Exception):
    """Raised for settings that cannot work together (e.g. SOCKS + HTTP proxy)."""

    pass


def caused_by(exc: BaseException, types: typing.Any) -> bool:
    """True if ``exc``, or any exception it was raised from, is one of ``types``."""
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, types):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


# =============================================================================
# Request-level Exceptions
# =============================================================================


class HttpExceptionContent:
    """Base class for the reason carried by an ``HttpExceptionRequest``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class InternalException(HttpExceptionContent):
    """A lower layer exception the engine wrapped."""

    def __init__(self, exc: BaseException) -> None:
        self.exc = exc

    def __repr__(self) -> str:
        return f"InternalException({self.exc!r})"


class TooManyRedirects(HttpExceptionContent):
    """Redirect budget exhausted; carries the redirect responses seen."""

    def __init__(self, responses: list[Response]) -> None:
        self.responses = responses

    def __repr__(self) -> str:
        return f"TooManyRedirects({len(self.responses)} responses)"


class ProxyConnectException(HttpExceptionContent):
    """The proxy answered the CONNECT request with a non-2xx status."""

    def __init__(self, host: str, port: int, status_code: int) -> None:
        self.host = host
        self.port = port
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ProxyConnectException({self.host!r}, {self.port}, {self.status_code})"


class NoResponseDataReceived(HttpExceptionContent):
    """The peer closed the connection before sending a status line."""

    pass


class HttpException(Exception):
    """Base class for exceptions raised by the Manager."""

    pass


class HttpExceptionRequest(HttpException):
    """An exception tied to the request that was being issued."""

    def __init__(self, request: Request, content: HttpExceptionContent) -> None:
        super().__init__(f"{request.method} {request.url}: {content!r}")
        self.request = request
        self.content = content


# =============================================================================
# Re-exports for convenience
# =============================================================================

__all__ = [
    # Configuration
    "TransportConfig",
    "TLSSettings",
    "SockSettings",
    "ProxyConfig",
    # Transport exceptions
    "TransportError",
    "ConnectionError",
    "TLSHandshakeError",
    "ConnectionTerminated",
    "NoResponseData",
    "WriteError",
    "TimeoutError",
    "ProxyError",
    "ConfigurationError",
    "caused_by",
    # Request-level exceptions
    "HttpException",
    "HttpExceptionRequest",
    "HttpExceptionContent",
    "InternalException",
    "TooManyRedirects",
    "ProxyConnectException",
    "NoResponseDataReceived",
]
