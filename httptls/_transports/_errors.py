"""Translation of httpcore failures into the transport exception taxonomy."""

from __future__ import annotations

import contextlib
import ssl
import typing

import httpcore

from .._types import (
    ConnectionError,
    ConnectionTerminated,
    NoResponseData,
    ProxyError,
    TimeoutError,
    TLSHandshakeError,
    WriteError,
    caused_by,
)

# What h11 reports when the peer hangs up before a status line
NO_RESPONSE_MESSAGE = "without sending a response"


def _proxy_status(message: str) -> typing.Optional[int]:
    # httpcore words a refused CONNECT as "<status> <reason>"
    first = message.split(" ", 1)[0]
    return int(first) if first.isdigit() else None


@contextlib.contextmanager
def map_httpcore_exceptions() -> typing.Iterator[None]:
    """
    Re-raise httpcore exceptions as the matching ``TransportError``.

    The httpcore exception stays attached as ``__cause__``.
    """
    try:
        yield
    except httpcore.TimeoutException as exc:
        raise TimeoutError(str(exc) or type(exc).__name__) from exc
    except httpcore.ConnectError as exc:
        if caused_by(exc, ssl.SSLError):
            raise TLSHandshakeError(f"TLS handshake failed: {exc}") from exc
        raise ConnectionError(str(exc)) from exc
    except httpcore.WriteError as exc:
        raise WriteError(str(exc)) from exc
    except httpcore.ReadError as exc:
        raise ConnectionTerminated(str(exc)) from exc
    except httpcore.ProxyError as exc:
        raise ProxyError(str(exc), status_code=_proxy_status(str(exc))) from exc
    except httpcore.RemoteProtocolError as exc:
        if NO_RESPONSE_MESSAGE in str(exc):
            raise NoResponseData(str(exc)) from exc
        raise ConnectionTerminated(str(exc)) from exc
    except (httpcore.ProtocolError, httpcore.NetworkError) as exc:
        raise ConnectionTerminated(str(exc)) from exc
