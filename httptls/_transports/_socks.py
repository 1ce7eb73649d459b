"""
SOCKS5 CONNECT over an already open stream.

The messages are built and parsed by socksio (the same sans-I/O library
httpx uses for ``socks5://`` proxies); this module only moves the bytes.
"""

from __future__ import annotations

import typing

import httpcore
from socksio import socks5
from socksio.exceptions import ProtocolError

from .._types import ProxyError, SockSettings
from ._errors import map_httpcore_exceptions


def _exchange(
    stream: httpcore.NetworkStream,
    conn: socks5.SOCKS5Connection,
    request: typing.Any,
    timeout: typing.Optional[float],
) -> typing.Any:
    conn.send(request)
    with map_httpcore_exceptions():
        stream.write(conn.data_to_send(), timeout=timeout)
        data = stream.read(max_bytes=4096, timeout=timeout)
    try:
        return conn.receive_data(data)
    except ProtocolError as exc:
        raise ProxyError(f"Malformed SOCKS5 reply: {exc}") from exc


def socks5_connect(
    stream: httpcore.NetworkStream,
    host: str,
    port: int,
    settings: SockSettings,
    timeout: typing.Optional[float] = None,
) -> None:
    """
    Ask the SOCKS5 server at the other end of ``stream`` to connect to
    ``host:port``; on return the stream is a tunnel to the target.

    The host name is sent as is, so the proxy resolves it.

    Raises:
        ProxyError: If the server rejects the method, credentials or command
    """
    conn = socks5.SOCKS5Connection()

    if settings.username is None:
        method = socks5.SOCKS5AuthMethod.NO_AUTH_REQUIRED
    else:
        method = socks5.SOCKS5AuthMethod.USERNAME_PASSWORD

    reply = _exchange(stream, conn, socks5.SOCKS5AuthMethodsRequest([method]), timeout)
    if reply.method != method:
        raise ProxyError(
            f"SOCKS5 proxy {settings.host}:{settings.port} refused {method.name}"
        )

    if method == socks5.SOCKS5AuthMethod.USERNAME_PASSWORD:
        reply = _exchange(
            stream,
            conn,
            socks5.SOCKS5UsernamePasswordRequest(
                settings.username.encode("utf-8"), settings.password.encode("utf-8")
            ),
            timeout,
        )
        if not reply.success:
            raise ProxyError(
                f"SOCKS5 proxy {settings.host}:{settings.port} rejected the credentials"
            )

    reply = _exchange(
        stream,
        conn,
        socks5.SOCKS5CommandRequest.from_address(
            socks5.SOCKS5Command.CONNECT, (host, port)
        ),
        timeout,
    )
    if reply.reply_code != socks5.SOCKS5ReplyCode.SUCCEEDED:
        reason = reply.reply_code.name.lower().replace("_", " ")
        raise ProxyError(
            f"SOCKS5 proxy {settings.host}:{settings.port} "
            f"could not reach {host}:{port}: {reason}"
        )
