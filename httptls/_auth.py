from __future__ import annotations

import typing

import httpx

from ._models._auth import (
    DigestAuthError,
    DigestAuthErrorDetails,
    DigestChallenge,
    build_authorization,
    lookup,
    parse_challenge_pairs,
    strip_digest_prefix,
)
from ._models._message import Request, Response
from ._utils import logger


class HttpIssuer(typing.Protocol):
    """Anything able to issue a request and return a body-less Response."""

    def http_no_body(self, request: Request) -> Response: ...


class AsyncHttpIssuer(typing.Protocol):
    async def http_no_body(self, request: Request) -> Response: ...


def _challenge_from(request: Request, response: Response) -> DigestChallenge:
    def fail(details: DigestAuthErrorDetails) -> typing.NoReturn:
        logger.debug(
            f"Digest auth not applied to {request.method} {request.url}: {details.value}"
        )
        raise DigestAuthError(request, response, details)

    if response.status_code != 401:
        fail(DigestAuthErrorDetails.UNEXPECTED_STATUS_CODE)

    header_value = response.headers.get("WWW-Authenticate")
    if header_value is None:
        fail(DigestAuthErrorDetails.MISSING_WWW_AUTHENTICATE_HEADER)

    params = strip_digest_prefix(header_value)
    if params is None:
        fail(DigestAuthErrorDetails.WWW_AUTHENTICATE_IS_NOT_DIGEST)

    pairs = parse_challenge_pairs(params)

    realm = lookup(pairs, "realm")
    if realm is None:
        fail(DigestAuthErrorDetails.MISSING_REALM)

    nonce = lookup(pairs, "nonce")
    if nonce is None:
        fail(DigestAuthErrorDetails.MISSING_NONCE)

    return DigestChallenge(
        realm=realm,
        nonce=nonce,
        qop=lookup(pairs, "qop") is not None,
        opaque=lookup(pairs, "opaque"),
    )


def authorize(
    username: str | bytes,
    password: str | bytes,
    request: Request,
    response: Response,
) -> Request:
    """
    Build the authenticated request from a challenge response.

    This is the pure half of ``apply_digest_auth``: no I/O happens here.

    Raises:
        DigestAuthError: If ``response`` is not a usable Digest challenge
    """
    challenge = _challenge_from(request, response)

    header_value = build_authorization(
        username,
        password,
        challenge,
        request.method,
        request.path,
    )

    headers = httpx.Headers(
        [(b"Authorization", header_value)]
        + [
            (name, value)
            for name, value in request.headers.raw
            if name.lower() != b"authorization"
        ]
    )

    logger.debug(f"Digest credentials applied for realm {challenge.realm!r}")
    return request.replace(headers=headers, cookie_jar=response.cookie_jar)


def apply_digest_auth(
    username: str | bytes,
    password: str | bytes,
    request: Request,
    manager: HttpIssuer,
) -> Request:
    """
    Apply digest authentication to this request.

    The request is sent once, as is, to obtain the server's nonce, so its body
    goes to the server too. If the body can only be read once, replace it
    with a placeholder first.

    Args:
        username: User name (``str`` is encoded as UTF-8)
        password: Password (``str`` is encoded as UTF-8)
        request: The request to authenticate; never modified
        manager: Issuer for the unauthenticated request (``Manager`` or compatible)

    Returns:
        A new request carrying the ``Authorization`` header and the challenge
        response's cookie jar

    Raises:
        DigestAuthError: If the challenge response is not a usable Digest challenge
        Exception: Transport errors from ``manager`` propagate unchanged

    Example:
        >>> manager = get_global_manager()
        >>> req = Request.from_url("http://example.com/dir/index.html")
        >>> req = apply_digest_auth(b"Mufasa", b"Circle Of Life", req, manager)
        >>> response = manager.http_lbs(req)
    """
    response = manager.http_no_body(request)
    return authorize(username, password, request, response)


async def async_apply_digest_auth(
    username: str | bytes,
    password: str | bytes,
    request: Request,
    manager: AsyncHttpIssuer,
) -> Request:
    """Async version of ``apply_digest_auth`` for issuers with a coroutine ``http_no_body``."""
    response = await manager.http_no_body(request)
    return authorize(username, password, request, response)


__all__ = [
    "HttpIssuer",
    "AsyncHttpIssuer",
    "authorize",
    "apply_digest_auth",
    "async_apply_digest_auth",
]
