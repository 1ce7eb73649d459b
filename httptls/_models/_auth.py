"""
HTTP Digest Authentication models (RFC 2617 subset).

Implements the client side of the digest challenge-response computation:
- Challenge parsing from a ``WWW-Authenticate`` header value
- Response hash computation, with and without ``qop=auth``
- ``Authorization`` header generation

Limitations:
- Only MD5 is supported and the ``algorithm`` directive is never emitted
- Only ``qop=auth``; ``auth-int`` is not supported
- The client nonce and nonce count are fixed (``deadbeef`` / ``00000001``),
  so responses are reproducible but offer no replay protection of their own
"""

from __future__ import annotations

import hashlib
import typing
from dataclasses import dataclass
from enum import Enum

if typing.TYPE_CHECKING:
    from ._message import Request, Response


DIGEST_PREFIX = "Digest "

# Fixed client values; see module docstring
NONCE_COUNT = b"00000001"
CLIENT_NONCE = b"deadbeef"


# ============================================================================
# Errors
# ============================================================================


class DigestAuthErrorDetails(Enum):
    """Reason a digest ``Authorization`` header could not be produced."""

    UNEXPECTED_STATUS_CODE = "unexpected status code"
    MISSING_WWW_AUTHENTICATE_HEADER = "missing WWW-Authenticate header"
    WWW_AUTHENTICATE_IS_NOT_DIGEST = "WWW-Authenticate is not a Digest challenge"
    MISSING_REALM = "missing realm"
    MISSING_NONCE = "missing nonce"


class DigestAuthError(Exception):
    """
    Raised when digest credentials cannot be applied to a request.

    Attributes:
        request: The request that drew the challenge
        response: The response to it
        details: Which check failed

    Example:
        >>> try:
        ...     req = apply_digest_auth(b"alice", b"secret", req, manager)
        ... except DigestAuthError as e:
        ...     if e.details is DigestAuthErrorDetails.UNEXPECTED_STATUS_CODE:
        ...         pass  # the resource is not protected
    """

    def __init__(
        self,
        request: Request,
        response: Response,
        details: DigestAuthErrorDetails,
    ) -> None:
        super().__init__(
            f"{details.value} ({request.method} {request.url} -> {response.status_code})"
        )
        self.request = request
        self.response = response
        self.details = details


# ============================================================================
# Challenge Parsing
# ============================================================================


def strip_digest_prefix(header_value: str) -> str | None:
    """
    Remove a case-insensitive ``Digest `` prefix.

    Returns:
        The remainder, or None if the value is not a Digest challenge
    """
    length = len(DIGEST_PREFIX)
    if header_value[:length].lower() != DIGEST_PREFIX.lower():
        return None
    return header_value[length:]


def parse_challenge_pairs(value: str) -> list[tuple[str, str]]:
    """
    Split challenge parameters into ordered ``(key, value)`` pairs.

    The grammar is deliberately loose: ``key``, ``key=token`` and
    ``key="quoted"`` separated by commas. Quoted values are taken verbatim up
    to the next double quote (no escapes); anything between the closing quote
    and the next comma is skipped. An unterminated quote is read as an
    unquoted value. Spaces around keys and unquoted values are trimmed;
    quoted values keep their inner spaces (``realm=" r "`` gives ``" r "``).
    Parsers that also strip inside the quotes would send ``r`` back; here the
    octets the server quoted are echoed unchanged.

    Example:
        >>> parse_challenge_pairs('realm="a,b", nonce=n, stale')
        [('realm', 'a,b'), ('nonce', 'n'), ('stale', '')]
    """
    pairs: list[tuple[str, str]] = []
    rest = value

    while rest:
        rest = rest.lstrip(" ")
        separator = _find_any(rest, "=,")

        if separator == -1:
            pairs.append((rest.strip(" "), ""))
            break

        key = rest[:separator].strip(" ")
        if rest[separator] == ",":
            pairs.append((key, ""))
            rest = rest[separator + 1 :]
            continue

        raw_value = rest[separator + 1 :]
        closing = raw_value.find('"', 1) if raw_value.startswith('"') else -1

        if closing != -1:
            pairs.append((key, raw_value[1:closing]))
            comma = raw_value.find(",", closing)
            rest = "" if comma == -1 else raw_value[comma + 1 :]
        else:
            comma = raw_value.find(",")
            if comma == -1:
                pairs.append((key, raw_value.strip(" ")))
                rest = ""
            else:
                pairs.append((key, raw_value[:comma].strip(" ")))
                rest = raw_value[comma + 1 :]

    return pairs


def _find_any(value: str, chars: str) -> int:
    for index, char in enumerate(value):
        if char in chars:
            return index
    return -1


def lookup(pairs: list[tuple[str, str]], key: str) -> str | None:
    """Return the first value stored under ``key`` (exact match)."""
    for name, value in pairs:
        if name == key:
            return value
    return None


# ============================================================================
# Digest Computation
# ============================================================================


@dataclass(frozen=True)
class DigestChallenge:
    """
    The parts of a Digest challenge the response depends on.

    Attributes:
        realm: Protection space
        nonce: Server nonce
        qop: True if the challenge carried a ``qop`` directive (any value)
        opaque: Value to echo back unchanged, if present
    """

    realm: str
    nonce: str
    qop: bool = False
    opaque: str | None = None


def _md5_hex(value: bytes) -> bytes:
    return hashlib.md5(value).hexdigest().encode("ascii")


def as_bytes(value: str | bytes) -> bytes:
    """
    Encode a credential or challenge value for hashing.

    ``bytes`` pass through untouched; ``str`` is encoded as UTF-8. This is
    the only place text becomes octets, so the username in the header and
    the one in HA1 always agree.
    """
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_response(
    username: str | bytes,
    password: str | bytes,
    challenge: DigestChallenge,
    method: str,
    path: str,
) -> bytes:
    """
    Compute the lowercase hex ``response`` value.

    ``HA1 = MD5(username:realm:password)``, ``HA2 = MD5(method:path)``; with
    qop the result is ``MD5(HA1:nonce:00000001:deadbeef:auth:HA2)``, without
    it ``MD5(HA1:nonce:HA2)``.
    """
    username = as_bytes(username)
    password = as_bytes(password)
    realm = as_bytes(challenge.realm)
    nonce = as_bytes(challenge.nonce)

    ha1 = _md5_hex(b":".join([username, realm, password]))
    ha2 = _md5_hex(b":".join([as_bytes(method), as_bytes(path)]))

    if challenge.qop:
        return _md5_hex(
            b":".join([ha1, nonce, NONCE_COUNT, CLIENT_NONCE, b"auth", ha2])
        )
    return _md5_hex(b":".join([ha1, nonce, ha2]))


def build_authorization(
    username: str | bytes,
    password: str | bytes,
    challenge: DigestChallenge,
    method: str,
    path: str,
) -> bytes:
    """
    Build the ``Authorization`` header value for a challenge.

    Returns:
        e.g. b'Digest username="u", realm="r", nonce="n", uri="/", response="..."'
    """
    digest = compute_response(username, password, challenge, method, path)

    parts = [
        b'Digest username="' + as_bytes(username) + b'"',
        b'realm="' + as_bytes(challenge.realm) + b'"',
        b'nonce="' + as_bytes(challenge.nonce) + b'"',
        b'uri="' + as_bytes(path) + b'"',
        b'response="' + digest + b'"',
    ]
    if challenge.opaque is not None:
        parts.append(b'opaque="' + as_bytes(challenge.opaque) + b'"')
    if challenge.qop:
        parts.extend(
            [b"qop=auth", b"nc=" + NONCE_COUNT, b'cnonce="' + CLIENT_NONCE + b'"']
        )

    return b", ".join(parts)


# ============================================================================
# Exports
# ============================================================================


__all__ = [
    "DigestAuthError",
    "DigestAuthErrorDetails",
    "DigestChallenge",
    "parse_challenge_pairs",
    "strip_digest_prefix",
    "lookup",
    "compute_response",
    "build_authorization",
    "as_bytes",
]
