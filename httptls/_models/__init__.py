"""
HTTP Models Package.

This package contains the request/response models and the digest
authentication computation. Headers and cookie jars are httpx's.
"""

from ._auth import (
    DigestAuthError,
    DigestAuthErrorDetails,
    DigestChallenge,
    as_bytes,
    build_authorization,
    compute_response,
    lookup,
    parse_challenge_pairs,
    strip_digest_prefix,
)
from ._message import HeaderTypes, Request, Response

__all__ = [
    # Messages
    "Request",
    "Response",
    "HeaderTypes",
    # Authentication - Digest
    "DigestAuthError",
    "DigestAuthErrorDetails",
    "DigestChallenge",
    "as_bytes",
    "build_authorization",
    "compute_response",
    # Authentication - Parser
    "parse_challenge_pairs",
    "strip_digest_prefix",
    "lookup",
]
