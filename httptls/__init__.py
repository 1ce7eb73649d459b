"""httptls - HTTP Digest authentication and a TLS/SOCKS aware HTTP engine."""

from __future__ import annotations

# Digest authentication
from ._auth import (
    AsyncHttpIssuer,
    HttpIssuer,
    apply_digest_auth,
    async_apply_digest_auth,
    authorize,
)

# HTTP engine
from ._manager import (
    Manager,
    ManagerSettings,
    TransportFactory,
    default_retryable_exception,
    default_wrap_exception,
    get_global_manager,
    mk_manager_settings,
    mk_manager_settings_context,
    set_global_manager,
    tls_manager_settings,
    tls_retryable_exception,
    tls_wrap_exception,
)

# Message models
from ._models import (
    DigestAuthError,
    DigestAuthErrorDetails,
    DigestChallenge,
    HeaderTypes,
    Request,
    Response,
)

# Transport layer
from ._transports import (
    ConnectionCheck,
    ConnectionContext,
    ConnectionProvider,
    ProviderBackend,
    ProviderTransport,
)

# Types
from ._types import (
    ConfigurationError,
    ConnectionError,
    ConnectionTerminated,
    HttpException,
    HttpExceptionContent,
    HttpExceptionRequest,
    InternalException,
    NoResponseData,
    NoResponseDataReceived,
    ProxyConfig,
    ProxyConnectException,
    ProxyError,
    SockSettings,
    TimeoutError,
    TLSHandshakeError,
    TLSSettings,
    TooManyRedirects,
    TransportConfig,
    TransportError,
    WriteError,
)

# Utilities
from ._utils import console, logger

__version__ = "0.1.0"

__all__ = [
    # Digest authentication - Main API
    "apply_digest_auth",
    "async_apply_digest_auth",
    "authorize",
    "HttpIssuer",
    "AsyncHttpIssuer",
    "DigestAuthError",
    "DigestAuthErrorDetails",
    "DigestChallenge",
    # Manager
    "Manager",
    "ManagerSettings",
    "TransportFactory",
    "mk_manager_settings",
    "mk_manager_settings_context",
    "tls_manager_settings",
    "get_global_manager",
    "set_global_manager",
    # Exception policy
    "default_retryable_exception",
    "default_wrap_exception",
    "tls_retryable_exception",
    "tls_wrap_exception",
    # Models
    "Request",
    "Response",
    "HeaderTypes",
    # Transport
    "ConnectionCheck",
    "ConnectionContext",
    "ConnectionProvider",
    "ProviderBackend",
    "ProviderTransport",
    # Settings
    "TransportConfig",
    "TLSSettings",
    "SockSettings",
    "ProxyConfig",
    # Exceptions
    "TransportError",
    "ConnectionError",
    "TLSHandshakeError",
    "ConnectionTerminated",
    "NoResponseData",
    "ProxyError",
    "WriteError",
    "TimeoutError",
    "ConfigurationError",
    "HttpException",
    "HttpExceptionRequest",
    "HttpExceptionContent",
    "InternalException",
    "TooManyRedirects",
    "ProxyConnectException",
    "NoResponseDataReceived",
    # Utilities
    "console",
    "logger",
    "__version__",
]
