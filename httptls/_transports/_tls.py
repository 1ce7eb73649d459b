"""
TLS configuration for connections.

ConnectionContext builds SSL contexts from TLSSettings once and shares them
between every connection a provider opens, together with the httpcore
network backend those connections are made on.
"""

from __future__ import annotations

import ssl
import threading
from typing import Optional

import httpcore

from .._types import TLSSettings, TransportConfig


def create_ssl_context(settings: TLSSettings) -> ssl.SSLContext:
    """
    Create SSL context with configuration.

    Returns:
        Configured client-side SSL context
    """
    # Create context with secure defaults
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)

    # Configure verification
    if not settings.verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context.verify_mode = ssl.CERT_REQUIRED

    # Load CA certificates if provided
    if settings.ca_certs:
        context.load_verify_locations(cafile=settings.ca_certs)

    # Load client certificate if provided
    if settings.certfile:
        context.load_cert_chain(
            certfile=settings.certfile,
            keyfile=settings.keyfile,
        )

    # Set minimum TLS version (TLS 1.2+)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    return context


class ConnectionContext:
    """
    Shared state for connection setup.

    Creating SSL contexts loads certificate stores, so contexts are built
    once per TLSSettings value and reused.

    Attributes:
        config: Timeouts applied to every connection
        network_backend: Where TCP streams come from (``httpcore.SyncBackend``
            unless given, e.g. ``httpcore.MockBackend`` in tests)
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        network_backend: Optional[httpcore.NetworkBackend] = None,
    ) -> None:
        self.config = config or TransportConfig()
        self.network_backend = network_backend or httpcore.SyncBackend()
        self._ssl_contexts: dict[TLSSettings, ssl.SSLContext] = {}
        self._lock = threading.Lock()

    @classmethod
    def initialize(cls, config: Optional[TransportConfig] = None) -> ConnectionContext:
        """Create a fresh context on the default network backend."""
        return cls(config)

    def ssl_context(self, settings: TLSSettings) -> ssl.SSLContext:
        """Return the (cached) SSL context for ``settings``."""
        with self._lock:
            context = self._ssl_contexts.get(settings)
            if context is None:
                context = create_ssl_context(settings)
                self._ssl_contexts[settings] = context
            return context

    def __repr__(self) -> str:
        return f"<ConnectionContext({len(self._ssl_contexts)} ssl contexts)>"
