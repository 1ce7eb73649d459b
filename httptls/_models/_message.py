"""
HTTP Message models (Request and Response).

Requests are immutable by convention: ``Request.replace()`` returns a new
value with copied headers, so code holding the original never observes a
change. Headers and cookie jars are httpx's own types.
"""

from __future__ import annotations

import typing

import httpx

from .._types import ProxyConfig
from .._utils import DEFAULT_PORTS

HeaderTypes = typing.Union[
    httpx.Headers,
    typing.Mapping[str, str],
    typing.Mapping[bytes, bytes],
    typing.Sequence[typing.Tuple[str, str]],
    typing.Sequence[typing.Tuple[bytes, bytes]],
]


# ============================================================================
# Request Implementation
# ============================================================================


class Request:
    """
    HTTP request description.

    Attributes:
        method: Request method (upper-cased)
        host: Target host name
        port: Target port
        secure: True for https
        path: Request path, without the query string (percent-encoded)
        query: Query string, without the leading '?'
        headers: Request headers
        content: Request body
        cookie_jar: Cookies sent with the request
        proxy: HTTP proxy to go through
        redirect_count: Maximum number of redirects the Manager follows
    """

    __slots__ = (
        "method",
        "host",
        "port",
        "secure",
        "path",
        "query",
        "_headers",
        "_content",
        "cookie_jar",
        "proxy",
        "redirect_count",
    )

    def __init__(
        self,
        method: str = "GET",
        host: str = "localhost",
        *,
        port: int | None = None,
        secure: bool = False,
        path: str = "/",
        query: str = "",
        headers: HeaderTypes | None = None,
        content: str | bytes | None = None,
        cookie_jar: httpx.Cookies | None = None,
        proxy: ProxyConfig | None = None,
        redirect_count: int = 10,
    ) -> None:
        self.method = method.upper()
        self.host = host
        self.secure = secure
        self.port = port if port is not None else (443 if secure else 80)
        self.path = path or "/"
        self.query = query
        self._headers = httpx.Headers(headers)
        if isinstance(content, str):
            self._content = content.encode("utf-8")
        else:
            self._content = content or b""
        self.cookie_jar = cookie_jar
        self.proxy = proxy
        self.redirect_count = redirect_count

    @classmethod
    def from_url(
        cls, url: str | httpx.URL, method: str = "GET", **kwargs: typing.Any
    ) -> Request:
        """
        Build a request from an absolute http/https URL.

        Example:
            >>> req = Request.from_url("https://example.com/dir/index.html?x=1")
            >>> (req.host, req.port, req.path, req.query)
            ('example.com', 443, '/dir/index.html', 'x=1')
        """
        parsed = httpx.URL(url)
        if parsed.scheme not in DEFAULT_PORTS:
            raise ValueError(f"Unsupported URL scheme: {parsed.scheme!r}")
        if not parsed.host:
            raise ValueError(f"URL has no host: {str(url)!r}")
        path, _, query = parsed.raw_path.decode("ascii").partition("?")
        return cls(
            method,
            parsed.host,
            port=parsed.port or DEFAULT_PORTS[parsed.scheme],
            secure=parsed.scheme == "https",
            path=path,
            query=query,
            **kwargs,
        )

    @property
    def headers(self) -> httpx.Headers:
        """Return the request headers."""
        return self._headers

    @property
    def content(self) -> bytes:
        """Return the request body."""
        return self._content

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @property
    def host_header(self) -> str:
        """Value of the Host header (port omitted when it is the default)."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port == DEFAULT_PORTS[self.scheme]:
            return host
        return f"{host}:{self.port}"

    @property
    def target(self) -> str:
        """Origin-form request target (path plus query)."""
        return f"{self.path}?{self.query}" if self.query else self.path

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host_header}{self.target}"

    def replace(self, **changes: typing.Any) -> Request:
        """
        Return a copy of this request with the given fields replaced.

        Headers are always copied, so mutating the new request's headers
        leaves this one untouched.

        Example:
            >>> req = Request("GET", "example.com")
            >>> other = req.replace(method="HEAD")
            >>> (req.method, other.method)
            ('GET', 'HEAD')
        """
        fields = {
            "method": self.method,
            "host": self.host,
            "port": self.port,
            "secure": self.secure,
            "path": self.path,
            "query": self.query,
            "headers": self._headers,
            "content": self._content,
            "cookie_jar": self.cookie_jar,
            "proxy": self.proxy,
            "redirect_count": self.redirect_count,
        }
        unknown = set(changes) - set(fields)
        if unknown:
            raise TypeError(f"Unknown request fields: {sorted(unknown)}")
        fields.update(changes)
        method = fields.pop("method")
        host = fields.pop("host")
        return Request(method, host, **fields)

    def __repr__(self) -> str:
        return f"<Request({self.method!r}, {self.url!r})>"


# ============================================================================
# Response Implementation
# ============================================================================


class Response:
    """
    HTTP response as returned by the Manager.

    ``content`` is empty for responses obtained with ``http_no_body``;
    ``cookie_jar`` is the request's jar updated with the cookies the server
    set along the way.
    """

    __slots__ = (
        "status_code",
        "http_version",
        "reason_phrase",
        "_headers",
        "_content",
        "cookie_jar",
        "request",
    )

    def __init__(
        self,
        status_code: int,
        *,
        reason_phrase: str = "",
        headers: HeaderTypes | None = None,
        content: bytes = b"",
        http_version: str = "HTTP/1.1",
        cookie_jar: httpx.Cookies | None = None,
        request: Request | None = None,
    ) -> None:
        self.status_code = status_code
        self.http_version = http_version
        self.reason_phrase = reason_phrase
        self._headers = httpx.Headers(headers)
        self._content = content
        self.cookie_jar = cookie_jar if cookie_jar is not None else httpx.Cookies()
        self.request = request

    @property
    def headers(self) -> httpx.Headers:
        """Return the response headers."""
        return self._headers

    @property
    def content(self) -> bytes:
        """Return the response body."""
        return self._content

    @property
    def text(self) -> str:
        return self._content.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.reason_phrase}]>"


# ============================================================================
# Exports
# ============================================================================


__all__ = [
    "Request",
    "Response",
]
