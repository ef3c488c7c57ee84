"""HTTP client used by HTTP request nodes."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from flowengine.core.config import settings
from flowengine.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class HttpRequestSpec:
    """A fully resolved outbound request."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    authentication: str = "none"
    username: str | None = None
    password: str | None = None
    token: str | None = None
    timeout: float | None = None


@dataclass
class HttpResponseData:
    status_code: int
    headers: dict[str, str]
    body: Any
    url: str
    elapsed_ms: float
    truncated: bool = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HttpRequestClient:
    """Thin async wrapper over ``httpx.AsyncClient`` with request limits.

    The underlying client is created lazily and reused across requests.
    Pass ``transport`` to route requests through a custom transport, for
    example ``httpx.MockTransport`` in tests.
    """

    # Security limits
    MAX_TIMEOUT: float = 300.0  # 5 minutes
    MAX_RESPONSE_SIZE: int = 100 * 1024 * 1024  # 100MB

    SUPPORTED_METHODS = frozenset(
        {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
    )
    SUPPORTED_AUTHENTICATION = frozenset({"none", "basic", "bearer"})

    def __init__(
        self,
        default_timeout: float | None = None,
        max_response_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.default_timeout = default_timeout or settings.HTTP_NODE_TIMEOUT_SECONDS
        self.max_response_size = min(
            max_response_size or settings.HTTP_NODE_MAX_RESPONSE_BYTES,
            self.MAX_RESPONSE_SIZE,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.default_timeout),
                follow_redirects=True,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
                transport=self._transport,
            )
        return self._client

    def validate(self, spec: HttpRequestSpec) -> None:
        """Check a request against the client's limits.

        Raises:
            ValueError: If the URL, method, authentication or timeout is invalid.
        """
        if not spec.url or not isinstance(spec.url, str):
            raise ValueError("HTTP 'url' must be a non-empty string")
        if not spec.url.startswith(("http://", "https://")):
            raise ValueError("HTTP 'url' must use http:// or https:// scheme")
        if spec.method.upper() not in self.SUPPORTED_METHODS:
            raise ValueError(
                f"Unsupported HTTP method: {spec.method}. "
                f"Supported: {', '.join(sorted(self.SUPPORTED_METHODS))}"
            )
        if spec.authentication not in self.SUPPORTED_AUTHENTICATION:
            raise ValueError(f"Unsupported authentication: {spec.authentication}")
        if spec.authentication == "basic" and not spec.username:
            raise ValueError("Basic authentication requires 'username'")
        if spec.authentication == "bearer" and not spec.token:
            raise ValueError("Bearer authentication requires 'token'")
        if spec.timeout is not None and spec.timeout > self.MAX_TIMEOUT:
            raise ValueError(f"Timeout exceeds maximum: {spec.timeout}s > {self.MAX_TIMEOUT}s")

    async def send(self, spec: HttpRequestSpec) -> HttpResponseData:
        """Send ``spec`` and return the decoded response.

        Transport errors (``httpx.HTTPError``) propagate to the caller.
        Non-2xx responses are returned, not raised.
        """
        self.validate(spec)
        method = spec.method.upper()
        headers = dict(spec.headers)

        request_kwargs: dict[str, Any] = {
            "method": method,
            "url": spec.url,
            "headers": headers,
            "params": spec.params or None,
            "timeout": spec.timeout or self.default_timeout,
        }
        if spec.authentication == "basic":
            request_kwargs["auth"] = httpx.BasicAuth(spec.username or "", spec.password or "")
        elif spec.authentication == "bearer":
            headers["Authorization"] = f"Bearer {spec.token}"

        if spec.body is not None and method not in ("GET", "HEAD", "OPTIONS"):
            if isinstance(spec.body, dict | list):
                request_kwargs["json"] = spec.body
            elif isinstance(spec.body, bytes):
                request_kwargs["content"] = spec.body
            else:
                request_kwargs["content"] = str(spec.body).encode("utf-8")

        start = time.perf_counter()
        client = await self._get_client()
        response = await client.request(**request_kwargs)
        elapsed_ms = (time.perf_counter() - start) * 1000

        body, truncated = self._decode_body(response)
        logger.debug(
            f"HTTP {method} {spec.url} -> {response.status_code}",
            extra={
                "context": {
                    "method": method,
                    "status_code": response.status_code,
                    "elapsed_ms": round(elapsed_ms, 2),
                }
            },
        )
        return HttpResponseData(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
            url=str(response.url),
            elapsed_ms=elapsed_ms,
            truncated=truncated,
        )

    def _decode_body(self, response: httpx.Response) -> tuple[Any, bool]:
        """Parse JSON when possible, fall back to text; enforce the size limit."""
        content = response.content
        if len(content) > self.max_response_size:
            text = content[: self.max_response_size].decode(
                response.encoding or "utf-8", errors="replace"
            )
            return text, True

        if not content:
            return None, False
        try:
            return json.loads(content), False
        except ValueError:
            return response.text, False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpRequestClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


__all__ = ["HttpRequestClient", "HttpRequestSpec", "HttpResponseData"]
