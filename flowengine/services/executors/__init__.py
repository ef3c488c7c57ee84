"""Outbound clients used by action nodes."""

from flowengine.services.executors.http_client import (
    HttpRequestClient,
    HttpRequestSpec,
    HttpResponseData,
)

__all__ = [
    "HttpRequestClient",
    "HttpRequestSpec",
    "HttpResponseData",
]
