"""HTTP request node.

Performs an outbound HTTP call and exposes ``statusCode``, ``headers``
and ``body`` (JSON decoded when possible) to downstream nodes. Every
response status succeeds, so workflows can branch on ``statusCode``;
``failOnError`` turns responses outside the 2xx range into node failures.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flowengine.models.enums import NodeCategory, ParameterType
from flowengine.schemas.nodes import NodeOperation, NodeParameter, ParameterOption
from flowengine.services.executors.http_client import HttpRequestClient, HttpRequestSpec
from flowengine.services.workflow.nodes.base import BaseNode, NodeContext, NodeExecutionResult

_shared_client: HttpRequestClient | None = None


def get_http_client() -> HttpRequestClient:
    """Get the process-wide HTTP client (creates on first call)."""
    global _shared_client
    if _shared_client is None:
        _shared_client = HttpRequestClient()
    return _shared_client


async def close_http_client() -> None:
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None


def _normalize_pairs(value: Any, parameter: str) -> dict[str, str]:
    """Accept a name to value map or a list of ``{name, value}`` entries."""
    if not value:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, list):
        return {
            str(item["name"]): str(item.get("value", ""))
            for item in value
            if isinstance(item, Mapping) and item.get("name")
        }
    raise ValueError(f"Parameter '{parameter}' must be a map or a list of {{name, value}}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class HttpRequestNode(BaseNode):
    type = "http_request"
    display_name = "HTTP Request"
    category = NodeCategory.ACTION
    description = "Makes an HTTP request and returns the response"
    operations = [
        NodeOperation(
            name="request",
            display_name="Request",
            parameters=[
                NodeParameter(name="url", display_name="URL", required=True),
                NodeParameter(
                    name="method",
                    display_name="Method",
                    type=ParameterType.OPTIONS,
                    required=True,
                    default="GET",
                    options=[
                        ParameterOption(name=m, value=m)
                        for m in ("GET", "POST", "PUT", "PATCH", "DELETE")
                    ],
                ),
                NodeParameter(name="headers", display_name="Headers", type=ParameterType.JSON),
                NodeParameter(name="query", display_name="Query Parameters", type=ParameterType.JSON),
                NodeParameter(name="body", display_name="Body", type=ParameterType.JSON),
                NodeParameter(
                    name="authentication",
                    display_name="Authentication",
                    type=ParameterType.OPTIONS,
                    default="none",
                    options=[
                        ParameterOption(name="None", value="none"),
                        ParameterOption(name="Basic Auth", value="basic"),
                        ParameterOption(name="Bearer Token", value="bearer"),
                    ],
                ),
                NodeParameter(name="username", display_name="Username"),
                NodeParameter(name="password", display_name="Password"),
                NodeParameter(name="token", display_name="Token"),
                NodeParameter(
                    name="timeout",
                    display_name="Timeout (seconds)",
                    type=ParameterType.NUMBER,
                ),
                NodeParameter(
                    name="failOnError",
                    display_name="Fail on Error Status",
                    type=ParameterType.BOOLEAN,
                    default=False,
                    description="Fail the node when the response status is not 2xx",
                ),
            ],
        )
    ]

    def __init__(self, client: HttpRequestClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> HttpRequestClient:
        return self._client or get_http_client()

    async def execute_internal(
        self,
        context: NodeContext,
        parameters: dict[str, Any],
    ) -> NodeExecutionResult:
        timeout = parameters.get("timeout")
        spec = HttpRequestSpec(
            url=str(parameters["url"]),
            method=str(parameters["method"]).upper(),
            headers=_normalize_pairs(parameters.get("headers"), "headers"),
            params=_normalize_pairs(parameters.get("query"), "query"),
            body=parameters.get("body"),
            authentication=str(parameters.get("authentication") or "none"),
            username=parameters.get("username"),
            password=parameters.get("password"),
            token=parameters.get("token"),
            timeout=float(timeout) if timeout not in (None, "") else None,
        )

        response = await self.client.send(spec)
        metadata = {
            "url": response.url,
            "method": spec.method,
            "elapsedMs": round(response.elapsed_ms, 2),
            "truncated": response.truncated,
        }
        if not response.is_success and _as_bool(parameters.get("failOnError")):
            return NodeExecutionResult.error(
                f"HTTP {response.status_code} from {spec.method} {spec.url}",
                metadata={**metadata, "statusCode": response.status_code},
            )

        return NodeExecutionResult.ok(
            {
                "statusCode": response.status_code,
                "headers": response.headers,
                "body": response.body,
            },
            metadata=metadata,
        )
