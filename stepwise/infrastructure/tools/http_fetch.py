from typing import Any

import httpx

from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult
from stepwise.domain.value_objects import Capability, ToolCategory

MAX_BODY_CHARS = 50_000


class HttpFetchTool(ToolPort):
    name = "http_fetch"
    description = "Fetch a URL over HTTP(S) and return the response body as text"
    capabilities = frozenset({Capability.NETWORK})
    category = ToolCategory.EXPLORATION
    signature_field = "url"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string"},
                "headers": {"type": "object", "additionalProperties": {"type": "string"}},
            },
            "required": ["url"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        url = str(input["url"])
        if not url.startswith(("http://", "https://")):
            raise ToolExecutionError(self.name, f"Only http(s) URLs are supported: {url}")

        try:
            async with httpx.AsyncClient(
                timeout=context.timeout_s, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(url, headers=input.get("headers") or {})
        except httpx.RequestError as e:
            raise ToolExecutionError(self.name, f"Request failed: {e}") from e

        body = response.text
        if len(body) > MAX_BODY_CHARS:
            body = body[:MAX_BODY_CHARS] + "\n... [truncated]"
        if response.is_error:
            return ToolResult(
                success=False,
                output=body,
                error=f"HTTP {response.status_code}",
                metadata={"status": response.status_code},
            )
        return ToolResult.ok(
            body,
            status=response.status_code,
            content_type=response.headers.get("content-type", ""),
        )
