"""
JSON-RPC 2.0 client for the MCP tool server.

Wraps the initialize handshake, `tools/call` and structured LLM calls
whose JSON output is checked against a schema before it is trusted.
"""
import json
import uuid
import logging

import httpx
import jsonschema
from jsonschema import ValidationError

log = logging.getLogger(__name__)


class MCPClient:
    def __init__(self, base: str, client_name: str = "alumni-agent", timeout: float = 15):
        self.base = base.rstrip("/")
        self.endpoint = f"{self.base}/mcp/v1/jsonrpc"
        self.client_name = client_name
        self.timeout = timeout
        self._initialized = False

    async def _post(self, payload: dict, timeout: float | None = None) -> dict:
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            r = await client.post(self.endpoint, json=payload)
            r.raise_for_status()
            if not r.content:
                return {}
            return r.json()

    async def initialize(self):
        """Run the MCP initialize handshake once per client."""
        if self._initialized:
            return

        log.info("[MCP] Initializing MCP session...")
        response = await self._post({
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": "initialize",
            "params": {
                "protocolVersion": "2024-11-05",
                "capabilities": {"roots": {"listChanged": True}, "sampling": {}},
                "clientInfo": {"name": self.client_name, "version": "1.0.0"},
            },
        })

        if "error" in response:
            error = response["error"]
            if error.get("message") != "Already initialized":
                log.error(f"[MCP] Initialize error: {error}")
                raise RuntimeError(f"MCP initialization failed: {error.get('message')}")
            log.info("[MCP] Session already initialized, continuing...")
        else:
            await self._post({"jsonrpc": "2.0", "method": "notifications/initialized"})

        self._initialized = True
        log.info("[MCP] MCP session initialized successfully")

    async def call(self, tool_name: str, arguments: dict, timeout: float | None = None) -> dict:
        """
        Call an MCP tool via JSON-RPC 2.0

        Args:
            tool_name: Name of the MCP tool
            arguments: Tool arguments
            timeout: Request timeout in seconds

        Returns:
            Parsed JSON of result.content[0].text, or the raw result
        """
        await self.initialize()

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": "tools/call",
            "params": {"name": tool_name, "arguments": arguments},
        }

        log.info(f"[MCP] Calling tool={tool_name}")
        response = await self._post(payload, timeout=timeout)

        if "error" in response:
            error = response["error"]
            log.error(f"[MCP] Tool error: {error.get('message')} (code: {error.get('code')})")
            raise RuntimeError(f"MCP tool '{tool_name}' failed: {error.get('message')}")

        result = response.get("result", {})
        content = result.get("content") if isinstance(result, dict) else None
        if content:
            text = content[0].get("text", "{}")
            try:
                return json.loads(text)
            except (json.JSONDecodeError, TypeError):
                return {"text": text}
        return result

    async def llm_structured(
        self,
        messages: list[dict],
        *,
        schema: dict,
        temperature: float = 0.2,
        max_tokens: int = 200,
        timeout: float | None = None,
    ) -> dict:
        """Call `llm.call` in JSON mode and validate the reply against `schema`."""
        result = await self.call("llm.call", {
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": "json",
        }, timeout=timeout)

        raw = extract_llm_text(result)
        if raw:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise ValueError(f"LLM response is not valid JSON: {raw}") from exc
        elif isinstance(result, dict) and result:
            # tool already returned the decoded JSON object
            parsed = result
        else:
            raise ValueError("LLM returned empty response")
        try:
            jsonschema.validate(parsed, schema)
        except ValidationError as exc:
            raise ValueError(f"LLM response failed schema validation: {exc.message}") from exc
        return parsed


def extract_llm_text(result: dict) -> str:
    if not isinstance(result, dict):
        return ""
    content = result.get("content")
    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text" and item.get("text"):
                return item["text"]
    for key in ("reply", "text", "message"):
        value = result.get(key)
        if isinstance(value, str):
            return value
    return ""
