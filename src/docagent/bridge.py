# bridge.py
# Tools contributed by external providers (MCP servers over streamable HTTP).
#
# mcp.json lists providers by name. Each reachable provider gets its own
# ProviderSession, which enumerates the provider's tools and wraps each one
# as a BridgedTool. Sessions live for one task and are closed with the
# ToolRegistry that owns them. One provider failing to connect never hides
# the others or the local tools.

import itertools
import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docagent.models import ToolResult
from docagent.tools import Tool, ToolConfigurationError, parse_arguments

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "docagent", "version": "0.1.0"}
CONNECT_TIMEOUT = 10.0
TOOL_CALL_TIMEOUT = 30.0
SESSION_HEADER = "Mcp-Session-Id"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ProviderError(Exception):
    """Raised when a provider cannot be reached or answers outside the protocol."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """One entry of the "mcpServers" map."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)


class BridgeConfig(BaseModel):
    """Contents of mcp.json."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    initial_prompt_file: str | None = Field(default=None, alias="initialPromptFile")
    revision_prompt_file: str | None = Field(default=None, alias="revisionPromptFile")
    servers: dict[str, ProviderConfig] = Field(default_factory=dict, alias="mcpServers")


def load_bridge_config(path: Path) -> BridgeConfig | None:
    """Parse mcp.json. A missing file is not an error: it yields None."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No provider configuration at %s", path)
        return None

    try:
        return BridgeConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ToolConfigurationError(f"Invalid provider configuration in {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------


def _parse_event_stream(body: str) -> list[dict[str, Any]]:
    """Decode the JSON payload of every SSE event in `body`."""
    messages: list[dict[str, Any]] = []
    data: list[str] = []
    for line in body.splitlines() + [""]:
        if line.startswith("data:"):
            data.append(line[5:].lstrip())
        elif not line and data:
            messages.append(json.loads("\n".join(data)))
            data = []
    return messages


def _error_message(error: Any) -> Any:
    if isinstance(error, dict):
        return error.get("message", error)
    return error


def _content_text(result: dict[str, Any]) -> str:
    """Flatten an MCP tool result's content blocks into text."""
    content = result.get("content") or []
    if not isinstance(content, list):
        raise ValueError("content is not a list")
    parts: list[str] = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
        else:
            parts.append(json.dumps(block))
    if not parts and result.get("structuredContent") is not None:
        parts.append(json.dumps(result["structuredContent"]))
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class ProviderSession:
    """
    A JSON-RPC session with one provider.

    Example:
        session = ProviderSession("search", ProviderConfig(url="http://localhost:8080/mcp"))
        session.connect()
        registry = ToolRegistry(package_tools(sandbox), sources=[session])
    """

    def __init__(
        self,
        name: str,
        config: ProviderConfig,
        client: httpx.Client | None = None,
        call_timeout: float = TOOL_CALL_TIMEOUT,
    ) -> None:
        if not config.url:
            raise ToolConfigurationError(f"Provider '{name}' has no url.")
        self.name = name
        self._url = config.url
        self._client = client or httpx.Client(headers=config.headers, timeout=CONNECT_TIMEOUT)
        self._call_timeout = call_timeout
        self._ids = itertools.count(1)
        self._session_id: str | None = None
        self._tools: list[Tool] = []

    # ------------------------------------------------------------------
    # Low-level exchange
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json, text/event-stream", "MCP-Protocol-Version": PROTOCOL_VERSION}
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    def _post(self, payload: dict[str, Any], timeout: float | None = None) -> httpx.Response:
        # An explicit timeout=None would disable the client default.
        extra = {} if timeout is None else {"timeout": timeout}
        try:
            response = self._client.post(self._url, json=payload, headers=self._headers(), **extra)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Provider '{self.name}' timed out on {payload['method']}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Provider '{self.name}' failed on {payload['method']}: {exc}") from exc
        return response

    def _request(self, method: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> dict[str, Any]:
        """Send a request and return the full JSON-RPC response message."""
        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}
        response = self._post(payload, timeout)

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id

        try:
            if response.headers.get("content-type", "").startswith("text/event-stream"):
                messages = _parse_event_stream(response.text)
            else:
                messages = [response.json()]
        except ValueError as exc:
            raise ProviderError(f"Provider '{self.name}' sent malformed JSON for {method}") from exc

        for message in messages:
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
        raise ProviderError(f"Provider '{self.name}' sent no response to {method}")

    def _result(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        message = self._request(method, params)
        if "error" in message:
            raise ProviderError(f"Provider '{self.name}' rejected {method}: {_error_message(message['error'])}")
        result = message.get("result")
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ProviderError(f"Provider '{self.name}' sent a malformed result for {method}")
        return result

    def _notify(self, method: str) -> None:
        self._post({"jsonrpc": "2.0", "method": method})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Initialize the session and enumerate the provider's tools."""
        logger.info("Connecting to provider %s at %s", self.name, self._url)
        init = self._result(
            "initialize",
            {"protocolVersion": PROTOCOL_VERSION, "capabilities": {}, "clientInfo": CLIENT_INFO},
        )
        self._notify("notifications/initialized")

        capabilities = init.get("capabilities") or {}
        if not isinstance(capabilities, dict):
            raise ProviderError(f"Provider '{self.name}' sent malformed capabilities")
        if capabilities.get("tools") is None:
            logger.info("Provider %s advertises no tools", self.name)
            return

        cursor: str | None = None
        while True:
            listing = self._result("tools/list", {"cursor": cursor} if cursor else {})
            specs = listing.get("tools") or []
            if not isinstance(specs, list):
                raise ProviderError(f"Provider '{self.name}' sent a malformed tool listing")
            for spec in specs:
                if not isinstance(spec, dict) or not spec.get("name"):
                    raise ProviderError(f"Provider '{self.name}' listed a tool without a name")
                self._tools.append(self._wrap(spec))
            cursor = listing.get("nextCursor")
            if cursor is not None and not isinstance(cursor, str):
                raise ProviderError(f"Provider '{self.name}' sent a malformed pagination cursor")
            if not cursor:
                break
        logger.info("Provider %s contributed %d tool(s)", self.name, len(self._tools))

    def _wrap(self, spec: dict[str, Any]) -> "BridgedTool":
        schema = spec.get("inputSchema") or {}
        properties = (schema.get("properties") or {}) if isinstance(schema, dict) else None
        required = (schema.get("required") or []) if isinstance(schema, dict) else None
        if not isinstance(properties, dict) or not isinstance(required, list):
            raise ProviderError(f"Provider '{self.name}' sent a malformed input schema for {spec['name']}")
        parameters = {"type": "object", "properties": properties, "required": required}
        return BridgedTool(self, spec["name"], spec.get("description") or "", parameters)

    def tools(self) -> list[Tool]:
        return list(self._tools)

    def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Forward one call. Protocol-level refusals become tool errors;
        transport failures raise ProviderError.
        """
        message = self._request("tools/call", {"name": name, "arguments": arguments}, timeout=self._call_timeout)
        if "error" in message:
            return ToolResult.fail(f"{name} failed: {_error_message(message['error'])}")

        result = message.get("result") or {}
        if not isinstance(result, dict):
            return ToolResult.fail(f"{name} failed: provider sent a malformed result")
        try:
            text = _content_text(result)
        except ValueError:
            return ToolResult.fail(f"{name} failed: provider sent malformed content")
        if result.get("isError"):
            return ToolResult.fail(text or f"{name} failed")
        return ToolResult.ok(text)

    def close(self) -> None:
        if self._session_id:
            try:
                self._client.delete(self._url, headers=self._headers())
            except httpx.HTTPError:
                logger.debug("Provider %s did not acknowledge session close", self.name)
        self._client.close()


class BridgedTool(Tool):
    """A provider capability exposed under the common Tool contract."""

    def __init__(self, session: ProviderSession, name: str, description: str, parameters: dict[str, Any]) -> None:
        super().__init__(name, description, parameters)
        self._session = session

    def invoke(self, arguments: str) -> ToolResult:
        try:
            args = parse_arguments(arguments)
        except ValueError as exc:
            return ToolResult.fail(f"failed to parse arguments: {exc}")
        return self._session.call_tool(self.name, args)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def connect_providers(config: BridgeConfig | None) -> list[ProviderSession]:
    """Open a session per URL provider, skipping any that fail."""
    sessions: list[ProviderSession] = []
    if config is None:
        return sessions

    for name, server in config.servers.items():
        if not server.url:
            logger.info("Skipping provider %s: only url providers are supported", name)
            continue
        session = ProviderSession(name, server)
        try:
            session.connect()
        except ProviderError as exc:
            logger.warning("Provider %s unavailable: %s", name, exc)
            session.close()
            continue
        sessions.append(session)

    return sessions
