import json

import httpx
import pytest
from unittest.mock import patch

from docagent.bridge import (
    SESSION_HEADER,
    BridgeConfig,
    ProviderConfig,
    ProviderError,
    ProviderSession,
    connect_providers,
    load_bridge_config,
)
from docagent.tools import ToolConfigurationError, ToolRegistry

RealClient = httpx.Client

SEARCH_TOOL = {
    "name": "search_docs",
    "description": "Search vendor documentation",
    "inputSchema": {"type": "object", "properties": {"query": {"type": "string"}}, "required": ["query"]},
}
QUOTA_TOOL = {"name": "quota_tool", "description": "Always fails"}


class FakeProvider:
    """Minimal streamable-HTTP MCP server for MockTransport."""

    def __init__(self, sse=False, auth=None):
        self.sse = sse
        self.auth = auth
        self.methods = []
        self.session_headers = []

    def __call__(self, request):
        if self.auth is not None and request.headers.get("Authorization") != self.auth:
            return httpx.Response(401)
        if request.method == "DELETE":
            self.methods.append("DELETE")
            return httpx.Response(200)

        body = json.loads(request.content)
        self.methods.append(body["method"])
        self.session_headers.append(request.headers.get(SESSION_HEADER))
        if "id" not in body:
            return httpx.Response(202)

        method, params = body["method"], body.get("params") or {}
        headers = {}
        message = {"jsonrpc": "2.0", "id": body["id"]}

        if method == "initialize":
            headers[SESSION_HEADER] = "session-1"
            message["result"] = {"protocolVersion": params["protocolVersion"], "capabilities": {"tools": {}}}
        elif method == "tools/list":
            if params.get("cursor") == "page-2":
                message["result"] = {"tools": [QUOTA_TOOL]}
            else:
                message["result"] = {"tools": [SEARCH_TOOL], "nextCursor": "page-2"}
        elif method == "tools/call" and params["name"] == "search_docs":
            text = f"found: {params['arguments']['query']}"
            message["result"] = {"content": [{"type": "text", "text": text}]}
        elif method == "tools/call" and params["name"] == "quota_tool":
            message["result"] = {"isError": True, "content": [{"type": "text", "text": "quota exceeded"}]}
        else:
            message["error"] = {"code": -32602, "message": f"Unknown tool {params.get('name')}"}

        if self.sse:
            headers["content-type"] = "text/event-stream"
            notice = json.dumps({"jsonrpc": "2.0", "method": "notifications/progress", "params": {}})
            payload = f"event: message\ndata: {notice}\n\nevent: message\ndata: {json.dumps(message)}\n\n"
            return httpx.Response(200, headers=headers, content=payload.encode())
        return httpx.Response(200, headers=headers, json=message)


def _session(handler, name="vendor"):
    client = RealClient(transport=httpx.MockTransport(handler))
    return ProviderSession(name, ProviderConfig(url="http://provider.test/mcp"), client=client)


def _scripted(init, listing=None, call=None):
    """A provider that answers each method with a fixed message body."""
    replies = {"initialize": init, "tools/list": listing, "tools/call": call}

    def handler(request):
        body = json.loads(request.content)
        if "id" not in body:
            return httpx.Response(202)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **replies[body["method"]]})

    return handler


WITH_TOOLS = {"result": {"capabilities": {"tools": {}}}}

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_missing_config_is_not_an_error(tmp_path):
    assert load_bridge_config(tmp_path / "mcp.json") is None

def test_config_aliases(tmp_path):
    path = tmp_path / "mcp.json"
    path.write_text(json.dumps({
        "initialPromptFile": "~/prompts/initial.txt",
        "mcpServers": {
            "vendor": {"url": "http://localhost:9000/mcp", "headers": {"Authorization": "Bearer t"}},
            "local": {"command": "vendor-mcp", "args": ["--stdio"]},
        },
    }))

    config = load_bridge_config(path)

    assert config.initial_prompt_file == "~/prompts/initial.txt"
    assert config.revision_prompt_file is None
    assert config.servers["vendor"].headers == {"Authorization": "Bearer t"}
    assert config.servers["local"].url is None

def test_invalid_config_raises(tmp_path):
    path = tmp_path / "mcp.json"
    path.write_text("{not json")
    with pytest.raises(ToolConfigurationError):
        load_bridge_config(path)

def test_session_requires_url():
    with pytest.raises(ToolConfigurationError):
        ProviderSession("local", ProviderConfig(command="vendor-mcp"))

# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

def test_connect_enumerates_all_pages_and_keeps_session_id():
    provider = FakeProvider()
    session = _session(provider)
    session.connect()

    assert [tool.name for tool in session.tools()] == ["search_docs", "quota_tool"]
    assert provider.methods == ["initialize", "notifications/initialized", "tools/list", "tools/list"]
    assert provider.session_headers == [None, "session-1", "session-1", "session-1"]

def test_bridged_tool_definition_uses_input_schema():
    session = _session(FakeProvider())
    session.connect()

    definition = session.tools()[0].definition()["function"]
    assert definition["description"] == "Search vendor documentation"
    assert definition["parameters"]["required"] == ["query"]

def test_close_ends_the_session():
    provider = FakeProvider()
    session = _session(provider)
    session.connect()
    session.close()
    assert provider.methods[-1] == "DELETE"

def test_connect_rejects_nameless_tool():
    def handler(request):
        body = json.loads(request.content)
        if "id" not in body:
            return httpx.Response(202)
        if body["method"] == "initialize":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"capabilities": {"tools": {}}}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": [{"description": "?"}]}})

    with pytest.raises(ProviderError, match="without a name"):
        _session(handler).connect()

@pytest.mark.parametrize(
    "init, listing, message",
    [
        ({"error": "boom"}, None, "rejected initialize: boom"),
        ({"error": None}, None, "rejected initialize: None"),
        ({"result": ["not", "an", "object"]}, None, "malformed result for initialize"),
        ({"result": {"capabilities": "tools"}}, None, "malformed capabilities"),
        (WITH_TOOLS, {"result": {"tools": "search_docs"}}, "malformed tool listing"),
        (WITH_TOOLS, {"result": {"tools": [SEARCH_TOOL], "nextCursor": 2}}, "malformed pagination cursor"),
        (WITH_TOOLS, {"result": {"tools": [{"name": "t", "inputSchema": "object"}]}}, "malformed input schema for t"),
        (WITH_TOOLS, {"result": {"tools": [{"name": "t", "inputSchema": {"properties": ["query"]}}]}}, "malformed input schema for t"),
    ],
)
def test_connect_rejects_malformed_replies(init, listing, message):
    with pytest.raises(ProviderError, match=message):
        _session(_scripted(init, listing)).connect()

# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("sse", [False, True])
def test_bridged_call_returns_text(sse):
    session = _session(FakeProvider(sse=sse))
    session.connect()
    registry = ToolRegistry(sources=[session])

    result = registry.invoke("search_docs", json.dumps({"query": "nginx stub_status"}))

    assert result.content == "found: nginx stub_status"

def test_provider_reported_error_is_a_tool_error():
    session = _session(FakeProvider())
    session.connect()

    result = ToolRegistry(sources=[session]).invoke("quota_tool", "{}")

    assert result.error == "quota exceeded"

def test_json_rpc_error_is_a_tool_error():
    session = _session(FakeProvider())
    session.connect()

    result = session.call_tool("vanished", {})

    assert result.is_error
    assert "Unknown tool vanished" in result.error

@pytest.mark.parametrize(
    "call, error",
    [
        ({"error": "boom"}, "search_docs failed: boom"),
        ({"result": "done"}, "search_docs failed: provider sent a malformed result"),
        ({"result": {"content": "done"}}, "search_docs failed: provider sent malformed content"),
    ],
)
def test_malformed_call_reply_is_a_tool_error(call, error):
    session = _session(_scripted(WITH_TOOLS, {"result": {"tools": [SEARCH_TOOL]}}, call))
    session.connect()

    result = session.tools()[0].invoke(json.dumps({"query": "x"}))

    assert result.error == error

def test_malformed_arguments_never_reach_the_provider():
    provider = FakeProvider()
    session = _session(provider)
    session.connect()
    calls_before = len(provider.methods)

    result = session.tools()[0].invoke("{oops")

    assert result.error.startswith("failed to parse arguments:")
    assert len(provider.methods) == calls_before

def test_transport_failure_raises_provider_error():
    provider = FakeProvider()

    def handler(request):
        if b"tools/call" in request.content:
            return httpx.Response(500)
        return provider(request)

    session = _session(handler)
    session.connect()

    with pytest.raises(ProviderError, match="tools/call"):
        session.tools()[0].invoke(json.dumps({"query": "x"}))

def test_call_timeout_raises_provider_error():
    provider = FakeProvider()

    def handler(request):
        if b"tools/call" in request.content:
            raise httpx.ReadTimeout("slow provider", request=request)
        return provider(request)

    session = _session(handler)
    session.connect()

    with pytest.raises(ProviderError, match="timed out"):
        session.call_tool("search_docs", {"query": "x"})

# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def test_connect_providers_isolates_failures():
    good = FakeProvider(auth="Bearer t")

    def router(request):
        if request.url.host == "broken.test":
            return httpx.Response(503)
        return good(request)

    config = BridgeConfig.model_validate({
        "mcpServers": {
            "broken": {"url": "http://broken.test/mcp"},
            "vendor": {"url": "http://vendor.test/mcp", "headers": {"Authorization": "Bearer t"}},
            "local": {"command": "vendor-mcp"},
        }
    })

    with patch("docagent.bridge.httpx.Client", side_effect=lambda **kwargs: RealClient(transport=httpx.MockTransport(router), **kwargs)):
        sessions = connect_providers(config)

    assert [session.name for session in sessions] == ["vendor"]
    assert [tool.name for tool in sessions[0].tools()] == ["search_docs", "quota_tool"]

def test_connect_providers_without_config():
    assert connect_providers(None) == []

def test_connect_providers_isolates_malformed_provider():
    good = FakeProvider()
    malformed = _scripted({"error": "boom"})

    def router(request):
        if request.url.host == "malformed.test":
            return malformed(request)
        return good(request)

    config = BridgeConfig.model_validate({
        "mcpServers": {
            "malformed": {"url": "http://malformed.test/mcp"},
            "vendor": {"url": "http://vendor.test/mcp"},
        }
    })

    with patch("docagent.bridge.httpx.Client", side_effect=lambda **kwargs: RealClient(transport=httpx.MockTransport(router), **kwargs)):
        sessions = connect_providers(config)

    assert [session.name for session in sessions] == ["vendor"]
