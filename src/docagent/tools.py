# tools.py
# Tool contract, the local package tools, and the registry the agent calls.
#
# Every tool, local or bridged from an external provider, exposes the same
# invoke(arguments) -> ToolResult operation. Ordinary failures (bad
# arguments, sandbox violations, missing files) come back as ToolResult
# errors for the model to read; they are never raised.

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol
from urllib.parse import urlsplit

import httpx

from docagent.document import write_text_atomic
from docagent.models import ToolResult
from docagent.sandbox import AccessMode, Sandbox, SandboxViolation

logger = logging.getLogger(__name__)

URL_PROBE_TIMEOUT = 5.0
URL_PROBE_USER_AGENT = "docagent-url-validator/1.0"
REFERENCES_DIR = Path(__file__).parent / "references"

ToolHandler = Callable[[dict[str, Any]], ToolResult]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ToolConfigurationError(Exception):
    """Raised at startup when the tool set is inconsistent (e.g. duplicate names)."""


# ---------------------------------------------------------------------------
# Tool contract
# ---------------------------------------------------------------------------


def _object_schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties or {}, "required": required or []}


class Tool(ABC):
    """A named, schema-described capability the model can invoke."""

    def __init__(self, name: str, description: str, parameters: dict[str, Any] | None = None) -> None:
        self.name = name
        self.description = description
        self.parameters = parameters or _object_schema()

    @abstractmethod
    def invoke(self, arguments: str) -> ToolResult:
        """Run the tool on a JSON argument string."""

    def definition(self) -> dict[str, Any]:
        """OpenAI function-tool declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def parse_arguments(arguments: str) -> dict[str, Any]:
    """Decode a JSON argument object. Raises ValueError on anything else."""
    if not arguments or not arguments.strip():
        return {}
    decoded = json.loads(arguments, strict=False)
    if not isinstance(decoded, dict):
        raise ValueError("arguments must be a JSON object")
    return decoded


class LocalTool(Tool):
    """A tool implemented in-process by a handler taking the decoded arguments."""

    def __init__(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(name, description, parameters)
        self._handler = handler

    def invoke(self, arguments: str) -> ToolResult:
        try:
            args = parse_arguments(arguments)
        except ValueError as exc:
            return ToolResult.fail(f"failed to parse arguments: {exc}")

        for key in self.parameters.get("required", []):
            if key not in args:
                return ToolResult.fail(f"missing required argument '{key}'")

        return self._handler(args)


class ToolSource(Protocol):
    """Something that contributes tools and owns resources, e.g. a provider session."""

    name: str

    def tools(self) -> list[Tool]: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """
    Name-unique set of tools for one task.

    Provider sessions are handed in explicitly and closed with the registry.
    """

    def __init__(self, tools: Iterable[Tool] = (), sources: Iterable[ToolSource] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        self._sources = list(sources)

        for source in self._sources:
            for tool in source.tools():
                self._register(tool, origin=source.name)
        for tool in tools:
            self._register(tool, origin="local")

    def _register(self, tool: Tool, origin: str) -> None:
        if tool.name in self._tools:
            raise ToolConfigurationError(
                f"Tool name '{tool.name}' from {origin} collides with an already registered tool."
            )
        logger.debug("Registered tool %s (%s)", tool.name, origin)
        self._tools[tool.name] = tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def definitions(self) -> list[dict[str, Any]]:
        return [tool.definition() for tool in self._tools.values()]

    def invoke(self, name: str, arguments: str) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.fail(f"unknown tool: {name}")
        result = tool.invoke(arguments)
        logger.debug("Tool %s -> %s", name, "error" if result.is_error else "ok")
        return result

    def close(self) -> None:
        for source in self._sources:
            source.close()
        self._sources = []

    def __enter__(self) -> "ToolRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Package tools
# ---------------------------------------------------------------------------


def load_reference(name: str) -> str:
    """Bundled reference document (README template or example)."""
    return (REFERENCES_DIR / name).read_text(encoding="utf-8")


def _string_arg(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key, "")
    return value if isinstance(value, str) else None


def _list_directory(sandbox: Sandbox, args: dict[str, Any]) -> ToolResult:
    path = _string_arg(args, "path")
    if path is None:
        return ToolResult.fail("'path' must be a string")
    try:
        directory = sandbox.resolve(path, AccessMode.READ)
    except SandboxViolation as exc:
        return ToolResult.fail(f"access denied: {exc}")

    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as exc:
        return ToolResult.fail(f"failed to read directory: {exc}")

    lines = [f"Contents of {path}:"]
    for entry in entries:
        # Generated artifacts stay invisible to the model.
        if sandbox.is_hidden(os.path.normpath(os.path.join(path, entry.name))):
            continue
        if entry.is_dir():
            lines.append(f"  {entry.name}/ (directory)")
            continue
        try:
            lines.append(f"  {entry.name} (file, {entry.stat().st_size} bytes)")
        except OSError:
            lines.append(f"  {entry.name} (file)")
    return ToolResult.ok("\n".join(lines) + "\n")


def _read_file(sandbox: Sandbox, args: dict[str, Any]) -> ToolResult:
    path = _string_arg(args, "path")
    if not path:
        return ToolResult.fail("no path provided")
    try:
        target = sandbox.resolve(path, AccessMode.READ)
    except SandboxViolation as exc:
        return ToolResult.fail(f"access denied: {exc}")

    try:
        return ToolResult.ok(target.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        return ToolResult.fail(f"failed to read file: {exc}")


def _write_file(sandbox: Sandbox, args: dict[str, Any]) -> ToolResult:
    path = _string_arg(args, "path")
    content = _string_arg(args, "content")
    if not path:
        return ToolResult.fail("no path provided")
    if content is None:
        return ToolResult.fail("'content' must be a string")
    try:
        target = sandbox.resolve(path, AccessMode.WRITE)
    except SandboxViolation as exc:
        return ToolResult.fail(f"access denied: {exc}")

    try:
        write_text_atomic(target, content)
    except OSError as exc:
        return ToolResult.fail(f"failed to write file: {exc}")

    size = len(content.encode("utf-8"))
    logger.info("Wrote %d bytes to %s", size, path)
    return ToolResult.ok(f"Successfully wrote {size} bytes to {path}")


def _probe(client: httpx.Client, url: str) -> httpx.Response:
    response = client.head(url)
    if response.status_code in (405, 501):
        response = client.get(url, headers={"Range": "bytes=0-0"})
    return response


def validate_url(url: Any, client: httpx.Client | None = None) -> dict[str, Any]:
    """
    Check URL syntax, then probe reachability.

    Returns {"valid", "reachable", "status_code", "normalized_url", "issues"}.
    `valid` reflects syntax only; `normalized_url` is the final redirect target
    when the probe got a response.
    """
    text = url.strip() if isinstance(url, str) else ""
    issues: list[str] = []
    report: dict[str, Any] = {"valid": False, "reachable": False, "status_code": None, "normalized_url": "", "issues": issues}

    if not text:
        issues.append("empty URL")
        return report
    if any(ch in text for ch in " \t\r\n"):
        issues.append("URL contains whitespace")
        return report

    try:
        parts = urlsplit(text)
    except ValueError as exc:
        issues.append(f"parse error: {exc}")
        return report

    valid = True
    if parts.scheme not in ("http", "https"):
        valid = False
        if not parts.scheme:
            issues.append("missing scheme (expected http or https)")
        else:
            issues.append("unsupported scheme (only http/https allowed)")
    if not parts.hostname:
        valid = False
        issues.append("missing host")

    report["valid"] = valid
    report["normalized_url"] = parts.geturl()
    if not valid:
        return report

    owned = client is None
    if client is None:
        client = httpx.Client(
            timeout=URL_PROBE_TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": URL_PROBE_USER_AGENT},
        )
    try:
        response = _probe(client, report["normalized_url"])
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
        issues.append(f"network error: {exc}")
        issues.append("unreachable: no response")
        return report
    finally:
        if owned:
            client.close()

    report["status_code"] = response.status_code
    report["normalized_url"] = str(response.url)
    report["reachable"] = 200 <= response.status_code < 400
    if not report["reachable"]:
        issues.append(f"unreachable or unexpected status: {response.status_code}")
    return report


def package_tools(sandbox: Sandbox, http_client: httpx.Client | None = None) -> list[Tool]:
    """The fixed set of local tools for one package root."""
    path_schema = {"type": "string", "description": "Path relative to package root"}
    return [
        LocalTool(
            "list_directory",
            "List files and directories in a given path within the package",
            lambda args: _list_directory(sandbox, args),
            _object_schema(
                {"path": {"type": "string", "description": "Directory path relative to package root (empty string for package root)"}},
                ["path"],
            ),
        ),
        LocalTool(
            "read_file",
            "Read the contents of a file within the package.",
            lambda args: _read_file(sandbox, args),
            _object_schema({"path": path_schema}, ["path"]),
        ),
        LocalTool(
            "write_file",
            f"Write content to a file within the package. This tool can only write in {sandbox.write_dir}/.",
            lambda args: _write_file(sandbox, args),
            _object_schema(
                {"path": path_schema, "content": {"type": "string", "description": "Content to write to the file"}},
                ["path", "content"],
            ),
        ),
        LocalTool(
            "get_readme_template",
            "Get the README.md template that should be used as the structure for generating package "
            "documentation. This template contains the required sections and format.",
            lambda args: ToolResult.ok(load_reference("readme_template.md")),
        ),
        LocalTool(
            "get_example_readme",
            "Get a high-quality example README.md that demonstrates the target quality, level of detail, "
            "and formatting. Use this as a reference for style and content structure.",
            lambda args: ToolResult.ok(load_reference("example_readme.md")),
        ),
        LocalTool(
            "validate_url",
            "Validate a URL (http/https) and check that it is reachable. Returns JSON with validity, "
            "reachability, the final URL after redirects and any issues.",
            lambda args: ToolResult.ok(json.dumps(validate_url(args.get("url"), http_client))),
            _object_schema({"url": {"type": "string", "description": "The URL to validate"}}, ["url"]),
        ),
    ]
