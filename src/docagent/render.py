# render.py
# Preview rendering of the managed README.
#
# The source README may carry template directives that the package build
# expands: {{fields "<data stream>"}} and {{event "<data stream>"}}. This
# module expands them for the human preview only. Nothing here feeds a
# correctness decision.

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterator

import yaml

logger = logging.getLogger(__name__)

_DIRECTIVE = re.compile(r"\{\{\s*(\w+)\s+\"([^\"]+)\"\s*\}\}")
_ANY_DIRECTIVE = re.compile(r"\{\{.*?\}\}", re.DOTALL)


class RenderError(Exception):
    """Raised when a directive cannot be expanded."""


def _flatten(fields: list[Any], prefix: str = "") -> Iterator[dict[str, Any]]:
    for field in fields or []:
        if not isinstance(field, dict) or "name" not in field:
            continue
        name = f"{prefix}{field['name']}"
        if field.get("type") == "group" or "fields" in field:
            yield from _flatten(field.get("fields") or [], f"{name}.")
        else:
            yield {**field, "name": name}


def _escape_cell(value: Any) -> str:
    return str(value or "").replace("|", "\\|").replace("\n", " ")


def _fields_table(root: Path, stream: str) -> str:
    fields_dir = root / "data_stream" / stream / "fields"
    if not fields_dir.is_dir():
        raise RenderError(f"no fields directory for data stream '{stream}'")

    rows: list[dict[str, Any]] = []
    for path in sorted(fields_dir.glob("*.yml")):
        try:
            rows.extend(_flatten(yaml.safe_load(path.read_text(encoding="utf-8")) or []))
        except (OSError, yaml.YAMLError) as exc:
            raise RenderError(f"cannot read {path.name}: {exc}") from exc

    lines = [
        "**Exported fields**",
        "",
        "| Field | Description | Type |",
        "|---|---|---|",
    ]
    for row in sorted(rows, key=lambda r: r["name"]):
        lines.append(f"| {_escape_cell(row['name'])} | {_escape_cell(row.get('description'))} | {_escape_cell(row.get('type'))} |")
    return "\n".join(lines)


def _sample_event(root: Path, stream: str) -> str:
    path = root / "data_stream" / stream / "sample_event.json"
    try:
        event = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise RenderError(f"cannot read sample event for '{stream}': {exc}") from exc
    return "An example event for `{}` looks as following:\n\n```json\n{}\n```".format(
        stream, json.dumps(event, indent=4)
    )


def render_document(content: str, package_root: Path) -> tuple[str | None, bool]:
    """
    Expand build directives in `content`.

    Returns (rendered, True) on success, or (None, False) when the document is
    empty or a directive cannot be rendered.
    """
    if not content.strip():
        return None, False

    root = Path(package_root)

    def expand(match: re.Match) -> str:
        directive, stream = match.group(1), match.group(2)
        if directive == "fields":
            return _fields_table(root, stream)
        if directive == "event":
            return _sample_event(root, stream)
        raise RenderError(f"unknown directive '{directive}'")

    for match in _ANY_DIRECTIVE.finditer(content):
        if not _DIRECTIVE.fullmatch(match.group(0)):
            logger.warning("README could not be rendered: unsupported directive %s", match.group(0))
            return None, False

    try:
        return _DIRECTIVE.sub(expand, content), True
    except RenderError as exc:
        logger.warning("README could not be rendered: %s", exc)
        return None, False
