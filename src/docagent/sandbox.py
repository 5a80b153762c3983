# sandbox.py
# Path resolution and containment for every file the model touches.
#
# Two tiers: the model may read broadly under the package root, but it may
# write only under one allowed directory. Generated artifacts under docs/ are
# hidden from reads so the model never mistakes previous output for source
# material, with the exception of the knowledge base kept there.

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SandboxViolation(Exception):
    """Raised when a path escapes the sandbox or targets an excluded subtree."""


class AccessMode(str, Enum):
    READ = "read"
    WRITE = "write"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _parts(path: str) -> tuple[str, ...]:
    return tuple(p for p in PurePosixPath(path.replace(os.sep, "/")).parts if p not in ("", "."))


def _is_within(parts: tuple[str, ...], prefix: tuple[str, ...]) -> bool:
    return parts[: len(prefix)] == prefix


def _escapes(relative: str) -> bool:
    """True when a relative path climbs out of its base."""
    return relative == os.pardir or relative.startswith(os.pardir + os.sep)


def _resolve(path: str) -> str:
    """
    Resolve symlinks on `path`.

    A target that does not exist yet resolves its existing ancestors and
    cleans the remainder lexically. Any other failure (loops, permissions)
    is a violation.
    """
    try:
        return os.path.realpath(path, strict=True)
    except FileNotFoundError:
        return os.path.realpath(path)
    except (OSError, RuntimeError) as exc:
        raise SandboxViolation(f"failed to resolve path: {exc}") from exc


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sandbox:
    """
    Resolves model-supplied paths against a package root.

    Example:
        sandbox = Sandbox(root=Path("/work/nginx"), write_dir="_dev/build/docs")
        sandbox.resolve("manifest.yml", AccessMode.READ)
        sandbox.resolve("_dev/build/docs/README.md", AccessMode.WRITE)
    """

    root: Path
    write_dir: str
    excluded: tuple[str, ...] = ("docs",)
    readable: tuple[str, ...] = ("docs/knowledge_base",)

    def resolve(self, path: str, mode: AccessMode = AccessMode.READ) -> Path:
        """Return the resolved absolute path for `path`, or raise SandboxViolation."""
        if os.path.isabs(path):
            raise SandboxViolation(f"path '{path}' must be relative to the package root")

        full_path = os.path.join(self.root, path)
        resolved_path = _resolve(full_path)

        try:
            resolved_root = os.path.realpath(self.root, strict=True)
        except (OSError, RuntimeError) as exc:
            raise SandboxViolation(f"failed to resolve package root: {exc}") from exc

        relative = os.path.relpath(resolved_path, resolved_root)
        if _escapes(relative):
            logger.debug("Denied %s access to %r (resolves to %s)", mode.value, path, resolved_path)
            raise SandboxViolation(f"path '{path}' is outside package root")

        if mode is AccessMode.WRITE:
            self._check_writable(path, resolved_path, resolved_root)
        elif self.is_hidden(relative) or self.is_hidden(os.path.normpath(path)):
            raise SandboxViolation(
                f"cannot read generated documentation in '{path}' (use {self.write_dir}/ instead)"
            )

        return Path(resolved_path)

    def _check_writable(self, path: str, resolved_path: str, resolved_root: str) -> None:
        resolved_allowed = _resolve(os.path.join(self.root, self.write_dir))
        if _escapes(os.path.relpath(resolved_allowed, resolved_root)):
            raise SandboxViolation(f"allowed directory '{self.write_dir}' is outside package root")

        relative = os.path.relpath(resolved_path, resolved_allowed)
        if relative == os.curdir or _escapes(relative):
            logger.debug("Denied write to %r (resolves to %s)", path, resolved_path)
            raise SandboxViolation(f"path '{path}' is outside allowed directory ({self.write_dir}/)")

    def is_hidden(self, relative: str) -> bool:
        """
        True when a root-relative path lies in an excluded subtree.

        Whitelisted subpaths stay visible, and so do their ancestors so the
        model can navigate down to them.
        """
        parts = _parts(relative)
        if not any(_is_within(parts, _parts(e)) for e in self.excluded):
            return False
        for allowed in self.readable:
            allowed_parts = _parts(allowed)
            if _is_within(parts, allowed_parts) or _is_within(allowed_parts, parts):
                return False
        return True
