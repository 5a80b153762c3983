# manifest.py
# Package root discovery and the manifest fields used as prompt context.

from pathlib import Path

import yaml
from pydantic import ValidationError

from docagent.models import PackageManifest

MANIFEST_FILE = "manifest.yml"


class ManifestError(Exception):
    """Raised when the package manifest is missing or unreadable."""


def find_package_root(start: Path) -> Path | None:
    """Nearest directory at or above `start` that holds a manifest.yml."""
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / MANIFEST_FILE).is_file():
            return candidate
    return None


def read_manifest(package_root: Path) -> PackageManifest:
    path = Path(package_root) / MANIFEST_FILE
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestError(f"failed to read package manifest: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ManifestError(f"failed to parse package manifest: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"package manifest {path} is not a mapping")

    # YAML turns versions like 1.0 into floats.
    fields = {key: str(value) for key, value in data.items() if isinstance(value, (str, int, float))}
    try:
        return PackageManifest.model_validate(fields)
    except ValidationError as exc:
        raise ManifestError(f"invalid package manifest: {exc}") from exc
