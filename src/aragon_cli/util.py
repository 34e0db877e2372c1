"""Filesystem helpers: project discovery and node_modules lookups."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from aragon_cli.errors import ProjectNotFound

logger = logging.getLogger(__name__)

PROJECT_MANIFEST = "arapp.json"


def find_project_root(start: Path | None = None) -> Path:
    """Return the closest directory (from `start` upwards) holding arapp.json."""

    current = (start or Path.cwd()).absolute()
    while True:
        if (current / PROJECT_MANIFEST).is_file():
            return current
        if current.parent == current:
            raise ProjectNotFound(start or Path.cwd())
        current = current.parent


def _next_search_dir(current: Path) -> Path:
    parent = current.parent
    # Scoped packages live one level deeper: node_modules/@scope/pkg
    if parent.name.startswith("@"):
        parent = parent.parent
    return parent


def get_local_binary(name: str, start_dir: Path | str) -> Path | None:
    """Find `node_modules/.bin/<name>` in `start_dir` or one of its parents.

    Returns None once the filesystem root has been checked.
    """

    current = Path(start_dir).absolute()
    while True:
        candidate = current / "node_modules" / ".bin" / name
        if candidate.exists():
            logger.debug("Resolved local binary", extra={"binary": name, "path": str(candidate)})
            return candidate
        parent = _next_search_dir(current)
        if parent == current:
            return None
        current = parent


def resolve_binary(name: str, start_dir: Path | str, *fallbacks: str) -> str | None:
    """Resolve a binary locally first, then on PATH (trying `fallbacks` too)."""

    local = get_local_binary(name, start_dir)
    if local is not None:
        return str(local)
    for candidate in (name, *fallbacks):
        found = shutil.which(candidate)
        if found:
            return found
    return None


def resolve_package_dir(package: str, start_dir: Path | str) -> Path | None:
    """Find the installed directory of an npm `package` from `start_dir` upwards."""

    current = Path(start_dir).absolute()
    while True:
        candidate = current / "node_modules" / package
        if candidate.is_dir():
            return candidate
        parent = _next_search_dir(current)
        if parent == current:
            return None
        current = parent
