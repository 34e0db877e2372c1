"""Project descriptors: `arapp.json` and the optional front-end `manifest.json`."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aragon_cli.errors import ManifestError
from aragon_cli.util import PROJECT_MANIFEST

FRONTEND_MANIFEST = "manifest.json"


class Role(BaseModel):
    """A permission the app declares; `id` is hashed into the ACL role."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = Field(default="")
    params: list[str] = Field(default_factory=list)


class AppManifest(BaseModel):
    """The module descriptor of an Aragon app (`arapp.json`)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    app_name: str = Field(alias="appName")
    path: str = Field(description="Solidity source of the app contract")
    version: str | None = Field(default=None)
    roles: list[Role] = Field(default_factory=list)
    environments: dict[str, dict[str, object]] = Field(default_factory=dict)

    @property
    def contract_name(self) -> str:
        """Name of the compiled contract (the source file's stem)."""

        return Path(self.path).stem

    @property
    def short_name(self) -> str:
        """First label of the app's ENS name, e.g. `counter` for counter.aragonpm.eth."""

        return self.app_name.split(".", 1)[0]

    @property
    def registry_name(self) -> str:
        """ENS name of the registry the app is published in."""

        parts = self.app_name.split(".", 1)
        return parts[1] if len(parts) == 2 else "aragonpm.eth"


class FrontendManifest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    start_url: str | None = None


def load_app_manifest(project_root: Path) -> AppManifest:
    path = project_root / PROJECT_MANIFEST
    if not path.is_file():
        raise ManifestError(f"Missing {PROJECT_MANIFEST} in {project_root}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return AppManifest.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ManifestError(f"Invalid {PROJECT_MANIFEST}: {e}") from e


def load_frontend_manifest(project_root: Path) -> FrontendManifest | None:
    """Return the front-end manifest, or None if the project has none."""

    path = project_root / FRONTEND_MANIFEST
    if not path.is_file():
        return None
    try:
        return FrontendManifest.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ManifestError(f"Invalid {FRONTEND_MANIFEST}: {e}") from e
