"""Truffle build artifacts (`build/contracts/<Name>.json`)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aragon_cli.errors import AragonCliError, ArtifactNotFound
from aragon_cli.util import resolve_package_dir

ARAGON_OS_PACKAGE = "@aragon/os"


class ContractArtifact(BaseModel):
    """The parts of a truffle artifact needed to deploy and talk to a contract."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    contract_name: str = Field(alias="contractName")
    abi: list[dict[str, Any]]
    bytecode: str = Field(default="0x")

    @property
    def deployable(self) -> bool:
        return self.bytecode not in ("", "0x")


def artifact_path(package_dir: Path, name: str) -> Path:
    return package_dir / "build" / "contracts" / f"{name}.json"


def load_artifact(package_dir: Path, name: str) -> ContractArtifact:
    path = artifact_path(package_dir, name)
    if not path.is_file():
        raise ArtifactNotFound(path)
    try:
        return ContractArtifact.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise AragonCliError(f"Invalid contract artifact {path}: {e}") from e


def load_package_artifact(package: str, name: str, start_dir: Path) -> ContractArtifact:
    """Load `name` from an npm package installed somewhere above `start_dir`."""

    package_dir = resolve_package_dir(package, start_dir)
    if package_dir is None:
        raise AragonCliError(
            f"Could not find the {package} package; install it with `npm install {package}`"
        )
    return load_artifact(package_dir, name)


class PackageArtifacts:
    """Lazily loads and caches the artifacts of one npm package."""

    def __init__(self, start_dir: Path, package: str = ARAGON_OS_PACKAGE) -> None:
        self._start_dir = start_dir
        self._package = package
        self._cache: dict[str, ContractArtifact] = {}

    def get(self, name: str) -> ContractArtifact:
        if name not in self._cache:
            self._cache[name] = load_package_artifact(self._package, name, self._start_dir)
        return self._cache[name]
