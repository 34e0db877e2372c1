"""Test configuration and fixtures."""

import json
from pathlib import Path

import pytest

from aragon_cli.config import AragonSettings
from aragon_cli.manifest import AppManifest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of settings-based tests."""
    for name in (
        "ARAGON_NETWORK_RPC",
        "ARAGON_ENS_REGISTRY",
        "ARAGON_IPFS_API",
        "ARAGON_IPFS_GATEWAY",
        "ARAGON_HOME",
        "ARAGON_CLIENT_PORT",
        "ARAGON_TX_GAS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_manifest_data() -> dict[str, object]:
    """Provide a minimal arapp.json payload."""
    return {
        "appName": "counter.aragonpm.eth",
        "path": "contracts/CounterApp.sol",
        "roles": [
            {"name": "Increment the counter", "id": "INCREMENT_ROLE", "params": []},
            {"name": "Decrement the counter", "id": "DECREMENT_ROLE", "params": []},
        ],
    }


@pytest.fixture
def project_dir(tmp_path: Path, app_manifest_data: dict[str, object]) -> Path:
    """Provide a project directory holding an arapp.json."""
    project = tmp_path / "counter"
    project.mkdir()
    (project / "arapp.json").write_text(json.dumps(app_manifest_data), encoding="utf-8")
    return project


@pytest.fixture
def app_manifest(app_manifest_data: dict[str, object]) -> AppManifest:
    return AppManifest.model_validate(app_manifest_data)


@pytest.fixture
def settings(tmp_path: Path) -> AragonSettings:
    """Provide settings isolated from the real home directory."""
    return AragonSettings(_env_file=None, ARAGON_HOME=str(tmp_path / ".aragon"))
