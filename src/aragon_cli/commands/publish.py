"""Publish an app: upload its files to IPFS and register the version on APM.

The registration goes through the package manager contracts:
- a new repo is created with `APMRegistry.newRepoWithVersion` when the app's
  ENS name does not resolve yet
- otherwise the latest version's patch number is bumped on the existing `Repo`
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from aragon_cli.errors import AragonCliError, ManifestError
from aragon_cli.ethereum.artifacts import ContractArtifact, PackageArtifacts
from aragon_cli.ethereum.client import ChainClient
from aragon_cli.ethereum.names import resolve_name
from aragon_cli.manifest import AppManifest
from aragon_cli.services.ipfs import DEFAULT_IGNORE, IpfsClient

logger = logging.getLogger(__name__)

Version = tuple[int, int, int]

INITIAL_VERSION: Version = (1, 0, 0)
APP_ARTIFACT_FILE = "artifact.json"


@dataclass(frozen=True, slots=True)
class PublishResult:
    repo_address: str
    version: Version
    content_uri: str
    created_repo: bool

    @property
    def version_string(self) -> str:
        return ".".join(str(part) for part in self.version)


def parse_version(value: str) -> Version:
    parts = value.strip().split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ManifestError(f"Invalid semantic version: {value!r} (expected MAJOR.MINOR.PATCH)")
    major, minor, patch = (int(p) for p in parts)
    return major, minor, patch


def bump_patch(version: Sequence[int]) -> Version:
    major, minor, patch = (int(v) for v in version)
    return major, minor, patch + 1


def build_app_artifact(
    manifest: AppManifest, artifact: ContractArtifact, version: Version
) -> dict[str, object]:
    """The `artifact.json` published alongside the app's files."""

    return {
        "appName": manifest.app_name,
        "version": ".".join(str(v) for v in version),
        "roles": [role.model_dump() for role in manifest.roles],
        "path": manifest.path,
        "abi": artifact.abi,
    }


def publish_app(
    *,
    client: ChainClient,
    ipfs: IpfsClient,
    artifacts: PackageArtifacts,
    project_root: Path,
    manifest: AppManifest,
    app_artifact: ContractArtifact,
    contract_address: str,
    ens_address: str,
    registry_address: str | None = None,
    ignore: Sequence[str] = DEFAULT_IGNORE,
) -> PublishResult:
    repo_address = resolve_name(client, ens_address, manifest.app_name)

    if repo_address is not None:
        repo = client.contract(artifacts.get("Repo"), repo_address)
        latest, _, _ = repo.functions.getLatest().call()
        version = bump_patch(latest)
    else:
        version = parse_version(manifest.version) if manifest.version else INITIAL_VERSION

    app_json = build_app_artifact(manifest, app_artifact, version)
    cid = ipfs.add_directory(
        project_root,
        ignore=ignore,
        extra_files={APP_ARTIFACT_FILE: json.dumps(app_json, indent=2).encode("utf-8")},
    )
    content_uri = f"ipfs:{cid}"
    content = content_uri.encode("utf-8")

    if repo_address is not None:
        client.transact(repo.functions.newVersion(list(version), contract_address, content))
        created = False
    else:
        registry_address = registry_address or resolve_name(
            client, ens_address, manifest.registry_name
        )
        if registry_address is None:
            raise AragonCliError(f"Could not resolve the APM registry {manifest.registry_name}")
        registry = client.contract(artifacts.get("APMRegistry"), registry_address)
        receipt = client.transact(
            registry.functions.newRepoWithVersion(
                manifest.short_name, client.sender, list(version), contract_address, content
            )
        )
        repo_address = str(client.event_args(registry, receipt, "NewRepo")["repo"])
        created = True

    logger.info(
        "App published",
        extra={
            "app": manifest.app_name,
            "version": ".".join(str(v) for v in version),
            "content": content_uri,
            "repo": repo_address,
        },
    )
    return PublishResult(
        repo_address=repo_address, version=version, content_uri=content_uri, created_repo=created
    )
