"""Ethereum access: compiled artifacts and a thin web3 wrapper."""

from aragon_cli.ethereum.artifacts import (
    ContractArtifact,
    PackageArtifacts,
    load_artifact,
    load_package_artifact,
)
from aragon_cli.ethereum.client import (
    ANY_ENTITY,
    ZERO_ADDRESS,
    ChainClient,
    ensure_web3,
    keccak_text,
    namehash,
)

__all__ = [
    "ANY_ENTITY",
    "ZERO_ADDRESS",
    "ChainClient",
    "ContractArtifact",
    "PackageArtifacts",
    "ensure_web3",
    "keccak_text",
    "load_artifact",
    "load_package_artifact",
    "namehash",
]
