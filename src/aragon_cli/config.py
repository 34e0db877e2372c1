"""Configuration for the Aragon CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Every variable is prefixed with `ARAGON_` except `LOG_LEVEL`, which is shared
with the logging setup.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WRAPPER_REPO = "https://github.com/aragon/aragon"
DEFAULT_WRAPPER_COMMIT = "a21100bc14daaea72d79c6eb3ecaaf5877791e09"
DEFAULT_MNEMONIC = "explain tackle mirror kit van hammer degree position ginger unfair soup bonus"


class AragonSettings(BaseSettings):
    """Settings for the Aragon CLI.

    Environment variables:
    - ARAGON_NETWORK_RPC      (optional)
    - ARAGON_ENS_REGISTRY     (optional, required by `apps` for ENS names)
    - ARAGON_IPFS_API         (optional)
    - ARAGON_IPFS_GATEWAY     (optional)
    - ARAGON_HOME             (optional)
    - LOG_LEVEL               (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `AragonSettings(_env_file=path_to_env)`.
    """

    network_rpc: str = Field(
        default="http://localhost:8545",
        validation_alias="ARAGON_NETWORK_RPC",
        description="JSON-RPC endpoint of the Ethereum network to use",
    )
    ens_registry: str | None = Field(
        default=None,
        validation_alias="ARAGON_ENS_REGISTRY",
        description="ENS registry address used to resolve DAO and app names",
    )

    ipfs_api: str = Field(
        default="http://localhost:5001",
        validation_alias="ARAGON_IPFS_API",
        description="Base URL of the IPFS HTTP API",
    )
    ipfs_gateway: str = Field(
        default="http://localhost:8080/ipfs",
        validation_alias="ARAGON_IPFS_GATEWAY",
        description="Base URL of the IPFS gateway handed to the wrapper",
    )

    home: Path = Field(
        default_factory=lambda: Path.home() / ".aragon",
        validation_alias="ARAGON_HOME",
        description="Directory where the wrapper and client downloads are cached",
    )
    wrapper_repo: str = Field(
        default=DEFAULT_WRAPPER_REPO,
        validation_alias="ARAGON_WRAPPER_REPO",
        description="Git repository of the wrapper front-end",
    )
    wrapper_commit: str = Field(
        default=DEFAULT_WRAPPER_COMMIT,
        validation_alias="ARAGON_WRAPPER_COMMIT",
        description="Pinned wrapper commit to check out",
    )
    client_port: int = Field(
        default=3000,
        gt=0,
        lt=65536,
        validation_alias="ARAGON_CLIENT_PORT",
        description="Port the wrapper is served on",
    )

    tx_gas: int = Field(
        default=10_000_000,
        gt=0,
        validation_alias="ARAGON_TX_GAS",
        description="Gas sent with every deployment and transaction",
    )

    devchain_mnemonic: str = Field(
        default=DEFAULT_MNEMONIC,
        validation_alias="ARAGON_DEVCHAIN_MNEMONIC",
        description="Mnemonic used to derive the development chain accounts",
    )
    devchain_network_id: int = Field(
        default=15,
        validation_alias="ARAGON_DEVCHAIN_NETWORK_ID",
        description="Network id of the development chain",
    )
    devchain_gas_limit: int = Field(
        default=50_000_000,
        gt=0,
        validation_alias="ARAGON_DEVCHAIN_GAS_LIMIT",
        description="Block gas limit of the development chain",
    )

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("network_rpc", "ipfs_api", "ipfs_gateway")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("URL must not be empty")
        return value.rstrip("/")

    @property
    def wrapper_path(self) -> Path:
        """Checkout directory of the pinned wrapper commit."""

        return self.home / f"wrapper-{self.wrapper_commit}"

    @property
    def ipfs_log_path(self) -> Path:
        return self.home / "ipfs-daemon.log"

    def client_path(self, version: str) -> Path:
        """Directory holding a prebuilt client of the given version."""

        return self.home / f"client-{version}"
