"""Thin wrapper around web3 for the handful of calls the CLI makes.

Every transaction is sent from the first unlocked account of the node with a
fixed gas allowance and waited on until mined.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ens import ENS
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD

from aragon_cli.errors import AragonCliError
from aragon_cli.ethereum.artifacts import ContractArtifact

logger = logging.getLogger(__name__)

ANY_ENTITY = Web3.to_checksum_address("0x" + "ff" * 20)
ZERO_ADDRESS = "0x" + "00" * 20

DEFAULT_GAS = 10_000_000
RECEIPT_TIMEOUT_SECONDS = 120


def namehash(name: str) -> HexBytes:
    """ENS namehash of `name` (the empty name hashes to 32 zero bytes)."""

    return HexBytes(ENS.namehash(name))


def keccak_text(text: str) -> HexBytes:
    return HexBytes(Web3.keccak(text=text))


class ChainClient:
    """Small wrapper around a `Web3` instance."""

    def __init__(self, web3: Web3, *, gas: int = DEFAULT_GAS) -> None:
        self.web3 = web3
        self.gas = gas
        self._accounts: list[str] | None = None

    @classmethod
    def from_rpc(cls, rpc_url: str, *, gas: int = DEFAULT_GAS) -> ChainClient:
        return cls(Web3(Web3.HTTPProvider(rpc_url)), gas=gas)

    @property
    def endpoint(self) -> str:
        return str(getattr(self.web3.provider, "endpoint_uri", ""))

    def is_listening(self) -> bool:
        return bool(self.web3.is_connected())

    @property
    def accounts(self) -> list[str]:
        if self._accounts is None:
            self._accounts = list(self.web3.eth.accounts)
        return self._accounts

    @property
    def sender(self) -> str:
        accounts = self.accounts
        if not accounts:
            raise AragonCliError(f"The node at {self.endpoint} exposes no unlocked accounts")
        return accounts[0]

    def _tx_params(self) -> dict[str, Any]:
        return {"from": self.sender, "gas": self.gas}

    def contract(self, abi: ContractArtifact | Sequence[dict[str, Any]], address: str) -> Contract:
        if isinstance(abi, ContractArtifact):
            abi = abi.abi
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=list(abi))

    def deploy(self, artifact: ContractArtifact, args: Sequence[Any] = ()) -> str:
        """Deploy `artifact` with constructor `args` and return its address."""

        if not artifact.deployable:
            raise AragonCliError(f"{artifact.contract_name} has no bytecode; is it abstract?")
        factory = self.web3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        tx_hash = factory.constructor(*args).transact(self._tx_params())
        receipt = self.wait(tx_hash)
        address = receipt["contractAddress"]
        if not address:
            raise AragonCliError(f"Deployment of {artifact.contract_name} returned no address")
        logger.info(
            "Contract deployed", extra={"contract": artifact.contract_name, "address": address}
        )
        return str(address)

    def transact(self, fn: Any) -> Any:
        """Send a prepared contract function call and return the mined receipt."""

        tx_hash = fn.transact(self._tx_params())
        return self.wait(tx_hash)

    def wait(self, tx_hash: Any) -> Any:
        receipt = self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS
        )
        if receipt.get("status") == 0:
            raise AragonCliError(f"Transaction {Web3.to_hex(tx_hash)} reverted")
        return receipt

    def event_args(self, contract: Contract, receipt: Any, event: str) -> dict[str, Any]:
        """Return the arguments of the first `event` emitted by `contract` in `receipt`."""

        processed = getattr(contract.events, event)().process_receipt(receipt, errors=DISCARD)
        if not processed:
            raise AragonCliError(f"Expected a {event} event in transaction receipt")
        return dict(processed[0]["args"])

    def set_permissions(
        self, acl: Contract, permissions: Sequence[tuple[str, str, str]]
    ) -> None:
        """Create each `(who, where, role)` permission, managed by `who`."""

        for who, where, role in permissions:
            self.transact(
                acl.functions.createPermission(who, where, keccak_text(role), who)
            )
            logger.info("Permission created", extra={"who": who, "where": where, "role": role})


def ensure_web3(rpc_url: str, *, gas: int = DEFAULT_GAS) -> ChainClient:
    """Connect to `rpc_url` or fail with a hint to start the local environment first."""

    client = ChainClient.from_rpc(rpc_url, gas=gas)
    if not client.is_listening():
        raise AragonCliError("Please execute aragon run before running this")
    return client
