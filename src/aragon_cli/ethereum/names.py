"""ENS lookups through the registry and resolver contracts."""

from __future__ import annotations

from aragon_cli.ethereum.abis import ENS_REGISTRY_ABI, RESOLVER_ABI
from aragon_cli.ethereum.client import ChainClient, namehash


def _is_zero(address: str | None) -> bool:
    return not address or int(address, 16) == 0


def resolve_node(client: ChainClient, ens_registry: str, node: bytes) -> str | None:
    """Return the address `node` points at, or None when it does not resolve."""

    registry = client.contract(ENS_REGISTRY_ABI, ens_registry)
    resolver_address = registry.functions.resolver(node).call()
    if _is_zero(resolver_address):
        return None
    resolver = client.contract(RESOLVER_ABI, resolver_address)
    address = resolver.functions.addr(node).call()
    if _is_zero(address):
        return None
    return str(address)


def resolve_name(client: ChainClient, ens_registry: str, name: str) -> str | None:
    return resolve_node(client, ens_registry, namehash(name))
