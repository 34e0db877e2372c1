"""Minimal ABIs for contracts the CLI only reads from.

`aragon apps` runs outside of any project, so it cannot rely on the
`@aragon/os` build artifacts being installed.
"""

from __future__ import annotations

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]],
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "constant": True,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


KERNEL_ABI: list[dict[str, Any]] = [
    {
        "type": "event",
        "name": "NewAppProxy",
        "anonymous": False,
        "inputs": [
            {"name": "proxy", "type": "address", "indexed": False},
            {"name": "isUpgradeable", "type": "bool", "indexed": False},
            {"name": "appId", "type": "bytes32", "indexed": False},
        ],
    },
    _fn("getApp", [("namespace", "bytes32"), ("appId", "bytes32")], [("", "address")]),
    _fn("acl", [], [("", "address")]),
]

ENS_REGISTRY_ABI: list[dict[str, Any]] = [
    _fn("resolver", [("node", "bytes32")], [("", "address")]),
    _fn("owner", [("node", "bytes32")], [("", "address")]),
]

RESOLVER_ABI: list[dict[str, Any]] = [
    _fn("addr", [("node", "bytes32")], [("", "address")]),
]

REPO_ABI: list[dict[str, Any]] = [
    _fn(
        "getLatestForContractAddress",
        [("contractAddress", "address")],
        [("semanticVersion", "uint16[3]"), ("contractAddress", "address"), ("contentURI", "bytes")],
    ),
    _fn(
        "getLatest",
        [],
        [("semanticVersion", "uint16[3]"), ("contractAddress", "address"), ("contentURI", "bytes")],
    ),
]

NEW_APP_PROXY_SIGNATURE = "NewAppProxy(address,bool,bytes32)"
