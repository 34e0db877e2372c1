"""Names of well-known Aragon apps, keyed by their app id (ENS namehash)."""

from __future__ import annotations

from aragon_cli.ethereum.client import namehash

KNOWN_APP_NAMES = (
    "voting",
    "token-manager",
    "finance",
    "vault",
    "agent",
    "survey",
    "payroll",
    "kernel",
    "acl",
    "evmreg",
)

APP_IDS: dict[str, str] = {
    namehash(f"{name}.aragonpm.eth").hex().removeprefix("0x"): name for name in KNOWN_APP_NAMES
}


def known_app_name(app_id: bytes | str) -> str | None:
    key = app_id.hex() if isinstance(app_id, bytes) else app_id
    return APP_IDS.get(key.lower().removeprefix("0x"))
