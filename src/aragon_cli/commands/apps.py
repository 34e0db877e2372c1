"""`aragon apps <dao>`: list the apps installed in a DAO."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import TextIO

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError

from aragon_cli.commands.known_apps import known_app_name
from aragon_cli.config import AragonSettings
from aragon_cli.console import render_table
from aragon_cli.errors import AragonCliError, DaoNotFound
from aragon_cli.ethereum.abis import KERNEL_ABI, NEW_APP_PROXY_SIGNATURE, REPO_ABI
from aragon_cli.ethereum.client import ChainClient, ensure_web3, keccak_text
from aragon_cli.ethereum.names import resolve_name, resolve_node

logger = logging.getLogger(__name__)

DEFAULT_DAO_DOMAIN = "aragonid.eth"
APP_BASES_NAMESPACE = keccak_text("base")
NO_UI = "(No UI available)"
TABLE_HEADERS = ("App", "Proxy address", "Content")


@dataclass(frozen=True, slots=True)
class AppContent:
    provider: str
    location: str


@dataclass(frozen=True, slots=True)
class InstalledApp:
    app_id: HexBytes
    proxy_address: str
    code_address: str | None
    content: AppContent | None


def normalize_dao_name(dao: str) -> str:
    """Addresses pass through; a bare label is taken as `<label>.aragonid.eth`."""

    if Web3.is_address(dao) or "." in dao:
        return dao
    return f"{dao}.{DEFAULT_DAO_DOMAIN}"


def resolve_dao(client: ChainClient, dao: str, ens_registry: str | None) -> str:
    name = normalize_dao_name(dao)
    if Web3.is_address(name):
        return Web3.to_checksum_address(name)
    if not ens_registry:
        raise DaoNotFound(f"Cannot resolve {name}: set ARAGON_ENS_REGISTRY to an ENS registry")
    address = resolve_name(client, ens_registry, name)
    if address is None:
        raise DaoNotFound(f"{name} does not resolve to a DAO address")
    return address


def parse_content_uri(raw: bytes) -> AppContent | None:
    text = raw.decode("utf-8", errors="replace").strip("\x00").strip()
    if ":" not in text:
        return None
    provider, location = text.split(":", 1)
    return AppContent(provider=provider, location=location)


def _app_code(kernel: Contract, app_id: HexBytes) -> str | None:
    try:
        return str(kernel.functions.getApp(APP_BASES_NAMESPACE, app_id).call())
    except ContractLogicError:
        logger.debug("Kernel has no base for app", extra={"app_id": app_id.hex()})
        return None


def _app_content(
    client: ChainClient, ens_registry: str | None, app_id: HexBytes, code: str | None
) -> AppContent | None:
    if not ens_registry or code is None:
        return None
    repo_address = resolve_node(client, ens_registry, bytes(app_id))
    if repo_address is None:
        return None
    repo = client.contract(REPO_ABI, repo_address)
    try:
        _, _, content_uri = repo.functions.getLatestForContractAddress(code).call()
    except ContractLogicError:
        logger.debug("No published version for app code", extra={"repo": repo_address})
        return None
    return parse_content_uri(content_uri)


def fetch_apps(
    client: ChainClient, dao_address: str, ens_registry: str | None
) -> list[InstalledApp]:
    """Collect every app proxy the DAO's kernel created, in creation order."""

    kernel = client.contract(KERNEL_ABI, dao_address)
    logs = client.web3.eth.get_logs(
        {
            "fromBlock": 0,
            "toBlock": "latest",
            "address": kernel.address,
            "topics": [Web3.to_hex(Web3.keccak(text=NEW_APP_PROXY_SIGNATURE))],
        }
    )

    apps: list[InstalledApp] = []
    seen: set[str] = set()
    for log in logs:
        args = kernel.events.NewAppProxy().process_log(log)["args"]
        proxy = str(args["proxy"])
        if proxy in seen:
            continue
        seen.add(proxy)
        app_id = HexBytes(args["appId"])
        code = _app_code(kernel, app_id)
        apps.append(
            InstalledApp(
                app_id=app_id,
                proxy_address=proxy,
                code_address=code,
                content=_app_content(client, ens_registry, app_id, code),
            )
        )
    return apps


def app_label(app_id: HexBytes) -> str:
    name = known_app_name(bytes(app_id))
    if name is not None:
        return name
    return Web3.to_hex(app_id)[:10] + "..."


def content_label(content: AppContent | None) -> str:
    if content is None:
        return NO_UI
    return f"{content.provider}:{content.location}"[:25] + "..."


def render_apps(apps: list[InstalledApp]) -> str:
    rows = [
        (app_label(app.app_id), app.proxy_address, content_label(app.content)) for app in apps
    ]
    return render_table(TABLE_HEADERS, rows)


def run_apps(dao: str, settings: AragonSettings, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    print(f"Fetching apps for {dao}...", file=out)
    try:
        client = ensure_web3(settings.network_rpc, gas=settings.tx_gas)
        dao_address = resolve_dao(client, dao, settings.ens_registry)
        apps = fetch_apps(client, dao_address, settings.ens_registry)
    except AragonCliError:
        print("Error inspecting DAO apps", file=sys.stderr)
        raise
    except Exception as e:
        print("Error inspecting DAO apps", file=sys.stderr)
        logger.debug("DAO inspection failed", extra={"dao": dao}, exc_info=True)
        raise AragonCliError(str(e)) from e

    print(f"Successfully fetched DAO apps for {dao_address}", file=out)
    print(render_apps(apps), file=out)
    return 0
