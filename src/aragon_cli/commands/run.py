"""`aragon run`: deploy a development Aragon environment with the current app.

The command is a fixed list of steps sharing one `RunContext`. Each contract
address is written to the context by the step that deploys it, before any later
step reads it.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from aragon_cli.commands.publish import PublishResult, publish_app
from aragon_cli.config import AragonSettings
from aragon_cli.errors import AragonCliError, IpfsNotInstalled
from aragon_cli.ethereum.artifacts import ContractArtifact, PackageArtifacts, load_artifact
from aragon_cli.ethereum.client import (
    ANY_ENTITY,
    ZERO_ADDRESS,
    ChainClient,
    keccak_text,
    namehash,
)
from aragon_cli.manifest import AppManifest, load_app_manifest, load_frontend_manifest
from aragon_cli.network_config import write_network_config
from aragon_cli.services import wrapper
from aragon_cli.services.devchain import start_devchain
from aragon_cli.services.ipfs import INSTALL_URL, IpfsClient
from aragon_cli.services.truffle import run_truffle
from aragon_cli.util import find_project_root, resolve_package_dir
from aragon_cli.workflow import Step, StepHandle, StepRunner

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8545
DEVELOPMENT_NETWORK = "development"

BASE_CONTRACTS = (
    "APMRegistry",
    "Repo",
    "ENSSubdomainRegistrar",
    "ENSFactory",
    "Kernel",
    "ACL",
)

IPFS_INSTALL_DELAY_SECONDS = 3.0
OPEN_WRAPPER_DELAY_SECONDS = 2.5

NO_ROLES_MESSAGE = (
    "You have no permissions defined in your arapp.json\n"
    "This is required for your app to properly show up."
)


@dataclass(slots=True)
class RunContext:
    """State built up by the `run` steps. Never persisted."""

    project_root: Path
    manifest: AppManifest
    settings: AragonSettings
    port: int
    ipfs: IpfsClient
    artifacts: PackageArtifacts
    client_version: str | None = None

    client: ChainClient | None = None
    accounts: list[str] = field(default_factory=list)
    contracts: dict[str, str] = field(default_factory=dict)
    registry_address: str | None = None
    ens_address: str | None = None
    dao_address: str | None = None
    acl_address: str | None = None
    app_address: str | None = None
    app_artifact: ContractArtifact | None = None
    published: PublishResult | None = None

    wrapper_path: Path | None = None
    wrapper_available: bool = False
    processes: list[subprocess.Popen[bytes] | subprocess.Popen[str]] = field(
        default_factory=list
    )

    def chain(self) -> ChainClient:
        if self.client is None:
            raise AragonCliError("Not connected to an Ethereum network")
        return self.client

    def contract_address(self, name: str) -> str:
        try:
            return self.contracts[name]
        except KeyError:
            raise AragonCliError(f"{name} has not been deployed yet") from None

    def require(self, attribute: str) -> str:
        value = getattr(self, attribute)
        if not value:
            raise AragonCliError(f"{attribute.replace('_', ' ')} is not available yet")
        return str(value)

    @property
    def dao_url(self) -> str:
        return f"http://localhost:{self.settings.client_port}/#/{self.dao_address}"


# Chain and services ---------------------------------------------------------


def compile_contracts(ctx: RunContext, _step: StepHandle) -> None:
    run_truffle(["compile"], cwd=ctx.project_root)


def connect_network(ctx: RunContext, step: StepHandle) -> None:
    client = ChainClient.from_rpc(ctx.settings.network_rpc, gas=ctx.settings.tx_gas)
    if not client.is_listening():
        logger.info(
            "Network not reachable; starting a development chain",
            extra={"rpc": ctx.settings.network_rpc, "port": ctx.port},
        )
        step.title = f"Start a development chain on port {ctx.port}"
        proc, client = start_devchain(port=ctx.port, settings=ctx.settings, cwd=ctx.project_root)
        ctx.processes.append(proc)
    ctx.client = client
    ctx.accounts = client.accounts


def ipfs_running(ctx: RunContext) -> str | None:
    if ctx.ipfs.is_running():
        return "IPFS daemon already running"
    return None


def start_ipfs(ctx: RunContext, _step: StepHandle) -> None:
    if not ctx.ipfs.is_installed():
        wrapper.open_browser_later(INSTALL_URL, IPFS_INSTALL_DELAY_SECONDS)
        raise IpfsNotInstalled(
            "Running your app requires IPFS. Opening install instructions in your browser"
        )
    ctx.processes.append(ctx.ipfs.start_daemon())


# APM and ENS ----------------------------------------------------------------


def _deploy_base_contract(name: str) -> Step:
    def task(ctx: RunContext, step: StepHandle) -> None:
        address = ctx.chain().deploy(ctx.artifacts.get(name))
        ctx.contracts[name] = address
        step.title = f"Deployed {name} to {address}"

    return Step(title=f"Deploy {name}", task=task)


def deploy_base_contracts(_ctx: RunContext, _step: StepHandle) -> list[Step]:
    return [_deploy_base_contract(name) for name in BASE_CONTRACTS]


def deploy_dao_factory(ctx: RunContext, _step: StepHandle) -> None:
    # No EVMScriptRegistryFactory: DAOs are created without EVM scripts.
    ctx.contracts["DAOFactory"] = ctx.chain().deploy(
        ctx.artifacts.get("DAOFactory"),
        [ctx.contract_address("Kernel"), ctx.contract_address("ACL"), ZERO_ADDRESS],
    )


def deploy_apm_registry_factory(ctx: RunContext, _step: StepHandle) -> None:
    ctx.contracts["APMRegistryFactory"] = ctx.chain().deploy(
        ctx.artifacts.get("APMRegistryFactory"),
        [
            ctx.contract_address("DAOFactory"),
            ctx.contract_address("APMRegistry"),
            ctx.contract_address("Repo"),
            ctx.contract_address("ENSSubdomainRegistrar"),
            ZERO_ADDRESS,
            ctx.contract_address("ENSFactory"),
        ],
    )


def create_apm_registry(ctx: RunContext, _step: StepHandle) -> None:
    client = ctx.chain()
    factory = client.contract(
        ctx.artifacts.get("APMRegistryFactory"), ctx.contract_address("APMRegistryFactory")
    )
    receipt = client.transact(
        factory.functions.newAPM(namehash("eth"), keccak_text("aragonpm"), ANY_ENTITY)
    )
    ctx.registry_address = str(client.event_args(factory, receipt, "DeployAPM")["apm"])

    registry = client.contract(ctx.artifacts.get("APMRegistry"), ctx.registry_address)
    registrar_address = registry.functions.registrar().call()
    registrar = client.contract(ctx.artifacts.get("ENSSubdomainRegistrar"), registrar_address)
    ctx.ens_address = str(registrar.functions.ens().call())

    write_network_config(ctx.project_root, DEVELOPMENT_NETWORK, ensAddress=ctx.ens_address)


def deploy_apm_and_ens(_ctx: RunContext, _step: StepHandle) -> list[Step]:
    return [
        Step(title="Deploy base contracts", task=deploy_base_contracts),
        Step(title="Deploy base DAO factory", task=deploy_dao_factory),
        Step(title="Deploy APM registry factory", task=deploy_apm_registry_factory),
        Step(title="Create APM registry", task=create_apm_registry),
    ]


# DAO ------------------------------------------------------------------------


def create_dao(ctx: RunContext, _step: StepHandle) -> None:
    client = ctx.chain()
    factory = client.contract(ctx.artifacts.get("DAOFactory"), ctx.contract_address("DAOFactory"))
    receipt = client.transact(factory.functions.newDAO(client.sender))
    ctx.dao_address = str(client.event_args(factory, receipt, "DeployDAO")["dao"])

    kernel = client.contract(ctx.artifacts.get("Kernel"), ctx.dao_address)
    ctx.acl_address = str(kernel.functions.acl().call())


def set_dao_permissions(ctx: RunContext, _step: StepHandle) -> None:
    client = ctx.chain()
    acl = client.contract(ctx.artifacts.get("ACL"), ctx.require("acl_address"))
    client.set_permissions(acl, [(ANY_ENTITY, ctx.require("dao_address"), "APP_MANAGER_ROLE")])


# App ------------------------------------------------------------------------


def deploy_app_code(ctx: RunContext, _step: StepHandle) -> None:
    artifact = load_artifact(ctx.project_root, ctx.manifest.contract_name)
    ctx.app_artifact = artifact
    ctx.contracts["AppCode"] = ctx.chain().deploy(artifact)


def publish(ctx: RunContext, step: StepHandle) -> None:
    if ctx.app_artifact is None:
        raise AragonCliError("App code has not been deployed yet")
    ctx.published = publish_app(
        client=ctx.chain(),
        ipfs=ctx.ipfs,
        artifacts=ctx.artifacts,
        project_root=ctx.project_root,
        manifest=ctx.manifest,
        app_artifact=ctx.app_artifact,
        contract_address=ctx.contract_address("AppCode"),
        ens_address=ctx.require("ens_address"),
        registry_address=ctx.registry_address,
    )
    step.title = f"Published {ctx.manifest.app_name} v{ctx.published.version_string}"


def deploy_proxy(ctx: RunContext, _step: StepHandle) -> None:
    client = ctx.chain()
    kernel = client.contract(ctx.artifacts.get("Kernel"), ctx.require("dao_address"))
    new_app_instance = kernel.get_function_by_signature("newAppInstance(bytes32,address)")
    receipt = client.transact(
        new_app_instance(namehash(ctx.manifest.app_name), ctx.contract_address("AppCode"))
    )
    ctx.app_address = str(client.event_args(kernel, receipt, "NewAppProxy")["proxy"])


def set_app_permissions(ctx: RunContext, _step: StepHandle) -> None:
    if not ctx.manifest.roles:
        raise AragonCliError(NO_ROLES_MESSAGE)

    client = ctx.chain()
    app_address = ctx.require("app_address")
    acl = client.contract(ctx.artifacts.get("ACL"), ctx.require("acl_address"))
    client.set_permissions(acl, [(ANY_ENTITY, app_address, role.id) for role in ctx.manifest.roles])


def install_app(_ctx: RunContext, _step: StepHandle) -> list[Step]:
    return [
        Step(title="Deploy proxy", task=deploy_proxy),
        Step(title="Set permissions", task=set_app_permissions),
    ]


# Wrapper --------------------------------------------------------------------


def download_wrapper(ctx: RunContext, step: StepHandle) -> None:
    path = ctx.settings.wrapper_path
    ctx.wrapper_path = path
    if path.exists():
        ctx.wrapper_available = True
        step.skip("Wrapper already downloaded")
        return
    wrapper.clone_wrapper(
        repo=ctx.settings.wrapper_repo, commit=ctx.settings.wrapper_commit, dest=path
    )


def install_wrapper(ctx: RunContext, _step: StepHandle) -> None:
    wrapper.install_dependencies(ctx.wrapper_path or ctx.settings.wrapper_path)


def start_wrapper(ctx: RunContext, _step: StepHandle) -> None:
    env = wrapper.wrapper_env(
        settings=ctx.settings, port=ctx.port, ens_address=ctx.require("ens_address")
    )
    ctx.processes.append(
        wrapper.start_wrapper(ctx.wrapper_path or ctx.settings.wrapper_path, env)
    )


def fetch_client(ctx: RunContext, step: StepHandle) -> None:
    dest = ctx.settings.client_path(ctx.require("client_version"))
    ctx.wrapper_path = dest
    if dest.exists():
        step.skip("Client already fetched")
        return

    package_dir = resolve_package_dir(wrapper.PREBUILT_CLIENT_PACKAGE, ctx.project_root)
    source = wrapper.find_prebuilt_client(package_dir) if package_dir else None
    if source is None:
        raise AragonCliError(
            f"No prebuilt client found; install {wrapper.PREBUILT_CLIENT_PACKAGE} in your project"
        )
    wrapper.fetch_client(source=source, dest=dest)


def start_client(ctx: RunContext, _step: StepHandle) -> None:
    build = ctx.settings.client_path(ctx.require("client_version")) / "build"
    ctx.processes.append(wrapper.serve_client(build, ctx.settings.client_port))


def open_wrapper(ctx: RunContext, _step: StepHandle) -> None:
    ctx.require("dao_address")
    wrapper.open_browser_later(ctx.dao_url, OPEN_WRAPPER_DELAY_SECONDS)


def open_dao(ctx: RunContext, _step: StepHandle) -> list[Step]:
    if ctx.client_version is not None:
        launch = [
            Step(title=f"Fetch client {ctx.client_version}", task=fetch_client),
            Step(title="Start client", task=start_client),
        ]
    else:
        launch = [
            Step(title="Download wrapper", task=download_wrapper),
            Step(
                title="Install wrapper dependencies with npm",
                task=install_wrapper,
                enabled=lambda c: not c.wrapper_available,
            ),
            Step(title="Start wrapper", task=start_wrapper),
        ]
    return [*launch, Step(title="Open wrapper", task=open_wrapper)]


def build_run_steps() -> list[Step]:
    return [
        Step(title="Compile contracts", task=compile_contracts),
        Step(title="Connect to the provided Ethereum network", task=connect_network),
        Step(title="Start IPFS", task=start_ipfs, skip=ipfs_running),
        Step(title="Deploy APM and ENS", task=deploy_apm_and_ens),
        Step(title="Create DAO", task=create_dao),
        Step(title="Set DAO permissions", task=set_dao_permissions),
        Step(title="Deploy app code", task=deploy_app_code),
        Step(title="Publish app", task=publish),
        Step(title="Install app", task=install_app),
        Step(title="Open DAO", task=open_dao),
    ]


def format_summary(ctx: RunContext) -> str:
    accounts = "\n".join(f"   Address: {account}" for account in ctx.accounts)
    return (
        "You are now ready to open your app in Aragon.\n"
        "\n"
        "   This is the configuration for your development deployment:\n"
        f"   Ethereum Node: ws://localhost:{ctx.port}\n"
        f"   APM registry: {ctx.registry_address}\n"
        f"   ENS registry: {ctx.ens_address}\n"
        f"   DAO address: {ctx.dao_address}\n"
        "\n"
        "   Here are some accounts you can use.\n"
        "   The first one was used to create everything.\n"
        "\n"
        f"{accounts}\n"
        "\n"
        f"   Open up {ctx.dao_url} to view your DAO!"
    )


def frontend_warning(project_root: Path) -> str | None:
    manifest = load_frontend_manifest(project_root)
    if manifest is None:
        return "No front-end detected (no manifest.json)"
    if not manifest.start_url:
        return "No front-end detected (no start_url defined)"
    return None


def run_command(
    *,
    port: int,
    settings: AragonSettings,
    client_version: str | None = None,
    cwd: Path | None = None,
    out: TextIO | None = None,
) -> RunContext:
    out = out or sys.stdout
    project_root = find_project_root(cwd)
    ctx = RunContext(
        project_root=project_root,
        manifest=load_app_manifest(project_root),
        settings=settings,
        port=port,
        ipfs=IpfsClient(settings.ipfs_api, log_path=settings.ipfs_log_path),
        artifacts=PackageArtifacts(project_root),
        client_version=client_version,
    )
    logger.info("Running app", extra={"project": str(project_root), "port": port})

    StepRunner(out).run(build_run_steps(), ctx)

    print(format_summary(ctx), file=out)
    warning = frontend_warning(project_root)
    if warning:
        print(f"⚠ {warning}", file=out)
    return ctx
