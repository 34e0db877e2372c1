"""Unit tests for the `run` command steps (mocked chain, IPFS and subprocesses)."""

from __future__ import annotations

import io
import itertools
import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from aragon_cli.commands import run as run_module
from aragon_cli.commands.run import (
    NO_ROLES_MESSAGE,
    RunContext,
    build_run_steps,
    connect_network,
    create_apm_registry,
    create_dao,
    deploy_apm_and_ens,
    deploy_app_code,
    deploy_dao_factory,
    deploy_proxy,
    fetch_client,
    format_summary,
    frontend_warning,
    ipfs_running,
    open_dao,
    set_app_permissions,
    set_dao_permissions,
    start_client,
    start_ipfs,
)
from aragon_cli.config import AragonSettings
from aragon_cli.errors import AragonCliError, IpfsNotInstalled
from aragon_cli.ethereum.artifacts import PackageArtifacts
from aragon_cli.ethereum.client import ANY_ENTITY, ZERO_ADDRESS, ChainClient, namehash
from aragon_cli.manifest import AppManifest
from aragon_cli.network_config import load_network_config
from aragon_cli.services import wrapper as wrapper_module
from aragon_cli.services.ipfs import INSTALL_URL, IpfsClient
from aragon_cli.workflow import Step, StepHandle, StepRunner, StepStatus


@pytest.fixture
def ctx(project_dir: Path, app_manifest: AppManifest, settings: AragonSettings) -> RunContext:
    return RunContext(
        project_root=project_dir,
        manifest=app_manifest,
        settings=settings,
        port=8545,
        ipfs=Mock(spec=IpfsClient),
        artifacts=Mock(spec=PackageArtifacts),
    )


def test_run_steps_follow_the_deployment_order() -> None:
    assert [step.title for step in build_run_steps()] == [
        "Compile contracts",
        "Connect to the provided Ethereum network",
        "Start IPFS",
        "Deploy APM and ENS",
        "Create DAO",
        "Set DAO permissions",
        "Deploy app code",
        "Publish app",
        "Install app",
        "Open DAO",
    ]


def test_connect_network_uses_primary_endpoint(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    primary = Mock(spec=ChainClient)
    primary.is_listening.return_value = True
    primary.accounts = ["0xA", "0xB"]
    chain_client_cls = Mock()
    chain_client_cls.from_rpc.return_value = primary
    monkeypatch.setattr(run_module, "ChainClient", chain_client_cls)
    start_devchain = Mock()
    monkeypatch.setattr(run_module, "start_devchain", start_devchain)

    connect_network(ctx, StepHandle("Connect"))

    chain_client_cls.from_rpc.assert_called_once_with("http://localhost:8545", gas=10_000_000)
    start_devchain.assert_not_called()
    assert ctx.client is primary
    assert ctx.accounts == ["0xA", "0xB"]


def test_connect_network_falls_back_to_devchain(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    primary = Mock(spec=ChainClient)
    primary.is_listening.return_value = False
    devchain_client = Mock(spec=ChainClient)
    devchain_client.accounts = ["0xDev"]
    proc = Mock()
    chain_client_cls = Mock()
    chain_client_cls.from_rpc.return_value = primary
    monkeypatch.setattr(run_module, "ChainClient", chain_client_cls)
    monkeypatch.setattr(
        run_module, "start_devchain", Mock(return_value=(proc, devchain_client))
    )
    step = StepHandle("Connect")

    connect_network(ctx, step)

    assert ctx.client is devchain_client
    assert ctx.accounts == ["0xDev"]
    assert ctx.processes == [proc]
    assert step.title == "Start a development chain on port 8545"


def test_ipfs_skip_reason(ctx: RunContext) -> None:
    ctx.ipfs.is_running.return_value = True
    assert ipfs_running(ctx) == "IPFS daemon already running"

    ctx.ipfs.is_running.return_value = False
    assert ipfs_running(ctx) is None


def test_start_ipfs_without_binary_opens_install_page(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx.ipfs.is_installed.return_value = False
    opened = Mock()
    monkeypatch.setattr(wrapper_module, "open_browser_later", opened)

    with pytest.raises(IpfsNotInstalled, match="requires IPFS"):
        start_ipfs(ctx, StepHandle("Start IPFS"))

    opened.assert_called_once_with(INSTALL_URL, 3.0)
    ctx.ipfs.start_daemon.assert_not_called()


def test_deploy_apm_and_ens_wires_addresses(ctx: RunContext) -> None:
    counter = itertools.count(1)
    client = Mock(spec=ChainClient)
    client.deploy.side_effect = lambda artifact, args=(): f"0x{next(counter):040x}"
    contract = Mock()
    contract.functions.registrar.return_value.call.return_value = "0xRegistrar"
    contract.functions.ens.return_value.call.return_value = "0xEns"
    client.contract.return_value = contract
    client.event_args.return_value = {"apm": "0xApm"}
    ctx.client = client

    StepRunner(io.StringIO()).run(
        [Step(title="Deploy APM and ENS", task=deploy_apm_and_ens)], ctx
    )

    assert list(ctx.contracts) == [
        "APMRegistry",
        "Repo",
        "ENSSubdomainRegistrar",
        "ENSFactory",
        "Kernel",
        "ACL",
        "DAOFactory",
        "APMRegistryFactory",
    ]
    dao_factory_args = client.deploy.call_args_list[6].args[1]
    assert dao_factory_args == [ctx.contracts["Kernel"], ctx.contracts["ACL"], ZERO_ADDRESS]
    apm_factory_args = client.deploy.call_args_list[7].args[1]
    assert apm_factory_args[0] == ctx.contracts["DAOFactory"]
    assert apm_factory_args[4] == ZERO_ADDRESS
    assert apm_factory_args[5] == ctx.contracts["ENSFactory"]

    assert ctx.registry_address == "0xApm"
    assert ctx.ens_address == "0xEns"
    config = load_network_config(ctx.project_root)
    assert config["networks"] == {"development": {"ensAddress": "0xEns"}}


def test_deploy_dao_factory_requires_base_contracts(ctx: RunContext) -> None:
    ctx.client = Mock(spec=ChainClient)

    with pytest.raises(AragonCliError, match="Kernel has not been deployed yet"):
        deploy_dao_factory(ctx, StepHandle("Deploy base DAO factory"))


def test_create_apm_registry_reads_event(ctx: RunContext) -> None:
    client = Mock(spec=ChainClient)
    client.contract.return_value.functions.registrar.return_value.call.return_value = "0xR"
    client.contract.return_value.functions.ens.return_value.call.return_value = "0xE"
    client.event_args.return_value = {"apm": "0xApm"}
    ctx.client = client
    ctx.contracts["APMRegistryFactory"] = "0xFactory"

    create_apm_registry(ctx, StepHandle("Create APM registry"))

    assert client.event_args.call_args.args[2] == "DeployAPM"
    raw = json.loads((ctx.project_root / "aragon-network.json").read_text(encoding="utf-8"))
    assert raw["networks"]["development"]["ensAddress"] == "0xE"


def test_set_app_permissions_requires_roles(ctx: RunContext) -> None:
    ctx.manifest = AppManifest.model_validate({"appName": "a.aragonpm.eth", "path": "A.sol"})
    ctx.client = Mock(spec=ChainClient)

    with pytest.raises(AragonCliError) as excinfo:
        set_app_permissions(ctx, StepHandle("Set permissions"))

    assert str(excinfo.value) == NO_ROLES_MESSAGE


def test_set_app_permissions_grants_every_role(ctx: RunContext) -> None:
    client = Mock(spec=ChainClient)
    ctx.client = client
    ctx.acl_address = "0xAcl"
    ctx.app_address = "0xApp"

    set_app_permissions(ctx, StepHandle("Set permissions"))

    (_, permissions), _ = client.set_permissions.call_args
    assert permissions == [
        (ANY_ENTITY, "0xApp", "INCREMENT_ROLE"),
        (ANY_ENTITY, "0xApp", "DECREMENT_ROLE"),
    ]


def test_open_dao_skips_download_and_install_when_wrapper_exists(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx.settings.wrapper_path.mkdir(parents=True)
    ctx.dao_address = "0xDao"
    ctx.ens_address = "0xEns"
    clone = Mock()
    install = Mock()
    start = Mock(return_value=Mock())
    opened = Mock()
    monkeypatch.setattr(wrapper_module, "clone_wrapper", clone)
    monkeypatch.setattr(wrapper_module, "install_dependencies", install)
    monkeypatch.setattr(wrapper_module, "start_wrapper", start)
    monkeypatch.setattr(wrapper_module, "open_browser_later", opened)

    results = StepRunner(io.StringIO()).run([Step(title="Open DAO", task=open_dao)], ctx)

    statuses = {r.title: r.status for r in results[0].children}
    assert statuses == {
        "Download wrapper": StepStatus.SKIPPED,
        "Install wrapper dependencies with npm": StepStatus.DISABLED,
        "Start wrapper": StepStatus.DONE,
        "Open wrapper": StepStatus.DONE,
    }
    clone.assert_not_called()
    install.assert_not_called()
    path, env = start.call_args.args
    assert path == ctx.settings.wrapper_path
    assert env["REACT_APP_DEFAULT_ETH_NODE"] == "ws://localhost:8545"
    assert env["REACT_APP_ENS_REGISTRY_ADDRESS"] == "0xEns"
    assert env["BROWSER"] == "none"
    opened.assert_called_once_with("http://localhost:3000/#/0xDao", 2.5)


def test_open_dao_downloads_and_installs_fresh_wrapper(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx.dao_address = "0xDao"
    ctx.ens_address = "0xEns"
    clone = Mock()
    install = Mock()
    monkeypatch.setattr(wrapper_module, "clone_wrapper", clone)
    monkeypatch.setattr(wrapper_module, "install_dependencies", install)
    monkeypatch.setattr(wrapper_module, "start_wrapper", Mock(return_value=Mock()))
    monkeypatch.setattr(wrapper_module, "open_browser_later", Mock())

    StepRunner(io.StringIO()).run([Step(title="Open DAO", task=open_dao)], ctx)

    clone.assert_called_once_with(
        repo=ctx.settings.wrapper_repo,
        commit=ctx.settings.wrapper_commit,
        dest=ctx.settings.wrapper_path,
    )
    install.assert_called_once_with(ctx.settings.wrapper_path)


def test_format_summary(ctx: RunContext) -> None:
    ctx.registry_address = "0xApm"
    ctx.ens_address = "0xEns"
    ctx.dao_address = "0xDao"
    ctx.accounts = ["0xA", "0xB"]

    summary = format_summary(ctx)

    assert "Ethereum Node: ws://localhost:8545" in summary
    assert "APM registry: 0xApm" in summary
    assert "ENS registry: 0xEns" in summary
    assert "DAO address: 0xDao" in summary
    assert "Address: 0xA" in summary and "Address: 0xB" in summary
    assert "Open up http://localhost:3000/#/0xDao to view your DAO!" in summary


def test_frontend_warning(project_dir: Path) -> None:
    assert frontend_warning(project_dir) == "No front-end detected (no manifest.json)"

    (project_dir / "manifest.json").write_text(json.dumps({"name": "Counter"}), encoding="utf-8")
    assert frontend_warning(project_dir) == "No front-end detected (no start_url defined)"

    (project_dir / "manifest.json").write_text(
        json.dumps({"name": "Counter", "start_url": "/index.html"}), encoding="utf-8"
    )
    assert frontend_warning(project_dir) is None


def test_create_dao_and_set_permissions(ctx: RunContext) -> None:
    client = Mock(spec=ChainClient)
    client.sender = "0xA"
    client.event_args.return_value = {"dao": "0xDao"}
    client.contract.return_value.functions.acl.return_value.call.return_value = "0xAcl"
    ctx.client = client
    ctx.contracts["DAOFactory"] = "0xFactory"

    create_dao(ctx, StepHandle("Create DAO"))
    set_dao_permissions(ctx, StepHandle("Set DAO permissions"))

    assert ctx.dao_address == "0xDao"
    assert ctx.acl_address == "0xAcl"
    client.contract.return_value.functions.newDAO.assert_called_once_with("0xA")
    (_, permissions), _ = client.set_permissions.call_args
    assert permissions == [(ANY_ENTITY, "0xDao", "APP_MANAGER_ROLE")]


def test_deploy_app_code_uses_project_build_artifact(ctx: RunContext) -> None:
    contracts = ctx.project_root / "build" / "contracts"
    contracts.mkdir(parents=True)
    (contracts / "CounterApp.json").write_text(
        json.dumps({"contractName": "CounterApp", "abi": [], "bytecode": "0x6080"}),
        encoding="utf-8",
    )
    client = Mock(spec=ChainClient)
    client.deploy.return_value = "0xCode"
    ctx.client = client

    deploy_app_code(ctx, StepHandle("Deploy app code"))

    (artifact,), _ = client.deploy.call_args
    assert artifact.contract_name == "CounterApp"
    assert ctx.app_artifact is artifact
    assert ctx.contracts["AppCode"] == "0xCode"


def test_deploy_proxy_reads_new_app_proxy_event(ctx: RunContext) -> None:
    client = Mock(spec=ChainClient)
    kernel = client.contract.return_value
    new_app_instance = kernel.get_function_by_signature.return_value
    client.event_args.return_value = {"proxy": "0xProxy"}
    ctx.client = client
    ctx.dao_address = "0xDao"
    ctx.contracts["AppCode"] = "0xCode"

    deploy_proxy(ctx, StepHandle("Deploy proxy"))

    kernel.get_function_by_signature.assert_called_once_with("newAppInstance(bytes32,address)")
    new_app_instance.assert_called_once_with(namehash("counter.aragonpm.eth"), "0xCode")
    client.transact.assert_called_once_with(new_app_instance.return_value)
    assert client.event_args.call_args.args[2] == "NewAppProxy"
    assert ctx.app_address == "0xProxy"


def test_open_dao_serves_prebuilt_client_when_version_given(
    ctx: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx.client_version = "0.8.0"
    ctx.dao_address = "0xDao"
    ctx.settings.client_path("0.8.0").mkdir(parents=True)
    serve = Mock(return_value=Mock())
    opened = Mock()
    monkeypatch.setattr(wrapper_module, "serve_client", serve)
    monkeypatch.setattr(wrapper_module, "open_browser_later", opened)

    results = StepRunner(io.StringIO()).run([Step(title="Open DAO", task=open_dao)], ctx)

    children = results[0].children
    assert [(r.title, r.status) for r in children] == [
        ("Fetch client 0.8.0", StepStatus.SKIPPED),
        ("Start client", StepStatus.DONE),
        ("Open wrapper", StepStatus.DONE),
    ]
    assert children[0].reason == "Client already fetched"
    serve.assert_called_once_with(ctx.settings.client_path("0.8.0") / "build", 3000)
    opened.assert_called_once_with("http://localhost:3000/#/0xDao", 2.5)


def test_fetch_client_copies_from_installed_package(ctx: RunContext) -> None:
    ctx.client_version = "0.8.0"
    package_dir = ctx.project_root / "node_modules" / "@aragon" / "aragen"
    source = package_dir / "ipfs-cache" / "@aragon" / "aragon"
    source.mkdir(parents=True)
    (source / "index.html").write_text("<html></html>", encoding="utf-8")

    fetch_client(ctx, StepHandle("Fetch client 0.8.0"))

    assert (ctx.settings.client_path("0.8.0") / "build" / "index.html").exists()
    assert ctx.wrapper_path == ctx.settings.client_path("0.8.0")


def test_fetch_client_without_prebuilt_package(ctx: RunContext) -> None:
    ctx.client_version = "0.8.0"

    with pytest.raises(AragonCliError, match="No prebuilt client found"):
        fetch_client(ctx, StepHandle("Fetch client 0.8.0"))


def test_start_client_requires_client_version(ctx: RunContext) -> None:
    with pytest.raises(AragonCliError, match="client version is not available yet"):
        start_client(ctx, StepHandle("Start client"))
