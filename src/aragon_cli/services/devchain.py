"""Local development chain (ganache) launcher."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from aragon_cli.config import AragonSettings
from aragon_cli.errors import AragonCliError
from aragon_cli.ethereum.client import ChainClient
from aragon_cli.util import resolve_binary

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5
MAX_POLL_ATTEMPTS = 60


def devchain_command(binary: str, *, port: int, settings: AragonSettings) -> list[str]:
    return [
        binary,
        "-p",
        str(port),
        "-m",
        settings.devchain_mnemonic,
        "-i",
        str(settings.devchain_network_id),
        "-l",
        str(settings.devchain_gas_limit),
    ]


def start_devchain(
    *, port: int, settings: AragonSettings, cwd: Path
) -> tuple[subprocess.Popen[bytes], ChainClient]:
    """Start ganache on `port` and return the process with a connected client.

    The process keeps running after the CLI exits.
    """

    binary = resolve_binary("ganache-cli", cwd, "ganache")
    if binary is None:
        raise AragonCliError(
            "Could not find ganache-cli. Install it with `npm install --save-dev ganache-cli`"
        )

    command = devchain_command(binary, port=port, settings=settings)
    logger.info("Starting development chain", extra={"port": port})
    proc = subprocess.Popen(
        command,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )

    client = ChainClient.from_rpc(f"http://localhost:{port}", gas=settings.tx_gas)
    for _ in range(MAX_POLL_ATTEMPTS):
        if proc.poll() is not None:
            raise AragonCliError(f"Development chain exited early with code {proc.returncode}")
        if client.is_listening():
            logger.info("Development chain is listening", extra={"port": port, "pid": proc.pid})
            return proc, client
        time.sleep(POLL_INTERVAL_SECONDS)

    proc.terminate()
    raise AragonCliError(f"Development chain did not start listening on port {port}")
