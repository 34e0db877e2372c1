"""Download, install and launch the wrapper front-end (or a prebuilt client)."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import threading
import webbrowser
from pathlib import Path

from aragon_cli.config import AragonSettings
from aragon_cli.errors import AragonCliError

logger = logging.getLogger(__name__)

PREBUILT_CLIENT_PACKAGE = "@aragon/aragen"
PREBUILT_CLIENT_SUBDIR = Path("ipfs-cache") / "@aragon" / "aragon"


def clone_wrapper(*, repo: str, commit: str, dest: Path) -> None:
    """Clone `repo` into `dest` and check out the pinned `commit`."""

    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning wrapper", extra={"repo": repo, "commit": commit, "dest": str(dest)})
    try:
        subprocess.run(
            ["git", "clone", "--quiet", repo, str(dest)],
            check=True,
            capture_output=True,
            text=True,
        )
        subprocess.run(
            ["git", "checkout", "--quiet", commit],
            cwd=dest,
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        # A partial checkout would make the next run skip the download.
        shutil.rmtree(dest, ignore_errors=True)
        detail = getattr(e, "stderr", None) or str(e)
        raise AragonCliError(f"Could not download the wrapper: {detail}".rstrip()) from e


def install_dependencies(path: Path) -> None:
    logger.info("Installing wrapper dependencies", extra={"path": str(path)})
    try:
        subprocess.run(["npm", "install"], cwd=path, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise AragonCliError("Could not install dependencies") from e


def wrapper_env(*, settings: AragonSettings, port: int, ens_address: str) -> dict[str, str]:
    return {
        "BROWSER": "none",
        "PORT": str(settings.client_port),
        "REACT_APP_IPFS_GATEWAY": settings.ipfs_gateway,
        "REACT_APP_IPFS_RPC": settings.ipfs_api,
        "REACT_APP_DEFAULT_ETH_NODE": f"ws://localhost:{port}",
        "REACT_APP_ENS_REGISTRY_ADDRESS": ens_address,
    }


def start_wrapper(path: Path, env: dict[str, str]) -> subprocess.Popen[bytes]:
    """Run `npm start` in the wrapper checkout; the process outlives the CLI."""

    logger.info("Starting wrapper", extra={"path": str(path)})
    try:
        return subprocess.Popen(
            ["npm", "start"],
            cwd=path,
            env={**os.environ, **env},
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise AragonCliError("Could not start wrapper") from e


def find_prebuilt_client(package_dir: Path) -> Path | None:
    source = package_dir / PREBUILT_CLIENT_SUBDIR
    return source if source.is_dir() else None


def fetch_client(*, source: Path, dest: Path) -> None:
    """Copy a prebuilt client into `<dest>/build`."""

    build = dest / "build"
    build.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Copying prebuilt client", extra={"source": str(source), "dest": str(build)})
    shutil.copytree(source, build, dirs_exist_ok=True)


def serve_client(build_dir: Path, port: int) -> subprocess.Popen[bytes]:
    """Serve a prebuilt client's static files on `port`."""

    try:
        return subprocess.Popen(
            [sys.executable, "-m", "http.server", str(port), "--directory", str(build_dir)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise AragonCliError("Could not start the client") from e


def open_browser_later(url: str, delay: float) -> threading.Timer:
    """Open `url` after `delay` seconds without blocking the caller.

    The timer is not a daemon thread: the interpreter waits for it on exit.
    """

    timer = threading.Timer(delay, webbrowser.open, args=(url,))
    timer.start()
    return timer
