"""IPFS daemon detection/launching and uploads through the HTTP API."""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import shutil
import subprocess
import time
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from aragon_cli.errors import AragonCliError, IpfsNotInstalled

logger = logging.getLogger(__name__)

INSTALL_URL = "https://ipfs.io/docs/install"
DAEMON_START_TIMEOUT_SECONDS = 60.0
DAEMON_POLL_INTERVAL_SECONDS = 0.5
DEFAULT_IGNORE = ("node_modules", ".git")

_CORS_HEADERS = {
    "API.HTTPHeaders.Access-Control-Allow-Origin": ["*"],
    "API.HTTPHeaders.Access-Control-Allow-Methods": ["PUT", "GET", "POST"],
}


class IpfsClient:
    """Talk to a local IPFS node through its HTTP API (`/api/v0`)."""

    def __init__(
        self,
        api_url: str = "http://localhost:5001",
        *,
        binary: str = "ipfs",
        log_path: Path | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._binary = binary
        self._log_path = log_path
        self._session = session or requests.Session()

    def _endpoint(self, command: str) -> str:
        return f"{self._api_url}/api/v0/{command}"

    def is_running(self) -> bool:
        try:
            resp = self._session.post(self._endpoint("version"), timeout=2)
        except requests.RequestException:
            return False
        return resp.ok

    def is_installed(self) -> bool:
        return shutil.which(self._binary) is not None

    def _repo_path(self) -> Path:
        return Path(os.environ.get("IPFS_PATH", Path.home() / ".ipfs"))

    def _run(self, *args: str) -> None:
        subprocess.run([self._binary, *args], check=True, capture_output=True, text=True)

    def start_daemon(self) -> subprocess.Popen[bytes]:
        """Initialise the repo if needed, allow browser access and start the daemon.

        Blocks until the API answers. The daemon keeps running after the CLI
        exits; its output goes to `log_path` (discarded when unset).
        """

        if not self.is_installed():
            raise IpfsNotInstalled(f"Could not find the `{self._binary}` binary")

        try:
            if not self._repo_path().exists():
                self._run("init")
            for key, value in _CORS_HEADERS.items():
                self._run("config", "--json", key, json.dumps(value))
        except subprocess.CalledProcessError as e:
            raise AragonCliError(f"Could not configure IPFS: {e.stderr or e}") from e

        logger.info("Starting IPFS daemon", extra={"log": str(self._log_path)})
        proc = self._spawn_daemon()

        deadline = time.monotonic() + DAEMON_START_TIMEOUT_SECONDS
        while time.monotonic() < deadline:
            if proc.poll() is not None:
                raise AragonCliError(f"The IPFS daemon exited early with code {proc.returncode}")
            if self.is_running():
                logger.info("IPFS daemon ready", extra={"pid": proc.pid})
                return proc
            time.sleep(DAEMON_POLL_INTERVAL_SECONDS)

        proc.terminate()
        raise AragonCliError(
            f"The IPFS daemon did not become ready within {DAEMON_START_TIMEOUT_SECONDS:g}s"
        )

    def _spawn_daemon(self) -> subprocess.Popen[bytes]:
        command = [self._binary, "daemon"]
        if self._log_path is None:
            return subprocess.Popen(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        # The child keeps its own descriptor; closing ours does not affect it.
        with self._log_path.open("ab") as log:
            return subprocess.Popen(
                command,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

    def add_directory(
        self,
        root: Path,
        *,
        ignore: Iterable[str] = DEFAULT_IGNORE,
        extra_files: Mapping[str, bytes] | None = None,
    ) -> str:
        """Add `root` (wrapped in a directory) and return the root CID.

        `extra_files` are added next to the directory's own files without being
        written to disk.
        """

        parts = _multipart_entries(root, tuple(ignore), extra_files or {})
        if not parts:
            raise AragonCliError(f"Nothing to publish in {root}")

        resp = self._session.post(
            self._endpoint("add"),
            params={"wrap-with-directory": "true", "pin": "true", "quieter": "false"},
            files=parts,
            timeout=300,
        )
        resp.raise_for_status()

        entries = [json.loads(line) for line in resp.text.splitlines() if line.strip()]
        if not entries:
            raise AragonCliError("IPFS returned an empty response to add")
        root_entries = [e for e in entries if e.get("Name", "") == ""]
        cid = (root_entries or entries)[-1]["Hash"]
        logger.info("Added directory to IPFS", extra={"root": str(root), "cid": cid})
        return str(cid)


def _is_ignored(name: str, ignore: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in ignore)


def _multipart_entries(
    root: Path, ignore: tuple[str, ...], extra_files: Mapping[str, bytes]
) -> list[tuple[str, tuple[str, Any, str]]]:
    parts: list[tuple[str, tuple[str, Any, str]]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _is_ignored(d, ignore))
        rel_dir = Path(dirpath).relative_to(root)
        if rel_dir != Path("."):
            parts.append(
                ("file", (quote(rel_dir.as_posix(), safe=""), b"", "application/x-directory"))
            )
        for filename in sorted(filenames):
            if _is_ignored(filename, ignore) or (rel_dir == Path(".") and filename in extra_files):
                continue
            rel = (rel_dir / filename).as_posix()
            data = (Path(dirpath) / filename).read_bytes()
            parts.append(("file", (quote(rel, safe=""), data, "application/octet-stream")))

    for name, data in sorted(extra_files.items()):
        parts.append(("file", (quote(name, safe=""), data, "application/octet-stream")))
    return parts
