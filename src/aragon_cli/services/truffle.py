from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from aragon_cli.errors import AragonCliError
from aragon_cli.util import resolve_binary

logger = logging.getLogger(__name__)


def run_truffle(args: Sequence[str], *, cwd: Path) -> str:
    """Run the project's truffle with `args` and return its stdout."""

    binary = resolve_binary("truffle", cwd)
    if binary is None:
        raise AragonCliError(
            "Could not find truffle. Install it in your project with `npm install --save-dev truffle`"
        )

    command = [binary, *args]
    logger.info("Running truffle", extra={"command": command, "cwd": str(cwd)})
    proc = subprocess.run(command, cwd=cwd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        output = (proc.stdout + proc.stderr).strip()
        raise AragonCliError(f"truffle {' '.join(args)} failed (exit {proc.returncode})\n{output}")
    return proc.stdout
