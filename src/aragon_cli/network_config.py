"""Per-project network settings written as a side effect of `aragon run`."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from aragon_cli.errors import AragonCliError

logger = logging.getLogger(__name__)

NETWORK_CONFIG_FILE = "aragon-network.json"


def network_config_path(project_root: Path) -> Path:
    return project_root / NETWORK_CONFIG_FILE


def load_network_config(project_root: Path) -> dict[str, object]:
    path = network_config_path(project_root)
    if not path.exists():
        return {}
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise AragonCliError(f"Network config must be a JSON object: {path}")
    return raw


def write_network_config(project_root: Path, network: str, **values: object) -> Path:
    """Merge `values` into `networks.<network>`, preserving everything else."""

    path = network_config_path(project_root)
    config = load_network_config(project_root)

    networks = config.get("networks")
    if not isinstance(networks, dict):
        networks = {}
    entry = networks.get(network)
    if not isinstance(entry, dict):
        entry = {}
    entry.update(values)
    networks[network] = entry
    config["networks"] = networks

    path.write_text(json.dumps(config, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info("Network config updated", extra={"path": str(path), "network": network})
    return path
