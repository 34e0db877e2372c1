"""Aragon CLI.

A developer tool that runs an Aragon app locally on top of a development chain,
an IPFS daemon and the Aragon package manager, and inspects deployed DAOs.
"""

__version__ = "0.1.0"

from aragon_cli.config import AragonSettings

__all__ = ["__version__", "AragonSettings"]
