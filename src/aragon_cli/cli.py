"""Console script target (`aragon`)."""

from __future__ import annotations

from aragon_cli.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
