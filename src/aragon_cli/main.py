"""CLI entrypoint: `aragon run` and `aragon apps <dao>`."""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from aragon_cli import __version__
from aragon_cli.commands.apps import run_apps
from aragon_cli.commands.run import DEFAULT_PORT, run_command
from aragon_cli.config import AragonSettings
from aragon_cli.errors import AragonCliError, StepFailed
from aragon_cli.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aragon",
        description="Run, publish and inspect Aragon apps locally",
    )
    parser.add_argument("--version", action="version", version=f"aragon-cli {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the current app locally")
    run.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help="The port to run the local chain on",
    )
    run.add_argument(
        "--client-version",
        default=None,
        help=(
            "Serve a prebuilt client of this version (copied from @aragon/aragen) "
            "instead of building the wrapper from source"
        ),
    )

    apps = subparsers.add_parser("apps", help="Get all the apps in a DAO")
    apps.add_argument("dao", help="DAO address or ENS name (bare names use aragonid.eth)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AragonSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment or .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "run":
            run_command(port=args.port, settings=settings, client_version=args.client_version)
            return 0

        if args.command == "apps":
            return run_apps(args.dao, settings)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except StepFailed as e:
        logger.debug("Step failed", extra={"step": e.title}, exc_info=e.cause)
        print(str(e), file=sys.stderr)
        return 1

    except AragonCliError as e:
        print(str(e), file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
