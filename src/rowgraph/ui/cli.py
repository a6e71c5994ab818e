from __future__ import annotations

import argparse
import importlib
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from rowgraph.app import count_rows, create_tables
from rowgraph.config import (
    ConfigurationError,
    MissingConfigurationError,
    configure_logging,
    env_value,
    resolve_log_level,
)
from rowgraph.domain.schema import SchemaCatalog

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

MODELS_ENV = "ROWGRAPH_MODELS"
DEFAULT_CATALOG_ATTR = "catalog"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage rowgraph stores")
    parser.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URI (defaults to ROWGRAPH_DATABASE_URI or the data dir)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level name (defaults to ROWGRAPH_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create tables for every registered model")
    init.add_argument(
        "--models",
        type=str,
        help=f"Catalog location as module[:attr] (defaults to {MODELS_ENV})",
    )

    count = subparsers.add_parser("count", help="Count stored rows of one model")
    count.add_argument(
        "--models",
        type=str,
        help=f"Catalog location as module[:attr] (defaults to {MODELS_ENV})",
    )
    count.add_argument("type_name", metavar="TYPE", help="Registered model name")

    return parser.parse_args(list(argv))


def load_catalog(location: str | None) -> SchemaCatalog:
    """Import the :class:`SchemaCatalog` named by ``module[:attr]``."""

    location = location or env_value(MODELS_ENV)
    if location is None:
        raise MissingConfigurationError(MODELS_ENV, hint="pass --models module[:attr]")
    module_name, _, attr = location.partition(":")
    attr = attr or DEFAULT_CATALOG_ATTR
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import models module {module_name!r}: {exc}") from exc
    catalog = getattr(module, attr, None)
    if not isinstance(catalog, SchemaCatalog):
        raise ValueError(f"{module_name}:{attr} is not a SchemaCatalog")
    return catalog


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=resolve_log_level(parsed_args.log_level))
        catalog = load_catalog(parsed_args.models)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "init":
            names = create_tables(catalog, database_uri=parsed_args.database_uri)
            log.info("Initialised store with types: %s", ", ".join(names))
        elif parsed_args.command == "count":
            total = count_rows(
                catalog, parsed_args.type_name, database_uri=parsed_args.database_uri
            )
            print(total)  # noqa: T201
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
