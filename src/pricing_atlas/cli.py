"""Command line entry point: ``pricing-atlas update`` and ``pricing-atlas list``."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import StoreError
from pricing_atlas.catalog.store import open_store
from pricing_atlas.catalog.sync import run_updates
from pricing_atlas.catalog.vendors import list_adapter_keys
from pricing_atlas.config import IngestSettings

EXIT_OK = 0
EXIT_EMPTY = 1
EXIT_ADAPTER_FAILED = 2

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pricing-atlas",
        description="Ingest public cloud price lists into a canonical pricing store",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    subparsers = parser.add_subparsers(dest="command", required=True)

    update = subparsers.add_parser(
        "update", parents=[common], help="Fetch, transform and merge vendor prices"
    )
    update.add_argument(
        "--only",
        action="append",
        default=None,
        help="Comma-separated vendor:source keys to run (default: all). May be repeated.",
    )
    update.add_argument(
        "--store",
        default=None,
        help="Store URL: memory://, json://PATH or a SQLAlchemy URL (default: PRICING_STORE_URL).",
    )
    update.add_argument("--staging-dir", default=None, help="Write raw vendor documents here.")
    update.add_argument(
        "--max-workers", type=int, default=None, help="Concurrent unit fetches per adapter."
    )
    update.add_argument(
        "--fail-on-error",
        action="store_true",
        help="Exit 2 if any adapter finished partial or failed.",
    )
    update.add_argument(
        "--fail-on-empty",
        action="store_true",
        help="Exit non-zero if nothing was merged.",
    )

    subparsers.add_parser("list", parents=[common], help="List known vendor:source keys")
    return parser


def _settings_from_args(args: argparse.Namespace) -> IngestSettings:
    overrides: dict[str, object] = {}
    if args.store:
        overrides["store_url"] = args.store
    if args.staging_dir:
        overrides["staging_dir"] = args.staging_dir
    if args.max_workers is not None:
        overrides["max_workers"] = args.max_workers
    try:
        settings = IngestSettings.from_env()
        if not overrides:
            return settings
        return IngestSettings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as exc:
        raise SystemExit(f"invalid settings: {exc}") from exc


def cmd_update(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    try:
        store = open_store(settings.store_url)
    except StoreError as exc:
        raise SystemExit(f"could not open store {settings.store_url}: {exc}") from exc
    try:
        summary = run_updates(RunContext.from_settings(settings), store, only=args.only)
    finally:
        store.close()

    print(summary.model_dump_json(indent=2))
    if args.fail_on_empty and summary.product_count == 0 and summary.price_count == 0:
        print("pricing update merged zero products", file=sys.stderr)
        return EXIT_EMPTY
    if args.fail_on_error and summary.has_failures:
        return EXIT_ADAPTER_FAILED
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    for key in list_adapter_keys():
        print(key)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if args.command == "update":
        return cmd_update(args)
    return cmd_list(args)


if __name__ == "__main__":
    raise SystemExit(main())
