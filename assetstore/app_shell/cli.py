import argparse
import logging
import sys
from datetime import timedelta

from assetstore.app_shell.config import Settings, validate_data_dir
from assetstore.app_shell.context import ServiceContext
from assetstore.components.assets import AssetNotFoundError, StorageInconsistencyError
from assetstore.components.retention import SweepInProgressError
from assetstore.rules.loader import load_rules

logger = logging.getLogger("cli")


def get_context(settings: Settings) -> ServiceContext:
    try:
        rules = load_rules(settings.rules_path)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Rules load failed: %s", e)
        sys.exit(1)

    validate_data_dir(settings)
    return ServiceContext.create(settings.db_path, settings.uploads_dir, rules)


def handle_migrate(ctx: ServiceContext, args: argparse.Namespace) -> int:
    applied = ctx.migrate()
    print(f"Applied {len(applied)} migration(s).")
    for name in applied:
        print(f" - {name}")
    return 0


def handle_sweep(ctx: ServiceContext, args: argparse.Namespace) -> int:
    max_age = timedelta(days=args.max_age_days) if args.max_age_days is not None else None
    try:
        result = ctx.sweeper.sweep(max_age)
    except SweepInProgressError as e:
        logger.error("%s", e)
        return 1

    print(
        f"Swept assets created before {result.cutoff.isoformat()}: "
        f"{result.examined} examined, {result.deleted} deleted, {result.failed} failed."
    )
    return 0 if result.failed == 0 else 1


def handle_check(ctx: ServiceContext, args: argparse.Namespace) -> int:
    missing = ctx.asset_service.find_inconsistencies()
    if not missing:
        print("No storage inconsistencies found.")
        return 0

    print(f"{len(missing)} record(s) reference missing bytes:")
    for record in missing:
        print(f" - {record.storage_name} (owner {record.owner_id})")
    return 1


def handle_verify(ctx: ServiceContext, args: argparse.Namespace) -> int:
    try:
        result = ctx.asset_service.verify(args.storage_name)
    except AssetNotFoundError:
        print(f"No asset named {args.storage_name}.")
        return 1
    except StorageInconsistencyError:
        print(f"Bytes for {args.storage_name} are missing.")
        return 1

    if result.ok:
        print(f"OK {result.storage_name} sha256={result.actual}")
        return 0
    print(f"MISMATCH {result.storage_name} expected={result.expected} actual={result.actual}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Asset storage service CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # sweep
    sweep_parser = subparsers.add_parser("sweep", help="Delete assets past the retention age")
    sweep_parser.add_argument(
        "--max-age-days", type=int, default=None, help="Override retention.max_age_days"
    )

    # check
    subparsers.add_parser("check", help="Report records whose bytes are missing")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Recompute one asset's checksum")
    verify_parser.add_argument("storage_name", help="Storage name of the asset")

    return parser


HANDLERS = {
    "migrate": handle_migrate,
    "sweep": handle_sweep,
    "check": handle_check,
    "verify": handle_verify,
}


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    ctx = get_context(Settings())
    try:
        if args.command != "migrate":
            ctx.migrate()
        return HANDLERS[args.command](ctx, args)
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
