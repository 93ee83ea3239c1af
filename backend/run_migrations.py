"""Create tables, seed pricing/popup rows and the first DEV_ADMIN account.

    python run_migrations.py status
    python run_migrations.py apply [--force] [--skip-admin]
    python run_migrations.py reset-marker
"""
from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from bootstrap import (  # noqa: E402
    MIGRATION_MARKER_KEY,
    bootstrap_marker_value,
    clear_bootstrap_marker,
    run_bootstrap_migrations,
    set_bootstrap_marker,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kumaraguru MUN database bootstrap")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show when the bootstrap last ran")

    apply = commands.add_parser("apply", help="Create tables and seed default rows")
    apply.add_argument("--force", action="store_true", help="Run again even if already applied")
    apply.add_argument(
        "--skip-admin",
        action="store_true",
        help="Do not create or promote the DEFAULT_ADMIN_EMAIL account",
    )

    commands.add_parser("reset-marker", help=f"Delete the `{MIGRATION_MARKER_KEY}` marker")
    return parser


def cmd_status() -> int:
    applied_at = bootstrap_marker_value()
    if applied_at:
        logger.info("Bootstrap applied at %s", applied_at)
    else:
        logger.info("Bootstrap has not been applied")
    return 0


def cmd_apply(force: bool, skip_admin: bool) -> int:
    applied_at = bootstrap_marker_value()
    if applied_at and not force:
        logger.info("Bootstrap already applied at %s; use --force to rerun", applied_at)
        return 0
    run_bootstrap_migrations(create_admin=not skip_admin)
    set_bootstrap_marker()
    logger.info("Bootstrap complete")
    return 0


def cmd_reset_marker() -> int:
    if clear_bootstrap_marker():
        logger.info("Removed marker `%s`", MIGRATION_MARKER_KEY)
    else:
        logger.info("Marker `%s` not present", MIGRATION_MARKER_KEY)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "status":
        return cmd_status()
    if args.command == "apply":
        return cmd_apply(args.force, args.skip_admin)
    return cmd_reset_marker()


if __name__ == "__main__":
    sys.exit(main())
