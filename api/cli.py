#!/usr/bin/env python3
"""CLI for ServiceBook API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate [TARGET]                 Run database migrations (default: head)
    resolve-rate ITEM_ID [--as-of]   Print an item's effective rate as JSON
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from alembic.config import Config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _get_alembic_config() -> Config:
    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate(target: str) -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("Running database migrations...")
    command.upgrade(_get_alembic_config(), target)
    logger.info("Migrations complete")
    return 0


async def _resolve_rate(item_id: int, as_of: datetime | None) -> dict:
    from core.database import create_engine, create_session_maker, dispose_engine
    from services.rates_service import resolve_rate

    engine = create_engine()
    try:
        async with create_session_maker(engine)() as db:
            rate = await resolve_rate(db, item_id, as_of)
    finally:
        await dispose_engine(engine)

    return {
        "item_id": rate.item_id,
        "name": rate.name,
        "labour_rate": float(rate.labour_rate),
        "parts_cost": float(rate.parts_cost),
        "tier": rate.tier,
        "version_id": rate.version_id,
        "as_of": rate.as_of.isoformat(),
    }


def cmd_resolve_rate(item_id: int, as_of: str | None) -> int:
    """Print the rate effective for an item."""
    from services.errors import NotFoundError

    try:
        moment = datetime.fromisoformat(as_of) if as_of else None
    except ValueError:
        logger.error(f"Invalid --as-of timestamp: {as_of}")
        return 2

    try:
        result = asyncio.run(_resolve_rate(item_id, moment))
    except NotFoundError as e:
        logger.error(str(e))
        return 1

    print(json.dumps(result, indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="ServiceBook API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser(
        "migrate",
        help="Run database migrations",
    )
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    resolve = subparsers.add_parser(
        "resolve-rate",
        help="Print the effective labour rate, parts cost and tier of an item",
    )
    resolve.add_argument("item_id", type=int, help="Pricebook item ID")
    resolve.add_argument(
        "--as-of",
        dest="as_of",
        default=None,
        help="ISO 8601 timestamp to price at (default: now)",
    )

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "resolve-rate":
        return cmd_resolve_rate(args.item_id, args.as_of)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
