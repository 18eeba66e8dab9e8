"""
Seed the compliance catalog and optionally assign the default rule pack.

Upserts the built-in check definitions and the TN_RES_2025 rule pack.
Safe to run repeatedly.

Usage:
    python scripts/seed_catalog.py                     # Seed definitions and pack
    python scripts/seed_catalog.py --assign-all        # Also assign DEFAULT_RULE_PACK to every transaction
    python scripts/seed_catalog.py --list              # Print the catalog after seeding
    python scripts/seed_catalog.py --create-tables     # Create tables without Alembic (dev only)
"""

import argparse
import asyncio

from brokerage_ai.compliance import seed_catalog
from brokerage_ai.core.config import settings
from brokerage_ai.core.logging import get_logger, setup_logging
from brokerage_ai.db import init_db
from brokerage_ai.db.session import create_session_factory
from brokerage_ai.store.sql import SqlFactStore

logger = get_logger(__name__)


async def run(assign_all: bool = False, show: bool = False, create_tables: bool = False) -> None:
    engine, session_factory = create_session_factory()

    try:
        if create_tables:
            await init_db(engine)
            print("Tables created (pgvector extension enabled).")

        store = SqlFactStore(session_factory, embedding_dimension=settings.embedding_dimension)

        pack = await seed_catalog(store)
        print(f"\nRule pack {pack.code} ({pack.title}): {len(pack.weights)} checks")

        if assign_all:
            transaction_ids = await store.list_transaction_ids()
            for transaction_id in transaction_ids:
                await store.assign_rule_pack(transaction_id, settings.default_rule_pack)
            print(f"Assigned {settings.default_rule_pack} to {len(transaction_ids)} transactions.")

        if show:
            print(f"\n{'KEY':<22} {'SEVERITY':<10} {'HITL':<6} TITLE")
            print("-" * 70)
            for definition in await store.list_check_definitions():
                print(
                    f"{definition.key:<22} {definition.severity.value:<10} "
                    f"{str(definition.requires_hitl):<6} {definition.title}"
                )
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the compliance rule catalog")
    parser.add_argument(
        "--assign-all",
        action="store_true",
        help="Assign DEFAULT_RULE_PACK to every existing transaction",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the check definitions after seeding",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the ORM models first (development databases only)",
    )
    args = parser.parse_args()

    setup_logging()
    print("=" * 60)
    print("Compliance Catalog Seed")
    print("=" * 60)

    asyncio.run(run(assign_all=args.assign_all, show=args.list, create_tables=args.create_tables))


if __name__ == "__main__":
    main()
