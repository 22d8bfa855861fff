"""
Seed Default Notification Rules.

Creates the tables if needed and inserts the default notification rules.

Usage:
    # Add any default rules that are missing
    python -m creditbook.seed

    # Replace all existing rules with the defaults
    python -m creditbook.seed --replace
"""
import argparse
import asyncio

from creditbook.database import async_session_maker, init_db
from creditbook.alerts.rules import seed_default_rules


async def main():
    parser = argparse.ArgumentParser(
        description="Seed the default notification rules"
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete all existing rules before seeding"
    )

    args = parser.parse_args()

    await init_db()
    created = await seed_default_rules(async_session_maker, replace=args.replace)
    print(f"Seeded {created} notification rules")


if __name__ == "__main__":
    asyncio.run(main())
