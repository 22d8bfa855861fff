"""
Default Notification Rules

Rules a fresh ledger starts with, and a seeding helper.
"""

import logging
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from creditbook.models.notification import NotificationRule

logger = logging.getLogger(__name__)


DEFAULT_RULES = [
    {
        "name": "Payment Overdue Alert",
        "type": "overdue",
        "enabled": True,
        "conditions": {"days_overdue": 1},
        "actions": {"notification": True, "email": False, "sms": False},
        "sound": {"enabled": True, "type": "urgent", "volume": 0.8},
        "schedule": {"frequency": "daily", "time": "09:00"},
        "message": {
            "title": "Payment Overdue Alert",
            "body": "Payment of {amount} from {customerName} is {daysOverdue} days overdue.",
        },
    },
    {
        "name": "Payment Due Today Reminder",
        "type": "reminder",
        "enabled": True,
        "conditions": {"days_overdue": 0},  # due today
        "actions": {"notification": True, "email": False, "sms": False},
        "sound": {"enabled": True, "type": "urgent", "volume": 0.7},
        "schedule": {"frequency": "daily", "time": "10:00"},
        "message": {
            "title": "Payment Due Today",
            "body": "Payment of {amount} from {customerName} is due today.",
        },
    },
    {
        "name": "Payment Due Soon Reminder",
        "type": "reminder",
        "enabled": True,
        "conditions": {"days_overdue": 3},  # due within 3 days
        "actions": {"notification": True, "email": False, "sms": False},
        "sound": {"enabled": True, "type": "reminder", "volume": 0.6},
        "schedule": {"frequency": "daily", "time": "11:00"},
        "message": {
            "title": "Payment Due Soon",
            "body": "Payment of {amount} from {customerName} is due on {dueDate} ({daysUntilDue} days).",
        },
    },
    {
        "name": "Weekly Payment Summary",
        "type": "followup",
        "enabled": True,
        "conditions": {"balance_threshold": 100},
        "actions": {"notification": True, "email": False, "sms": False},
        "sound": {"enabled": True, "type": "notification", "volume": 0.5},
        "schedule": {"frequency": "weekly", "time": "09:00"},
        "message": {
            "title": "Weekly Payment Summary",
            "body": "{customerName} still owes {amount} (due {dueDate}).",
        },
    },
]


async def seed_default_rules(session_factory: Callable[[], AsyncSession], replace: bool = False) -> int:
    """
    Insert the default rules.

    Defaults whose name is already taken are skipped, so seeding twice does
    not create duplicate rules.

    Args:
        session_factory: Async session factory
        replace: Delete all existing rules first

    Returns:
        Number of rules created
    """
    created = 0

    async with session_factory() as db:
        if replace:
            await db.execute(delete(NotificationRule))
            existing = set()
        else:
            result = await db.execute(select(NotificationRule.name))
            existing = set(result.scalars().all())

        for rule_data in DEFAULT_RULES:
            if rule_data["name"] in existing:
                logger.info(f"Rule already exists, skipping: {rule_data['name']}")
                continue
            db.add(NotificationRule(**rule_data))
            created += 1
            logger.info(f"Created rule: {rule_data['name']}")

        await db.commit()

    logger.info(f"Notification rules seeded: {created} created")
    return created
