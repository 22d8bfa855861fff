"""Builders and stubs shared by the Credit Book tests."""
import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from creditbook.alerts.models import OpenTransaction
from creditbook.alerts.schemas import NotificationRuleSchema
from creditbook.notifications.dispatch import DispatchResult, DispatchSink

# Tuesday 10 March 2026, 09:02
NOW = datetime(2026, 3, 10, 9, 2)


def make_rule(**overrides) -> NotificationRuleSchema:
    """Build a rule with sensible defaults; keyword arguments override fields."""
    data = {
        "id": "rule-1",
        "name": "Overdue payments",
        "type": "overdue",
        "enabled": True,
        "conditions": {},
        "actions": {"notification": True},
        "schedule": {"frequency": "daily", "time": "09:00"},
        "sound": {"enabled": True, "type": "urgent", "volume": 0.8},
        "message": {
            "title": "Payment overdue: {customerName}",
            "body": "{amount} is {daysOverdue} days late (due {dueDate})",
        },
        "last_run": None,
    }
    data.update(overrides)
    return NotificationRuleSchema.model_validate(data)


def make_transaction(
    id: str = "txn-1",
    due_in_days: Optional[int] = 0,
    amount: str = "1500.00",
    status: str = "UNPAID",
    customer_name: str = "Acme Traders",
    now: datetime = NOW,
) -> OpenTransaction:
    """An open transaction due `due_in_days` calendar days from `now` (negative = past)."""
    due_date = None
    if due_in_days is not None:
        due_date = datetime(now.year, now.month, now.day) + timedelta(days=due_in_days)
    return OpenTransaction(
        id=id,
        customer_name=customer_name,
        amount=Decimal(amount),
        due_date=due_date,
        status=status,
    )


class RecordingSink(DispatchSink):
    """Dispatch sink that records every call."""

    def __init__(self, fail_for: Tuple[str, ...] = (), raise_for: Tuple[str, ...] = (), delay: float = 0.0):
        self.calls: List[tuple] = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.delay = delay

    async def dispatch(self, rule, alert, title, body) -> DispatchResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append((rule.id, alert.transaction_id, title, body))
        if alert.transaction_id in self.raise_for:
            raise RuntimeError(f"push failed for {alert.transaction_id}")
        if alert.transaction_id in self.fail_for:
            return DispatchResult(success=False, error="channel rejected")
        return DispatchResult(success=True, message_id=f"msg-{alert.transaction_id}")
