"""
Alert Models

Due-date alerts derived from open transactions, and the enums shared by
notification rules. Alerts are rebuilt on every pass and never persisted.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union


class AlertType(str, Enum):
    """Where a transaction sits relative to its due date."""
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"


class AlertPriority(str, Enum):
    """Urgency of an alert. Ordered urgent > high > medium > low."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, AlertPriority):
            return NotImplemented
        return self.rank >= other.rank


_PRIORITY_RANK = {
    AlertPriority.LOW: 0,
    AlertPriority.MEDIUM: 1,
    AlertPriority.HIGH: 2,
    AlertPriority.URGENT: 3,
}


class RuleType(str, Enum):
    """Class of alert a notification rule targets."""
    OVERDUE = "overdue"      # overdue alerts only
    REMINDER = "reminder"    # due_soon alerts only
    FOLLOWUP = "followup"    # both


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SoundType(str, Enum):
    NOTIFICATION = "notification"
    URGENT = "urgent"
    REMINDER = "reminder"
    CUSTOM = "custom"


@dataclass(frozen=True)
class OpenTransaction:
    """The slice of a ledger transaction the classifier needs."""
    id: str
    customer_name: str
    amount: Decimal
    due_date: Optional[Union[datetime, date]]
    status: str


@dataclass(frozen=True)
class DueDateAlert:
    """
    An outstanding transaction with its urgency relative to today.

    Exactly one of days_overdue / days_until_due is set, matching alert_type.
    """
    transaction_id: str
    customer_name: str
    amount: Decimal
    due_date: Union[datetime, date]
    alert_type: AlertType
    priority: AlertPriority
    days_overdue: Optional[int] = None
    days_until_due: Optional[int] = None

    @property
    def is_overdue(self) -> bool:
        return self.alert_type == AlertType.OVERDUE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "customer_name": self.customer_name,
            "amount": float(self.amount),
            "due_date": self.due_date.isoformat(),
            "alert_type": self.alert_type.value,
            "priority": self.priority.value,
            "days_overdue": self.days_overdue,
            "days_until_due": self.days_until_due,
        }
