"""
Alert Classifier

Turns open transactions into due-date alerts with an urgency ranking.

Day offsets are whole calendar days between the due date and today, computed
on dates only, so a transaction due at 00:00 does not flip between "due today"
and "overdue" across passes made at different hours of the same day.

Priority:
- overdue (due before today): urgent
- due today: high
- due in 1-3 days: medium
- due later: low
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from creditbook.models.ledger import TERMINAL_STATUSES

from .models import AlertPriority, AlertType, DueDateAlert, OpenTransaction

# Upper bound (days until due) for medium priority
MEDIUM_PRIORITY_DAYS = 3


def _calendar_date(value: Union[datetime, date], now: datetime) -> date:
    """Date of `value` as seen from `now`'s timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is not None and now.tzinfo is not None:
            value = value.astimezone(now.tzinfo)
        return value.date()
    return value


def day_offset(due_date: Union[datetime, date], now: datetime) -> int:
    """Whole calendar days from today until `due_date` (negative when past)."""
    return (_calendar_date(due_date, now) - now.date()).days


def priority_for(alert_type: AlertType, offset: int) -> AlertPriority:
    """Priority for an alert of `alert_type` whose due date is `offset` days away."""
    if alert_type == AlertType.OVERDUE:
        return AlertPriority.URGENT
    if offset == 0:
        return AlertPriority.HIGH
    if offset <= MEDIUM_PRIORITY_DAYS:
        return AlertPriority.MEDIUM
    return AlertPriority.LOW


def is_classifiable(transaction: OpenTransaction) -> bool:
    """Only open transactions with a due date produce alerts."""
    if transaction.due_date is None:
        return False
    status = getattr(transaction.status, "value", transaction.status)
    return str(status).upper() not in TERMINAL_STATUSES


def classify(
    transactions: Iterable[OpenTransaction],
    now: datetime,
    horizon_days: Optional[int] = None,
) -> List[DueDateAlert]:
    """
    Classify transactions into due-date alerts.

    Pure: the same transactions and `now` always give the same alerts, in
    input order.

    Args:
        transactions: Candidate transactions; paid or undated ones are skipped
        now: The evaluation instant
        horizon_days: If set, due-soon transactions further away than this
            many days are left out. Overdue ones are always kept.

    Returns:
        One alert per classifiable transaction
    """
    alerts = []

    for transaction in transactions:
        if not is_classifiable(transaction):
            continue

        offset = day_offset(transaction.due_date, now)

        if offset < 0:
            alerts.append(DueDateAlert(
                transaction_id=transaction.id,
                customer_name=transaction.customer_name,
                amount=transaction.amount,
                due_date=transaction.due_date,
                alert_type=AlertType.OVERDUE,
                priority=priority_for(AlertType.OVERDUE, offset),
                days_overdue=-offset,
            ))
            continue

        if horizon_days is not None and offset > horizon_days:
            continue

        alerts.append(DueDateAlert(
            transaction_id=transaction.id,
            customer_name=transaction.customer_name,
            amount=transaction.amount,
            due_date=transaction.due_date,
            alert_type=AlertType.DUE_SOON,
            priority=priority_for(AlertType.DUE_SOON, offset),
            days_until_due=offset,
        ))

    return alerts


def sort_by_priority(alerts: Iterable[DueDateAlert]) -> List[DueDateAlert]:
    """Most urgent first; within a priority, the most overdue / soonest due first."""
    def key(alert: DueDateAlert):
        if alert.alert_type == AlertType.OVERDUE:
            closeness = -(alert.days_overdue or 0)
        else:
            closeness = alert.days_until_due or 0
        return (-alert.priority.rank, closeness)

    return sorted(alerts, key=key)
