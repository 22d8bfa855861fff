"""
Rule Matcher

Selects the alerts a notification rule applies to. Filters are
conjunctive; a rule without conditions matches every alert of its type.
"""

from typing import Iterable, List

from .models import AlertType, DueDateAlert, RuleType
from .schemas import NotificationRuleSchema

# Alert types each rule type targets
RULE_TYPE_TARGETS = {
    RuleType.OVERDUE: frozenset({AlertType.OVERDUE}),
    RuleType.REMINDER: frozenset({AlertType.DUE_SOON}),
    RuleType.FOLLOWUP: frozenset({AlertType.OVERDUE, AlertType.DUE_SOON}),
}


def matches_type(rule: NotificationRuleSchema, alert: DueDateAlert) -> bool:
    return alert.alert_type in RULE_TYPE_TARGETS[rule.type]


def meets_day_threshold(threshold: int, alert: DueDateAlert) -> bool:
    """
    Whether the alert is at least as urgent as the day threshold.

    Overdue alerts qualify once they are `threshold` or more days late;
    due-soon alerts once they are `threshold` or fewer days away.
    """
    if alert.alert_type == AlertType.OVERDUE:
        return (alert.days_overdue or 0) >= threshold
    return (alert.days_until_due or 0) <= threshold


def meets_balance_threshold(threshold, alert: DueDateAlert) -> bool:
    return alert.amount >= threshold


def rule_applies(rule: NotificationRuleSchema, alert: DueDateAlert) -> bool:
    if not matches_type(rule, alert):
        return False

    conditions = rule.conditions

    if conditions.days_overdue is not None and not meets_day_threshold(conditions.days_overdue, alert):
        return False

    if conditions.balance_threshold is not None and not meets_balance_threshold(
        conditions.balance_threshold, alert
    ):
        return False

    return True


def match(rule: NotificationRuleSchema, alerts: Iterable[DueDateAlert]) -> List[DueDateAlert]:
    """Alerts `rule` applies to, in input order. An empty list is a normal outcome."""
    return [alert for alert in alerts if rule_applies(rule, alert)]
