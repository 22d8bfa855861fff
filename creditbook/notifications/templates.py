"""
Message Templates

Renders a rule's title/body templates for one alert. Supported placeholders:

    {customerName} {amount} {dueDate} {daysOverdue} {daysUntilDue}

Unknown placeholders are left as written.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple, Union

from creditbook.alerts.models import DueDateAlert
from creditbook.alerts.schemas import RuleMessage

CURRENCY_SYMBOL = "₹"  # Indian rupee sign


def _group_indian(digits: str) -> str:
    """Group an integer string the en-IN way: 12,34,567."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_amount(amount: Union[Decimal, float, int]) -> str:
    """Format as rupees with en-IN digit grouping, e.g. 125000 -> ₹1,25,000.00."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    return f"{sign}{CURRENCY_SYMBOL}{_group_indian(whole)}.{fraction}"


def format_due_date(value: Union[datetime, date]) -> str:
    """e.g. 05 Jan 2026"""
    return value.strftime("%d %b %Y")


def template_values(alert: DueDateAlert) -> Dict[str, str]:
    return {
        "{customerName}": alert.customer_name or "Unknown Customer",
        "{amount}": format_amount(alert.amount),
        "{dueDate}": format_due_date(alert.due_date),
        "{daysOverdue}": str(alert.days_overdue or 0),
        "{daysUntilDue}": str(alert.days_until_due or 0),
    }


def render_template(template: str, alert: DueDateAlert) -> str:
    rendered = template or ""
    for placeholder, value in template_values(alert).items():
        rendered = rendered.replace(placeholder, value)
    return rendered


def render_message(message: RuleMessage, alert: DueDateAlert) -> Tuple[str, str]:
    """Rendered (title, body) for one alert."""
    return render_template(message.title, alert), render_template(message.body, alert)
