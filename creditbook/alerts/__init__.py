# Alerts Module
# Due-date alerts and the notification rules evaluated against them
#
# Components:
# - classifier.py: Open transactions -> DueDateAlert with priority
# - schedule.py: Schedule gate (debounce, day filter, time window)
# - matcher.py: Which alerts a rule applies to
# - store.py: Rule store / transaction source interfaces and implementations
# - scheduler.py: AlertScheduler tick driver (APScheduler integration)
# - rules.py: Default rule configurations
#
# scheduler.py depends on creditbook.notifications and is imported from
# its own module rather than re-exported here.

from .models import (
    AlertType,
    AlertPriority,
    RuleType,
    Frequency,
    SoundType,
    OpenTransaction,
    DueDateAlert,
)
from .schemas import (
    NotificationRuleSchema,
    RuleConditions,
    RuleActions,
    RuleSchedule,
    RuleSound,
    RuleMessage,
)
from .exceptions import (
    AlertEngineError,
    RuleStoreError,
    RuleNotFoundError,
    TransactionSourceError,
    MalformedScheduleError,
)
from .classifier import classify, sort_by_priority
from .schedule import is_eligible, parse_schedule_time
from .matcher import match
from .store import (
    RuleStore,
    TransactionSource,
    SqlRuleStore,
    SqlTransactionSource,
    InMemoryRuleStore,
    InMemoryTransactionSource,
)

__all__ = [
    # Models
    "AlertType",
    "AlertPriority",
    "RuleType",
    "Frequency",
    "SoundType",
    "OpenTransaction",
    "DueDateAlert",
    # Schemas
    "NotificationRuleSchema",
    "RuleConditions",
    "RuleActions",
    "RuleSchedule",
    "RuleSound",
    "RuleMessage",
    # Errors
    "AlertEngineError",
    "RuleStoreError",
    "RuleNotFoundError",
    "TransactionSourceError",
    "MalformedScheduleError",
    # Engine
    "classify",
    "sort_by_priority",
    "is_eligible",
    "parse_schedule_time",
    "match",
    # Stores
    "RuleStore",
    "TransactionSource",
    "SqlRuleStore",
    "SqlTransactionSource",
    "InMemoryRuleStore",
    "InMemoryTransactionSource",
]
