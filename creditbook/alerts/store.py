"""
Rule Store and Transaction Source

The alert engine's view of persistence. Rules and transactions are owned
elsewhere; the engine lists enabled rules, reads open transactions, and
writes back a rule's last_run / enabled flag.

last_run only moves forward: an update carrying an older timestamp than the
stored one leaves the stored value in place.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from creditbook.models.ledger import TERMINAL_STATUSES, Transaction
from creditbook.models.notification import NotificationRule

from .exceptions import RuleNotFoundError, RuleStoreError, TransactionSourceError
from .models import OpenTransaction
from .schemas import NotificationRuleSchema

logger = logging.getLogger(__name__)


def to_naive_local(value: datetime) -> datetime:
    """Timestamps are stored as naive local time."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def advance_last_run(current: Optional[datetime], proposed: datetime) -> datetime:
    """The later of the stored and proposed last_run."""
    proposed = to_naive_local(proposed)
    if current is not None and to_naive_local(current) > proposed:
        return current
    return proposed


class RuleStore(ABC):
    """Read and update access to notification rules."""

    @abstractmethod
    async def list_enabled_rules(self) -> List[NotificationRuleSchema]:
        """All rules with enabled = True."""
        pass

    @abstractmethod
    async def list_rules(self) -> List[NotificationRuleSchema]:
        """All rules, enabled or not."""
        pass

    @abstractmethod
    async def get_rule(self, rule_id: str) -> Optional[NotificationRuleSchema]:
        pass

    @abstractmethod
    async def update_rule(
        self,
        rule_id: str,
        last_run: Optional[datetime] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationRuleSchema:
        """
        Update last_run and/or enabled on a rule.

        Raises:
            RuleNotFoundError: no rule with this id
            RuleStoreError: the write failed
        """
        pass


class TransactionSource(ABC):
    """Read access to open transactions."""

    @abstractmethod
    async def list_open_transactions_with_due_dates(self) -> List[OpenTransaction]:
        pass


# =============================================================================
# SQLAlchemy implementations
# =============================================================================

def _load_rules(rows: Iterable[NotificationRule]) -> List[NotificationRuleSchema]:
    """Validate rows, skipping any that do not form a usable rule."""
    rules = []
    for row in rows:
        try:
            rules.append(NotificationRuleSchema.model_validate(row))
        except ValidationError as e:
            logger.error(f"Skipping unreadable notification rule {row.id}: {e}")
    return rules


class SqlRuleStore(RuleStore):
    """Rule store backed by the notification_rules table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def list_enabled_rules(self) -> List[NotificationRuleSchema]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(NotificationRule)
                    .where(NotificationRule.enabled == True)  # noqa: E712
                    .order_by(NotificationRule.name)
                )
                return _load_rules(result.scalars().all())
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Error fetching active notification rules: {e}") from e

    async def list_rules(self) -> List[NotificationRuleSchema]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(NotificationRule).order_by(NotificationRule.name)
                )
                return _load_rules(result.scalars().all())
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Error fetching notification rules: {e}") from e

    async def get_rule(self, rule_id: str) -> Optional[NotificationRuleSchema]:
        try:
            async with self.session_factory() as db:
                row = await db.get(NotificationRule, rule_id)
                if row is None:
                    return None
                return NotificationRuleSchema.model_validate(row)
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Error fetching notification rule {rule_id}: {e}") from e

    async def update_rule(
        self,
        rule_id: str,
        last_run: Optional[datetime] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationRuleSchema:
        try:
            async with self.session_factory() as db:
                row = await db.get(NotificationRule, rule_id)
                if row is None:
                    raise RuleNotFoundError(rule_id)

                if last_run is not None:
                    row.last_run = advance_last_run(row.last_run, last_run)
                if enabled is not None:
                    row.enabled = enabled

                await db.commit()
                await db.refresh(row)
                return NotificationRuleSchema.model_validate(row)
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Error updating notification rule {rule_id}: {e}") from e


class SqlTransactionSource(TransactionSource):
    """Open, dated transactions from the ledger tables."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def list_open_transactions_with_due_dates(self) -> List[OpenTransaction]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Transaction)
                    .where(Transaction.due_date.is_not(None))
                    .where(Transaction.status.not_in(TERMINAL_STATUSES))
                    .order_by(Transaction.due_date)
                    .options(selectinload(Transaction.customer))
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise TransactionSourceError(f"Error fetching open transactions: {e}") from e

        return [
            OpenTransaction(
                id=row.id,
                customer_name=row.customer.name if row.customer else "Unknown Customer",
                amount=row.amount,
                due_date=row.due_date,
                status=row.status,
            )
            for row in rows
        ]


# =============================================================================
# In-memory implementations
# =============================================================================

class InMemoryRuleStore(RuleStore):
    """Rule store holding rules in a dict. For development and tests."""

    def __init__(self, rules: Iterable[NotificationRuleSchema] = ()):
        self._rules: Dict[str, NotificationRuleSchema] = {rule.id: rule for rule in rules}

    async def list_enabled_rules(self) -> List[NotificationRuleSchema]:
        return [rule for rule in await self.list_rules() if rule.enabled]

    async def list_rules(self) -> List[NotificationRuleSchema]:
        return sorted(self._rules.values(), key=lambda rule: rule.name)

    async def get_rule(self, rule_id: str) -> Optional[NotificationRuleSchema]:
        return self._rules.get(rule_id)

    async def update_rule(
        self,
        rule_id: str,
        last_run: Optional[datetime] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationRuleSchema:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        changes = {}
        if last_run is not None:
            changes["last_run"] = advance_last_run(rule.last_run, last_run)
        if enabled is not None:
            changes["enabled"] = enabled

        rule = rule.model_copy(update=changes)
        self._rules[rule_id] = rule
        return rule


class InMemoryTransactionSource(TransactionSource):

    def __init__(self, transactions: Iterable[OpenTransaction] = ()):
        self.transactions = list(transactions)

    async def list_open_transactions_with_due_dates(self) -> List[OpenTransaction]:
        return list(self.transactions)
