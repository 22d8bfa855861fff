"""
Notification Rule Model

User-configured rules that turn due-date alerts into notifications.
The JSON columns hold the shapes validated by creditbook.alerts.schemas.
"""

from sqlalchemy import Column, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func

from creditbook.database import Base
from creditbook.models.base import generate_id


class NotificationRule(Base):
    """
    Persisted notification rule.

    last_run is the only scheduling state; every evaluator reads and writes
    it through the rule store.
    """
    __tablename__ = "notification_rules"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    type = Column(String, nullable=False)  # overdue | reminder | followup
    enabled = Column(Boolean, nullable=False, default=True)

    # e.g. {"days_overdue": 3, "balance_threshold": 1000}
    conditions = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=lambda: {"notification": True})
    # e.g. {"frequency": "weekly", "time": "09:00", "days": [1, 3]}
    schedule = Column(JSON, nullable=False)
    sound = Column(JSON, nullable=False, default=dict)
    message = Column(JSON, nullable=False)

    last_run = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
