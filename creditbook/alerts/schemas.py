"""
Notification Rule Schemas

Pydantic shapes for notification rules as the engine sees them.
Field names accept the camelCase keys the UI sends ("daysOverdue",
"balanceThreshold", "customUrl", "lastRun") as well as snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models import RuleType, SoundType


class RuleConditions(BaseModel):
    """Optional filters narrowing which alerts a rule fires for."""
    model_config = ConfigDict(populate_by_name=True)

    days_overdue: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("days_overdue", "daysOverdue")
    )
    balance_threshold: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("balance_threshold", "balanceThreshold")
    )


class RuleActions(BaseModel):
    """Delivery intents. Only `notification` is acted on here."""
    notification: bool = True
    email: bool = False
    sms: bool = False


class RuleSchedule(BaseModel):
    """
    When a rule may fire.

    Values are not validated here: a malformed schedule still loads, and the
    schedule gate rejects it when the rule is evaluated.
    """
    frequency: Optional[str] = None
    time: Optional[str] = None   # "HH:MM", 24h
    days: Optional[List[int]] = None


class RuleSound(BaseModel):
    enabled: bool = False
    type: SoundType = SoundType.NOTIFICATION
    volume: float = Field(default=0.7, ge=0.0, le=1.0)
    custom_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("custom_url", "customUrl")
    )


class RuleMessage(BaseModel):
    """Title and body templates; see creditbook.notifications.templates."""
    title: str
    body: str = ""


class NotificationRuleSchema(BaseModel):
    """A notification rule as read from the rule store."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    name: str
    type: RuleType
    enabled: bool = True
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    actions: RuleActions = Field(default_factory=RuleActions)
    schedule: Optional[RuleSchedule] = None
    sound: RuleSound = Field(default_factory=RuleSound)
    message: RuleMessage
    last_run: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("last_run", "lastRun")
    )


class RuleUpdate(BaseModel):
    """Fields the engine and the operator API may change on a rule."""
    enabled: Optional[bool] = None
