"""
Dispatch Sink

Hands a rendered notification for one matched alert to the UI push channel
and the sound player. Failures are reported in the result; the scheduler
logs them and carries on.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from creditbook.alerts.models import AlertPriority, DueDateAlert, RuleType, SoundType
from creditbook.alerts.schemas import NotificationRuleSchema, RuleSound

from .providers import (
    LoggingSoundPlayer,
    NotificationChannel,
    SoundCue,
    SoundPlayer,
    ToastMessage,
    get_channel,
)

logger = logging.getLogger(__name__)

# Non-overdue toasts close themselves after this long
AUTO_CLOSE_MS = 5000


@dataclass
class DispatchResult:
    """Outcome of dispatching one alert."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    sound: Optional[SoundType] = None


class DispatchSink(ABC):
    """Delivers a rendered notification for one alert."""

    @abstractmethod
    async def dispatch(
        self,
        rule: NotificationRuleSchema,
        alert: DueDateAlert,
        title: str,
        body: str,
    ) -> DispatchResult:
        pass


def sound_type_for_alert(alert: DueDateAlert, sound: RuleSound) -> SoundType:
    """
    Pick the sound kind for an alert.

    A custom sound with a source always plays as configured. Otherwise urgent
    and high priority alerts use the urgent sound, medium ones the reminder,
    and everything else the rule's own sound type.
    """
    if sound.type == SoundType.CUSTOM and sound.custom_url:
        return SoundType.CUSTOM
    if alert.priority in (AlertPriority.URGENT, AlertPriority.HIGH):
        return SoundType.URGENT
    if alert.priority == AlertPriority.MEDIUM:
        return SoundType.REMINDER
    if sound.type == SoundType.CUSTOM:
        return SoundType.NOTIFICATION
    return sound.type


def build_sound_cue(rule: NotificationRuleSchema, alert: DueDateAlert) -> Optional[SoundCue]:
    if not rule.sound.enabled:
        return None
    sound_type = sound_type_for_alert(alert, rule.sound)
    return SoundCue(
        type=sound_type,
        volume=rule.sound.volume,
        custom_url=rule.sound.custom_url if sound_type == SoundType.CUSTOM else None,
    )


def build_toast(
    rule: NotificationRuleSchema,
    alert: DueDateAlert,
    title: str,
    body: str,
    cue: Optional[SoundCue] = None,
) -> ToastMessage:
    """Toast payload for the UI. Overdue rules stay on screen until dismissed."""
    sticky = rule.type == RuleType.OVERDUE
    return ToastMessage(
        type=alert.alert_type.value,
        title=title,
        message=body,
        tag=f"notification-{rule.id}-{alert.transaction_id}",
        transaction_id=alert.transaction_id,
        customer_name=alert.customer_name,
        amount=float(alert.amount),
        due_date=alert.due_date.isoformat(),
        priority=alert.priority.value,
        require_interaction=sticky,
        auto_close_ms=0 if sticky else AUTO_CLOSE_MS,
        sound=cue.to_dict() if cue else None,
    )


class NotificationDispatcher(DispatchSink):
    """
    Dispatch sink pushing toasts through a channel with a sound hint.

    The toast is only pushed when the rule's notification action is on.
    Sound playback is fire-and-forget: a failing player is logged and does
    not fail the dispatch.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        sound_player: Optional[SoundPlayer] = None,
    ):
        self.channel = channel
        self.sound_player = sound_player or LoggingSoundPlayer()

    async def dispatch(
        self,
        rule: NotificationRuleSchema,
        alert: DueDateAlert,
        title: str,
        body: str,
    ) -> DispatchResult:
        cue = build_sound_cue(rule, alert)
        result = DispatchResult(success=True, sound=cue.type if cue else None)

        if rule.actions.notification:
            send_result = await self.channel.send(build_toast(rule, alert, title, body, cue))
            result.success = send_result.success
            result.message_id = send_result.message_id
            result.error = send_result.error
        else:
            logger.debug(f"Rule {rule.id} has notifications turned off; sound only")

        if cue is not None:
            try:
                await self.sound_player.play(cue)
            except Exception as e:
                logger.error(f"Error playing notification sound for rule {rule.id}: {e}")

        return result


def get_dispatch_sink(
    webhook_url: Optional[str] = None,
    console_mode: bool = False,
    sound_player: Optional[SoundPlayer] = None,
) -> DispatchSink:
    """Build the dispatch sink for the configured channel."""
    return NotificationDispatcher(
        channel=get_channel(webhook_url=webhook_url, console_mode=console_mode),
        sound_player=sound_player,
    )
