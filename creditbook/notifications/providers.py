"""
Notification Providers

Delivery backends for due-date notifications:
- Channels push a toast to the UI (console for development, webhook otherwise)
- Sound players take a fire-and-forget "play sound of kind K" hint
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from creditbook.alerts.models import SoundType

logger = logging.getLogger(__name__)


@dataclass
class ToastMessage:
    """A notification as handed to the UI."""
    type: str
    title: str
    message: str
    tag: str
    transaction_id: str
    customer_name: str
    amount: float
    due_date: str
    priority: str
    require_interaction: bool = False
    auto_close_ms: int = 5000
    sound: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "tag": self.tag,
            "transaction_id": self.transaction_id,
            "customer_name": self.customer_name,
            "amount": self.amount,
            "due_date": self.due_date,
            "priority": self.priority,
            "require_interaction": self.require_interaction,
            "auto_close_ms": self.auto_close_ms,
            "sound": self.sound,
        }


@dataclass
class SendResult:
    """Result of pushing a notification."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SoundCue:
    """Sound to play alongside a notification."""
    type: SoundType
    volume: float = 0.7
    custom_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "volume": self.volume,
            "custom_url": self.custom_url,
        }


class NotificationChannel(ABC):
    """Abstract base class for UI push channels."""

    @abstractmethod
    async def send(self, toast: ToastMessage) -> SendResult:
        """Push a toast to the UI."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the channel is properly configured."""
        pass


class WebhookChannel(NotificationChannel):
    """
    Posts toasts as JSON to the UI's notification endpoint.

    The receiving side renders the toast and plays the sound hint.
    """

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.url)

    async def send(self, toast: ToastMessage) -> SendResult:
        if not self.is_configured():
            return SendResult(success=False, error="Notification webhook URL not configured")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.url,
                    json=toast.to_dict(),
                    timeout=self.timeout,
                )

            if response.is_success:
                data = response.json() if response.content else {}
                return SendResult(success=True, message_id=data.get("id"))

            error_msg = response.text
            logger.error(f"Notification webhook error: {response.status_code} - {error_msg}")
            return SendResult(success=False, error=error_msg)

        except (httpx.HTTPError, ValueError) as e:
            logger.exception("Failed to push notification via webhook")
            return SendResult(success=False, error=str(e))


class ConsoleChannel(NotificationChannel):
    """
    Console channel for development/testing.

    Logs toasts instead of pushing them.
    """

    def is_configured(self) -> bool:
        return True

    async def send(self, toast: ToastMessage) -> SendResult:
        logger.info(
            f"\n{'='*60}\n"
            f"NOTIFICATION (Console Mode) [{toast.priority}]\n"
            f"{'='*60}\n"
            f"{toast.title}\n"
            f"{toast.message}\n"
            f"{'='*60}\n"
        )
        return SendResult(success=True, message_id="console-dev")


class SoundPlayer(ABC):
    """Fire-and-forget audio cue."""

    @abstractmethod
    async def play(self, cue: SoundCue) -> None:
        pass


class LoggingSoundPlayer(SoundPlayer):
    """
    Records the sound hint in the log.

    Playback happens in the UI, which receives the same hint in the toast.
    """

    async def play(self, cue: SoundCue) -> None:
        logger.info(f"[SOUND NOTIFICATION] Playing {cue.type.value} sound at volume {cue.volume}")


def get_channel(webhook_url: Optional[str] = None, console_mode: bool = False) -> NotificationChannel:
    """
    Get the configured UI push channel.

    Args:
        webhook_url: Notification endpoint of the UI
        console_mode: If True, log toasts instead of pushing them

    Returns:
        NotificationChannel instance
    """
    if console_mode or not webhook_url:
        logger.info("Using console notification channel")
        return ConsoleChannel()

    return WebhookChannel(url=webhook_url)
