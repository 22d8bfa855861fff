# Notifications Module
# Rendering and delivery of due-date notifications
#
# Components:
# - templates.py: Title/body placeholder rendering
# - providers.py: UI push channels and sound players
# - dispatch.py: DispatchSink interface and NotificationDispatcher

from .templates import render_message, render_template, format_amount
from .providers import (
    ToastMessage,
    SendResult,
    SoundCue,
    NotificationChannel,
    WebhookChannel,
    ConsoleChannel,
    SoundPlayer,
    LoggingSoundPlayer,
    get_channel,
)
from .dispatch import (
    DispatchResult,
    DispatchSink,
    NotificationDispatcher,
    get_dispatch_sink,
)

__all__ = [
    "render_message",
    "render_template",
    "format_amount",
    "ToastMessage",
    "SendResult",
    "SoundCue",
    "NotificationChannel",
    "WebhookChannel",
    "ConsoleChannel",
    "SoundPlayer",
    "LoggingSoundPlayer",
    "get_channel",
    "DispatchResult",
    "DispatchSink",
    "NotificationDispatcher",
    "get_dispatch_sink",
]
