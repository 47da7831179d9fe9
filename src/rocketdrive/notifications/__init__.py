"""Run and failure notifications."""

from .base import Notifier, NotificationEvent, LogNotifier
from .email import EmailNotifier
from .telegram import TelegramNotifier
from .fanout import NotificationFanout, NotifyPolicy

__all__ = [
    "Notifier",
    "NotificationEvent",
    "LogNotifier",
    "EmailNotifier",
    "TelegramNotifier",
    "NotificationFanout",
    "NotifyPolicy",
]
