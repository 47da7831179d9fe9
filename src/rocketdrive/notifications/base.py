"""Notification channel interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..utils.logging import get_logger


@dataclass(frozen=True)
class NotificationEvent:
    """A message handed to the notification fan-out."""

    subject: str
    body: str
    success: bool


class Notifier(ABC):
    """A single delivery channel.

    ``notify`` returns True when the message was handed off, False when the
    channel is disabled or not configured. Delivery failures raise; the
    fan-out decides what to do with them.
    """

    name = "notifier"

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def notify(self, event: NotificationEvent) -> bool:
        pass


class LogNotifier(Notifier):
    """Writes events to the application log."""

    name = "log"

    def notify(self, event: NotificationEvent) -> bool:
        log = self.logger.info if event.success else self.logger.error
        log("Backup notification", subject=event.subject, body=event.body, success=event.success)
        return True
