"""Notification fan-out: policy gate in front of an ordered channel list."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .base import Notifier, NotificationEvent
from ..utils.logging import get_logger


@dataclass(frozen=True)
class NotifyPolicy:
    """Which outcomes are worth a notification."""

    on_success: bool = False
    on_failure: bool = False

    def allows(self, event: NotificationEvent) -> bool:
        return self.on_success if event.success else self.on_failure


class NotificationFanout:
    """Delivers events to every channel, in order, when the policy allows.

    A failing channel is logged and skipped; it never blocks the remaining
    channels or the run.
    """

    def __init__(self, notifiers: Optional[Iterable[Notifier]] = None, policy: Optional[NotifyPolicy] = None):
        self.notifiers: List[Notifier] = list(notifiers or [])
        self.policy = policy or NotifyPolicy()
        self.logger = get_logger(self.__class__.__name__)

    def add(self, notifier: Notifier) -> None:
        self.notifiers.append(notifier)

    def notify(self, event: NotificationEvent) -> int:
        """Send ``event`` to every channel.

        Returns:
            Number of channels that accepted the event
        """
        if not self.policy.allows(event):
            self.logger.debug(
                "Notification suppressed by policy",
                subject=event.subject,
                success=event.success
            )
            return 0

        delivered = 0
        for notifier in self.notifiers:
            try:
                if notifier.notify(event):
                    delivered += 1
            except Exception as e:
                self.logger.warning(
                    "Notification channel failed",
                    channel=getattr(notifier, "name", type(notifier).__name__),
                    subject=event.subject,
                    error=str(e)
                )

        return delivered

    def send(self, subject: str, body: str, success: bool) -> int:
        return self.notify(NotificationEvent(subject=subject, body=body, success=success))
