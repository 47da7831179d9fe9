"""Telegram bot notifications."""

import asyncio
from typing import Dict, Optional

import aiohttp

from .base import Notifier, NotificationEvent
from ..exceptions import NotificationError

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier(Notifier):
    """Posts each event to a Telegram chat through the Bot API."""

    name = "telegram"

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        enabled: bool = True,
        timeout_seconds: float = 10.0,
        api_url: str = TELEGRAM_API_URL
    ):
        super().__init__()
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self.api_url = api_url

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def format_message(self, event: NotificationEvent) -> str:
        outcome = "✅ Success" if event.success else "❌ Failure"
        text = f"*RocketDrive*: {outcome}\n*{event.subject}*\n{event.body}"
        # A bare ampersand breaks Markdown parsing on the Telegram side
        return text.replace("&", "and")

    def build_payload(self, event: NotificationEvent) -> Dict[str, str]:
        return {
            "chat_id": str(self.chat_id),
            "text": self.format_message(event),
            "parse_mode": "Markdown",
        }

    def notify(self, event: NotificationEvent) -> bool:
        if not self.enabled:
            return False

        if not self.configured:
            self.logger.debug("Telegram notifier missing token or chat id, skipping")
            return False

        asyncio.run(self.send(event))
        return True

    async def send(self, event: NotificationEvent) -> None:
        """Post the event; raises ``NotificationError`` on a non-200 reply."""
        url = self.api_url.format(token=self.bot_token)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, data=self.build_payload(event)) as response:
                if response.status != 200:
                    detail = await response.text()
                    raise NotificationError(
                        f"Telegram API returned {response.status}: {detail[:200]}"
                    )

        self.logger.debug("Telegram notification sent", chat_id=self.chat_id, subject=event.subject)
