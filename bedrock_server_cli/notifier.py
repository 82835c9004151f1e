import socket
import logging
from enum import Enum
from typing import Optional

import httpx

from .schemas import NotificationConfig

log = logging.getLogger(__name__)

SEND_TIMEOUT = 10


class NotificationEvent(str, Enum):
    UPDATE_START = "update_start"
    UPDATE_SUCCESS = "update_success"
    UPDATE_FAILURE = "update_failure"
    NO_UPDATE = "no_update"


_TITLES = {
    NotificationEvent.UPDATE_START: "🔄 Minecraft server update started",
    NotificationEvent.UPDATE_SUCCESS: "✅ Minecraft server updated",
    NotificationEvent.UPDATE_FAILURE: "❌ Minecraft server update failed",
    NotificationEvent.NO_UPDATE: "ℹ️ Minecraft server is up to date",
}


class TelegramNotifier:
    """
    Sends update workflow events to Telegram chats through the Bot API.

    Delivery is best effort: failures are logged and never abort the caller.
    """

    def __init__(self, config: NotificationConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.client = client or httpx.Client(
            timeout=SEND_TIMEOUT,
            transport=httpx.HTTPTransport(retries=1),
        )

    @property
    def is_configured(self) -> bool:
        return self.config.enabled and bool(self.config.bot_token) and bool(self.config.chat_ids)

    def wants(self, event: NotificationEvent) -> bool:
        return self.is_configured and getattr(self.config, f"notify_{event.value}")

    def format_message(self, event: NotificationEvent, details: str = "") -> str:
        message = f"[{socket.gethostname()}] {_TITLES[event]}"
        if details:
            message += f"\n{details}"
        return message

    def notify(self, event: NotificationEvent, details: str = "") -> bool:
        """Returns True if every configured chat received the message."""
        if not self.wants(event):
            log.debug(f"Notification '{event.value}' disabled, not sending")
            return False

        url = f"{self.config.api_base_url.rstrip('/')}/bot{self.config.bot_token}/sendMessage"
        text = self.format_message(event, details)
        delivered = True
        for chat_id in self.config.chat_ids:
            try:
                response = self.client.post(url, json={"chat_id": chat_id, "text": text})
                response.raise_for_status()
                log.debug(f"Sent '{event.value}' notification to chat {chat_id}")
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                # The bot token is part of the URL, keep it out of the log
                log.warning(f"Failed to send Telegram notification to chat {chat_id}: {type(e).__name__}")
                delivered = False
        return delivered
