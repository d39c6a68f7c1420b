from __future__ import annotations

import re
from typing import Optional

import httpx
from loguru import logger

from padel_alert.config import get_settings

# Telegram MarkdownV2 requires escaping these characters
_TELEGRAM_ESCAPE_CHARS = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")

TELEGRAM_API_BASE = "https://api.telegram.org"
SEND_MESSAGE_TIMEOUT = 10  # seconds
MAX_MESSAGE_LENGTH = 4096


def escape_markdown_v2(text: str) -> str:
    """Escape special characters for Telegram MarkdownV2 format."""
    return _TELEGRAM_ESCAPE_CHARS.sub(r"\\\1", text)


class TelegramSender:
    """Send messages via Telegram Bot API."""

    def __init__(self):
        settings = get_settings()
        self.bot_token = settings.telegram_bot_token
        self.default_chat_id = settings.telegram_chat_id

    @classmethod
    def is_configured(cls) -> bool:
        """A bot token is enough: the chat comes from the user or the default."""
        return bool(get_settings().telegram_bot_token)

    def send(self, text: str, chat_id: Optional[str] = None) -> bool:
        """Send a MarkdownV2 message to ``chat_id`` (default chat if omitted).

        Returns:
            True if sent successfully, False otherwise.
        """
        chat_id = chat_id or self.default_chat_id
        if not chat_id:
            logger.warning("Telegram: no chat id to send to")
            return False

        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text[:MAX_MESSAGE_LENGTH],
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": True,
        }

        try:
            with httpx.Client(timeout=SEND_MESSAGE_TIMEOUT) as client:
                response = client.post(url, json=payload)
                response.raise_for_status()

            logger.info(f"Telegram message sent to chat {chat_id}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Telegram API error: {e.response.status_code} - {e.response.text}"
            )
            return False
        except httpx.RequestError as e:
            logger.error(f"Telegram request failed: {e}")
            return False
