from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from loguru import logger

from padel_alert.config import get_settings
from padel_alert.exceptions import NotificationError
from padel_alert.notifications.discord import DiscordSender
from padel_alert.notifications.formatter import format_new_activities, format_subject
from padel_alert.notifications.telegram import TelegramSender

if TYPE_CHECKING:
    from padel_alert.models import Rule, User
    from padel_alert.sources.base import Activity


class NotificationDispatcher:
    """Sends new activities of a rule to its owner on every configured channel."""

    def __init__(self):
        self.settings = get_settings()

    def notify_new_activities(
        self,
        owner: "User",
        rule: "Rule",
        activities: List["Activity"],
    ) -> Dict[str, int]:
        """Dispatch one message per channel.

        Returns:
            Dict with channel names as keys and count of notified activities as values.

        Raises:
            NotificationError: channels were configured but none of them accepted the message.
        """
        if not activities:
            return {}

        if not self.settings.notification_enabled:
            logger.info("Notifications are disabled, skipping dispatch")
            return {}

        message = format_new_activities(rule, activities)
        results: Dict[str, int] = {}
        attempted = 0

        # Telegram: the owner's chat, else the default chat
        if TelegramSender.is_configured():
            chat_id = owner.telegram_chat_id or self.settings.telegram_chat_id
            if chat_id:
                attempted += 1
                if TelegramSender().send(message["telegram"], chat_id=chat_id):
                    results["telegram"] = len(activities)
                else:
                    logger.error(f"Telegram: failed to notify user {owner.id} for rule {rule.id}")
            else:
                logger.debug(f"Telegram: user {owner.id} has no chat id")

        # Discord
        if DiscordSender.is_configured():
            attempted += 1
            if DiscordSender().send_embeds(format_subject(activities), message["discord_embeds"]):
                results["discord"] = len(activities)
            else:
                logger.error(f"Discord: failed to notify for rule {rule.id}")

        if attempted == 0:
            logger.warning(f"No notification channel configured, skipping user {owner.id}")
            return {}

        if not results:
            raise NotificationError(f"all channels failed for rule {rule.id}")

        logger.info(f"Notified user {owner.id} about {len(activities)} activities: {results}")
        return results
