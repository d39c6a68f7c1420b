from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from padel_alert.models.rule import ActivityCategory
from padel_alert.notifications.telegram import escape_markdown_v2

if TYPE_CHECKING:
    from padel_alert.models import Rule
    from padel_alert.sources.base import Activity

# Discord embed colors by activity category
CATEGORY_COLORS = {
    ActivityCategory.MATCH: 0x00CC66,  # green
    ActivityCategory.CLASS: 0x3399FF,  # blue
    ActivityCategory.LESSON: 0xFF9900,  # orange
}


def _escape_link(url: str) -> str:
    # inside a MarkdownV2 link target only ")" and "\\" are special
    return url.replace("\\", "\\\\").replace(")", "\\)")


def format_level(level: Optional[float]) -> str:
    if not level:
        return "Any"
    return f"{level:.1f}"


def format_level_range(activity: "Activity") -> str:
    low = format_level(activity.min_level)
    high = format_level(activity.max_level)
    return low if low == high else f"{low} - {high}"


def format_duration(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours}h"
    if hours == 0:
        return f"{rest}m"
    return f"{hours}h {rest}m"


def format_when(activity: "Activity") -> str:
    return (
        f"{activity.start_date:%Y-%m-%d %H:%M} "
        f"({format_duration(activity.duration)})"
    )


def format_subject(activities: List["Activity"]) -> str:
    count = len(activities)
    noun = "activity" if count == 1 else "activities"
    return f"PadelAlert: {count} new {noun} available"


def format_new_activities(rule: "Rule", activities: List["Activity"]) -> Dict[str, Any]:
    """Format new activities for all channels.

    Returns:
        dict with keys "telegram" (str) and "discord_embeds" (list).
    """
    if not activities:
        return {"telegram": "", "discord_embeds": []}

    # Telegram MarkdownV2
    lines = [
        f"*{escape_markdown_v2(format_subject(activities))}*",
        escape_markdown_v2(f"Rule: {rule.name}"),
        "",
    ]
    for activity in activities:
        lines.append(f"*{escape_markdown_v2(activity.name)}*")
        lines.append(escape_markdown_v2(f"{activity.club.name} | {format_when(activity)}"))
        lines.append(
            escape_markdown_v2(
                f"Level {format_level_range(activity)} | "
                f"{activity.available_places} places left"
                + (f" | {activity.price}" if activity.price else "")
            )
        )
        if activity.link:
            lines.append(f"[View on Playtomic]({_escape_link(activity.link)})")
        lines.append("")

    # Discord embeds, one per activity
    embeds = []
    for activity in activities:
        fields = [
            {"name": "Club", "value": activity.club.name or "-", "inline": True},
            {"name": "When", "value": format_when(activity), "inline": True},
            {"name": "Level", "value": format_level_range(activity), "inline": True},
            {"name": "Places left", "value": str(activity.available_places), "inline": True},
        ]
        if activity.price:
            fields.append({"name": "Price", "value": activity.price, "inline": True})
        embed = {
            "title": activity.name,
            "color": CATEGORY_COLORS.get(activity.category, 0x999999),
            "fields": fields,
            "footer": {"text": f"Rule: {rule.name}"},
        }
        if activity.link:
            embed["url"] = activity.link
        embeds.append(embed)

    return {"telegram": "\n".join(lines).rstrip(), "discord_embeds": embeds}
