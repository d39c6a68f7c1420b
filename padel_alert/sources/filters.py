"""Rule filters shared by every source. Applied in the order of ``matches_rule``."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from padel_alert.models.rule import Rule
    from padel_alert.sources.base import Activity


def has_available_places(activity: "Activity") -> bool:
    return activity.available_places > 0


def matches_ranking(activity: "Activity", rule: "Rule") -> bool:
    # an activity without level information is not excluded by a ranking range
    if rule.min_ranking is not None and activity.min_level is not None:
        if activity.min_level < rule.min_ranking:
            return False
    if rule.max_ranking is not None and activity.max_level is not None:
        if activity.max_level > rule.max_ranking:
            return False
    return True


def matches_date(activity: "Activity", rule: "Rule") -> bool:
    if rule.start_date is not None and activity.start_date < rule.start_date:
        return False
    if rule.end_date is not None and activity.start_date > rule.end_date:
        return False
    return True


def matches_title(activity: "Activity", rule: "Rule") -> bool:
    if not rule.title_contains:
        return True
    return rule.title_contains.lower() in (activity.name or "").lower()


def matches_rule(activity: "Activity", rule: "Rule") -> bool:
    return (
        has_available_places(activity)
        and matches_ranking(activity, rule)
        and matches_date(activity, rule)
        and matches_title(activity, rule)
    )


def matches_text(activity: "Activity", text: str) -> bool:
    """Case-insensitive search over the activity name, club name and city."""
    if not text:
        return True
    needle = text.lower()
    haystack = (activity.name, activity.club.name, activity.club.address.city)
    return any(needle in (value or "").lower() for value in haystack)
