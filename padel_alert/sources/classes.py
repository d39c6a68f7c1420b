from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from padel_alert.catalog.client import class_search_params, parse_playtomic_time
from padel_alert.exceptions import ActivitySourceError, CatalogError
from padel_alert.models.rule import ActivityCategory, Rule
from padel_alert.sources.base import (
    PLAYTOMIC_WEB,
    Activity,
    ActivitySource,
    Player,
    club_from_tenant,
    level_span,
)


def class_to_activity(academy_class: Dict[str, Any]) -> Activity:
    """Convert one ``/classes`` item. Raises ValueError on unusable dates."""
    class_id = academy_class["academy_class_id"]
    registration_info = academy_class.get("registration_info") or {}
    registrations = registration_info.get("registrations") or []

    players = []
    for registration in registrations:
        p = registration.get("player") or {}
        players.append(
            Player(
                id=p.get("user_id", ""),
                name=p.get("name", ""),
                level=p.get("level_value"),
                link=f"{PLAYTOMIC_WEB}/profile/user/{p.get('user_id', '')}",
            )
        )

    summary = academy_class.get("course_summary")
    if summary:
        name = summary.get("name", "")
        gender = summary.get("gender", "")
        min_players = summary.get("min_players") or 0
        max_players = summary.get("max_players") or 0
        available = max(0, max_players - len(registrations))
    else:
        # without a course summary there is no capacity to book into
        name = (academy_class.get("resource") or {}).get("name", "")
        gender = "UNRESTRICTED"
        min_players = 1
        max_players = len(registrations)
        available = 0

    min_level, max_level = level_span(players)

    return Activity(
        id=class_id,
        category=ActivityCategory.CLASS,
        type="ACADEMY_CLASS",
        provider_type=academy_class.get("type", ""),
        name=name or "Class",
        club=club_from_tenant(academy_class.get("tenant") or {}),
        start_date=parse_playtomic_time(academy_class.get("start_date", "")),
        end_date=parse_playtomic_time(academy_class.get("end_date", "")),
        min_players=min_players,
        max_players=max_players,
        available_places=available,
        min_level=min_level,
        max_level=max_level,
        price=registration_info.get("base_price") or "",
        gender=gender,
        players=players,
        link=f"{PLAYTOMIC_WEB}/lesson_class/{class_id}",
    )


class ClassSource(ActivitySource):
    category = ActivityCategory.CLASS

    def fetch_activities(self, rule: Rule, since: Optional[date] = None) -> List[Activity]:
        try:
            classes = self.client.get_classes(class_search_params(rule.club_ids, since))
        except CatalogError as e:
            raise ActivitySourceError(self.category.value, f"fetch classes: {e}") from e

        try:
            return [class_to_activity(c) for c in classes]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ActivitySourceError(self.category.value, f"transform classes: {e}") from e
