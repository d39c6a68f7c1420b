from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Dict, List, Optional

from padel_alert.catalog.client import lesson_search_params, parse_playtomic_time
from padel_alert.exceptions import CatalogError
from padel_alert.models.rule import ActivityCategory, Rule
from padel_alert.sources.base import (
    PLAYTOMIC_WEB,
    Activity,
    ActivitySource,
    Player,
    club_from_tenant,
    level_span,
)

MAX_CLUB_REQUESTS = 5
DEFAULT_LEVEL_RANGE = (1.0, 5.0)

_LEVEL_RANGE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*$")


def parse_level_description(description: str):
    """``"2.5 - 4"`` -> ``(2.5, 4.0)``; anything else -> ``(None, None)``."""
    m = _LEVEL_RANGE.match(description or "")
    if not m:
        return None, None
    return float(m.group(1)), float(m.group(2))


def lesson_to_activity(lesson: Dict[str, Any]) -> Activity:
    """Convert one lessons/tournaments item. Raises ValueError on unusable dates."""
    lesson_id = lesson["tournament_id"]

    players = [
        Player(
            id=p.get("user_id", ""),
            name=p.get("full_name", ""),
            level=p.get("level_value"),
            link=f"{PLAYTOMIC_WEB}/profile/user/{p.get('user_id', '')}",
        )
        for p in lesson.get("registered_players") or []
    ]

    min_level, max_level = parse_level_description(lesson.get("level_description", ""))
    if min_level is None:
        min_level, max_level = level_span(players)
    if min_level is None:
        min_level, max_level = DEFAULT_LEVEL_RANGE

    return Activity(
        id=lesson_id,
        category=ActivityCategory.LESSON,
        type="TOURNAMENT",
        provider_type=lesson.get("type", ""),
        name=lesson.get("tournament_name", ""),
        club=club_from_tenant(lesson.get("tenant") or {}, address_key="tenant_address"),
        start_date=parse_playtomic_time(lesson.get("start_date", "")),
        end_date=parse_playtomic_time(lesson.get("end_date", "")),
        min_players=lesson.get("min_players") or 0,
        max_players=lesson.get("max_players") or 0,
        available_places=lesson.get("available_places") or 0,
        min_level=min_level,
        max_level=max_level,
        price=lesson.get("price") or "",
        gender=lesson.get("gender") or "",
        players=players,
        link=f"{PLAYTOMIC_WEB}/training/{lesson_id}",
    )


class LessonSource(ActivitySource):
    """Lessons can only be queried one club at a time.

    A club whose request or payload fails is logged and skipped; the other
    clubs of the rule are still reported.
    """

    category = ActivityCategory.LESSON

    def fetch_activities(self, rule: Rule, since: Optional[date] = None) -> List[Activity]:
        club_ids = list(rule.club_ids or [])
        if not club_ids:
            return []

        workers = min(len(club_ids), MAX_CLUB_REQUESTS)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lessons") as pool:
            per_club = list(pool.map(lambda club_id: self._fetch_club(club_id, since), club_ids))

        return [activity for activities in per_club for activity in activities]

    def _fetch_club(self, club_id: str, since: Optional[date] = None) -> List[Activity]:
        try:
            lessons = self.client.get_lessons(lesson_search_params(club_id, since))
        except CatalogError as e:
            self.log.error(f"Error fetching lessons for club {club_id}: {e}")
            return []

        try:
            return [lesson_to_activity(lesson) for lesson in lessons]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            self.log.error(f"Error transforming lessons for club {club_id}: {e}")
            return []
