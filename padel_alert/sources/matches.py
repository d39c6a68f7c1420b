from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from padel_alert.catalog.client import match_search_params, parse_playtomic_time
from padel_alert.exceptions import ActivitySourceError, CatalogError
from padel_alert.models.rule import ActivityCategory, Rule
from padel_alert.sources.base import (
    PLAYTOMIC_WEB,
    Activity,
    ActivitySource,
    Player,
    club_from_tenant,
)

TEAM_NAMES = {"0": "A", "1": "B"}


def match_to_activity(match: Dict[str, Any]) -> Activity:
    """Convert one ``/matches`` item. Raises ValueError on unusable dates."""
    match_id = match["match_id"]
    match_type = match.get("match_type", "")

    players = []
    min_players = 0
    max_players = 0
    registered = 0
    for team in match.get("teams") or []:
        team_players = team.get("players") or []
        min_players += team.get("min_players") or 0
        max_players += team.get("max_players") or 0
        registered += len(team_players)

        team_id = str(team.get("team_id", ""))
        for p in team_players:
            players.append(
                Player(
                    id=p.get("user_id", ""),
                    name=p.get("name", ""),
                    level=p.get("level_value"),
                    team=TEAM_NAMES.get(team_id, team_id),
                    link=f"{PLAYTOMIC_WEB}/profile/user/{p.get('user_id', '')}",
                )
            )

    return Activity(
        id=match_id,
        category=ActivityCategory.MATCH,
        type="MATCH_FRIENDLY" if match_type == "FRIENDLY" else "MATCH_COMPETITIVE",
        provider_type=match_type,
        name=f"Padel Match at {match.get('location', '')}".strip(),
        club=club_from_tenant(match.get("tenant") or {}),
        start_date=parse_playtomic_time(match.get("start_date", "")),
        end_date=parse_playtomic_time(match.get("end_date", "")),
        min_players=min_players,
        max_players=max_players,
        available_places=max(0, max_players - registered),
        min_level=match.get("min_level"),
        max_level=match.get("max_level"),
        price=match.get("price") or "",
        gender=match.get("gender") or "",
        players=players,
        link=f"{PLAYTOMIC_WEB}/padel-match/{match_id}",
    )


class MatchSource(ActivitySource):
    category = ActivityCategory.MATCH

    def fetch_activities(self, rule: Rule, since: Optional[date] = None) -> List[Activity]:
        try:
            matches = self.client.get_matches(match_search_params(rule.club_ids, since))
        except CatalogError as e:
            raise ActivitySourceError(self.category.value, f"fetch matches: {e}") from e

        try:
            return [match_to_activity(m) for m in matches]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ActivitySourceError(self.category.value, f"transform matches: {e}") from e
