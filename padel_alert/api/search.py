"""Ad-hoc activity search straight against the catalog.

Uses the same fetch and transform as rule evaluation, but no seen cache:
a search never marks anything as reported.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from padel_alert.api.deps import get_sources
from padel_alert.api.schemas import ActivityResponse, SearchResponse
from padel_alert.exceptions import ActivitySourceError
from padel_alert.models import ActivityCategory, Rule
from padel_alert.sources import Activity, ActivitySource
from padel_alert.sources.filters import has_available_places, matches_ranking, matches_text

router = APIRouter(prefix="/api/search", tags=["search"])

ALL_CATEGORIES = tuple(ActivityCategory)

# type filter -> (categories to fetch, activity type to keep)
SEARCH_TYPES: Dict[str, Tuple[Tuple[ActivityCategory, ...], Optional[str]]] = {
    "match": ((ActivityCategory.MATCH,), None),
    "match_competitive": ((ActivityCategory.MATCH,), "MATCH_COMPETITIVE"),
    "match_friendly": ((ActivityCategory.MATCH,), "MATCH_FRIENDLY"),
    "class": ((ActivityCategory.CLASS,), None),
    "academy_class": ((ActivityCategory.CLASS,), None),
    "lesson": ((ActivityCategory.LESSON,), None),
    "tournament": ((ActivityCategory.LESSON,), None),
}


def parse_club_ids(value: str) -> List[str]:
    return [club_id.strip() for club_id in value.split(",") if club_id.strip()]


def fetch_all(
    sources: Dict[ActivityCategory, ActivitySource],
    categories: Tuple[ActivityCategory, ...],
    rule: Rule,
    since: Optional[date],
) -> List[Activity]:
    """Fetch every category concurrently. Any failing category fails the search."""
    activities: List[Activity] = []
    errors: List[ActivitySourceError] = []
    with ThreadPoolExecutor(max_workers=len(categories), thread_name_prefix="search") as pool:
        futures = {
            pool.submit(sources[category].fetch_activities, rule, since): category
            for category in categories
        }
        for future in as_completed(futures):
            try:
                activities.extend(future.result())
            except ActivitySourceError as e:
                logger.error(f"Search: failed to fetch {futures[future].value}: {e}")
                errors.append(e)

    if errors:
        raise errors[0]
    return activities


@router.get("", response_model=SearchResponse)
def search_activities(
    club_id: str = Query(..., description="Comma-separated club ids"),
    since: Optional[date] = Query(None, alias="date", description="First day, YYYY-MM-DD"),
    type: Optional[str] = Query(None, description="match, match_competitive, match_friendly, class or lesson"),
    min_level: Optional[float] = None,
    max_level: Optional[float] = None,
    q: Optional[str] = Query(None, description="Text in the name, club or city"),
    include_unavailable: bool = False,
    sources: Dict[ActivityCategory, ActivitySource] = Depends(get_sources),
):
    club_ids = parse_club_ids(club_id)
    if not club_ids:
        raise HTTPException(status_code=422, detail="club_id must name at least one club")
    if min_level is not None and max_level is not None and min_level > max_level:
        raise HTTPException(status_code=422, detail="min_level must not be greater than max_level")

    categories: Tuple[ActivityCategory, ...] = ALL_CATEGORIES
    activity_type = None
    if type:
        if type.lower() not in SEARCH_TYPES:
            raise HTTPException(status_code=422, detail=f"Unknown activity type: {type}")
        categories, activity_type = SEARCH_TYPES[type.lower()]

    # transient rule carrying the clubs and the level window; never stored
    rule = Rule(
        id="search",
        user_id="",
        name="search",
        club_ids=club_ids,
        min_ranking=min_level,
        max_ranking=max_level,
        active=True,
    )

    try:
        activities = fetch_all(sources, categories, rule, since)
    except ActivitySourceError as e:
        raise HTTPException(status_code=502, detail=f"Catalog unavailable: {e}")

    results = [
        activity
        for activity in activities
        if (activity_type is None or activity.type == activity_type)
        and (include_unavailable or has_available_places(activity))
        and matches_ranking(activity, rule)
        and matches_text(activity, q or "")
    ]
    results.sort(key=lambda activity: activity.start_date)

    return SearchResponse(
        count=len(results),
        activities=[ActivityResponse.model_validate(activity) for activity in results],
    )
