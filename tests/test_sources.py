from datetime import date, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from padel_alert.catalog.client import (
    class_search_params,
    lesson_search_params,
    match_search_params,
)
from padel_alert.exceptions import ActivitySourceError, CatalogError
from padel_alert.models import ActivityCategory, Rule
from padel_alert.sources import build_sources
from padel_alert.sources.classes import ClassSource, class_to_activity
from padel_alert.sources.lessons import LessonSource, lesson_to_activity, parse_level_description
from padel_alert.sources.matches import MatchSource, match_to_activity
from padel_alert.storage.seen_cache import SeenCache

TENANT = {
    "tenant_id": "club-1",
    "tenant_name": "Club Norte",
    "address": {"street": "Calle 1", "postal_code": "28001", "city": "Madrid", "country": "ES"},
}


def _match(match_id, level, registered=1):
    players = [
        {"user_id": f"p-{i}", "name": f"Player {i}", "level_value": level}
        for i in range(registered)
    ]
    return {
        "match_id": match_id,
        "match_type": "COMPETITIVE",
        "location": "Club Norte",
        "tenant": TENANT,
        "start_date": "2026-05-10T18:00:00",
        "end_date": "2026-05-10T19:30:00",
        "min_level": level,
        "max_level": level,
        "price": "8 EUR",
        "gender": "MIXED",
        "teams": [
            {"team_id": "0", "min_players": 2, "max_players": 2, "players": players[:2]},
            {"team_id": "1", "min_players": 2, "max_players": 2, "players": players[2:]},
        ],
    }


def _class(class_id, summary=True, registrations=1):
    item = {
        "academy_class_id": class_id,
        "type": "COURSE",
        "tenant": TENANT,
        "resource": {"name": "Court 3"},
        "start_date": "2026-05-11T10:00:00.000Z",
        "end_date": "2026-05-11T11:00:00",
        "registration_info": {
            "base_price": "15 EUR",
            "registrations": [
                {"player": {"user_id": f"p-{i}", "name": f"P{i}", "level_value": 2.0 + i}}
                for i in range(registrations)
            ],
        },
    }
    if summary:
        item["course_summary"] = {
            "name": "Intermediate course",
            "gender": "MIXED",
            "min_players": 2,
            "max_players": 4,
        }
    return item


def _lesson(lesson_id, club_id="club-1", level_description="2.5 - 4"):
    return {
        "tournament_id": lesson_id,
        "tournament_name": "Saturday Americano",
        "type": "AMERICANO",
        "tenant": {
            "tenant_id": club_id,
            "tenant_name": "Club",
            "tenant_address": {"city": "Madrid"},
        },
        "start_date": "2026-05-16T09:00:00",
        "end_date": "2026-05-16T12:00:00",
        "min_players": 8,
        "max_players": 16,
        "available_places": 5,
        "level_description": level_description,
        "registered_players": [{"user_id": "p-1", "full_name": "Ana", "level_value": 3.1}],
    }


def _rule(category, **kwargs):
    values = {
        "id": "r-1",
        "user_id": "u-1",
        "name": "rule",
        "category": category,
        "club_ids": ["club-1", "club-2"],
        "active": True,
    }
    values.update(kwargs)
    return Rule(**values)


@pytest.fixture
def seen_cache(session_factory):
    return SeenCache(session_factory)


class TestSearchParams:
    def test_match_params_join_clubs(self):
        params = match_search_params(["c1", "c2"], today=date(2026, 5, 1))
        assert params["tenant_id"] == "c1,c2"
        assert params["from_start_date"] == "2026-05-01T00:00:00"
        assert params["sport_id"] == "PADEL"
        assert params["has_players"] == "true"

    def test_class_params(self):
        params = class_search_params(["c1"], today=date(2026, 5, 1))
        assert params["status"] == "PENDING,IN_PROGRESS"
        assert params["include_summary"] == "true"
        assert params["page"] == 0

    def test_lesson_params_take_one_club(self):
        params = lesson_search_params("c1", today=date(2026, 5, 1))
        assert params["tenant_id"] == "c1"
        assert params["tournament_visibility"] == "PUBLIC"


class TestMatchTransform:
    def test_counts_and_places(self):
        activity = match_to_activity(_match("m-1", 3.5, registered=3))

        assert activity.category is ActivityCategory.MATCH
        assert activity.type == "MATCH_COMPETITIVE"
        assert activity.min_players == 4
        assert activity.max_players == 4
        assert activity.available_places == 1
        assert activity.start_date == datetime(2026, 5, 10, 18, 0)
        assert activity.duration == 90
        assert activity.club.name == "Club Norte"
        assert activity.club.address.city == "Madrid"
        assert [p.team for p in activity.players] == ["A", "A", "B"]
        assert activity.link.endswith("/padel-match/m-1")

    def test_friendly_type(self):
        match = _match("m-1", 3.5)
        match["match_type"] = "FRIENDLY"
        assert match_to_activity(match).type == "MATCH_FRIENDLY"

    def test_overbooked_match_has_no_places(self):
        match = _match("m-1", 3.5, registered=4)
        match["teams"][1]["players"].append({"user_id": "extra"})
        assert match_to_activity(match).available_places == 0

    def test_missing_date_raises(self):
        match = _match("m-1", 3.5)
        match["start_date"] = ""
        with pytest.raises(ValueError):
            match_to_activity(match)


class TestClassTransform:
    def test_with_course_summary(self):
        activity = class_to_activity(_class("c-1", registrations=2))

        assert activity.name == "Intermediate course"
        assert activity.gender == "MIXED"
        assert activity.max_players == 4
        assert activity.available_places == 2
        assert activity.min_level == 2.0
        assert activity.max_level == 3.0
        assert activity.price == "15 EUR"
        assert activity.start_date == datetime(2026, 5, 11, 10, 0)

    def test_without_course_summary(self):
        activity = class_to_activity(_class("c-1", summary=False, registrations=2))

        assert activity.name == "Court 3"
        assert activity.gender == "UNRESTRICTED"
        assert activity.min_players == 1
        assert activity.max_players == 2
        assert activity.available_places == 0

    def test_no_registrations_has_no_level(self):
        activity = class_to_activity(_class("c-1", registrations=0))
        assert activity.min_level is None
        assert activity.max_level is None


class TestLessonTransform:
    def test_level_from_description(self):
        activity = lesson_to_activity(_lesson("l-1"))
        assert (activity.min_level, activity.max_level) == (2.5, 4.0)
        assert activity.available_places == 5
        assert activity.club.address.city == "Madrid"
        assert activity.link.endswith("/training/l-1")

    def test_level_from_players(self):
        activity = lesson_to_activity(_lesson("l-1", level_description="All levels"))
        assert (activity.min_level, activity.max_level) == (3.1, 3.1)

    def test_default_level(self):
        lesson = _lesson("l-1", level_description="")
        lesson["registered_players"] = []
        activity = lesson_to_activity(lesson)
        assert (activity.min_level, activity.max_level) == (1.0, 5.0)

    def test_parse_level_description(self):
        assert parse_level_description("3 - 4.5") == (3.0, 4.5)
        assert parse_level_description("beginners") == (None, None)


class TestMatchSource:
    def test_filters_and_suppresses_seen(self, seen_cache):
        client = MagicMock()
        client.get_matches.return_value = [
            _match("low", 2.9),
            _match("mid", 3.5),
            _match("high", 4.6),
        ]
        source = MatchSource(client, seen_cache)
        rule = _rule(ActivityCategory.MATCH, min_ranking=3.0, max_ranking=4.5)

        first = source.process(rule)
        second = source.process(rule)

        assert [a.id for a in first] == ["mid"]
        assert second == []
        assert seen_cache.is_seen("r-1", "match", "mid") is True
        assert seen_cache.is_seen("r-1", "match", "low") is False
        params = client.get_matches.call_args.args[0]
        assert params["tenant_id"] == "club-1,club-2"

    def test_full_match_is_not_marked_seen(self, seen_cache):
        client = MagicMock()
        client.get_matches.return_value = [_match("full", 3.5, registered=4)]
        source = MatchSource(client, seen_cache)

        assert source.process(_rule(ActivityCategory.MATCH)) == []
        assert seen_cache.is_seen("r-1", "match", "full") is False

    def test_fetch_error_is_a_source_error(self, seen_cache):
        client = MagicMock()
        client.get_matches.side_effect = CatalogError("GET /matches returned 503")
        source = MatchSource(client, seen_cache)

        with pytest.raises(ActivitySourceError) as exc_info:
            source.process(_rule(ActivityCategory.MATCH))
        assert exc_info.value.category == "match"

    def test_bad_item_fails_the_whole_batch(self, seen_cache):
        client = MagicMock()
        broken = _match("broken", 3.5)
        del broken["match_id"]
        client.get_matches.return_value = [_match("ok", 3.5), broken]
        source = MatchSource(client, seen_cache)

        with pytest.raises(ActivitySourceError):
            source.process(_rule(ActivityCategory.MATCH))
        assert seen_cache.is_seen("r-1", "match", "ok") is False

    def test_wrong_category_is_rejected(self, seen_cache):
        source = MatchSource(MagicMock(), seen_cache)
        with pytest.raises(ValueError):
            source.process(_rule(ActivityCategory.CLASS))


class TestClassSource:
    def test_new_classes(self, seen_cache):
        client = MagicMock()
        client.get_classes.return_value = [_class("c-1"), _class("c-2", summary=False)]
        source = ClassSource(client, seen_cache)

        activities = source.process(_rule(ActivityCategory.CLASS))

        # c-2 has no capacity to book into
        assert [a.id for a in activities] == ["c-1"]

    def test_fetch_error(self, seen_cache):
        client = MagicMock()
        client.get_classes.side_effect = CatalogError("timeout")
        with pytest.raises(ActivitySourceError):
            ClassSource(client, seen_cache).process(_rule(ActivityCategory.CLASS))


class TestLessonSource:
    def test_one_request_per_club(self, seen_cache):
        client = MagicMock()
        client.get_lessons.side_effect = lambda params: [_lesson(f"l-{params['tenant_id']}")]
        source = LessonSource(client, seen_cache)

        activities = source.process(_rule(ActivityCategory.LESSON))

        assert sorted(a.id for a in activities) == ["l-club-1", "l-club-2"]
        assert client.get_lessons.call_count == 2

    def test_failing_club_is_skipped(self, seen_cache):
        def get_lessons(params):
            if params["tenant_id"] == "club-2":
                raise CatalogError("GET /tournaments returned 500")
            return [_lesson("l-1")]

        client = MagicMock()
        client.get_lessons.side_effect = get_lessons
        source = LessonSource(client, seen_cache)

        activities = source.process(_rule(ActivityCategory.LESSON))

        assert [a.id for a in activities] == ["l-1"]

    def test_every_club_failing_yields_nothing(self, seen_cache):
        client = MagicMock()
        client.get_lessons.side_effect = CatalogError("down")
        source = LessonSource(client, seen_cache)

        assert source.process(_rule(ActivityCategory.LESSON)) == []

    def test_no_clubs(self, seen_cache):
        client = MagicMock()
        source = LessonSource(client, seen_cache)

        assert source.process(_rule(ActivityCategory.LESSON, club_ids=[])) == []
        client.get_lessons.assert_not_called()


def test_build_sources_covers_every_category(seen_cache):
    sources = build_sources(MagicMock(), seen_cache)
    assert set(sources) == set(ActivityCategory)
    assert isinstance(sources[ActivityCategory.LESSON], LessonSource)


class TestUnexpectedPayloads:
    def test_null_capacities_count_as_zero(self):
        lesson = _lesson("l-1")
        lesson["available_places"] = None
        lesson["max_players"] = None
        activity = lesson_to_activity(lesson)
        assert activity.available_places == 0
        assert activity.max_players == 0

        match = _match("m-1", 3.5, registered=1)
        match["teams"][1]["max_players"] = None
        assert match_to_activity(match).available_places == 1

    def test_malformed_teams_is_a_source_error(self, seen_cache):
        client = MagicMock()
        client.get_matches.return_value = [dict(_match("m-1", 3.5), teams=7)]

        with pytest.raises(ActivitySourceError):
            MatchSource(client, seen_cache).process(_rule(ActivityCategory.MATCH))

    def test_seen_cache_failure_marks_nothing(self):
        client = MagicMock()
        client.get_matches.return_value = [_match("m-1", 3.5), _match("m-2", 3.5)]
        seen_cache = MagicMock()
        seen_cache.is_seen.side_effect = [False, OperationalError("SELECT", {}, Exception("locked"))]

        with pytest.raises(ActivitySourceError) as exc_info:
            MatchSource(client, seen_cache).process(_rule(ActivityCategory.MATCH))

        assert exc_info.value.category == "match"
        seen_cache.mark_seen.assert_not_called()


def test_fetch_from_a_given_day(seen_cache):
    client = MagicMock()
    client.get_lessons.return_value = []
    source = LessonSource(client, seen_cache)

    source.fetch_activities(_rule(ActivityCategory.LESSON, club_ids=["club-1"]), date(2026, 7, 1))

    params = client.get_lessons.call_args.args[0]
    assert params["from_start_date"] == "2026-07-01T00:00:00"
