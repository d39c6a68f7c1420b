from datetime import datetime, timedelta

import pytest

from padel_alert.exceptions import RuleNotFoundError
from padel_alert.models import ActivityCategory, Rule, RuleSchedule
from padel_alert.storage.rule_storage import BOOKKEEPING_FIELDS, RuleStorage
from padel_alert.storage.seen_cache import SeenCache


@pytest.fixture
def storage(session_factory):
    return RuleStorage(session_factory, batch_size=3)


def _rule(**kwargs):
    values = {
        "user_id": "user-1",
        "name": "Evening matches",
        "category": ActivityCategory.MATCH,
        "club_ids": ["club-1", "club-2"],
    }
    values.update(kwargs)
    return Rule(**values)


class TestRules:
    def test_create_and_get_rule(self, storage):
        rule = storage.create_rule(_rule(min_ranking=3.0))

        loaded = storage.get_rule(rule.id)
        assert loaded is not None
        assert loaded.name == "Evening matches"
        assert loaded.category is ActivityCategory.MATCH
        assert loaded.club_ids == ["club-1", "club-2"]
        assert loaded.min_ranking == 3.0
        assert loaded.active is True
        assert loaded.created_at is not None

    def test_get_unknown_rule_returns_none(self, storage):
        assert storage.get_rule("missing") is None

    def test_category_none_means_all(self, storage):
        rule = storage.create_rule(_rule(category=None))
        assert storage.get_rule(rule.id).category is None

    def test_list_rules_by_owner(self, storage):
        storage.create_rule(_rule(name="a"))
        storage.create_rule(_rule(name="b"))
        storage.create_rule(_rule(name="c", user_id="user-2"))

        names = sorted(r.name for r in storage.list_rules("user-1"))
        assert names == ["a", "b"]

    def test_update_bookkeeping_fields_only(self, storage):
        rule = storage.create_rule(_rule())

        stale = storage.get_rule(rule.id)
        # the owner deactivates the rule meanwhile
        edited = storage.get_rule(rule.id)
        edited.active = False
        storage.update_rule(edited)

        checked_at = datetime(2026, 1, 1, 12, 0)
        stale.last_checked = checked_at
        storage.update_rule(stale, fields=BOOKKEEPING_FIELDS)

        loaded = storage.get_rule(rule.id)
        assert loaded.last_checked == checked_at
        assert loaded.active is False

    def test_update_unknown_rule_raises(self, storage):
        with pytest.raises(RuleNotFoundError):
            storage.update_rule(_rule(id="missing"))

    def test_delete_rule_clears_schedule_and_seen(self, storage, session_factory):
        seen = SeenCache(session_factory)
        rule = storage.create_rule(_rule())
        storage.schedule_rule(rule.id, datetime.now())
        seen.mark_seen(rule.id, "match", "m-1")

        assert storage.delete_rule(rule.id) is True

        assert storage.get_rule(rule.id) is None
        assert storage.get_next_run(rule.id) is None
        assert seen.is_seen(rule.id, "match", "m-1") is False

    def test_delete_unknown_rule(self, storage):
        assert storage.delete_rule("missing") is False

    def test_with_category_returns_detached_copy(self):
        rule = _rule(id="r-1", category=None, title_contains="mixed")

        copy = rule.with_category(ActivityCategory.LESSON)

        assert copy is not rule
        assert copy.category is ActivityCategory.LESSON
        assert copy.id == "r-1"
        assert copy.title_contains == "mixed"
        assert rule.category is None
        copy.club_ids.append("club-3")
        assert rule.club_ids == ["club-1", "club-2"]


class TestSchedule:
    def test_schedule_is_an_upsert(self, storage, session_factory):
        first = datetime(2026, 1, 1, 10, 0)
        second = datetime(2026, 1, 1, 10, 5)

        storage.schedule_rule("r-1", first)
        storage.schedule_rule("r-1", second)

        with session_factory() as session:
            entries = session.query(RuleSchedule).all()
        assert len(entries) == 1
        assert storage.get_next_run("r-1") == second

    def test_scheduling_unknown_rule_is_allowed(self, storage):
        storage.schedule_rule("no-such-rule", datetime(2026, 1, 1))
        assert storage.get_next_run("no-such-rule") == datetime(2026, 1, 1)

    def test_due_rules_in_time_order(self, storage):
        now = datetime(2026, 1, 1, 12, 0)
        storage.schedule_rule("late", now - timedelta(seconds=1))
        storage.schedule_rule("early", now - timedelta(minutes=10))
        storage.schedule_rule("exact", now)
        storage.schedule_rule("future", now + timedelta(seconds=1))

        assert storage.get_scheduled_rules(now) == ["early", "late", "exact"]

    def test_due_rules_capped_at_batch_size(self, storage):
        now = datetime(2026, 1, 1, 12, 0)
        for i in range(5):
            storage.schedule_rule(f"r-{i}", now - timedelta(minutes=5 - i))

        assert storage.get_scheduled_rules(now) == ["r-0", "r-1", "r-2"]
        assert storage.get_scheduled_rules(now, limit=10) == [f"r-{i}" for i in range(5)]

    def test_backlog_drains_across_polls(self, storage):
        now = datetime(2026, 1, 1, 12, 0)
        for i in range(5):
            storage.schedule_rule(f"r-{i}", now - timedelta(minutes=5 - i))

        for rule_id in storage.get_scheduled_rules(now):
            storage.schedule_rule(rule_id, now + timedelta(minutes=5))

        assert storage.get_scheduled_rules(now) == ["r-3", "r-4"]

    def test_unschedule(self, storage):
        storage.schedule_rule("r-1", datetime(2026, 1, 1))
        storage.unschedule_rule("r-1")
        storage.unschedule_rule("r-1")

        assert storage.get_next_run("r-1") is None
        assert storage.get_scheduled_rules(datetime(2030, 1, 1)) == []


class TestDueRulesSkipInactive:
    def test_inactive_rules_cannot_fill_the_batch(self, session_factory):
        storage = RuleStorage(session_factory, batch_size=2)
        now = datetime(2026, 1, 1, 12, 0)
        for name in ("a", "b"):
            storage.create_rule(_rule(id=name, active=False))
            storage.schedule_rule(name, now - timedelta(hours=1))
        storage.create_rule(_rule(id="z", active=True))
        storage.schedule_rule("z", now - timedelta(minutes=1))

        assert storage.get_scheduled_rules(now) == ["z"]
        # the inactive entries are kept as they are
        assert storage.get_next_run("a") == now - timedelta(hours=1)

    def test_reactivated_rule_is_due_again(self, storage):
        now = datetime(2026, 1, 1, 12, 0)
        rule = storage.create_rule(_rule(active=False))
        storage.schedule_rule(rule.id, now)
        assert storage.get_scheduled_rules(now) == []

        rule.active = True
        storage.update_rule(rule, fields=("active",))

        assert storage.get_scheduled_rules(now) == [rule.id]

    def test_unknown_rules_are_still_returned(self, storage):
        now = datetime(2026, 1, 1, 12, 0)
        storage.create_rule(_rule(id="off", active=False))
        storage.schedule_rule("off", now)
        storage.schedule_rule("deleted", now)

        assert storage.get_scheduled_rules(now) == ["deleted"]
