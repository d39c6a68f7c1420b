from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from padel_alert.exceptions import RuleNotFoundError
from padel_alert.models import Rule, RuleSchedule, SeenActivity

DEFAULT_BATCH_SIZE = 100

# Fields the rule processor is allowed to write back
BOOKKEEPING_FIELDS = ("last_checked", "last_notification")
# Fields owned by the rule's user
EDITABLE_FIELDS = (
    "name",
    "category",
    "club_ids",
    "min_ranking",
    "max_ranking",
    "start_date",
    "end_date",
    "title_contains",
    "active",
)


class RuleStorage:
    """Rule persistence plus the rule schedule (rule id -> next due time).

    Every method opens its own session, so one instance can be shared by the
    API and all scheduler worker threads. Returned rules are detached.
    """

    def __init__(self, session_factory: sessionmaker, batch_size: int = DEFAULT_BATCH_SIZE):
        self._session_factory = session_factory
        self.batch_size = batch_size

    # -- rules ---------------------------------------------------------------

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        with self._session_factory() as session:
            return session.get(Rule, rule_id)

    def list_rules(self, user_id: str) -> List[Rule]:
        with self._session_factory() as session:
            return (
                session.query(Rule)
                .filter_by(user_id=user_id)
                .order_by(Rule.created_at)
                .all()
            )

    def create_rule(self, rule: Rule) -> Rule:
        with self._session_factory() as session:
            session.add(rule)
            session.commit()
        logger.info(f"Created rule {rule.id} for user {rule.user_id}")
        return rule

    def update_rule(self, rule: Rule, fields: Optional[Iterable[str]] = None) -> Rule:
        """Write ``rule`` back. ``fields`` limits the write to those columns."""
        with self._session_factory() as session:
            existing = session.get(Rule, rule.id)
            if existing is None:
                raise RuleNotFoundError(f"rule not found: {rule.id}")

            keys = list(fields) if fields is not None else [
                column.key
                for column in Rule.__table__.columns
                if column.key not in ("id", "created_at", "updated_at")
            ]
            for key in keys:
                setattr(existing, key, getattr(rule, key))
            existing.updated_at = datetime.now()
            session.commit()
            rule.updated_at = existing.updated_at
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule with its schedule entry and seen set. False if unknown."""
        with self._session_factory() as session:
            rule = session.get(Rule, rule_id)
            if rule is None:
                return False

            session.delete(rule)
            session.query(RuleSchedule).filter_by(rule_id=rule_id).delete()
            seen = session.query(SeenActivity).filter_by(rule_id=rule_id).delete()
            session.commit()

        logger.info(f"Deleted rule {rule_id} ({seen} seen activities cleared)")
        return True

    # -- schedule ------------------------------------------------------------

    def schedule_rule(self, rule_id: str, at: datetime) -> None:
        """Upsert the next due time of a rule. Last write wins."""
        with self._session_factory() as session:
            session.merge(RuleSchedule(rule_id=rule_id, next_run=at))
            try:
                session.commit()
            except IntegrityError:
                # lost an insert race against another writer; update instead
                session.rollback()
                session.query(RuleSchedule).filter_by(rule_id=rule_id).update(
                    {RuleSchedule.next_run: at}
                )
                session.commit()

    def get_scheduled_rules(self, until: datetime, limit: Optional[int] = None) -> List[str]:
        """Rule ids due at or before ``until``, oldest first, at most one batch.

        Inactive rules keep their entry but are left out, so they cannot fill
        the batch. Entries of unknown rules are returned.
        """
        with self._session_factory() as session:
            rows = (
                session.query(RuleSchedule.rule_id)
                .outerjoin(Rule, Rule.id == RuleSchedule.rule_id)
                .filter(RuleSchedule.next_run <= until)
                .filter(or_(Rule.id.is_(None), Rule.active.is_(True)))
                .order_by(RuleSchedule.next_run, RuleSchedule.rule_id)
                .limit(limit or self.batch_size)
                .all()
            )
        return [row.rule_id for row in rows]

    def get_next_run(self, rule_id: str) -> Optional[datetime]:
        with self._session_factory() as session:
            entry = session.get(RuleSchedule, rule_id)
            return entry.next_run if entry else None

    def unschedule_rule(self, rule_id: str) -> None:
        with self._session_factory() as session:
            session.query(RuleSchedule).filter_by(rule_id=rule_id).delete()
            session.commit()
