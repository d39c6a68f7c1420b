from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from padel_alert.models import SeenActivity


class SeenCache:
    """Per-rule set of activity ids that were already reported."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def is_seen(self, rule_id: str, category: str, activity_id: str) -> bool:
        with self._session_factory() as session:
            exists = (
                session.query(SeenActivity.id)
                .filter_by(rule_id=rule_id, category=category, activity_id=activity_id)
                .first()
            )
        return exists is not None

    def mark_seen(
        self,
        rule_id: str,
        category: str,
        activity_id: str,
        activity_start: Optional[datetime] = None,
    ) -> None:
        """Add an activity to the rule's seen set. Marking twice is harmless."""
        with self._session_factory() as session:
            session.add(
                SeenActivity(
                    rule_id=rule_id,
                    category=category,
                    activity_id=activity_id,
                    activity_start=activity_start,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()

    def clear(self, rule_id: str) -> int:
        with self._session_factory() as session:
            count = session.query(SeenActivity).filter_by(rule_id=rule_id).delete()
            session.commit()
        return count

    def purge_expired(self, before: datetime) -> int:
        """Forget activities that started before ``before``.

        The catalog is only ever queried from today on, so an activity that has
        already started can never be fetched again and its entry is dead weight.
        Entries without a start time fall back to when they were seen.
        """
        with self._session_factory() as session:
            count = (
                session.query(SeenActivity)
                .filter(
                    or_(
                        SeenActivity.activity_start < before,
                        and_(
                            SeenActivity.activity_start.is_(None),
                            SeenActivity.seen_at < before,
                        ),
                    )
                )
                .delete(synchronize_session=False)
            )
            session.commit()
        return count
