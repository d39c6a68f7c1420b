from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from padel_alert.db.database import Base
from padel_alert.models.base import TimestampMixin


class ActivityCategory(enum.Enum):
    MATCH = "match"
    CLASS = "class"
    LESSON = "lesson"


def new_rule_id() -> str:
    return uuid.uuid4().hex


class Rule(Base, TimestampMixin):
    __tablename__ = "rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_rule_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # None means every category
    category: Mapped[Optional[ActivityCategory]] = mapped_column(Enum(ActivityCategory))
    club_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    min_ranking: Mapped[Optional[float]] = mapped_column(Float)
    max_ranking: Mapped[Optional[float]] = mapped_column(Float)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    title_contains: Mapped[Optional[str]] = mapped_column(String(255))

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_checked: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_notification: Mapped[Optional[datetime]] = mapped_column(DateTime)

    def with_category(self, category: ActivityCategory) -> "Rule":
        """Detached copy of this rule restricted to one category.

        The copy is never added to a session; it only feeds a source adapter.
        """
        values = {column.key: getattr(self, column.key) for column in self.__table__.columns}
        values["category"] = category
        values["club_ids"] = list(self.club_ids or [])
        return Rule(**values)

    def __repr__(self) -> str:
        category = self.category.value if self.category else "all"
        return f"<Rule {self.id} {category}:{self.name}>"
