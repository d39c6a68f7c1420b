from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from padel_alert.db.database import Base


class SeenActivity(Base):
    __tablename__ = "seen_activities"
    __table_args__ = (
        UniqueConstraint("rule_id", "category", "activity_id", name="uq_seen_activity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    activity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    activity_start: Mapped[Optional[datetime]] = mapped_column(DateTime)
    seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self) -> str:
        return f"<SeenActivity rule={self.rule_id} {self.category}:{self.activity_id}>"
