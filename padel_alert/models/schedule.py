from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from padel_alert.db.database import Base


class RuleSchedule(Base):
    """Next due time of a rule. No foreign key: unknown rules may be scheduled."""

    __tablename__ = "rule_schedule"

    rule_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    next_run: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<RuleSchedule {self.rule_id} at {self.next_run:%Y-%m-%d %H:%M:%S}>"
