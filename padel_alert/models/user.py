from __future__ import annotations

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from padel_alert.db.database import Base
from padel_alert.models.base import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    telegram_chat_id: Mapped[Optional[str]] = mapped_column(String(64))

    def __repr__(self) -> str:
        return f"<User {self.id}>"
