from __future__ import annotations

from typing import Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from padel_alert.models import User


class UserStorage:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session_factory() as session:
            return session.get(User, user_id)

    def create_user(self, user: User) -> User:
        with self._session_factory() as session:
            session.add(user)
            session.commit()
        logger.info(f"Created user {user.id}")
        return user
