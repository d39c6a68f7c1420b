from functools import lru_cache
from typing import Dict

from fastapi import Header, HTTPException

from padel_alert.catalog.client import PlaytomicClient
from padel_alert.config import get_settings
from padel_alert.db.database import get_session_factory
from padel_alert.models import ActivityCategory
from padel_alert.sources import ActivitySource, build_sources
from padel_alert.storage.rule_storage import RuleStorage
from padel_alert.storage.user_storage import UserStorage


def get_rule_storage() -> RuleStorage:
    return RuleStorage(get_session_factory(), batch_size=get_settings().scheduler_batch_size)


def get_user_storage() -> UserStorage:
    return UserStorage(get_session_factory())


@lru_cache
def get_sources() -> Dict[ActivityCategory, ActivitySource]:
    """Sources for ad-hoc searches: shared catalog client, no seen cache."""
    settings = get_settings()
    client = PlaytomicClient(settings.playtomic_base_url, timeout=settings.request_timeout)
    return build_sources(client, seen_cache=None)


def get_owner_id(x_user_id: str = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id
