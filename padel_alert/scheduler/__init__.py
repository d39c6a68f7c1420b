"""Wiring of the rule scheduler and its collaborators."""
from __future__ import annotations

from typing import Optional

from padel_alert.catalog.client import PlaytomicClient
from padel_alert.config import Settings, get_settings
from padel_alert.db.database import get_session_factory
from padel_alert.notifications.dispatcher import NotificationDispatcher
from padel_alert.scheduler.processor import RuleProcessor
from padel_alert.scheduler.runner import Scheduler
from padel_alert.sources.registry import build_sources
from padel_alert.storage.rule_storage import RuleStorage
from padel_alert.storage.seen_cache import SeenCache
from padel_alert.storage.user_storage import UserStorage


def create_scheduler(settings: Optional[Settings] = None, session_factory=None) -> Scheduler:
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()

    rule_storage = RuleStorage(session_factory, batch_size=settings.scheduler_batch_size)
    seen_cache = SeenCache(session_factory)
    client = PlaytomicClient(settings.playtomic_base_url, timeout=settings.request_timeout)

    processor = RuleProcessor(
        rule_storage=rule_storage,
        user_storage=UserStorage(session_factory),
        sources=build_sources(client, seen_cache),
        notifier=NotificationDispatcher(),
    )
    return Scheduler(rule_storage, processor, seen_cache=seen_cache, settings=settings)


def start_scheduler(settings: Optional[Settings] = None) -> Scheduler:
    scheduler = create_scheduler(settings)
    scheduler.start()
    return scheduler
