from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from padel_alert.exceptions import ActivitySourceError
from padel_alert.models.rule import ActivityCategory, Rule
from padel_alert.sources.filters import matches_rule
from padel_alert.storage.seen_cache import SeenCache

PLAYTOMIC_WEB = "https://app.playtomic.io"


@dataclass
class Address:
    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""


@dataclass
class Club:
    id: str
    name: str = ""
    address: Address = field(default_factory=Address)
    link: str = ""


@dataclass
class Player:
    id: str
    name: str = ""
    level: Optional[float] = None
    team: Optional[str] = None
    link: str = ""


@dataclass
class Activity:
    id: str
    category: ActivityCategory
    type: str
    name: str
    club: Club
    start_date: datetime
    end_date: datetime
    provider_type: str = ""
    min_players: int = 0
    max_players: int = 0
    available_places: int = 0
    # None when the provider gives nothing to derive a level from
    min_level: Optional[float] = None
    max_level: Optional[float] = None
    price: str = ""
    gender: str = ""
    players: List[Player] = field(default_factory=list)
    link: str = ""

    @property
    def duration(self) -> int:
        """Length in minutes."""
        return int((self.end_date - self.start_date).total_seconds() // 60)


def club_from_tenant(tenant: dict, address_key: str = "address") -> Club:
    address = tenant.get(address_key) or {}
    tenant_id = tenant.get("tenant_id", "")
    return Club(
        id=tenant_id,
        name=tenant.get("tenant_name", ""),
        address=Address(
            street=address.get("street", ""),
            postal_code=address.get("postal_code", ""),
            city=address.get("city", ""),
            country=address.get("country", ""),
        ),
        link=f"{PLAYTOMIC_WEB}/tenant/{tenant_id}",
    )


def level_span(players: List[Player]):
    levels = [p.level for p in players if p.level is not None]
    if not levels:
        return None, None
    return min(levels), max(levels)


class ActivitySource(ABC):
    """Fetch, transform and filter one category of activities for a rule."""

    category: ActivityCategory

    def __init__(self, client, seen_cache: Optional[SeenCache], log=None):
        self.client = client
        self.seen_cache = seen_cache
        self.log = log or logger.bind(component=f"source.{self.category.value}")

    @abstractmethod
    def fetch_activities(self, rule: Rule, since: Optional[date] = None) -> List[Activity]:
        """Query the catalog for the rule's clubs from ``since`` (default today)"""
        ...

    def process(self, rule: Rule) -> List[Activity]:
        """Activities matching ``rule`` that were never reported for it.

        Returned activities are marked seen right away, so a later failure
        (e.g. the notification) does not report them again next cycle.

        Raises:
            ActivitySourceError: anything went wrong before an activity was
                marked seen; nothing has been marked in that case.
        """
        if rule.category is not self.category:
            raise ValueError(f"not a {self.category.value} rule: {rule.id}")

        try:
            candidates = self.fetch_activities(rule)
            selected = self.select_new(rule, candidates)
        except ActivitySourceError:
            raise
        except Exception as e:
            self.log.opt(exception=e).error(f"Rule {rule.id}: unexpected {type(e).__name__}")
            raise ActivitySourceError(self.category.value, f"{type(e).__name__}: {e}") from e

        self.mark_seen(rule, selected)
        return selected

    def select_new(self, rule: Rule, activities: List[Activity]) -> List[Activity]:
        category = self.category.value
        selected = [
            activity
            for activity in activities
            if matches_rule(activity, rule)
            and not self.seen_cache.is_seen(rule.id, category, activity.id)
        ]
        self.log.debug(
            f"Rule {rule.id}: {len(selected)} new of {len(activities)} {category} candidates"
        )
        return selected

    def mark_seen(self, rule: Rule, activities: List[Activity]) -> None:
        category = self.category.value
        for activity in activities:
            try:
                self.seen_cache.mark_seen(rule.id, category, activity.id, activity.start_date)
            except SQLAlchemyError as e:
                self.log.error(f"Failed to mark {category} {activity.id} seen for rule {rule.id}: {e}")
