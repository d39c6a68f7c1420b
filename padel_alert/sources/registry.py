from __future__ import annotations

from typing import Dict, Type

from padel_alert.models.rule import ActivityCategory
from padel_alert.sources.base import ActivitySource
from padel_alert.sources.classes import ClassSource
from padel_alert.sources.lessons import LessonSource
from padel_alert.sources.matches import MatchSource

SOURCE_CLASSES: Dict[ActivityCategory, Type[ActivitySource]] = {
    ActivityCategory.MATCH: MatchSource,
    ActivityCategory.CLASS: ClassSource,
    ActivityCategory.LESSON: LessonSource,
}


def build_sources(client, seen_cache=None) -> Dict[ActivityCategory, ActivitySource]:
    """One source per category. A category without a source is a programming error."""
    missing = [c.value for c in ActivityCategory if c not in SOURCE_CLASSES]
    if missing:
        raise RuntimeError(f"No activity source registered for: {', '.join(missing)}")
    return {category: cls(client, seen_cache) for category, cls in SOURCE_CLASSES.items()}
