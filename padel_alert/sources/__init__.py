from padel_alert.sources.base import Activity, ActivitySource, Address, Club, Player
from padel_alert.sources.registry import build_sources

__all__ = [
    "Activity",
    "ActivitySource",
    "Address",
    "Club",
    "Player",
    "build_sources",
]
