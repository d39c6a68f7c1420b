from padel_alert.models.rule import ActivityCategory, Rule
from padel_alert.models.schedule import RuleSchedule
from padel_alert.models.seen_activity import SeenActivity
from padel_alert.models.user import User

__all__ = [
    "ActivityCategory",
    "Rule",
    "RuleSchedule",
    "SeenActivity",
    "User",
]
