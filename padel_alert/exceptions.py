class PadelAlertError(Exception):
    """Base class for errors raised by padel-alert."""


class CatalogError(PadelAlertError):
    """The Playtomic catalog could not be queried or returned garbage."""


class ActivitySourceError(PadelAlertError):
    """A source adapter could not produce activities for a rule."""

    def __init__(self, category: str, message: str):
        super().__init__(f"{category}: {message}")
        self.category = category


class NotificationError(PadelAlertError):
    """Every configured notification channel failed."""


class SchedulerAlreadyRunning(PadelAlertError):
    """start() was called on a scheduler that is already running."""


class RuleNotFoundError(PadelAlertError):
    """The rule does not exist (any more)."""
