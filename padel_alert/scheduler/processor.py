from __future__ import annotations

import enum
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from padel_alert.exceptions import ActivitySourceError, PadelAlertError
from padel_alert.models import ActivityCategory, Rule, User
from padel_alert.sources.base import Activity, ActivitySource
from padel_alert.storage.rule_storage import BOOKKEEPING_FIELDS, RuleStorage
from padel_alert.storage.user_storage import UserStorage


class ProcessOutcome(enum.Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOTIFIED = "notified"
    NOT_NOTIFIED = "not_notified"


# the scheduler leaves these rules' schedule entries alone
SKIPPED_OUTCOMES = (ProcessOutcome.NOT_FOUND, ProcessOutcome.INACTIVE)


class RuleProcessor:
    """Runs one evaluation cycle of a rule.

    load -> skip if missing/inactive -> sources (fan-out for "all" rules)
    -> notify owner -> persist bookkeeping. Rescheduling is the caller's job.
    """

    def __init__(
        self,
        rule_storage: RuleStorage,
        user_storage: Optional[UserStorage],
        sources: Dict[ActivityCategory, ActivitySource],
        notifier,
        log=None,
    ):
        self.rule_storage = rule_storage
        self.user_storage = user_storage
        self.sources = sources
        self.notifier = notifier
        self.log = log or logger.bind(component="rule_processor")

    def process_rule(self, rule_id: str) -> ProcessOutcome:
        """Evaluate one rule.

        Raises:
            ActivitySourceError: every source failed and nothing was found.
                Bookkeeping has been persisted by then.
        """
        rule = self.rule_storage.get_rule(rule_id)
        if rule is None:
            self.log.warning(f"Rule {rule_id} not found, dropping its schedule entry")
            self.rule_storage.unschedule_rule(rule_id)
            return ProcessOutcome.NOT_FOUND

        if not rule.active:
            self.log.debug(f"Skipping inactive rule {rule_id} ({rule.name})")
            return ProcessOutcome.INACTIVE

        category = rule.category.value if rule.category else "all"
        self.log.debug(f"Processing rule {rule_id} ({rule.name}, {category})")
        rule.last_checked = datetime.now()

        failure: Optional[ActivitySourceError] = None
        activities: List[Activity] = []
        try:
            activities = self.find_activities(rule)
        except ActivitySourceError as e:
            failure = e

        outcome = ProcessOutcome.NOT_NOTIFIED
        if activities:
            outcome = self._notify(rule, activities)
        else:
            self.log.info(f"No new activities for rule {rule_id}")

        try:
            self.rule_storage.update_rule(rule, fields=BOOKKEEPING_FIELDS)
        except (SQLAlchemyError, PadelAlertError) as e:
            self.log.error(f"Failed to update rule {rule_id}: {e}")

        if failure is not None:
            raise failure
        return outcome

    def find_activities(self, rule: Rule) -> List[Activity]:
        """New activities for ``rule`` across its category (or all of them)."""
        if rule.category is not None:
            return self.sources[rule.category].process(rule)

        # fan out: one branch per category, merged once every branch is done
        activities: List[Activity] = []
        errors: List[ActivitySourceError] = []
        with ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix="fanout") as pool:
            futures = {
                pool.submit(source.process, rule.with_category(category)): category
                for category, source in self.sources.items()
            }
            for future in as_completed(futures):
                category = futures[future]
                try:
                    activities.extend(future.result())
                except ActivitySourceError as e:
                    self.log.error(f"Failed to process {category.value} for rule {rule.id}: {e}")
                    errors.append(e)

        # partial success counts as success
        if not activities and errors:
            raise errors[0]
        return activities

    def _notify(self, rule: Rule, activities: List[Activity]) -> ProcessOutcome:
        owner = self._owner(rule)
        self.log.info(f"Sending notification for rule {rule.id}: {len(activities)} activities")
        try:
            self.notifier.notify_new_activities(owner, rule, activities)
        except Exception as e:
            self.log.opt(exception=e).error(f"Failed to send notification for rule {rule.id}: {e}")
            return ProcessOutcome.NOT_NOTIFIED

        rule.last_notification = datetime.now()
        self.log.info(f"Notification sent for rule {rule.id}")
        return ProcessOutcome.NOTIFIED

    def _owner(self, rule: Rule) -> User:
        user = None
        if self.user_storage is not None:
            try:
                user = self.user_storage.get_user(rule.user_id)
            except SQLAlchemyError as e:
                self.log.error(f"Failed to load owner {rule.user_id} of rule {rule.id}: {e}")
        return user or User(id=rule.user_id)
