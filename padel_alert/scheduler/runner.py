"""Scheduler loop.

Jobs:
  - every 10s     - dispatch due rules to the worker pool
  - 04:00 daily   - purge seen activities that already took place
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Dict, List, Optional, Set

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from padel_alert.config import Settings, get_settings
from padel_alert.exceptions import ActivitySourceError, SchedulerAlreadyRunning
from padel_alert.scheduler.jobs import purge_seen_activities
from padel_alert.scheduler.pool import WorkerPool
from padel_alert.scheduler.processor import SKIPPED_OUTCOMES, RuleProcessor
from padel_alert.storage.rule_storage import RuleStorage
from padel_alert.storage.seen_cache import SeenCache

# fixed tick, independent from the per-rule check interval
SCHEDULER_TICK_SECONDS = 10


class Scheduler:
    def __init__(
        self,
        rule_storage: RuleStorage,
        processor: RuleProcessor,
        seen_cache: Optional[SeenCache] = None,
        settings: Optional[Settings] = None,
        pool: Optional[WorkerPool] = None,
        log=None,
    ):
        self.settings = settings or get_settings()
        self.rule_storage = rule_storage
        self.processor = processor
        self.seen_cache = seen_cache
        self.log = log or logger.bind(component="scheduler")
        self.pool = pool or WorkerPool(
            num_workers=self.settings.scheduler_workers,
            queue_size=self.settings.scheduler_queue_size,
        )
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def check_interval(self) -> timedelta:
        return timedelta(seconds=self.settings.check_interval)

    def start(self) -> None:
        with self._lock:
            if self._scheduler is not None:
                raise SchedulerAlreadyRunning("scheduler already running")

            self.pool.start()

            scheduler = BackgroundScheduler()
            scheduler.add_job(
                self.process_schedule,
                "interval",
                seconds=SCHEDULER_TICK_SECONDS,
                id="dispatch_due_rules",
                name="Dispatch Due Rules",
                max_instances=1,
                coalesce=True,
            )
            if self.seen_cache is not None:
                scheduler.add_job(
                    partial(purge_seen_activities, self.seen_cache, self.settings.seen_retention_days),
                    CronTrigger(hour=4, minute=0),
                    id="purge_seen_activities",
                    name="Purge Seen Activities",
                )
            scheduler.start()
            self._scheduler = scheduler

        self.log.info(
            f"Scheduler started (tick {SCHEDULER_TICK_SECONDS}s, "
            f"check interval {self.settings.check_interval}s)"
        )

    def stop(self) -> None:
        """Stop ticking, wait for running rule evaluations, drop queued ones."""
        with self._lock:
            if self._scheduler is None:
                return
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
            self.pool.stop()
        self.log.info("Scheduler stopped")

    def jobs(self) -> List[Dict[str, Any]]:
        if self._scheduler is None:
            return []
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]

    def process_schedule(self, now: Optional[datetime] = None) -> int:
        """Submit every due rule to the pool. Returns how many were submitted."""
        now = now or datetime.now()
        try:
            rule_ids = self.rule_storage.get_scheduled_rules(now)
        except Exception as e:
            self.log.error(f"Failed to get scheduled rules: {e}")
            return 0

        submitted = 0
        for rule_id in rule_ids:
            with self._in_flight_lock:
                if rule_id in self._in_flight:
                    continue
                self._in_flight.add(rule_id)

            if self.pool.submit(partial(self.run_rule, rule_id), name=f"rule:{rule_id}"):
                submitted += 1
            else:
                self._release(rule_id)

        if rule_ids:
            self.log.debug(f"{len(rule_ids)} rules due, {submitted} submitted")
        return submitted

    def run_rule(self, rule_id: str) -> None:
        """Evaluate one rule and put it back on the schedule.

        Every outcome except a missing or inactive rule reschedules at
        now + check_interval, errors included.
        """
        outcome = None
        try:
            outcome = self.processor.process_rule(rule_id)
        except ActivitySourceError as e:
            self.log.error(f"Failed to process rule {rule_id}: {e}")
        finally:
            try:
                if outcome not in SKIPPED_OUTCOMES:
                    self.reschedule(rule_id)
            finally:
                self._release(rule_id)

    def reschedule(self, rule_id: str) -> Optional[datetime]:
        next_run = datetime.now() + self.check_interval
        try:
            self.rule_storage.schedule_rule(rule_id, next_run)
        except Exception as e:
            self.log.error(f"Failed to reschedule rule {rule_id}: {e}")
            return None
        self.log.debug(f"Rule {rule_id} scheduled for next check at {next_run:%Y-%m-%d %H:%M:%S}")
        return next_run

    def _release(self, rule_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(rule_id)
