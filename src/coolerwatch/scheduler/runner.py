"""Scheduled sweep runner using APScheduler."""

from typing import Any, Callable, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from coolerwatch.exceptions import CoolerWatchError
from coolerwatch.scheduler.presets import SCHEDULE_PRESETS, get_preset

log = structlog.get_logger()

JOB_ID = "sweep_job"


class SchedulerError(CoolerWatchError):
    """Schedule configuration is invalid."""


class ScheduledRunner:
    """Runs the alert sweep on a schedule.

    Exactly one of these selects the schedule:
    - interval_minutes: every N minutes
    - cron_expr: 5-field cron expression
    - preset: every_5_minutes, every_15_minutes, hourly

    With none of them the sweep runs once and the runner returns. Sweeps
    never overlap (max_instances=1); missed runs are coalesced into one.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        misfire_grace_time: int = 60,
    ) -> None:
        """Initialize scheduler.

        Args:
            timezone: IANA timezone for cron schedules
            misfire_grace_time: Seconds after the scheduled time a late sweep may still start
        """
        self.timezone = timezone
        self.misfire_grace_time = misfire_grace_time
        self._scheduler: Optional[BlockingScheduler] = None

    def _create_scheduler(self) -> BlockingScheduler:
        return BlockingScheduler(
            timezone=self.timezone,
            job_defaults={
                "coalesce": True,
                "misfire_grace_time": self.misfire_grace_time,
                "max_instances": 1,
            },
        )

    def build_trigger(
        self,
        interval_minutes: Optional[int] = None,
        cron_expr: Optional[str] = None,
        preset: Optional[str] = None,
    ) -> Optional[BaseTrigger]:
        """Build the trigger for a schedule, None for one-shot mode.

        Raises:
            SchedulerError: If more than one schedule is given, the preset is
                unknown, or the cron expression is invalid
        """
        chosen = [name for name, value in (
            ("interval_minutes", interval_minutes),
            ("cron_expr", cron_expr),
            ("preset", preset),
        ) if value]
        if len(chosen) > 1:
            raise SchedulerError(f"Only one schedule may be set, got: {', '.join(chosen)}")

        if interval_minutes:
            return IntervalTrigger(minutes=interval_minutes, timezone=self.timezone)

        if cron_expr:
            # from_crontab() does not inherit the scheduler timezone
            try:
                return CronTrigger.from_crontab(cron_expr, timezone=self.timezone)
            except ValueError as e:
                raise SchedulerError(f"Invalid cron expression '{cron_expr}': {e}") from e

        if preset:
            params = get_preset(preset)
            if params is None:
                available = ", ".join(SCHEDULE_PRESETS)
                raise SchedulerError(
                    f"Unknown schedule preset: '{preset}'. Available: {available}"
                )
            return CronTrigger(timezone=self.timezone, **params)

        return None

    def run_once(self, func: Callable[[], None]) -> None:
        """Run the sweep job once in the calling thread."""
        log.info("one_shot_mode", message="Running one sweep and exiting")
        func()

    def run(
        self,
        func: Callable[[], None],
        interval_minutes: Optional[int] = None,
        cron_expr: Optional[str] = None,
        preset: Optional[str] = None,
    ) -> None:
        """Run func on the schedule until interrupted.

        Raises:
            SchedulerError: If the schedule is invalid
        """
        trigger = self.build_trigger(interval_minutes, cron_expr, preset)
        if trigger is None:
            self.run_once(func)
            return

        self._scheduler = self._create_scheduler()
        self._scheduler.add_job(func, trigger, id=JOB_ID)
        log.info("job_scheduled", trigger=str(trigger), timezone=self.timezone)

        def on_job_error(event: Any) -> None:
            log.error("job_failed", error=str(event.exception))

        def on_overlap(event: Any) -> None:
            log.warning("sweep_skipped", reason="previous sweep still running")

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(on_overlap, EVENT_JOB_MAX_INSTANCES)

        log.info("scheduler_starting", timezone=self.timezone)
        try:
            self._scheduler.start()
        except KeyboardInterrupt:
            log.info("scheduler_shutdown", reason="keyboard interrupt")

    def shutdown(self) -> None:
        """Stop the scheduler, letting a running sweep finish."""
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            log.info("scheduler_shutdown", reason="explicit shutdown")
