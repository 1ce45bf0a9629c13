"""
Workflow Scheduler - Polls schedules and runs due workflows.

The scheduler owns no storage: the caller supplies the schedules and a
loader for workflow definitions, and persists the updated schedules and
returned records itself.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from flowforge.config import Settings, get_settings
from flowforge.observability import run_context
from flowforge.workflow_runtime.executor import WorkflowExecutor
from flowforge.workflow_runtime.graph import WorkflowStructureError
from flowforge.workflow_runtime.models import BlockId, WorkflowDefinition
from flowforge.workflow_runtime.record import WorkflowExecution

from .models import MIN_INTERVAL_MINUTES, TriggerType, WorkflowSchedule, as_utc, calculate_next_run, utc_now


logger = logging.getLogger(__name__)


WorkflowLoader = Callable[[BlockId], Optional[WorkflowDefinition]]
RecordSink = Callable[[WorkflowSchedule, WorkflowExecution], None]


class WorkflowScheduler:
    """
    Runs due schedules through the execution engine.

    Scheduled runs get no input overrides and skip Wait delays.

    Usage:
        scheduler = WorkflowScheduler(executor, load_workflow=repo.get)
        records = scheduler.tick(repo.schedules())
    """

    def __init__(
        self,
        executor: WorkflowExecutor,
        load_workflow: WorkflowLoader,
        on_record: Optional[RecordSink] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize scheduler.

        Args:
            executor: Engine used for every run
            load_workflow: Returns the live workflow for an id (None if gone)
            on_record: Called with each produced execution record
            settings: Engine settings (poll interval)
        """
        self._executor = executor
        self._load_workflow = load_workflow
        self._on_record = on_record
        self._settings = settings or get_settings()

    def tick(self, schedules: Iterable[WorkflowSchedule], now: Optional[datetime] = None) -> List[WorkflowExecution]:
        """
        Run every due schedule once.

        Args:
            schedules: Candidate schedules (updated in place)
            now: Reference time (defaults to the current UTC time)

        Returns:
            Execution records produced during this tick
        """
        now = as_utc(now) or utc_now()
        records: List[WorkflowExecution] = []

        for schedule in schedules:
            if not schedule.is_due(now):
                continue
            try:
                record = self._run_schedule(schedule, now)
            except Exception as e:
                logger.error(
                    f"Schedule '{schedule.name}' failed: {e}",
                    extra=run_context(workflow_id=schedule.workflow_id, schedule_id=schedule.id),
                    exc_info=True,
                )
                continue
            if record is not None:
                records.append(record)

        return records

    def _run_schedule(self, schedule: WorkflowSchedule, now: datetime) -> Optional[WorkflowExecution]:
        extra = run_context(workflow_id=schedule.workflow_id, schedule_id=schedule.id)
        workflow = self._load_workflow(schedule.workflow_id)
        if workflow is None:
            logger.warning(f"Schedule '{schedule.name}' points at a missing workflow; deactivating", extra=extra)
            schedule.is_active = False
            schedule.next_run_at_utc = None
            return None

        record: Optional[WorkflowExecution] = None
        try:
            record = self._executor.execute(workflow, None, skip_waits=True)
        except WorkflowStructureError as e:
            logger.error(f"Scheduled run of '{workflow.name}' failed: {e}", extra=extra)

        schedule.last_run_at_utc = now
        self._advance(schedule, now)

        if record is not None:
            logger.info(
                f"Schedule '{schedule.name}' ran workflow '{workflow.name}': {record.status.value}",
                extra=run_context(workflow_id=schedule.workflow_id, run_id=record.id),
            )
            if self._on_record is not None:
                self._on_record(schedule, record)
        return record

    @staticmethod
    def _advance(schedule: WorkflowSchedule, now: datetime) -> None:
        """Set the next run (or deactivate) after a run at ``now``."""
        if schedule.trigger_type == TriggerType.DAILY:
            schedule.next_run_at_utc = calculate_next_run(schedule, now)
        elif schedule.is_one_shot:
            schedule.is_active = False
            schedule.next_run_at_utc = None
        else:
            minutes = max(MIN_INTERVAL_MINUTES, schedule.interval_minutes or 0)
            schedule.next_run_at_utc = now + timedelta(minutes=minutes)

    def run(
        self,
        list_schedules: Callable[[], Iterable[WorkflowSchedule]],
        stop_event: threading.Event,
    ) -> None:
        """
        Tick until ``stop_event`` is set.

        Args:
            list_schedules: Returns the current schedules on every tick
            stop_event: Stops the loop (also interrupts the poll wait)
        """
        interval = float(self._settings.scheduler_poll_interval_s)
        logger.info(f"Scheduler started (poll every {interval}s)")
        while not stop_event.is_set():
            try:
                self.tick(list_schedules())
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            stop_event.wait(interval)
        logger.info("Scheduler stopped")


__all__ = [
    "RecordSink",
    "WorkflowLoader",
    "WorkflowScheduler",
]
