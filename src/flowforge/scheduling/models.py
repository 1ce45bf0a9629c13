"""
Schedule models and next-run calculation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from flowforge.workflow_runtime.models import BlockId, FlowforgeModel


MIN_INTERVAL_MINUTES = 1


class TriggerType(str, Enum):
    """When a schedule fires."""
    INTERVAL = "Interval"
    ONCE = "Once"
    DAILY = "Daily"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TriggerType"]:
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowSchedule(FlowforgeModel):
    """
    A trigger that runs a workflow.

    Mutable: the scheduler updates ``last_run_at_utc``,
    ``next_run_at_utc`` and ``is_active`` after each run.
    """

    id: Optional[BlockId] = None
    name: str = ""
    description: Optional[str] = None
    workflow_id: BlockId
    trigger_type: TriggerType = TriggerType.INTERVAL
    start_at_utc: Optional[datetime] = None
    interval_minutes: Optional[int] = Field(None, description="Minutes between Interval runs")
    is_active: bool = True
    last_run_at_utc: Optional[datetime] = None
    next_run_at_utc: Optional[datetime] = None

    @field_validator("start_at_utc", "last_run_at_utc", "next_run_at_utc")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("trigger_type", mode="before")
    @classmethod
    def _default_trigger(cls, value: Any) -> Any:
        return TriggerType.INTERVAL if value is None or value == "" else value

    @property
    def is_one_shot(self) -> bool:
        """Runs at most once (Once trigger or no usable interval)."""
        if self.trigger_type == TriggerType.ONCE:
            return True
        if self.trigger_type == TriggerType.DAILY:
            return False
        return not self.interval_minutes or self.interval_minutes <= 0

    def is_due(self, now: datetime) -> bool:
        return (
            self.is_active
            and self.next_run_at_utc is not None
            and self.next_run_at_utc <= as_utc(now)
        )


def calculate_next_run(schedule: WorkflowSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Compute when a schedule should next fire.

    Args:
        schedule: Schedule to evaluate
        now: Reference time (defaults to the current UTC time)

    Returns:
        Next run time in UTC, or None when the schedule will not fire again
    """
    if not schedule.is_active:
        return None

    now = as_utc(now) or utc_now()
    start = schedule.start_at_utc or now
    last = schedule.last_run_at_utc

    if schedule.trigger_type == TriggerType.DAILY:
        basis = last or now
        target = basis.replace(
            hour=start.hour, minute=start.minute, second=start.second, microsecond=0,
        )
        if target <= basis:
            target += timedelta(days=1)
        return target

    if schedule.trigger_type == TriggerType.ONCE or schedule.interval_minutes is None:
        return start if start > now else None

    interval = timedelta(minutes=max(MIN_INTERVAL_MINUTES, schedule.interval_minutes))
    if last is not None:
        next_from_last = last + interval
        return next_from_last if next_from_last > now else now + interval

    if schedule.next_run_at_utc is not None and schedule.next_run_at_utc > now:
        return schedule.next_run_at_utc

    return start if start > now else now + interval


__all__ = [
    "MIN_INTERVAL_MINUTES",
    "TriggerType",
    "WorkflowSchedule",
    "as_utc",
    "calculate_next_run",
    "utc_now",
]
