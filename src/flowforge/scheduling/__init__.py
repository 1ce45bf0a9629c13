"""
Scheduling - Next-run calculation and a polling scheduler.
"""

from .models import TriggerType, WorkflowSchedule, calculate_next_run
from .scheduler import WorkflowScheduler

__all__ = [
    "TriggerType",
    "WorkflowSchedule",
    "WorkflowScheduler",
    "calculate_next_run",
]
