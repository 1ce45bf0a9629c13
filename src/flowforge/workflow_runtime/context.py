"""
Run context passed to block handlers alongside the variable store.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from flowforge.config import Settings, get_settings

from .models import BlockId


@dataclass
class HandlerContext:
    """
    Per-run state that is not part of the variable store.

    Attributes:
        run_id: Identifier of the current run (log correlation)
        workflow_id: Workflow being executed
        loop_counters: Loop iteration counters keyed by block id
        cancel_event: Set by the caller to cancel the run
        deadline: ``time.monotonic()`` value after which the run is cancelled
        skip_waits: Wait blocks return immediately (scheduler runs)
        settings: Engine settings
    """
    run_id: str = ""
    workflow_id: Optional[BlockId] = None
    loop_counters: Dict[BlockId, int] = field(default_factory=dict)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    deadline: Optional[float] = None
    skip_waits: bool = False
    settings: Settings = field(default_factory=get_settings)

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None when unbounded)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        """True when the caller cancelled the run or the deadline passed."""
        return self.cancel_event.is_set() or self.expired

    def bounded_timeout(self, timeout: float) -> float:
        """Shorten a timeout so it does not outlive the run deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)


__all__ = ["HandlerContext"]
