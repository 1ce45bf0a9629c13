"""
Execution Record - The auditable outcome of one workflow run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pydantic import ConfigDict, Field

from .models import BlockId, FlowforgeModel


class ExecutionStatus(str, Enum):
    """Terminal state of a run."""
    COMPLETED = "completed"
    DEAD_END = "dead_end"
    CANCELLED = "cancelled"


class WorkflowExecution(FlowforgeModel):
    """
    Record handed to the caller for persistence.

    Immutable after creation.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    workflow_id: Optional[BlockId] = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    input_data: Dict[str, str] = Field(default_factory=dict)
    result_data: Dict[str, str] = Field(default_factory=dict)
    path: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.COMPLETED
    message: Optional[str] = None
    steps: int = 0

    @property
    def is_completed(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    @property
    def is_dead_end(self) -> bool:
        return self.status == ExecutionStatus.DEAD_END

    def to_json(self) -> str:
        """Serialize with camelCase keys, as exposed by the API."""
        return self.model_dump_json(by_alias=True)


class ExecutionRecordBuilder:
    """
    Accumulates path and actions during traversal and builds the record.

    ``input_data`` is copied at construction, so later store mutations
    are not reflected in it.
    """

    def __init__(
        self,
        workflow_id: Optional[BlockId],
        input_data: Mapping[str, str],
        run_id: Optional[str] = None,
    ):
        self.workflow_id = workflow_id
        self.run_id = run_id or uuid.uuid4().hex
        self.executed_at = datetime.now(timezone.utc)
        self._input_data = dict(input_data)
        self._path: List[str] = []
        self._actions: List[str] = []

    @property
    def steps(self) -> int:
        return len(self._path)

    def record_step(self, block_name: str, description: str) -> None:
        """Append one visited block to the path and action log."""
        self._path.append(block_name)
        self._actions.append(description)

    def add_action(self, description: str) -> None:
        """Append an action that does not correspond to a block."""
        self._actions.append(description)

    def build(
        self,
        result_data: Mapping[str, str],
        status: ExecutionStatus = ExecutionStatus.COMPLETED,
        message: Optional[str] = None,
    ) -> WorkflowExecution:
        """Snapshot everything into an immutable record."""
        return WorkflowExecution(
            id=self.run_id,
            workflow_id=self.workflow_id,
            executed_at=self.executed_at,
            input_data=dict(self._input_data),
            result_data=dict(result_data),
            path=list(self._path),
            actions=list(self._actions),
            status=status,
            message=message,
            steps=self.steps,
        )


__all__ = [
    "ExecutionRecordBuilder",
    "ExecutionStatus",
    "WorkflowExecution",
]
