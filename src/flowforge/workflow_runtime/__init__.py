"""
Workflow Runtime - Sync block graph execution for Flowforge workflows.

This package provides:
- WorkflowDefinition: JSON structure describing a workflow
- CompiledGraph: Validated, traversable block graph
- VariableStore: Run-scoped string variables
- WorkflowExecutor: Sync traversal engine
- WorkflowExecution: Immutable record of a run

All execution is synchronous.
"""

from .models import (
    Block,
    BlockConnection,
    ConnectionType,
    SystemBlock,
    SystemBlockCatalog,
    WorkflowDefinition,
    WorkflowVariable,
    builtin_catalog,
    parse_workflow,
)
from .variables import VariableStore, format_number, parse_number
from .graph import CompiledBlock, CompiledGraph, StepResult, WorkflowStructureError
from .context import HandlerContext
from .record import ExecutionRecordBuilder, ExecutionStatus, WorkflowExecution
from .executor import WorkflowExecutor

__all__ = [
    # Models
    "Block",
    "BlockConnection",
    "ConnectionType",
    "SystemBlock",
    "SystemBlockCatalog",
    "WorkflowDefinition",
    "WorkflowVariable",
    "builtin_catalog",
    "parse_workflow",
    # Variables
    "VariableStore",
    "format_number",
    "parse_number",
    # Graph
    "CompiledBlock",
    "CompiledGraph",
    "StepResult",
    "WorkflowStructureError",
    "HandlerContext",
    # Executor
    "ExecutionRecordBuilder",
    "ExecutionStatus",
    "WorkflowExecution",
    "WorkflowExecutor",
]
