"""
Workflow Executor - Sync block graph traversal engine.

Walks a compiled workflow from its Start block, dispatching each visited
block to the first handler that claims it, following the outgoing
connection chosen by the handler's verdict until an End block, a dead
end, cancellation or the step limit.

All execution is synchronous on the caller's thread.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from typing import Any, Dict, Mapping, Optional, Protocol

from flowforge.config import Settings, get_settings
from flowforge.observability import run_context

from .context import HandlerContext
from .graph import CompiledBlock, CompiledGraph, StepResult, WorkflowStructureError
from .models import BlockId, SystemBlockCatalog, WorkflowDefinition, builtin_catalog, parse_workflow
from .record import ExecutionRecordBuilder, ExecutionStatus, WorkflowExecution
from .variables import VariableStore


logger = logging.getLogger(__name__)


class BlockHandlerProtocol(Protocol):
    """Protocol for block handlers."""

    def can_handle(self, block: CompiledBlock) -> bool:
        ...

    def execute(
        self,
        block: CompiledBlock,
        store: VariableStore,
        context: HandlerContext,
    ) -> StepResult:
        """
        Execute a block.

        Args:
            block: Block being visited
            store: Run-scoped variables
            context: Loop counters, cancellation and settings

        Returns:
            StepResult selecting the next connection
        """
        ...


class HandlerResolverProtocol(Protocol):
    """Anything that maps a block to its handler (see HandlerRegistry)."""

    def resolve(self, block: CompiledBlock) -> Optional[BlockHandlerProtocol]:
        ...


class WorkflowExecutor:
    """
    Sync workflow executor.

    The catalog and registry are read-only during runs, so one executor
    can serve concurrent executions; each run gets its own store, loop
    counters and cancellation state.

    Usage:
        executor = WorkflowExecutor()
        record = executor.execute(workflow_definition, {"A": "4"})
    """

    def __init__(
        self,
        registry: Optional[HandlerResolverProtocol] = None,
        catalog: Optional[SystemBlockCatalog] = None,
        max_steps: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize executor.

        Args:
            registry: Handler registry (defaults to the builtin handlers)
            catalog: SystemBlock lookup (defaults to the builtin catalog)
            max_steps: Safety limit for visited blocks per run
            settings: Engine settings (defaults to get_settings())
        """
        if registry is None:
            # Import here to avoid circular imports
            from flowforge.block_handlers.registry import create_default_registry
            registry = create_default_registry()

        self._registry = registry
        self._catalog = catalog if catalog is not None else builtin_catalog()
        self._settings = settings or get_settings()
        self._max_steps = max_steps or self._settings.max_steps

    @property
    def catalog(self) -> SystemBlockCatalog:
        return self._catalog

    def compile(self, workflow: WorkflowDefinition | Dict[str, Any]) -> CompiledGraph:
        """
        Compile and validate a workflow without running it.

        Raises:
            WorkflowStructureError: If the workflow cannot be executed
        """
        if isinstance(workflow, dict):
            workflow = parse_workflow(workflow)

        graph = CompiledGraph(workflow, self._catalog)
        for block in graph.blocks:
            if self._registry.resolve(block) is None:
                raise WorkflowStructureError(
                    f"No handler for block '{block.name}' of type '{block.block_type}'"
                )
        return graph

    def execute(
        self,
        workflow: WorkflowDefinition | Dict[str, Any],
        inputs: Optional[Mapping[str, Any]] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout_s: Optional[float] = None,
        skip_waits: bool = False,
        run_id: Optional[str] = None,
    ) -> WorkflowExecution:
        """
        Execute a workflow.

        Args:
            workflow: Workflow definition or JSON dict
            inputs: Variable overrides applied on top of the defaults
            cancel_event: Set by the caller to cancel the run
            timeout_s: Wall-clock limit for the run (settings default)
            skip_waits: Do not sleep in Wait blocks
            run_id: Identifier for the run (generated when omitted)

        Returns:
            WorkflowExecution record

        Raises:
            WorkflowStructureError: If the workflow cannot be executed;
                no record is produced in that case
        """
        if isinstance(workflow, dict):
            workflow = parse_workflow(workflow)

        graph = self.compile(workflow)

        store = VariableStore(workflow.default_variables())
        for name, value in (inputs or {}).items():
            store.set(name, value)

        builder = ExecutionRecordBuilder(graph.workflow_id, store.snapshot(), run_id=run_id)

        timeout = timeout_s if timeout_s is not None else self._settings.run_timeout_s
        context = HandlerContext(
            run_id=builder.run_id,
            workflow_id=graph.workflow_id,
            cancel_event=cancel_event or threading.Event(),
            deadline=time.monotonic() + timeout if timeout is not None else None,
            skip_waits=skip_waits,
            settings=self._settings,
        )

        logger.info(
            f"Starting workflow '{graph.workflow_name}'",
            extra=run_context(workflow_id=graph.workflow_id, run_id=builder.run_id),
        )
        start_time = time.perf_counter()

        status, message = self._traverse(graph, store, context, builder)

        record = builder.build(store.snapshot(), status=status, message=message)
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Workflow '{graph.workflow_name}' finished: {status.value} "
            f"after {record.steps} steps in {duration_ms:.1f}ms",
            extra=run_context(workflow_id=graph.workflow_id, run_id=builder.run_id),
        )
        return record

    def _traverse(
        self,
        graph: CompiledGraph,
        store: VariableStore,
        context: HandlerContext,
        builder: ExecutionRecordBuilder,
    ) -> tuple[ExecutionStatus, Optional[str]]:
        """Drive the state machine until a terminal state."""
        log_extra = run_context(workflow_id=graph.workflow_id, run_id=context.run_id)
        current: CompiledBlock = graph.start_block

        while True:
            if context.cancelled:
                message = (
                    "Execution cancelled"
                    if context.cancel_event.is_set()
                    else "Execution timed out"
                )
                logger.warning(f"{message} before block '{current.name}'", extra=log_extra)
                return ExecutionStatus.CANCELLED, message

            if builder.steps >= self._max_steps:
                marker = f"Execution truncated after {self._max_steps} steps"
                builder.add_action(marker)
                logger.warning(marker, extra=log_extra)
                return ExecutionStatus.COMPLETED, marker

            step = self._execute_block(current, store, context)
            builder.record_step(current.name, step.description)
            logger.debug(
                f"Block '{current.name}' ({current.block_type}): {step.description}",
                extra=run_context(
                    workflow_id=graph.workflow_id,
                    run_id=context.run_id,
                    block_name=current.name,
                ),
            )

            if current.is_end:
                return ExecutionStatus.COMPLETED, None

            selection = graph.select_next(current, step)
            if not selection.found:
                reason = "ambiguous branch" if selection.ambiguous else "no outgoing connection"
                message = f"Dead end at block '{current.name}': {reason} for '{selection.key}'"
                logger.warning(message, extra=log_extra)
                return ExecutionStatus.DEAD_END, message

            current = self._next_block(graph, selection.connection.target_block_id)

    @staticmethod
    def _next_block(graph: CompiledGraph, block_id: BlockId) -> CompiledBlock:
        block = graph.get_block(block_id)
        if block is None:
            # Compilation guarantees connection targets exist
            raise WorkflowStructureError(f"Connection target {block_id!r} does not exist")
        return block

    def _execute_block(
        self,
        block: CompiledBlock,
        store: VariableStore,
        context: HandlerContext,
    ) -> StepResult:
        """Execute a single block; handler exceptions become error results."""
        handler = self._registry.resolve(block)
        try:
            return handler.execute(block, store, context)
        except Exception as e:
            logger.error(
                f"Handler {type(handler).__name__} failed on block '{block.name}': {e}\n"
                f"{traceback.format_exc()}",
                extra=run_context(
                    workflow_id=context.workflow_id,
                    run_id=context.run_id,
                    block_name=block.name,
                ),
            )
            return StepResult.error(f"Block {block.name} failed: {e}")


__all__ = [
    "BlockHandlerProtocol",
    "HandlerResolverProtocol",
    "WorkflowExecutor",
]
