"""
Flow control handlers: Start, End, Loop, Wait and the Default fallback.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.variables import VariableStore, format_number, parse_number, variable_key

from .base import BlockHandler, HandlerConfig, load_config_or_default


logger = logging.getLogger(__name__)


LOOP_BRANCH = "loop"
EXIT_BRANCH = "exit"


class StartHandler(BlockHandler):
    block_types = ("Start",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        return StepResult.ok("Workflow started")


class EndHandler(BlockHandler):
    block_types = ("End",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        return StepResult.ok("Workflow finished")


class LoopConfig(HandlerConfig):
    iterations: int = Field(1, description="Times the loop branch is taken")


class LoopHandler(BlockHandler):
    """
    Counted loop.

    Takes the "loop" branch while the block's counter is below
    Iterations, then the "exit" branch once. Exiting resets the counter
    so an enclosing loop can run the inner one again.
    """

    block_types = ("Loop",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        config = load_config_or_default(block, LoopConfig)
        done = context.loop_counters.get(block.id, 0)

        if done < config.iterations:
            context.loop_counters[block.id] = done + 1
            return StepResult.ok(
                f"Loop {block.name}: iteration {done + 1} of {config.iterations}",
                branch_key=LOOP_BRANCH,
            )

        context.loop_counters.pop(block.id, None)
        return StepResult.ok(
            f"Loop {block.name}: finished after {max(done, 0)} iteration(s)",
            branch_key=EXIT_BRANCH,
        )


class WaitConfig(HandlerConfig):
    delay_ms: float = 0
    delay_variable: Optional[str] = None


class WaitHandler(BlockHandler):
    """
    Delay the run.

    A numeric DelayVariable overrides DelayMs. The delay is clipped to
    ``wait_max_delay_ms`` and the sleep ends early when the run is
    cancelled.
    """

    block_types = ("Wait",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        config = load_config_or_default(block, WaitConfig)
        delay_ms = self._delay_ms(config, store)
        delay_ms = min(max(delay_ms, 0.0), float(context.settings.wait_max_delay_ms))
        label = format_number(delay_ms)

        if context.skip_waits or delay_ms == 0:
            return StepResult.ok(f"Wait {label} ms skipped" if context.skip_waits else "Wait 0 ms")

        seconds = delay_ms / 1000
        remaining = context.remaining()
        if remaining is not None and remaining < seconds:
            context.cancel_event.wait(remaining)
            return StepResult.error(f"Wait {label} ms exceeds the run deadline")

        if context.cancel_event.wait(seconds):
            return StepResult.error(f"Wait {label} ms cancelled")

        return StepResult.ok(f"Waited {label} ms")

    @staticmethod
    def _delay_ms(config: WaitConfig, store: VariableStore) -> float:
        if config.delay_variable and config.delay_variable.strip():
            value = parse_number(store.get(variable_key(config.delay_variable)))
            if value is not None:
                return value
        return config.delay_ms


class DefaultHandler(BlockHandler):
    """
    Fallback for block types without a dedicated handler.

    Always matches, so it must stay last in the registry.
    """

    def can_handle(self, block: CompiledBlock) -> bool:
        return True

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        if block.type_description:
            return StepResult.ok(block.type_description)
        return StepResult.ok(f"Executed block {block.name}")


__all__ = [
    "DefaultHandler",
    "EndHandler",
    "EXIT_BRANCH",
    "LOOP_BRANCH",
    "LoopConfig",
    "LoopHandler",
    "StartHandler",
    "WaitConfig",
    "WaitHandler",
]
