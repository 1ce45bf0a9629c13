"""
BlockHandler - Abstract base class for block type implementations.

Each handler claims blocks by type in can_handle() and executes them
against the run's variable store in execute(). Handlers never raise for
bad configuration or failed I/O: the problem is reported as an error
StepResult so the run can follow the block's Error connection.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Tuple, Type, TypeVar

from pydantic import ConfigDict, ValidationError

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.models import FlowforgeModel
from flowforge.workflow_runtime.variables import VariableStore


logger = logging.getLogger(__name__)


class HandlerConfigError(ValueError):
    """A block's jsonConfig could not be read."""


class HandlerConfig(FlowforgeModel):
    """
    Base for handler configuration documents.

    Keys are accepted in PascalCase (as stored by the editor), camelCase
    or snake_case; numbers given for text fields are kept as text.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)


ConfigT = TypeVar("ConfigT", bound=HandlerConfig)


def load_config(block: CompiledBlock, config_cls: Type[ConfigT]) -> ConfigT:
    """
    Parse a block's jsonConfig into a config model.

    A missing or blank config yields the model defaults.

    Raises:
        HandlerConfigError: If the document is not valid JSON or does not
            match the config model
    """
    if not block.has_config:
        return config_cls()
    try:
        document: Any = json.loads(block.json_config)
    except json.JSONDecodeError as e:
        raise HandlerConfigError(f"Invalid JSON config for block {block.name}: {e}") from e
    if not isinstance(document, dict):
        raise HandlerConfigError(f"Config for block {block.name} must be a JSON object")
    try:
        return config_cls.model_validate(document)
    except ValidationError as e:
        raise HandlerConfigError(f"Invalid config for block {block.name}: {e}") from e


def load_config_or_default(block: CompiledBlock, config_cls: Type[ConfigT]) -> ConfigT:
    """Like load_config(), falling back to the model defaults."""
    try:
        return load_config(block, config_cls)
    except HandlerConfigError as e:
        logger.warning(f"{e}; using defaults")
        return config_cls()


class BlockHandler(ABC):
    """
    Abstract base class for all block handlers.

    Handlers define:
    - block_types: SystemBlock types this handler claims
    - requires_config: Only claim blocks that carry a jsonConfig

    And implement execute() which reads and writes the variable store.

    Handlers hold no per-run state; anything a run needs to remember
    between visits (loop counters) lives in the HandlerContext.

    Example:

        class UpperHandler(BlockHandler):
            block_types = ("Upper",)

            def execute(self, block, store, context):
                store.set("text", store.get("text", "").upper())
                return StepResult.ok("Upper-cased text")
    """

    block_types: ClassVar[Tuple[str, ...]] = ()
    requires_config: ClassVar[bool] = False

    def can_handle(self, block: CompiledBlock) -> bool:
        """True if this handler executes the given block."""
        if not block.is_type(*self.block_types):
            return False
        return block.has_config or not self.requires_config

    @abstractmethod
    def execute(
        self,
        block: CompiledBlock,
        store: VariableStore,
        context: HandlerContext,
    ) -> StepResult:
        """
        Execute the block.

        Args:
            block: Block being visited
            store: Run-scoped variables
            context: Loop counters, cancellation and settings

        Returns:
            StepResult; is_error / branch_key select the next connection
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} types={list(self.block_types)}>"


__all__ = [
    "BlockHandler",
    "HandlerConfig",
    "HandlerConfigError",
    "load_config",
    "load_config_or_default",
]
