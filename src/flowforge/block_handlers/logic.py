"""
Logic handlers: Calculation, If/Condition and Switch.
"""

from __future__ import annotations

import logging
import operator
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import Field, field_validator

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.variables import VariableStore, format_number, parse_number, variable_key

from .base import BlockHandler, HandlerConfig, HandlerConfigError, load_config


logger = logging.getLogger(__name__)


def _enum_from_config(enum_cls: type[Enum], value: Any, aliases: Optional[Dict[str, Enum]] = None) -> Any:
    """
    Read an enum written by name (any case), alias or declaration index.
    """
    if value is None or isinstance(value, enum_cls):
        return value
    members = list(enum_cls)
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value < len(members):
            return members[value]
        raise ValueError(f"{enum_cls.__name__} index out of range: {value}")
    text = str(value).strip()
    for member in members:
        if member.value.lower() == text.lower():
            return member
    if aliases and text.lower() in aliases:
        return aliases[text.lower()]
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")


# ==============================================================================
# Calculation
# ==============================================================================

class CalculationOperation(str, Enum):
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"
    CONCAT = "Concat"


CALCULATION_SYMBOLS = {
    CalculationOperation.ADD: "+",
    CalculationOperation.SUBTRACT: "-",
    CalculationOperation.MULTIPLY: "*",
    CalculationOperation.DIVIDE: "/",
    CalculationOperation.CONCAT: "+",
}


class CalculationConfig(HandlerConfig):
    operation: CalculationOperation = CalculationOperation.ADD
    first_variable: str = ""
    second_variable: str = ""
    result_variable: Optional[str] = None

    @field_validator("operation", mode="before")
    @classmethod
    def _parse_operation(cls, value: Any) -> Any:
        return _enum_from_config(CalculationOperation, value)


class CalculationHandler(BlockHandler):
    """
    Binary arithmetic or concatenation on two operands.

    Operands are ``$name`` references, bare variable names or literals.
    Non-numeric operands count as 0 and division by zero yields the
    first operand, so the handler never fails on data.
    """

    block_types = ("Calculation",)
    requires_config = True

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        try:
            config = load_config(block, CalculationConfig)
        except HandlerConfigError as e:
            logger.warning(str(e))
            return StepResult.error(f"Invalid config for block {block.name}")

        destination = variable_key(config.result_variable) or variable_key(config.first_variable)
        if not destination:
            return StepResult.error(f"Calculation block {block.name} has no result variable")

        first = store.resolve(config.first_variable, bare_names=True)
        second = store.resolve(config.second_variable, bare_names=True)

        if config.operation == CalculationOperation.CONCAT:
            store.set(destination, first + second)
            return StepResult.ok(f"{destination} = {first} + {second}")

        a = parse_number(first) or 0.0
        b = parse_number(second) or 0.0
        result = self.calculate(config.operation, a, b)
        formatted = format_number(result)
        store.set(destination, formatted)

        symbol = CALCULATION_SYMBOLS[config.operation]
        return StepResult.ok(
            f"{destination} = {format_number(a)} {symbol} {format_number(b)} => {formatted}"
        )

    @staticmethod
    def calculate(operation: CalculationOperation, a: float, b: float) -> float:
        """Apply a numeric operation; dividing by zero returns ``a``."""
        if operation == CalculationOperation.ADD:
            return a + b
        if operation == CalculationOperation.SUBTRACT:
            return a - b
        if operation == CalculationOperation.MULTIPLY:
            return a * b
        if operation == CalculationOperation.DIVIDE:
            return a if b == 0 else a / b
        return a


# ==============================================================================
# If / Condition
# ==============================================================================

class ConditionDataType(str, Enum):
    NUMBER = "Number"
    STRING = "String"


class ConditionOperation(str, Enum):
    EQUAL = "Equal"
    NOT_EQUAL = "NotEqual"
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    GREATER_OR_EQUAL = "GreaterOrEqual"
    LESS_OR_EQUAL = "LessOrEqual"


CONDITION_ALIASES: Dict[str, ConditionOperation] = {
    "==": ConditionOperation.EQUAL,
    "=": ConditionOperation.EQUAL,
    "eq": ConditionOperation.EQUAL,
    "equals": ConditionOperation.EQUAL,
    "!=": ConditionOperation.NOT_EQUAL,
    "<>": ConditionOperation.NOT_EQUAL,
    "ne": ConditionOperation.NOT_EQUAL,
    ">": ConditionOperation.GREATER_THAN,
    "gt": ConditionOperation.GREATER_THAN,
    "greater": ConditionOperation.GREATER_THAN,
    "<": ConditionOperation.LESS_THAN,
    "lt": ConditionOperation.LESS_THAN,
    "less": ConditionOperation.LESS_THAN,
    ">=": ConditionOperation.GREATER_OR_EQUAL,
    "gte": ConditionOperation.GREATER_OR_EQUAL,
    "<=": ConditionOperation.LESS_OR_EQUAL,
    "lte": ConditionOperation.LESS_OR_EQUAL,
}

CONDITION_SYMBOLS = {
    ConditionOperation.EQUAL: "==",
    ConditionOperation.NOT_EQUAL: "!=",
    ConditionOperation.GREATER_THAN: ">",
    ConditionOperation.LESS_THAN: "<",
    ConditionOperation.GREATER_OR_EQUAL: ">=",
    ConditionOperation.LESS_OR_EQUAL: "<=",
}

COMPARATORS: Dict[ConditionOperation, Callable[[Any, Any], bool]] = {
    ConditionOperation.EQUAL: operator.eq,
    ConditionOperation.NOT_EQUAL: operator.ne,
    ConditionOperation.GREATER_THAN: operator.gt,
    ConditionOperation.LESS_THAN: operator.lt,
    ConditionOperation.GREATER_OR_EQUAL: operator.ge,
    ConditionOperation.LESS_OR_EQUAL: operator.le,
}


class ConditionConfig(HandlerConfig):
    data_type: ConditionDataType = ConditionDataType.STRING
    operation: ConditionOperation = ConditionOperation.EQUAL
    first: str = ""
    second: str = ""

    @field_validator("data_type", mode="before")
    @classmethod
    def _parse_data_type(cls, value: Any) -> Any:
        return _enum_from_config(ConditionDataType, value)

    @field_validator("operation", mode="before")
    @classmethod
    def _parse_operation(cls, value: Any) -> Any:
        return _enum_from_config(ConditionOperation, value, CONDITION_ALIASES)


class ConditionHandler(BlockHandler):
    """
    Compare two operands.

    A false condition is reported as is_error so the run follows the
    block's Error connection. Numbers compare by value (non-numeric
    operands count as 0); strings compare ordinally.
    """

    block_types = ("If", "Condition")
    requires_config = True

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        try:
            config = load_config(block, ConditionConfig)
        except HandlerConfigError as e:
            logger.warning(str(e))
            return StepResult.error("IF invalid config")

        first = store.resolve(config.first)
        second = store.resolve(config.second)

        if config.data_type == ConditionDataType.NUMBER:
            left: Any = parse_number(first) or 0.0
            right: Any = parse_number(second) or 0.0
        else:
            left, right = first, second

        holds = COMPARATORS[config.operation](left, right)
        description = f"IF {first} {CONDITION_SYMBOLS[config.operation]} {second}"
        return StepResult(is_error=not holds, description=description)


# ==============================================================================
# Switch
# ==============================================================================

class SwitchConfig(HandlerConfig):
    expression: str = ""
    cases: List[str] = Field(default_factory=list)


class SwitchHandler(BlockHandler):
    """
    Route by value.

    The resolved Expression becomes the branch key; the engine follows
    the connection labeled with it, or the one labeled "default".
    """

    block_types = ("Switch",)
    requires_config = True

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        try:
            config = load_config(block, SwitchConfig)
        except HandlerConfigError as e:
            logger.warning(str(e))
            return StepResult.error(f"Invalid config for block {block.name}")

        value = store.resolve(config.expression).strip() if config.expression.strip() else ""
        return StepResult.ok(f"SWITCH {config.expression} => {value}", branch_key=value)


__all__ = [
    "CalculationConfig",
    "CalculationHandler",
    "CalculationOperation",
    "ConditionConfig",
    "ConditionDataType",
    "ConditionHandler",
    "ConditionOperation",
    "SwitchConfig",
    "SwitchHandler",
]
