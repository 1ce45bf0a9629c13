"""
Text handlers: TextTransform and TextReplace.

Both read their input from InputVariable (when set) or the literal
Input and write to ResultVariable ("result" by default). Bad config
falls back to the defaults instead of failing the block.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional

import regex
from pydantic import Field, field_validator

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.variables import VariableStore, variable_key

from .base import BlockHandler, HandlerConfig, load_config_or_default


logger = logging.getLogger(__name__)


DEFAULT_RESULT_VARIABLE = "result"


class TextInputConfig(HandlerConfig):
    input: Optional[str] = None
    input_variable: Optional[str] = None
    result_variable: Optional[str] = None

    def read_input(self, store: VariableStore) -> str:
        if self.input_variable and self.input_variable.strip():
            return store.get(variable_key(self.input_variable), "") or ""
        return self.input or ""

    @property
    def destination(self) -> str:
        return variable_key(self.result_variable) or DEFAULT_RESULT_VARIABLE


class TextOperation(str, Enum):
    TRIM = "Trim"
    LOWER = "Lower"
    UPPER = "Upper"


class TextTransformConfig(TextInputConfig):
    operation: TextOperation = TextOperation.TRIM

    @field_validator("operation", mode="before")
    @classmethod
    def _parse_operation(cls, value: Any) -> Any:
        if isinstance(value, str):
            for member in TextOperation:
                if member.value.lower() == value.strip().lower():
                    return member
            # Unknown or blank operation trims
            return TextOperation.TRIM
        return value


class TextTransformHandler(BlockHandler):
    block_types = ("TextTransform",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        config = load_config_or_default(block, TextTransformConfig)
        text = config.read_input(store)

        if config.operation == TextOperation.LOWER:
            output = text.lower()
        elif config.operation == TextOperation.UPPER:
            output = text.upper()
        else:
            output = text.strip()

        store.set(config.destination, output)
        return StepResult.ok(f"TextTransform {config.operation.value} -> {config.destination}")


class ReplaceRule(HandlerConfig):
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    use_regex: bool = False
    ignore_case: bool = False

    @field_validator("use_regex", "ignore_case", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class TextReplaceConfig(TextInputConfig):
    replacements: List[ReplaceRule] = Field(default_factory=list)

    @field_validator("replacements", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class TextReplaceHandler(BlockHandler):
    """
    Apply literal or regex replacement rules in declared order.

    Regex rules run in multiline mode and use Python replacement
    templates (``\\1``, ``\\g<name>``). Each regex rule is matched under
    ``regex_timeout_ms`` (never past the run deadline). A rule whose
    pattern is too long, does not compile, has a bad template or times
    out is skipped; the other rules still apply.
    """

    block_types = ("TextReplace",)

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        config = load_config_or_default(block, TextReplaceConfig)
        output = self.apply_rules(config.read_input(store), config.replacements, context)
        store.set(config.destination, output)
        return StepResult.ok(
            f"TextReplace -> {config.destination} ({len(config.replacements)} rule(s))"
        )

    def apply_rules(self, text: str, rules: List[ReplaceRule], context: HandlerContext) -> str:
        settings = context.settings
        current = text
        for index, rule in enumerate(rules):
            source = rule.from_ or ""
            target = rule.to or ""
            if not source:
                continue

            if not rule.use_regex:
                current = self._replace_literal(current, source, target, rule.ignore_case)
                continue

            if len(source) > settings.regex_max_pattern_length:
                logger.warning(f"Skipping replace rule {index}: pattern longer than "
                               f"{settings.regex_max_pattern_length} characters")
                continue
            if len(current) > settings.regex_max_input_length:
                logger.warning(f"Skipping replace rule {index}: input too long for regex")
                continue

            flags = regex.MULTILINE | (regex.IGNORECASE if rule.ignore_case else 0)
            timeout = context.bounded_timeout(settings.regex_timeout_ms / 1000)
            try:
                current = regex.sub(source, target, current, flags=flags, timeout=timeout)
            except TimeoutError:
                logger.warning(f"Skipping replace rule {index}: no result within {timeout:.3f}s")
            except (regex.error, IndexError) as e:
                logger.warning(f"Skipping replace rule {index}: {e}")

        return current

    @staticmethod
    def _replace_literal(text: str, source: str, target: str, ignore_case: bool) -> str:
        if not ignore_case:
            return text.replace(source, target)
        return regex.sub(regex.escape(source), lambda _: target, text, flags=regex.IGNORECASE)


__all__ = [
    "ReplaceRule",
    "TextOperation",
    "TextReplaceConfig",
    "TextReplaceHandler",
    "TextTransformConfig",
    "TextTransformHandler",
]
