"""
Parser handler - Extract values from JSON or XML held in a variable.

JSON paths are a small subset of JSONPath: ``$.user.name``,
``items[0].id``, ``matrix[1][0]``. XML paths are a small subset of
XPath: ``/root/item``, ``//item``, ``/root/item[2]``,
``/root/item/@id`` and ``/root/item/text()``.
"""

from __future__ import annotations

import json
import logging
import re
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from pydantic import Field, field_validator

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.variables import VariableStore, variable_key

from .base import BlockHandler, HandlerConfig, HandlerConfigError, load_config


logger = logging.getLogger(__name__)


_MISSING = object()
_SEGMENT = re.compile(r"^(?P<name>[^\[\]]*)(?P<indices>(?:\[\s*-?\d+\s*\])*)$")
_INDEX = re.compile(r"\[\s*(-?\d+)\s*\]")


class ParserFormat(str, Enum):
    JSON = "json"
    XML = "xml"


class ParserMapping(HandlerConfig):
    path: str = ""
    variable: str = ""


class ParserConfig(HandlerConfig):
    format: ParserFormat = ParserFormat.JSON
    source_variable: str = ""
    mappings: List[ParserMapping] = Field(default_factory=list)

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return ParserFormat.XML if value == 1 else ParserFormat.JSON
        if isinstance(value, str):
            return ParserFormat.XML if value.strip().lower() == "xml" else ParserFormat.JSON
        return value

    @field_validator("mappings", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# ==============================================================================
# JSON
# ==============================================================================

def resolve_json_path(document: Any, path: str) -> Any:
    """
    Walk a parsed JSON document.

    Returns the value found, or ``_MISSING`` when any segment is absent.
    """
    cleaned = path.strip()
    if cleaned.startswith("$"):
        cleaned = cleaned[1:].lstrip(".")

    current = document
    for segment in filter(None, cleaned.split(".")):
        match = _SEGMENT.match(segment.strip())
        if match is None:
            return _MISSING
        name = match.group("name")
        if name:
            if not isinstance(current, dict) or name not in current:
                return _MISSING
            current = current[name]
        for index_text in _INDEX.findall(match.group("indices")):
            index = int(index_text)
            if not isinstance(current, list) or not -len(current) <= index < len(current):
                return _MISSING
            current = current[index]
    return current


def format_json_value(value: Any) -> str:
    """Render a JSON value as a variable string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# ==============================================================================
# XML
# ==============================================================================

def _find_element(root: ET.Element, expression: str) -> Optional[ET.Element]:
    if expression in ("", ".", "/"):
        return root
    if expression.startswith("//"):
        # Descendant search must also consider the document element itself
        document = ET.Element("_document")
        document.append(root)
        return document.find("." + expression)
    if expression.startswith("/"):
        first, _, rest = expression[1:].partition("/")
        tag = first.split("[", 1)[0]
        if tag not in (root.tag, "*"):
            return None
        return root.find(rest) if rest else root
    return root.find(expression)


def resolve_xml_path(root: ET.Element, path: str) -> Optional[str]:
    """
    Evaluate an XPath-like expression against a parsed document.

    Returns None when nothing matches.
    """
    expression = path.strip()
    attribute: Optional[str] = None
    text_only = False

    if expression.endswith("/text()"):
        text_only = True
        expression = expression[: -len("/text()")]
    else:
        head, separator, last = expression.rpartition("/")
        if last.startswith("@"):
            attribute = last[1:]
            expression = head if separator else ""

    try:
        element = _find_element(root, expression)
    except (SyntaxError, KeyError) as e:
        logger.warning(f"Invalid XML path {path!r}: {e}")
        return None

    if element is None:
        return None
    if attribute is not None:
        return element.get(attribute)
    if text_only:
        return element.text or ""
    return "".join(element.itertext())


# ==============================================================================
# Handler
# ==============================================================================

class ParserHandler(BlockHandler):
    """
    Assign values extracted from a JSON or XML source variable.

    A mapping whose path matches nothing is skipped. A missing source or
    an unparseable document makes the whole block an error.
    """

    block_types = ("Parser",)
    requires_config = True

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        try:
            config = load_config(block, ParserConfig)
        except HandlerConfigError as e:
            return StepResult.error(f"Invalid parser config: {e}")

        source_key = variable_key(config.source_variable)
        if not source_key:
            return StepResult.error(f"Parser block '{block.name}' is missing source variable.")

        payload = store.get(source_key)
        if payload is None or not payload.strip():
            return StepResult.error(f"Parser block '{block.name}' could not find variable '{source_key}'.")

        try:
            lookup = self._json_lookup(payload) if config.format == ParserFormat.JSON else self._xml_lookup(payload)
        except (json.JSONDecodeError, ET.ParseError) as e:
            return StepResult.error(f"{config.format.value.upper()} parse failed: {e}")

        assigned: List[Tuple[str, str, str]] = []
        for mapping in config.mappings:
            name = variable_key(mapping.variable)
            if not mapping.path.strip() or not name:
                continue
            value = lookup(mapping.path)
            if value is None:
                logger.debug(f"Parser block '{block.name}': no match for {mapping.path}")
                continue
            store.set(name, value)
            assigned.append((mapping.path, name, value))

        return StepResult.ok(self._describe(config.format, assigned))

    @staticmethod
    def _json_lookup(payload: str) -> Callable[[str], Optional[str]]:
        document = json.loads(payload)

        def lookup(path: str) -> Optional[str]:
            value = resolve_json_path(document, path)
            return None if value is _MISSING else format_json_value(value)

        return lookup

    @staticmethod
    def _xml_lookup(payload: str) -> Callable[[str], Optional[str]]:
        root = ET.fromstring(payload)
        return lambda path: resolve_xml_path(root, path)

    @staticmethod
    def _describe(source_format: ParserFormat, assigned: List[Tuple[str, str, str]]) -> str:
        if not assigned:
            summary = "No mappings applied."
        else:
            parts = [f"{path} -> {name} = {_truncate(value)}" for path, name, value in assigned[:3]]
            summary = ", ".join(parts)
            if len(assigned) > 3:
                summary += f" ... (+{len(assigned) - 3} more)"
        return f"Parsed {len(assigned)} value(s) from {source_format.value.upper()}: {summary}"


def _truncate(value: str, max_length: int = 60) -> str:
    return value if len(value) <= max_length else value[:max_length] + "..."


__all__ = [
    "ParserConfig",
    "ParserFormat",
    "ParserHandler",
    "ParserMapping",
    "format_json_value",
    "resolve_json_path",
    "resolve_xml_path",
]
