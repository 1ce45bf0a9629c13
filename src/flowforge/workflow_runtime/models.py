"""
Workflow Models - Graph structures handed to the execution engine.

These models match the JSON exported by the Flowforge API and editor:
blocks typed by a SystemBlock, directed connections with a connection
type and optional label, and workflow variables with default values.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


BlockId = Union[int, str]


class FlowforgeModel(BaseModel):
    """Base model accepting camelCase, PascalCase and snake_case keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                (key[:1].lower() + key[1:] if isinstance(key, str) else key): value
                for key, value in data.items()
            }
        return data


class ConnectionType(str, Enum):
    """Which handler verdict a connection follows."""
    SUCCESS = "Success"
    ERROR = "Error"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ConnectionType"]:
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class VariableType(str, Enum):
    """Declared type of a workflow variable (informational only)."""
    STRING = "String"
    NUMBER = "Number"

    @classmethod
    def _missing_(cls, value: object) -> Optional["VariableType"]:
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class SystemBlock(FlowforgeModel):
    """Catalog entry defining a block type."""
    model_config = ConfigDict(frozen=True)

    id: BlockId = Field(..., description="Catalog id")
    type: str = Field(..., description="Block type (e.g. 'Calculation')")
    description: str = Field("", description="Human-readable description")


class Block(FlowforgeModel):
    """
    A node instance in a workflow.

    The block type comes from, in order: an inline ``systemBlock``,
    the export-style ``systemBlockType``, or the catalog entry for
    ``systemBlockId``.
    """

    id: BlockId = Field(..., description="Block id (unique within workflow)")
    name: str = Field("", description="Display name, recorded in the run path")
    workflow_id: Optional[BlockId] = None
    system_block_id: Optional[BlockId] = None
    system_block: Optional[SystemBlock] = None
    system_block_type: Optional[str] = None
    json_config: Optional[str] = Field(None, description="Handler-specific JSON document")
    position_x: Optional[float] = None
    position_y: Optional[float] = None

    @field_validator("json_config", mode="before")
    @classmethod
    def _serialize_inline_config(cls, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value

    @property
    def display_name(self) -> str:
        """Name used in logs when the block has no name."""
        return self.name or str(self.id)


class BlockConnection(FlowforgeModel):
    """Directed edge between two blocks."""

    id: Optional[BlockId] = None
    source_block_id: BlockId
    target_block_id: BlockId
    connection_type: ConnectionType = ConnectionType.SUCCESS
    label: Optional[str] = Field(None, description="Case value for multi-branch blocks")

    @field_validator("label", mode="before")
    @classmethod
    def _blank_label_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class WorkflowVariable(FlowforgeModel):
    """A workflow variable and its default value."""

    id: Optional[BlockId] = None
    name: str
    type: VariableType = VariableType.STRING
    default_value: Optional[str] = None
    workflow_id: Optional[BlockId] = None

    @field_validator("default_value", mode="before")
    @classmethod
    def _stringify_default(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class WorkflowDefinition(FlowforgeModel):
    """
    Complete workflow graph.

    Accepts ``variables`` or ``workflowVariables`` for the variable list.
    """

    id: Optional[BlockId] = Field(None, description="Workflow ID")
    name: str = Field("Unnamed Workflow", description="Workflow name")
    blocks: List[Block] = Field(default_factory=list)
    connections: List[BlockConnection] = Field(default_factory=list)
    variables: List[WorkflowVariable] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_workflow_variables(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in ("workflowVariables", "WorkflowVariables", "workflow_variables"):
                if key in data and "variables" not in data:
                    data = {**data, "variables": data[key]}
        return data

    def get_block(self, block_id: BlockId) -> Optional[Block]:
        """Get block by id."""
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def get_outgoing(self, block_id: BlockId) -> List[BlockConnection]:
        """Connections leaving a block, in declaration order."""
        return [c for c in self.connections if c.source_block_id == block_id]

    def default_variables(self) -> Dict[str, str]:
        """Variable defaults, with missing defaults as empty strings."""
        return {v.name: v.default_value or "" for v in self.variables}

    def to_snapshot(self) -> str:
        """Serialize the graph to a JSON snapshot (used for revisions)."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_snapshot(cls, snapshot: str) -> "WorkflowDefinition":
        """Restore a graph from a JSON snapshot."""
        return cls.model_validate(json.loads(snapshot))


class SystemBlockCatalog:
    """
    Read-only lookup table of SystemBlocks.

    Built once and handed to the executor; never mutated during a run,
    so it can be shared between concurrent executions.
    """

    def __init__(self, system_blocks: Iterable[SystemBlock | Dict[str, Any]] = ()):
        self._by_id: Dict[BlockId, SystemBlock] = {}
        self._by_type: Dict[str, SystemBlock] = {}
        for entry in system_blocks:
            system_block = entry if isinstance(entry, SystemBlock) else SystemBlock.model_validate(entry)
            if system_block.type in self._by_type:
                raise ValueError(f"Duplicate system block type: {system_block.type}")
            if system_block.id in self._by_id:
                raise ValueError(f"Duplicate system block id: {system_block.id}")
            self._by_id[system_block.id] = system_block
            self._by_type[system_block.type] = system_block

    def get(self, system_block_id: Optional[BlockId]) -> Optional[SystemBlock]:
        """Get system block by id."""
        if system_block_id is None:
            return None
        return self._by_id.get(system_block_id)

    def by_type(self, block_type: str) -> Optional[SystemBlock]:
        """Get system block by type name."""
        return self._by_type.get(block_type)

    def types(self) -> List[str]:
        """All block types in the catalog."""
        return list(self._by_type.keys())

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[SystemBlock]:
        return iter(self._by_id.values())

    def __contains__(self, system_block_id: object) -> bool:
        return system_block_id in self._by_id


BUILTIN_SYSTEM_BLOCKS: List[Dict[str, Any]] = [
    {"id": 1, "type": "Start", "description": "Start block"},
    {"id": 2, "type": "End", "description": "End block"},
    {"id": 3, "type": "Calculation", "description": "Calculation block"},
    {"id": 4, "type": "If", "description": "Conditional block"},
    {"id": 5, "type": "Switch", "description": "Switch (case) block"},
    {"id": 6, "type": "HttpRequest", "description": "HTTP request block"},
    {"id": 7, "type": "Parser", "description": "JSON/XML parser block"},
    {"id": 8, "type": "Loop", "description": "Loop block"},
    {"id": 9, "type": "Wait", "description": "Wait (delay) block"},
    {"id": 10, "type": "TextTransform", "description": "Transform text casing"},
    {"id": 11, "type": "TextReplace", "description": "Replace text (literal or regex)"},
]


def builtin_catalog() -> SystemBlockCatalog:
    """Catalog of the stock system blocks."""
    return SystemBlockCatalog(BUILTIN_SYSTEM_BLOCKS)


def parse_workflow(data: Dict[str, Any]) -> WorkflowDefinition:
    """Parse workflow JSON into WorkflowDefinition."""
    return WorkflowDefinition.model_validate(data)


__all__ = [
    "Block",
    "BlockConnection",
    "BlockId",
    "BUILTIN_SYSTEM_BLOCKS",
    "ConnectionType",
    "FlowforgeModel",
    "SystemBlock",
    "SystemBlockCatalog",
    "VariableType",
    "WorkflowDefinition",
    "WorkflowVariable",
    "builtin_catalog",
    "parse_workflow",
]
