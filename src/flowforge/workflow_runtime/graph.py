"""
Compiled Graph - Executable workflow block graph.

Takes a WorkflowDefinition plus a SystemBlock catalog and compiles it
into a read-only graph: every block has its type resolved, outgoing
connections are indexed by source, and the unique Start block is known.
Structural problems are reported here, before any block runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import (
    Block,
    BlockConnection,
    BlockId,
    ConnectionType,
    SystemBlockCatalog,
    WorkflowDefinition,
)


logger = logging.getLogger(__name__)


START_TYPE = "Start"
END_TYPE = "End"
DEFAULT_LABEL = "default"


class WorkflowStructureError(ValueError):
    """The workflow graph cannot be executed at all."""


@dataclass
class StepResult:
    """
    Handler verdict for one visited block.

    ``is_error`` is a branch signal, not a failure: it selects the Error
    connection instead of the Success one. ``branch_key`` overrides both
    and routes by connection label.
    """
    is_error: bool = False
    description: str = ""
    branch_key: Optional[str] = None

    @classmethod
    def ok(cls, description: str, branch_key: Optional[str] = None) -> "StepResult":
        return cls(is_error=False, description=description, branch_key=branch_key)

    @classmethod
    def error(cls, description: str) -> "StepResult":
        return cls(is_error=True, description=description)

    @property
    def desired_key(self) -> str:
        """Branch key used for connection selection."""
        if self.branch_key is not None:
            return self.branch_key
        return ConnectionType.ERROR.value if self.is_error else ConnectionType.SUCCESS.value


@dataclass
class CompiledBlock:
    """
    A block with its resolved type and outgoing connections.
    """
    id: BlockId
    name: str
    block_type: str
    json_config: Optional[str]
    type_description: str = ""
    outgoing: List[BlockConnection] = field(default_factory=list)
    source: Optional[Block] = None

    @classmethod
    def from_block(
        cls,
        block: Block,
        block_type: str,
        type_description: str,
        outgoing: List[BlockConnection],
    ) -> "CompiledBlock":
        """Create from workflow block."""
        return cls(
            id=block.id,
            name=block.name or str(block.id),
            block_type=block_type,
            json_config=block.json_config,
            type_description=type_description,
            outgoing=outgoing,
            source=block,
        )

    def is_type(self, *names: str) -> bool:
        """Case-insensitive block type check."""
        current = self.block_type.lower()
        return any(current == name.lower() for name in names)

    @property
    def has_config(self) -> bool:
        return bool(self.json_config and self.json_config.strip())

    @property
    def is_start(self) -> bool:
        return self.is_type(START_TYPE)

    @property
    def is_end(self) -> bool:
        return self.is_type(END_TYPE)


@dataclass
class BranchSelection:
    """Outcome of choosing the next connection for a step."""
    key: str
    connection: Optional[BlockConnection] = None
    ambiguous: bool = False

    @property
    def found(self) -> bool:
        return self.connection is not None


class CompiledGraph:
    """
    Compiled workflow ready for traversal.

    Read-only once built, so one compiled graph may be shared by
    concurrent runs.
    """

    def __init__(self, workflow: WorkflowDefinition, catalog: Optional[SystemBlockCatalog] = None):
        """
        Compile workflow into a traversable graph.

        Args:
            workflow: Source workflow definition
            catalog: SystemBlock lookup used for blocks that only carry
                a ``systemBlockId``

        Raises:
            WorkflowStructureError: If the graph cannot be executed
        """
        self.workflow_id = workflow.id
        self.workflow_name = workflow.name
        self._workflow = workflow
        self._catalog = catalog or SystemBlockCatalog()

        self._blocks: Dict[BlockId, CompiledBlock] = {}
        self._build_blocks()
        self._check_variables()

        self.start_block = self._find_start()

    def _resolve_type(self, block: Block) -> tuple[str, str]:
        """Block type and type description, in resolution order."""
        if block.system_block is not None:
            return block.system_block.type, block.system_block.description
        if block.system_block_type:
            entry = self._catalog.by_type(block.system_block_type)
            return block.system_block_type, entry.description if entry else ""
        entry = self._catalog.get(block.system_block_id)
        if entry is not None:
            return entry.type, entry.description
        raise WorkflowStructureError(
            f"Block '{block.display_name}' references unknown system block "
            f"{block.system_block_id!r}"
        )

    def _build_blocks(self) -> None:
        """Build compiled blocks and index outgoing connections."""
        outgoing: Dict[BlockId, List[BlockConnection]] = {}
        for block in self._workflow.blocks:
            if block.id in outgoing:
                raise WorkflowStructureError(f"Duplicate block id: {block.id!r}")
            outgoing[block.id] = []

        for connection in self._workflow.connections:
            for end in (connection.source_block_id, connection.target_block_id):
                if end not in outgoing:
                    raise WorkflowStructureError(
                        f"Connection {connection.source_block_id!r} -> "
                        f"{connection.target_block_id!r} references missing block {end!r}"
                    )
            outgoing[connection.source_block_id].append(connection)

        for block in self._workflow.blocks:
            block_type, description = self._resolve_type(block)
            self._blocks[block.id] = CompiledBlock.from_block(
                block=block,
                block_type=block_type,
                type_description=description,
                outgoing=outgoing[block.id],
            )

    def _check_variables(self) -> None:
        seen = set()
        for variable in self._workflow.variables:
            if variable.name in seen:
                raise WorkflowStructureError(f"Duplicate workflow variable: {variable.name}")
            seen.add(variable.name)

    def _find_start(self) -> CompiledBlock:
        starts = [b for b in self._blocks.values() if b.is_start]
        if not starts:
            raise WorkflowStructureError(f"Workflow '{self.workflow_name}' has no Start block")
        if len(starts) > 1:
            names = ", ".join(b.name for b in starts)
            raise WorkflowStructureError(
                f"Workflow '{self.workflow_name}' has {len(starts)} Start blocks: {names}"
            )
        return starts[0]

    @property
    def blocks(self) -> List[CompiledBlock]:
        """All compiled blocks in declaration order."""
        return list(self._blocks.values())

    def get_block(self, block_id: BlockId) -> Optional[CompiledBlock]:
        """Get compiled block by id."""
        return self._blocks.get(block_id)

    def select_next(self, block: CompiledBlock, step: StepResult) -> BranchSelection:
        """
        Choose the outgoing connection matching a step result.

        With a branch key, the connection labeled with that key wins,
        then one labeled "default"; connection type is not consulted.
        Without one, connections of the matching type are candidates,
        an unlabeled candidate preferred over labeled ones. More than
        one equally good candidate is ambiguous.
        """
        key = step.desired_key

        if step.branch_key is not None:
            for label in (key, DEFAULT_LABEL):
                candidates = [c for c in block.outgoing if c.label == label]
                if candidates:
                    return self._pick(key, candidates)
            return BranchSelection(key=key)

        wanted = ConnectionType.ERROR if step.is_error else ConnectionType.SUCCESS
        typed = [c for c in block.outgoing if c.connection_type == wanted]
        unlabeled = [c for c in typed if c.label is None]
        return self._pick(key, unlabeled or typed)

    @staticmethod
    def _pick(key: str, candidates: List[BlockConnection]) -> BranchSelection:
        if not candidates:
            return BranchSelection(key=key)
        if len(candidates) > 1:
            return BranchSelection(key=key, ambiguous=True)
        return BranchSelection(key=key, connection=candidates[0])

    def get_summary(self) -> Dict[str, Any]:
        """Short description of the compiled graph."""
        return {
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "total_blocks": len(self._blocks),
            "start_block": self.start_block.name,
            "block_types": sorted({b.block_type for b in self._blocks.values()}),
        }


__all__ = [
    "BranchSelection",
    "CompiledBlock",
    "CompiledGraph",
    "DEFAULT_LABEL",
    "END_TYPE",
    "START_TYPE",
    "StepResult",
    "WorkflowStructureError",
]
