"""Builders for workflow JSON and compiled blocks used across tests."""
import json
from typing import Any, Dict, List, Optional

from flowforge.workflow_runtime import CompiledBlock


def make_block(block_type: str, config: Any = None, name: Optional[str] = None, block_id: Any = 1) -> CompiledBlock:
    """Build a compiled block for handler tests."""
    if isinstance(config, (dict, list)):
        config = json.dumps(config)
    return CompiledBlock(
        id=block_id,
        name=name or block_type,
        block_type=block_type,
        json_config=config,
    )


def block(block_id: int, name: str, block_type: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Block JSON as exported by the editor."""
    data: Dict[str, Any] = {"Id": block_id, "Name": name, "SystemBlockType": block_type}
    if config is not None:
        data["JsonConfig"] = json.dumps(config)
    return data


def link(source: int, target: int, connection_type: str = "Success", label: Optional[str] = None) -> Dict[str, Any]:
    """Connection JSON as exported by the editor."""
    data: Dict[str, Any] = {
        "SourceBlockId": source,
        "TargetBlockId": target,
        "ConnectionType": connection_type,
    }
    if label is not None:
        data["Label"] = label
    return data


def workflow(
    blocks: List[Dict[str, Any]],
    connections: List[Dict[str, Any]],
    variables: Optional[Dict[str, Optional[str]]] = None,
    name: str = "Test Workflow",
) -> Dict[str, Any]:
    """Workflow JSON with variables given as name -> default."""
    return {
        "Id": 1,
        "Name": name,
        "Blocks": blocks,
        "Connections": connections,
        "WorkflowVariables": [
            {"Name": key, "DefaultValue": value} for key, value in (variables or {}).items()
        ],
    }
