"""
Flowforge CLI - Command-line interface for the execution engine.

Commands:
- run: Execute a workflow file
- next-run: Compute a schedule's next run time
- catalog: List builtin block types
"""

from .main import cli, main

__all__ = ["cli", "main"]
