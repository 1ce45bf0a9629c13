"""
Flowforge - Execution engine for visual block workflows.
"""

__version__ = "0.1.0"
