"""Observability package."""
from flowforge.observability.logging import (
    run_context,
    setup_logging,
)

__all__ = ["run_context", "setup_logging"]
