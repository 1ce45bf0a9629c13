"""Pytest configuration and fixtures."""
import os
import threading

import pytest

# Set test environment variables
os.environ["FLOWFORGE_ENV"] = "test"
os.environ["FLOWFORGE_LOG_JSON"] = "false"
os.environ["FLOWFORGE_WAIT_MAX_DELAY_MS"] = "2000"

from flowforge.config import get_settings, reset_settings  # noqa: E402
from flowforge.workflow_runtime import HandlerContext, VariableStore  # noqa: E402

from helpers import block, link, workflow  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so monkeypatched env vars take effect."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store():
    """Empty variable store."""
    return VariableStore()


@pytest.fixture
def context():
    """Handler context for a single run."""
    return HandlerContext(
        run_id="test-run",
        workflow_id="wf-test",
        cancel_event=threading.Event(),
        settings=get_settings(),
    )


@pytest.fixture
def calculation_workflow():
    """Start -> Calculation(A + B -> C) -> End."""
    return workflow(
        blocks=[
            block(1, "Start", "Start"),
            block(2, "Calculation", "Calculation", {
                "Operation": "Add",
                "FirstVariable": "A",
                "SecondVariable": "B",
                "ResultVariable": "C",
            }),
            block(3, "End", "End"),
        ],
        connections=[link(1, 2), link(2, 3)],
        variables={"A": "2", "B": "3", "C": ""},
    )
