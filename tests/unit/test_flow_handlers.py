"""Tests for Start, End, Loop, Wait and Default handlers."""
import threading
import time
from unittest.mock import patch

from flowforge.block_handlers.flow import (
    DefaultHandler,
    EndHandler,
    LoopHandler,
    StartHandler,
    WaitHandler,
)

from helpers import make_block


class TestStartEnd:
    """Test StartHandler and EndHandler."""

    def test_start(self, store, context):
        result = StartHandler().execute(make_block("Start"), store, context)

        assert result.is_error is False
        assert result.description == "Workflow started"

    def test_end(self, store, context):
        result = EndHandler().execute(make_block("End"), store, context)

        assert result.description == "Workflow finished"

    def test_start_handles_blocks_without_config(self):
        assert StartHandler().can_handle(make_block("Start"))
        assert not StartHandler().can_handle(make_block("End"))


class TestLoopHandler:
    """Test LoopHandler."""

    def test_loops_then_exits(self, store, context):
        handler = LoopHandler()
        block = make_block("Loop", {"Iterations": 3}, block_id=7)

        keys = [handler.execute(block, store, context).branch_key for _ in range(4)]

        assert keys == ["loop", "loop", "loop", "exit"]

    def test_counter_resets_after_exit(self, store, context):
        handler = LoopHandler()
        block = make_block("Loop", {"Iterations": 1}, block_id=7)

        keys = [handler.execute(block, store, context).branch_key for _ in range(4)]

        assert keys == ["loop", "exit", "loop", "exit"]
        assert 7 not in context.loop_counters

    def test_zero_iterations_exit_immediately(self, store, context):
        block = make_block("Loop", {"Iterations": 0})

        assert LoopHandler().execute(block, store, context).branch_key == "exit"

    def test_negative_iterations_exit_immediately(self, store, context):
        block = make_block("Loop", {"Iterations": -2})

        assert LoopHandler().execute(block, store, context).branch_key == "exit"

    def test_default_is_one_iteration(self, store, context):
        handler = LoopHandler()
        block = make_block("Loop", None)

        assert handler.execute(block, store, context).branch_key == "loop"
        assert handler.execute(block, store, context).branch_key == "exit"

    def test_counters_are_per_block(self, store, context):
        handler = LoopHandler()
        first = make_block("Loop", {"Iterations": 1}, block_id=1)
        second = make_block("Loop", {"Iterations": 1}, block_id=2)

        assert handler.execute(first, store, context).branch_key == "loop"
        assert handler.execute(second, store, context).branch_key == "loop"
        assert handler.execute(first, store, context).branch_key == "exit"

    def test_counter_never_touches_store(self, store, context):
        LoopHandler().execute(make_block("Loop", {"Iterations": 2}), store, context)

        assert store.snapshot() == {}


class TestWaitHandler:
    """Test WaitHandler."""

    def test_waits_for_delay(self, store, context):
        block = make_block("Wait", {"DelayMs": 20})

        started = time.monotonic()
        result = WaitHandler().execute(block, store, context)

        assert result.is_error is False
        assert result.description == "Waited 20 ms"
        assert time.monotonic() - started >= 0.015

    def test_delay_variable_overrides_delay(self, store, context):
        store.set("pause", "5")
        block = make_block("Wait", {"DelayMs": 100000, "DelayVariable": "$pause"})

        result = WaitHandler().execute(block, store, context)

        assert result.description == "Waited 5 ms"

    def test_non_numeric_delay_variable_is_ignored(self, store, context):
        store.set("pause", "soon")
        block = make_block("Wait", {"DelayMs": 1, "DelayVariable": "pause"})

        assert WaitHandler().execute(block, store, context).description == "Waited 1 ms"

    def test_delay_is_clipped(self, store, context):
        event = threading.Event()
        context.cancel_event = event
        block = make_block("Wait", {"DelayMs": 10_000_000})

        with patch.object(event, "wait", return_value=False) as mock_wait:
            result = WaitHandler().execute(block, store, context)

        # FLOWFORGE_WAIT_MAX_DELAY_MS is 2000 in tests
        mock_wait.assert_called_once_with(2.0)
        assert result.description == "Waited 2000 ms"

    def test_skip_waits(self, store, context):
        context.skip_waits = True
        block = make_block("Wait", {"DelayMs": 1500})

        started = time.monotonic()
        result = WaitHandler().execute(block, store, context)

        assert result.is_error is False
        assert result.description == "Wait 1500 ms skipped"
        assert time.monotonic() - started < 1

    def test_cancelled_wait_is_error(self, store, context):
        context.cancel_event.set()
        block = make_block("Wait", {"DelayMs": 1500})

        result = WaitHandler().execute(block, store, context)

        assert result.is_error is True
        assert "cancelled" in result.description

    def test_deadline_shorter_than_delay_is_error(self, store, context):
        context.deadline = time.monotonic() + 0.01
        block = make_block("Wait", {"DelayMs": 1500})

        result = WaitHandler().execute(block, store, context)

        assert result.is_error is True
        assert "deadline" in result.description


class TestDefaultHandler:
    """Test DefaultHandler."""

    def test_matches_anything(self):
        assert DefaultHandler().can_handle(make_block("SomethingNew"))

    def test_uses_type_description(self, store, context):
        block = make_block("Notify")
        block.type_description = "Send a notification"

        assert DefaultHandler().execute(block, store, context).description == "Send a notification"

    def test_falls_back_to_block_name(self, store, context):
        block = make_block("Notify", name="Ping ops")

        result = DefaultHandler().execute(block, store, context)

        assert result.is_error is False
        assert result.description == "Executed block Ping ops"
