"""Tests for Calculation, If/Condition and Switch handlers."""
import pytest

from flowforge.block_handlers.logic import (
    CalculationHandler,
    CalculationOperation,
    ConditionHandler,
    SwitchHandler,
)

from helpers import make_block


class TestCalculationHandler:
    """Test CalculationHandler."""

    def test_add_normalizes_result(self, store, context):
        store.set("a", "2.5")
        store.set("b", "3.5")
        block = make_block("Calculation", {
            "Operation": "Add", "FirstVariable": "$a", "SecondVariable": "$b", "ResultVariable": "c",
        })

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is False
        assert store.get("c") == "6"
        assert result.description == "c = 2.5 + 3.5 => 6"

    def test_divide_by_zero_keeps_first_operand(self, store, context):
        store.set("a", "5")
        store.set("b", "0")
        block = make_block("Calculation", {
            "Operation": "Divide", "FirstVariable": "a", "SecondVariable": "b", "ResultVariable": "r",
        })

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is False
        assert store.get("r") == "5"

    @pytest.mark.parametrize("operation, expected", [
        ("Subtract", "6"),
        ("Multiply", "16"),
        ("Divide", "4"),
        ("multiply", "16"),
        (1, "6"),
    ])
    def test_operations(self, store, context, operation, expected):
        store.set("x", "8")
        block = make_block("Calculation", {
            "Operation": operation, "FirstVariable": "x", "SecondVariable": "2", "ResultVariable": "y",
        })

        CalculationHandler().execute(block, store, context)

        assert store.get("y") == expected

    def test_non_numeric_operands_count_as_zero(self, store, context):
        store.set("a", "apple")
        store.set("b", "3")
        block = make_block("Calculation", {
            "Operation": "Add", "FirstVariable": "a", "SecondVariable": "b", "ResultVariable": "c",
        })

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is False
        assert store.get("c") == "3"

    def test_result_defaults_to_first_variable(self, store, context):
        store.set("total", "10")
        block = make_block("Calculation", {
            "Operation": "Add", "FirstVariable": "total", "SecondVariable": "5",
        })

        CalculationHandler().execute(block, store, context)

        assert store.get("total") == "15"

    def test_concat(self, store, context):
        store.set("first", "Ada")
        store.set("last", "Lovelace")
        block = make_block("Calculation", {
            "Operation": "Concat", "FirstVariable": "first", "SecondVariable": "last", "ResultVariable": "full",
        })

        result = CalculationHandler().execute(block, store, context)

        assert store.get("full") == "AdaLovelace"
        assert result.description == "full = Ada + Lovelace"

    def test_invalid_config_is_error(self, store, context):
        block = make_block("Calculation", "{not json", name="Calc")

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is True
        assert result.description == "Invalid config for block Calc"

    def test_unknown_operation_is_error(self, store, context):
        block = make_block("Calculation", {"Operation": "Power", "FirstVariable": "a"})

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is True

    def test_missing_destination_is_error(self, store, context):
        block = make_block("Calculation", {"Operation": "Add", "SecondVariable": "1"})

        result = CalculationHandler().execute(block, store, context)

        assert result.is_error is True

    def test_requires_config(self):
        handler = CalculationHandler()

        assert handler.can_handle(make_block("Calculation", {"Operation": "Add"}))
        assert not handler.can_handle(make_block("Calculation", None))
        assert not handler.can_handle(make_block("If", {"First": "1"}))

    def test_calculate(self):
        assert CalculationHandler.calculate(CalculationOperation.DIVIDE, 5, 0) == 5
        assert CalculationHandler.calculate(CalculationOperation.SUBTRACT, 1, 3) == -2


class TestConditionHandler:
    """Test ConditionHandler."""

    def test_false_number_condition_is_error(self, store, context):
        store.set("x", "5")
        block = make_block("If", {
            "DataType": "Number", "First": "$x", "Second": "10", "Operation": "greater",
        })

        result = ConditionHandler().execute(block, store, context)

        assert result.is_error is True
        assert "IF" in result.description
        assert result.description == "IF 5 > 10"

    def test_true_number_condition(self, store, context):
        store.set("x", "15")
        block = make_block("If", {
            "DataType": "Number", "First": "$x", "Second": "10", "Operation": "GreaterThan",
        })

        assert ConditionHandler().execute(block, store, context).is_error is False

    def test_numbers_compare_by_value(self, store, context):
        block = make_block("If", {"DataType": "Number", "First": "10", "Second": "9", "Operation": ">"})

        assert ConditionHandler().execute(block, store, context).is_error is False

    def test_strings_compare_ordinally(self, store, context):
        block = make_block("If", {"DataType": "String", "First": "10", "Second": "9", "Operation": ">"})

        assert ConditionHandler().execute(block, store, context).is_error is True

    @pytest.mark.parametrize("operation, first, second, holds", [
        ("Equal", "a", "a", True),
        ("Equal", "a", "A", False),
        ("NotEqual", "a", "b", True),
        ("==", "x", "x", True),
        ("!=", "x", "x", False),
        ("lte", "a", "b", True),
        ("gte", "a", "b", False),
        (1, "a", "b", True),
    ])
    def test_string_operations(self, store, context, operation, first, second, holds):
        block = make_block("If", {"First": first, "Second": second, "Operation": operation})

        assert ConditionHandler().execute(block, store, context).is_error is (not holds)

    def test_default_operation_is_equal(self, store, context):
        store.set("status", "ok")
        block = make_block("If", {"First": "$status", "Second": "ok"})

        result = ConditionHandler().execute(block, store, context)

        assert result.is_error is False
        assert result.description == "IF ok == ok"

    def test_invalid_config_is_error(self, store, context):
        block = make_block("If", '["not", "an", "object"]')

        result = ConditionHandler().execute(block, store, context)

        assert result.is_error is True
        assert "IF" in result.description

    def test_claims_condition_type(self):
        handler = ConditionHandler()

        assert handler.can_handle(make_block("Condition", {"First": "1"}))
        assert handler.can_handle(make_block("if", {"First": "1"}))


class TestSwitchHandler:
    """Test SwitchHandler."""

    def test_branch_key_is_resolved_expression(self, store, context):
        store.set("color", "red")
        block = make_block("Switch", {"Expression": "$color", "Cases": ["red", "green"]})

        result = SwitchHandler().execute(block, store, context)

        assert result.is_error is False
        assert result.branch_key == "red"
        assert result.description == "SWITCH $color => red"

    def test_literal_expression(self, store, context):
        block = make_block("Switch", {"Expression": "blue"})

        assert SwitchHandler().execute(block, store, context).branch_key == "blue"

    def test_invalid_config_is_error(self, store, context):
        block = make_block("Switch", "nope", name="Router")

        result = SwitchHandler().execute(block, store, context)

        assert result.is_error is True
        assert result.branch_key is None
