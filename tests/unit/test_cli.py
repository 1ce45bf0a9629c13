"""Tests for CLI commands."""
import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from flowforge.cli.main import cli, parse_assignments

from helpers import block, link, workflow


@pytest.fixture(autouse=True)
def mock_logging():
    with patch("flowforge.cli.main.setup_logging") as mocked:
        yield mocked


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workflow_file(tmp_path, calculation_workflow):
    path = tmp_path / "workflow.json"
    path.write_text(json.dumps(calculation_workflow), encoding="utf-8")
    return path


class TestRunCommand:
    """Test the run command."""

    def test_run_prints_path_and_result(self, runner, workflow_file):
        result = runner.invoke(cli, ["run", str(workflow_file)], obj={})

        assert result.exit_code == 0
        assert "Executing workflow: Test Workflow" in result.output
        assert "Blocks: 3" in result.output
        assert "Status: completed" in result.output
        assert "1. Start: Workflow started" in result.output
        assert "2. Calculation: C = 2 + 3 => 5" in result.output
        assert '"C": "5"' in result.output

    def test_set_overrides(self, runner, workflow_file):
        result = runner.invoke(cli, ["run", str(workflow_file), "-s", "A=4", "-s", "B=6"], obj={})

        assert result.exit_code == 0
        assert '"C": "10"' in result.output

    def test_input_file_and_output_record(self, runner, workflow_file, tmp_path):
        input_file = tmp_path / "inputs.yaml"
        input_file.write_text(yaml.safe_dump({"A": 10, "B": 1}), encoding="utf-8")
        output_file = tmp_path / "record.json"

        result = runner.invoke(
            cli,
            ["run", str(workflow_file), "-i", str(input_file), "-o", str(output_file)],
            obj={},
        )

        assert result.exit_code == 0
        record = json.loads(output_file.read_text(encoding="utf-8"))
        assert record["inputData"]["A"] == "10"
        assert record["resultData"]["C"] == "11"
        assert record["path"] == ["Start", "Calculation", "End"]
        assert f"Record saved to: {output_file}" in result.output

    def test_yaml_workflow(self, runner, tmp_path, calculation_workflow):
        path = tmp_path / "workflow.yaml"
        path.write_text(yaml.safe_dump(calculation_workflow), encoding="utf-8")

        result = runner.invoke(cli, ["run", str(path)], obj={})

        assert result.exit_code == 0
        assert '"C": "5"' in result.output

    def test_quiet_suppresses_output(self, runner, workflow_file, mock_logging):
        result = runner.invoke(cli, ["-q", "run", str(workflow_file)], obj={})

        assert result.exit_code == 0
        assert result.output == ""
        mock_logging.assert_called_once_with("ERROR")

    def test_dead_end_exits_with_error(self, runner, tmp_path):
        path = tmp_path / "dead_end.json"
        path.write_text(json.dumps(workflow(
            blocks=[
                block(1, "Start", "Start"),
                block(2, "Route", "Switch", {"Expression": "$color"}),
                block(3, "End", "End"),
            ],
            connections=[link(1, 2), link(2, 3, label="red")],
            variables={"color": "blue"},
        )), encoding="utf-8")

        result = runner.invoke(cli, ["run", str(path)], obj={})

        assert result.exit_code == 1
        assert "Status: dead_end" in result.output
        assert "Dead end at block 'Route'" in result.output

    def test_structure_error_exits_with_error(self, runner, tmp_path):
        path = tmp_path / "no_start.json"
        path.write_text(json.dumps(workflow(blocks=[block(1, "End", "End")], connections=[])), encoding="utf-8")

        result = runner.invoke(cli, ["run", str(path)], obj={})

        assert result.exit_code == 1
        assert "has no Start block" in result.output

    def test_invalid_json_exits_with_error(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        result = runner.invoke(cli, ["run", str(path)], obj={})

        assert result.exit_code == 1
        assert "Error loading workflow" in result.output

    def test_bad_assignment(self, runner, workflow_file):
        result = runner.invoke(cli, ["run", str(workflow_file), "-s", "oops"], obj={})

        assert result.exit_code == 2
        assert "NAME=VALUE" in result.output


class TestNextRunCommand:
    """Test the next-run command."""

    def test_interval(self, runner):
        result = runner.invoke(cli, [
            "next-run", "--start", "2024-03-01T00:00:00Z", "--interval", "15",
            "--last", "2024-03-10T09:55:00Z", "--now", "2024-03-10T10:00:00Z",
        ], obj={})

        assert result.exit_code == 0
        assert result.output.strip() == "2024-03-10T10:10:00+00:00"

    def test_daily(self, runner):
        result = runner.invoke(cli, [
            "next-run", "-t", "daily", "--start", "2024-01-01T09:30:00", "--now", "2024-03-10T10:00:00",
        ], obj={})

        assert result.output.strip() == "2024-03-11T09:30:00+00:00"

    def test_once_in_past_never_fires(self, runner):
        result = runner.invoke(cli, [
            "next-run", "-t", "Once", "--start", "2024-03-01T00:00:00", "--now", "2024-03-10T00:00:00",
        ], obj={})

        assert result.output.strip() == "never"

    def test_bad_timestamp(self, runner):
        result = runner.invoke(cli, ["next-run", "--start", "yesterday"], obj={})

        assert result.exit_code == 2


class TestCatalogCommand:
    """Test the catalog command."""

    def test_lists_blocks(self, runner):
        result = runner.invoke(cli, ["catalog"], obj={})

        assert result.exit_code == 0
        assert "Builtin system blocks:" in result.output
        assert "TextReplace" in result.output

    def test_json(self, runner):
        result = runner.invoke(cli, ["catalog", "--json"], obj={})

        data = json.loads(result.output)
        assert [entry["type"] for entry in data][:2] == ["Start", "End"]


class TestParseAssignments:
    """Test parse_assignments."""

    def test_values_may_contain_equals(self):
        assert parse_assignments(("url=https://x.test/?a=1", " B = 2")) == {
            "url": "https://x.test/?a=1",
            "B": " 2",
        }
