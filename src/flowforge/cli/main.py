"""
Flowforge CLI - Main entry point.

Provides commands for:
- Running workflow files
- Computing schedule next-run times
- Listing the builtin block catalog
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml

from flowforge.observability import setup_logging


logger = logging.getLogger("flowforge")


def load_document(path: Path) -> Any:
    """Load a JSON or YAML document (chosen by file extension)."""
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def parse_assignments(assignments: Tuple[str, ...]) -> Dict[str, str]:
    """Turn ``NAME=VALUE`` options into a dict."""
    values: Dict[str, str] = {}
    for item in assignments:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="--set")
        values[name.strip()] = value
    return values


def parse_timestamp(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=option) from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """Flowforge - Workflow execution engine."""
    ctx.ensure_object(dict)

    if verbose:
        setup_logging("DEBUG")
    elif quiet:
        setup_logging("ERROR")
    else:
        setup_logging("WARNING")

    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# ==============================================================================
# Run
# ==============================================================================

@cli.command("run")
@click.argument("workflow_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--input", "-i", "input_file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON/YAML file with variable overrides"
)
@click.option(
    "--set", "-s", "assignments",
    multiple=True,
    help="Variable override as NAME=VALUE (repeatable)"
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    help="Write the execution record to this JSON file"
)
@click.option(
    "--catalog",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON/YAML list of system blocks (builtin catalog by default)"
)
@click.option("--skip-waits", is_flag=True, help="Do not sleep in Wait blocks")
@click.option("--max-steps", type=click.IntRange(min=1), help="Override the step limit")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Run timeout in seconds")
@click.option("--plugins", is_flag=True, help="Load handler plugins from entry points")
@click.pass_context
def run_workflow(
    ctx: click.Context,
    workflow_file: str,
    input_file: Optional[str],
    assignments: Tuple[str, ...],
    output: Optional[str],
    catalog: Optional[str],
    skip_waits: bool,
    max_steps: Optional[int],
    timeout: Optional[float],
    plugins: bool,
):
    """
    Execute a workflow from a JSON or YAML file.

    WORKFLOW_FILE: Path to the workflow graph

    Examples:

        # Run a workflow
        flowforge run ./workflow.json

        # With overrides and a saved record
        flowforge run ./workflow.yaml -s A=4 -s B=6 -o record.json
    """
    from flowforge.block_handlers import create_default_registry
    from flowforge.workflow_runtime import (
        SystemBlockCatalog,
        WorkflowExecutor,
        WorkflowStructureError,
        parse_workflow,
    )

    try:
        workflow = parse_workflow(load_document(Path(workflow_file)))
    except (ValueError, yaml.YAMLError) as e:
        click.echo(f"Error loading workflow: {e}", err=True)
        sys.exit(1)

    inputs: Dict[str, Any] = {}
    if input_file:
        data = load_document(Path(input_file))
        if not isinstance(data, dict):
            click.echo("Error: input file must contain an object", err=True)
            sys.exit(1)
        inputs.update(data)
    inputs.update(parse_assignments(assignments))

    system_blocks = None
    if catalog:
        data = load_document(Path(catalog))
        if isinstance(data, dict):
            data = data.get("systemBlocks", data.get("system_blocks", []))
        system_blocks = SystemBlockCatalog(data)

    executor = WorkflowExecutor(
        registry=create_default_registry(discover_plugins=plugins),
        catalog=system_blocks,
        max_steps=max_steps,
    )

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        click.echo(f"Executing workflow: {workflow.name}")
        click.echo(f"Blocks: {len(workflow.blocks)}")

    try:
        record = executor.execute(workflow, inputs, skip_waits=skip_waits, timeout_s=timeout)
    except WorkflowStructureError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not quiet:
        click.echo(f"\nStatus: {record.status.value}")
        if record.message:
            click.echo(f"Message: {record.message}")
        click.echo("\nPath:")
        for index, (name, action) in enumerate(zip(record.path, record.actions), start=1):
            click.echo(f"  {index}. {name}: {action}")
        for action in record.actions[len(record.path):]:
            click.echo(f"  - {action}")
        click.echo("\nResult:")
        click.echo(json.dumps(record.result_data, indent=2, ensure_ascii=False))

    if output:
        Path(output).write_text(record.to_json(), encoding="utf-8")
        if not quiet:
            click.echo(f"\nRecord saved to: {output}")

    if record.is_dead_end:
        sys.exit(1)


# ==============================================================================
# Scheduling
# ==============================================================================

@cli.command("next-run")
@click.option(
    "--trigger", "-t",
    type=click.Choice(["Interval", "Once", "Daily"], case_sensitive=False),
    default="Interval",
    show_default=True,
    help="Trigger type"
)
@click.option("--start", required=True, help="Start time (ISO 8601, UTC if no offset)")
@click.option("--interval", type=int, help="Interval in minutes")
@click.option("--last", help="Last run time (ISO 8601)")
@click.option("--now", "now_value", help="Reference time (defaults to the current time)")
def next_run(
    trigger: str,
    start: str,
    interval: Optional[int],
    last: Optional[str],
    now_value: Optional[str],
):
    """Print when a schedule would fire next."""
    from flowforge.scheduling import WorkflowSchedule, calculate_next_run

    schedule = WorkflowSchedule(
        workflow_id=0,
        trigger_type=trigger,
        start_at_utc=parse_timestamp(start, "--start"),
        interval_minutes=interval,
        last_run_at_utc=parse_timestamp(last, "--last"),
    )
    result = calculate_next_run(schedule, parse_timestamp(now_value, "--now"))
    click.echo(result.isoformat() if result else "never")


# ==============================================================================
# Catalog
# ==============================================================================

@cli.command("catalog")
@click.option("--json", "as_json", is_flag=True, help="Print the catalog as JSON")
def list_catalog(as_json: bool):
    """List the builtin block types."""
    from flowforge.workflow_runtime.models import BUILTIN_SYSTEM_BLOCKS

    if as_json:
        click.echo(json.dumps(BUILTIN_SYSTEM_BLOCKS, indent=2))
        return

    click.echo("Builtin system blocks:")
    for entry in BUILTIN_SYSTEM_BLOCKS:
        click.echo(f"  {entry['id']:>3}  {entry['type']:<14} {entry['description']}")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
