"""Command-line interface for running, replaying and inspecting workflows."""

import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ..agents import builtin_agents
from ..core.config import RuntimeSettings, load_workflow, load_workflow_or_default
from ..errors import ConfigError, ErrorTranslator
from ..tracing import TraceEnvelope, load_trace
from ..utils.error_handling import ErrorContext
from ..utils.rich_logging import setup_rich_logging
from ..workflow import ExecutionEngine, RunResult


console = Console()

_STATUS_STYLES = {"ok": "green", "stopped": "yellow", "error": "red", "running": "blue"}


def _fail(error: Exception) -> None:
    translator = ErrorTranslator()
    console.print(translator.format_for_cli(translator.translate(error)))
    sys.exit(1)


def _build_engine(workflow, settings: RuntimeSettings) -> ExecutionEngine:
    workers = [a.name for a in workflow.agents if a.type == "worker"]
    return ExecutionEngine.from_settings(workflow, builtin_agents(workers or None), settings)


def _print_result(result: RunResult) -> None:
    console.print_json(json.dumps(result.model_dump(mode="json")))
    style = _STATUS_STYLES.get(result.status, "white")
    console.print(f"\n[{style}]Status: {result.status}[/]  cost={result.totals.cost:.4f}")
    if result.error:
        console.print(f"[{style}]Reason: {result.error}[/]")


def _steps_table(envelope: TraceEnvelope) -> Table:
    table = Table(title=f"Trace {envelope.task_id}")
    table.add_column("#", justify="right")
    table.add_column("Agent", style="cyan")
    table.add_column("Loop", justify="right")
    table.add_column("Attempt", justify="right")
    table.add_column("OK")
    table.add_column("Next")
    table.add_column("Cost", justify="right")
    table.add_column("Message")

    for i, step in enumerate(envelope.steps, 1):
        out = step.output
        ok = "[green]✓[/]" if out.ok else "[red]✗[/]"
        table.add_row(
            str(i),
            step.agent,
            str(step.loop),
            str(step.attempt),
            ok,
            out.next or "",
            f"{out.reported_cost:.4f}",
            (out.message or "")[:80],
        )
    return table


@click.group()
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--trace-dir", type=click.Path(path_type=Path), default=None, help="Directory for trace files")
@click.pass_context
def cli(ctx, log_level, trace_dir):
    """Echos - multi-agent workflow runtime with replayable traces."""
    ctx.ensure_object(dict)
    overrides = {}
    if log_level:
        overrides["log_level"] = log_level
    if trace_dir:
        overrides["trace_dir"] = trace_dir
    try:
        settings = RuntimeSettings(**overrides)
    except ValidationError as e:
        _fail(e)
        return
    setup_rich_logging(settings.log_level)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("task", nargs=-1, required=True)
@click.option("--workflow", "-w", "workflow_path", type=click.Path(path_type=Path),
              default=Path("workflow.yaml"), help="Workflow YAML file")
@click.pass_context
def run(ctx, task, workflow_path):
    """Run TASK through the workflow using the built-in agents."""
    settings: RuntimeSettings = ctx.obj["settings"]
    task_text = " ".join(task).strip()
    if not task_text:
        console.print("[red]Usage: echos run \"<task description>\"[/]")
        sys.exit(1)

    try:
        workflow = load_workflow_or_default(workflow_path, settings.workflow_name)
    except ConfigError as e:
        _fail(e)
        return

    engine = _build_engine(workflow, settings)
    result = asyncio.run(engine.run(task_text))
    _print_result(result)
    console.print(f"\n[dim]Trace written to {settings.trace_dir / f'{result.task_id}.json'}[/]")


@cli.command()
@click.argument("trace_file", type=click.Path(path_type=Path))
@click.option("--workflow", "-w", "workflow_path", type=click.Path(path_type=Path),
              default=None, help="Modified workflow YAML (defaults to the trace's own config)")
@click.pass_context
def replay(ctx, trace_file, workflow_path):
    """Replay TRACE_FILE's task and memory against a (modified) workflow."""
    settings: RuntimeSettings = ctx.obj["settings"]
    try:
        original = load_trace(trace_file)
        workflow = load_workflow(workflow_path) if workflow_path else original.workflow()
    except (ConfigError, FileNotFoundError, ValueError) as e:
        _fail(e)
        return
    if workflow is None:
        console.print("[red]Trace has no recorded workflow; pass --workflow[/]")
        sys.exit(1)

    engine = _build_engine(workflow, settings)
    result = asyncio.run(engine.replay(original, workflow))
    _print_result(result)

    table = Table(title="Time-travel comparison")
    table.add_column("")
    table.add_column("Original")
    table.add_column("Replay")
    table.add_row("Task id", original.task_id, result.task_id)
    table.add_row("Status", original.status, result.status)
    table.add_row("Attempts", str(len(original.steps)), str(len(result.trace.steps) if result.trace else 0))
    table.add_row("Cost", f"{original.totals.cost:.4f}", f"{result.totals.cost:.4f}")
    table.add_row("Agents", " → ".join(original.agent_sequence()),
                  " → ".join(result.trace.agent_sequence()) if result.trace else "")
    console.print(table)


@cli.command()
@click.argument("workflow_path", type=click.Path(path_type=Path))
def validate(workflow_path):
    """Load and validate WORKFLOW_PATH."""
    try:
        workflow = load_workflow(workflow_path)
    except (ConfigError, FileNotFoundError) as e:
        _fail(e)
        return

    console.print(f"[green]✓ {workflow_path} is valid[/]")
    table = Table(title=workflow.name or "workflow")
    table.add_column("Agent", style="cyan")
    table.add_column("Type")
    table.add_column("Max loops", justify="right")
    table.add_column("Can call")
    table.add_column("Fallback")
    for agent in workflow.agents:
        table.add_row(
            agent.name,
            agent.type,
            str(workflow.max_loops_for(agent.name)),
            ", ".join(workflow.allowed_targets(agent.name)),
            agent.policy.fallback or "",
        )
    console.print(table)


@cli.command()
@click.argument("trace_file", type=click.Path(path_type=Path))
def show(trace_file):
    """Show the steps recorded in TRACE_FILE."""
    with ErrorContext(f"loading trace {trace_file}", raise_on_error=False) as err:
        envelope = load_trace(trace_file)
    if err.error is not None:
        _fail(err.error)
        return

    console.print(_steps_table(envelope))
    style = _STATUS_STYLES.get(envelope.status, "white")
    console.print(f"[{style}]Status: {envelope.status}[/]  cost={envelope.totals.cost:.4f}  "
                  f"duration={envelope.totals.duration_ms:.0f}ms")
    if envelope.error:
        console.print(f"[{style}]Reason: {envelope.error}[/]")
    if envelope.is_replay:
        console.print(f"[dim]Replay of {envelope.original_trace_id}[/]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
