# cli/commands/run.py
"""Run a graph description to completion."""

import asyncio
import json
from pathlib import Path
from typing import Tuple

import click

from core.config import get_settings
from core.execution.errors import PayloadError
from core.graph.builder import load_payload
from core.monitoring.logging import configure_logging
from worker.errors import HostCrashedError, HostTimeoutError
from worker.runner import RunOutcome, WorkflowRunner


@click.command()
@click.argument('graph_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--start', '-s', 'starting_nodes', multiple=True,
              help='Starting node id (repeatable). Defaults to nodes without incoming edges.')
@click.option('--timeout', '-t', type=float, default=None, help='Host timeout in seconds')
@click.option('--inline', is_flag=True, help='Run in this process instead of a spawned host')
@click.option('--output', '-o', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.option('--log-level', default=None, help='Log level (defaults to WORKFLOW_LOG_LEVEL)')
def run(graph_file: Path, starting_nodes: Tuple[str, ...], timeout, inline: bool,
        output: str, log_level):
    """Run the graph described in GRAPH_FILE (YAML or JSON)."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, settings.log_format)

    try:
        payload = load_payload(graph_file, list(starting_nodes) or None)
    except PayloadError as e:
        raise click.ClickException(str(e))

    runner = WorkflowRunner(settings=settings, timeout=timeout)
    try:
        if inline:
            outcome = asyncio.run(runner.run_inline(payload))
        else:
            outcome = asyncio.run(runner.run(payload))
    except (HostTimeoutError, HostCrashedError) as e:
        raise click.ClickException(str(e))

    if output == 'json':
        _print_json(outcome)
    else:
        _print_table(outcome)

    if not outcome.succeeded:
        raise SystemExit(1)


def _print_json(outcome: RunOutcome):
    click.echo(json.dumps({
        'runId': outcome.run_id,
        'status': outcome.status,
        'error': outcome.error,
        'nodeId': outcome.node_id,
        'workflowExecutedData': [
            record.model_dump(by_alias=True, mode='json') for record in outcome.records
        ],
    }, indent=2))


def _print_table(outcome: RunOutcome):
    if outcome.succeeded:
        click.echo(f"✅ Run {outcome.run_id} finished ({len(outcome.records)} nodes executed)")
    else:
        click.echo(f"❌ Run {outcome.run_id} failed at node {outcome.node_id}: {outcome.error}", err=True)

    if not outcome.records:
        return

    click.echo("-" * 80)
    for record in outcome.records:
        marker = "✗" if record.failed else "•"
        label = f" ({record.node_label})" if record.node_label else ""
        click.echo(f"{marker} {record.node_id}{label}: {len(record.data)} result(s)")
        for item in record.data:
            click.echo(f"    {json.dumps(item, default=str)}")
