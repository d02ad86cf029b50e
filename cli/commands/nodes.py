# cli/commands/nodes.py
"""Inspect the node adapters available to a run."""

import json
from dataclasses import asdict

import click
import yaml

from core.config import get_settings
from core.monitoring.logging import configure_logging
from plugins.registry import create_registry


@click.group()
def nodes():
    """Inspect available node adapters."""
    pass


@nodes.command(name='list')
@click.option('--format', 'fmt', type=click.Choice(['table', 'yaml', 'json']), default='table',
              help='Output format')
@click.option('--plugin-dir', 'plugin_dirs', multiple=True, type=click.Path(exists=True, file_okay=False),
              help='Additional plugin directory (repeatable)')
def list_nodes(fmt: str, plugin_dirs):
    """List all node adapters and the plugins that provide them."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    registry = create_registry(list(settings.plugin_dirs) + list(plugin_dirs))
    adapters = registry.list_adapters()

    if fmt == 'json':
        click.echo(json.dumps([asdict(info) for info in adapters], indent=2))
        return
    if fmt == 'yaml':
        click.echo(yaml.dump([asdict(info) for info in adapters], default_flow_style=False, sort_keys=False))
        return

    if not adapters:
        click.echo("No node adapters found.")
    else:
        click.echo("Available node adapters:")
        click.echo("-" * 80)
        for info in adapters:
            flag = " [branching]" if info.branching else ""
            click.echo(f"📦 {info.name}{flag} (plugin: {info.plugin})")
            if info.description:
                click.echo(f"   {info.description}")
            if info.inputs:
                click.echo(f"   Inputs: {', '.join(info.inputs)}")

    for plugin_name, error in registry.get_plugin_errors().items():
        click.echo(f"⚠️  Plugin {plugin_name} not loaded: {error}", err=True)
