# cli/main.py
"""Main CLI entry point for Workflow Graph Runner."""

import click

from core import __version__


@click.group()
@click.version_option(version=__version__)
def cli():
    """Workflow Graph Runner CLI - execute node graphs in isolated hosts."""
    pass


# Import and register command groups
def register_commands():
    """Register all CLI command groups."""
    from cli.commands.run import run
    cli.add_command(run)

    from cli.commands.nodes import nodes
    cli.add_command(nodes)


# Register all commands
register_commands()


if __name__ == '__main__':
    cli()
