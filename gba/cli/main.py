"""Main CLI entry point for gba."""

from pathlib import Path

import click

from ..utils.logging_config import configure_logging
from .commands.init import init
from .commands.prompts import list_prompts, prompt
from .commands.run import run
from .commands.status import status


@click.group()
@click.option('--path', '-p', 'project_path', default='.',
              type=click.Path(file_okay=False, path_type=Path),
              help='Project root (default: current directory)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, project_path, verbose):
    """gba - Plan, implement and verify features with an AI agent"""
    ctx.ensure_object(dict)
    ctx.obj['project_root'] = project_path.resolve()
    ctx.obj['verbose'] = verbose
    configure_logging('debug' if verbose else None)


# Register commands
cli.add_command(init)
cli.add_command(run)
cli.add_command(status)
cli.add_command(list_prompts)
cli.add_command(prompt)


if __name__ == '__main__':
    cli()
