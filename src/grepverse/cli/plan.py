"""CLI plan command"""

import sys

import click
from pydantic import ValidationError

from grepverse.errors import SourceAccessError
from grepverse.models import MatchConfig, ScanConfig
from grepverse.scan import plan_path


@click.command('plan')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--chunks', type=click.IntRange(min=1), help='Number of chunks to request (default: one per worker)')
@click.option('--workers', type=click.IntRange(min=1), help='Worker pool size to plan for')
@click.option('--json', 'json_output', is_flag=True, help='Output in JSON format')
@click.option('--no-color', is_flag=True, help='Disable colored output')
def plan_command(path: str, chunks: int | None, workers: int | None, json_output: bool, no_color: bool):
    """Show how a file would be split into line-aligned chunks.

    Nothing is matched; the file is only mapped and its newlines counted.

    Examples:

        grepverse plan /var/log/app.log

        grepverse plan /var/log/app.log --chunks 8 --json
    """
    try:
        settings = {'match': MatchConfig(pattern='')}
        if workers:
            settings['max_workers'] = workers
        config = ScanConfig(**settings)
    except ValidationError as e:
        click.echo(f'Error: invalid options: {e}', err=True)
        sys.exit(2)

    try:
        response = plan_path(path, config, chunks)
    except SourceAccessError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    if json_output:
        click.echo(response.model_dump_json(indent=2))
    else:
        colorize = not no_color and sys.stdout.isatty()
        click.echo(response.to_cli(colorize=colorize))
