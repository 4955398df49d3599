"""Main CLI entry point with command groups"""

import logging
import multiprocessing
import os

import click

from grepverse.__version__ import __version__
from grepverse.cli.plan import plan_command
from grepverse.cli.search import search_command

logger = logging.getLogger(__name__)


class DefaultCommandGroup(click.Group):
    """Group that runs `default_command` when the first argument names no subcommand.

    Only the group's own --help and --version are parsed by the group itself,
    so `grepverse -n error app.log` reaches search with its options intact.
    """

    def __init__(self, *args, default_command: str = 'search', **kwargs):
        super().__init__(*args, **kwargs)
        self.default_command = default_command

    def own_options(self, ctx) -> set[str]:
        return set(self.get_help_option_names(ctx)) | {'--version'}

    def parse_args(self, ctx, args):
        # completion and a bare invocation keep the group behaviour
        if ctx.resilient_parsing or not args:
            return super().parse_args(ctx, args)

        first = args[0]
        if first in self.commands or first in self.own_options(ctx):
            return super().parse_args(ctx, args)

        logger.debug(f"[CLI] Routing {first!r} to default command {self.default_command!r}")
        return super().parse_args(ctx, [self.default_command, *args])


@click.group(
    cls=DefaultCommandGroup,
    default_command='search',
    invoke_without_command=True,
    context_settings=dict(help_option_names=['-h', '--help']),
)
@click.version_option(version=__version__, prog_name='grepverse')
@click.pass_context
def cli(ctx):
    """
    grepverse - Parallel line-oriented pattern search.

    \b
    Commands:
      grepverse <pattern> [path...]   Search for a pattern (default command)
      grepverse plan <path>           Show how a file would be split into chunks

    \b
    Examples:
      grepverse error /var/log/app.log
      grepverse -r "time(out|d out)" -i -C 2 /var/log/app.log
      grepverse -R --include "*.py" import src/
      grepverse plan /var/log/app.log --chunks 8
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


cli.add_command(search_command, name='search')
cli.add_command(plan_command, name='plan')


def configure_logging():
    """Log to stderr at GREPVERSE_LOG_LEVEL (WARNING unless set)."""
    log_level_name = os.getenv('GREPVERSE_LOG_LEVEL', 'WARNING').upper()
    log_level = getattr(logging, log_level_name, logging.WARNING)
    logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def main():
    """Entry point for the CLI"""
    # Support for multiprocessing in frozen binaries (PyInstaller)
    multiprocessing.freeze_support()

    configure_logging()
    cli()


if __name__ == '__main__':
    main()
