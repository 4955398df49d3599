"""CLI search command"""

import logging
import sys
from time import time

import click
from pydantic import ValidationError

from grepverse.errors import GrepverseError, InvalidPatternError
from grepverse.file_utils import collect_sources
from grepverse.matcher import build_matcher
from grepverse.models import DecodePolicy, MatchConfig, MatchMode, ScanConfig, SearchResponse
from grepverse.scan import iter_scan
from grepverse.sink import CollectSink, CountSink, ResultSink, TextSink

logger = logging.getLogger(__name__)


def resolve_color(color: str) -> bool:
    """Map --color always/never/auto to a bool (auto means stdout is a terminal)."""
    if color == 'always':
        return True
    if color == 'never':
        return False
    return sys.stdout.isatty()


def build_sink(
    matcher, output_json: bool, count: bool, show_names: bool, line_number: bool, colorize: bool, config: ScanConfig
) -> ResultSink:
    if output_json:
        response = SearchResponse(pattern=config.match.pattern, mode=config.match.mode, context=config.context)
        return CollectSink(response)
    if count:
        return CountSink()
    return TextSink(
        matcher=matcher,
        show_names=show_names,
        line_numbers=line_number,
        colorize=colorize,
        context=config.context,
    )


def scan_sources(sources, config: ScanConfig, matcher, sink: ResultSink) -> tuple[int, int]:
    """
    Scan every source into the sink.

    A source that cannot be read is reported through the sink and the
    remaining sources are still scanned.

    Returns:
        Tuple of (matched_records, failed_sources)
    """
    matched = 0
    failed = 0
    for source in sources:
        target = sys.stdin.buffer if source == '-' else source
        try:
            matched += sink.write(source, iter_scan(target, config, matcher))
        except GrepverseError as e:
            logger.error(f"[SEARCH] {source}: {e}")
            sink.report_error(source, e)
            failed += 1
    return matched, failed


@click.command()
@click.argument('pattern', type=str)
@click.argument('paths', nargs=-1, type=str, metavar='PATH...')
@click.option('--regex', '-r', 'use_regex', is_flag=True, help="Interpret PATTERN as a regular expression")
@click.option(
    '--fixed-strings', '-F', is_flag=True, help="Interpret PATTERN as a fixed string (default unless --regex)"
)
@click.option('--ignore-case', '-i', is_flag=True, help="Ignore case distinctions")
@click.option('--word-regexp', '-w', is_flag=True, help="Match only whole words")
@click.option('--invert-match', '-v', is_flag=True, help="Select non-matching lines")
@click.option('--line-number', '-n', is_flag=True, help="Prefix each output line with its line number")
@click.option('--count', '-c', is_flag=True, help="Print only the number of selected lines")
@click.option('--context', '-C', type=click.IntRange(min=0), default=0, show_default=True, help="Lines of context")
@click.option('--recursive', '-R', is_flag=True, help="Read all files under each directory, recursively")
@click.option(
    '--color',
    type=click.Choice(['always', 'auto', 'never']),
    default='auto',
    show_default=True,
    help="Highlight matching text",
)
@click.option('--include', multiple=True, help="Search only files whose name matches GLOB (repeatable)")
@click.option('--exclude', multiple=True, help="Skip files whose name matches GLOB (repeatable)")
@click.option(
    '--decode-errors',
    type=click.Choice([policy.value for policy in DecodePolicy]),
    default=DecodePolicy.SKIP.value,
    show_default=True,
    help="What to do with lines that are not valid text",
)
@click.option('--encoding', default='utf-8', show_default=True, help="Text encoding of the input")
@click.option('--workers', type=click.IntRange(min=1), help="Number of parallel chunk workers")
@click.option('--json', 'output_json', is_flag=True, help="Output results as JSON")
def search_command(
    pattern,
    paths,
    use_regex,
    fixed_strings,
    ignore_case,
    word_regexp,
    invert_match,
    line_number,
    count,
    context,
    recursive,
    color,
    include,
    exclude,
    decode_errors,
    encoding,
    workers,
    output_json,
):
    """
    Search files, directories or standard input for PATTERN.

    \b
    Examples:
        grepverse error app.log                  # literal search
        grepverse -r "err(or)?" app.log -n       # regex with line numbers
        grepverse -C 2 timeout app.log           # two lines of context
        grepverse -R --include "*.py" import src/ # recursive with a glob filter
        cat app.log | grepverse -c error -       # count matches on stdin

    \b
    Exit codes:
        0  search completed
        1  at least one source could not be read
        2  invalid pattern or options
    """
    if not paths:
        paths = ('-',)

    if use_regex and fixed_strings:
        click.echo("Error: --regex and --fixed-strings are mutually exclusive", err=True)
        sys.exit(2)

    try:
        match_config = MatchConfig(
            pattern=pattern,
            mode=MatchMode.REGEX if use_regex else MatchMode.LITERAL,
            case_insensitive=ignore_case,
            whole_word=word_regexp,
            invert=invert_match,
        )
        settings = dict(match=match_config, context=context, decode_errors=decode_errors, encoding=encoding)
        if workers:
            settings['max_workers'] = workers
        config = ScanConfig(**settings)
        matcher = build_matcher(match_config)
    except InvalidPatternError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    except ValidationError as e:
        click.echo(f"Error: invalid options: {e}", err=True)
        sys.exit(2)

    sources = list(collect_sources(paths, recursive=recursive, include=include, exclude=exclude))
    show_names = recursive or len(sources) > 1
    sink = build_sink(matcher, output_json, count, show_names, line_number, resolve_color(color), config)

    time_before = time()
    matched, failed = scan_sources(sources, config, matcher, sink)
    if isinstance(sink, CollectSink):
        sink.response.time = time() - time_before
    sink.close()

    logger.info(f"[SEARCH] {matched} matched line(s) in {len(sources)} source(s), {failed} failed")
    sys.exit(1 if failed else 0)
