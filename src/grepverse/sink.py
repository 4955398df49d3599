"""Consumers of ordered output blocks: printing, counting and JSON collection"""

from collections.abc import Iterable

import click

from grepverse.matcher import Matcher
from grepverse.models import FileScanResult, LineRecord, OutputBlock, SearchResponse


STDIN_LABEL = '(standard input)'
BLOCK_SEPARATOR = '--'


def display_name(source_name: str) -> str:
    return STDIN_LABEL if source_name == '-' else source_name


class ResultSink:
    """
    Receives the blocks of each scanned source, in order.

    Subclasses implement write_block(); write() drives it for one source and
    returns the number of matched records seen.
    """

    def begin_source(self, source_name: str) -> None:
        pass

    def write_block(self, source_name: str, block: OutputBlock) -> None:
        raise NotImplementedError

    def end_source(self, source_name: str) -> None:
        pass

    def write(self, source_name: str, blocks: Iterable[OutputBlock]) -> int:
        matched = 0
        self.begin_source(source_name)
        for block in blocks:
            self.write_block(source_name, block)
            matched += block.match_count
        self.end_source(source_name)
        return matched

    def report_error(self, source_name: str, error: Exception) -> None:
        click.echo(f"Error: {error}", err=True)

    def close(self) -> None:
        pass


class TextSink(ResultSink):
    """grep-style line output.

    Matched lines use ':' after the name and number, context lines use '-'.
    With context enabled, '--' separates blocks that are not contiguous.
    """

    def __init__(
        self,
        matcher: Matcher | None = None,
        show_names: bool = True,
        line_numbers: bool = False,
        colorize: bool = False,
        context: int = 0,
    ):
        self.matcher = matcher
        self.show_names = show_names
        self.line_numbers = line_numbers
        self.colorize = colorize
        self.context = context
        self._last_line: int | None = None
        self._printed_any = False

    def begin_source(self, source_name: str) -> None:
        self._last_line = None

    def write_block(self, source_name: str, block: OutputBlock) -> None:
        if self.context and self._printed_any:
            contiguous = self._last_line is not None and block.first_line == self._last_line + 1
            if not contiguous:
                click.echo(self._style(BLOCK_SEPARATOR, fg='cyan'), color=self.colorize)

        for record in block:
            click.echo(self.format_record(source_name, record), color=self.colorize)

        self._last_line = block.last_line
        self._printed_any = True

    def format_record(self, source_name: str, record: LineRecord) -> str:
        separator = ':' if record.matched else '-'
        parts = []
        if self.show_names:
            parts.append(self._style(display_name(source_name), fg='green') + separator)
        if self.line_numbers:
            parts.append(self._style(str(record.line_number), fg='green') + separator)

        text = record.text
        if record.matched:
            text = self.highlight(text)
        return ''.join(parts) + text

    def highlight(self, text: str) -> str:
        """Mark the matched spans of a line in bold red."""
        if not self.colorize or self.matcher is None:
            return text

        spans = self.matcher.spans(text)
        if not spans:
            return text

        pieces = []
        pos = 0
        for start, end in spans:
            pieces.append(text[pos:start])
            pieces.append(click.style(text[start:end], fg='bright_red', bold=True))
            pos = end
        pieces.append(text[pos:])
        return ''.join(pieces)

    def _style(self, text: str, **styles) -> str:
        return click.style(text, **styles) if self.colorize else text


class CountSink(ResultSink):
    """Tallies matched records only; context lines are never counted."""

    def __init__(self):
        self.total = 0

    def write_block(self, source_name: str, block: OutputBlock) -> None:
        self.total += block.match_count

    def close(self) -> None:
        click.echo(str(self.total))


class CollectSink(ResultSink):
    """Builds a SearchResponse and prints it as JSON on close."""

    def __init__(self, response: SearchResponse, emit: bool = True):
        self.response = response
        self.emit = emit
        self._blocks: list[OutputBlock] = []

    def begin_source(self, source_name: str) -> None:
        self._blocks = []

    def write_block(self, source_name: str, block: OutputBlock) -> None:
        self._blocks.append(block)

    def end_source(self, source_name: str) -> None:
        self.response.files.append(FileScanResult(path=source_name, blocks=self._blocks))
        self._blocks = []

    def report_error(self, source_name: str, error: Exception) -> None:
        self._blocks = []
        self.response.files.append(FileScanResult(path=source_name, error=str(error)))

    def close(self) -> None:
        if self.emit:
            click.echo(self.response.model_dump_json(indent=2))
