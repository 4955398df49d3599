"""Grouping matched lines and their context into output blocks

Context distance is measured in line numbers rather than in records seen, so
the window gives the same answer whether it is fed every line of a source or
only the lines that can possibly be printed (which is what the parallel
scanner does when it stitches chunk results back together).
"""

import logging
from collections import deque
from collections.abc import Iterable, Iterator

from grepverse.models import LineRecord, OutputBlock

logger = logging.getLogger(__name__)

IDLE = 'idle'
COLLECTING = 'collecting'


class ContextWindow:
    """
    Per-pipeline state machine turning LineRecords into OutputBlocks.

    A match at line m claims lines [m - context, m + context]. Matches whose
    claims overlap (at most 2 * context lines apart) share one block; blocks
    that merely touch stay separate. Records must arrive in increasing line
    number order.

    Memory is bounded by the open block plus `context` pending leading lines:
    once a record arrives 2 * context lines past the last match, no later
    match can join the open block, so it is flushed.
    """

    def __init__(self, context: int = 0):
        if context < 0:
            raise ValueError("Context values must be non-negative")
        self.context = context
        self._leading: deque[LineRecord] = deque(maxlen=context)
        self._block: list[LineRecord] = []
        self._last_match = 0

    @property
    def state(self) -> str:
        return COLLECTING if self._block else IDLE

    def push(self, record: LineRecord) -> tuple[OutputBlock, ...]:
        """Feed one record; returns the blocks it completed (usually none)."""
        flushed: tuple[OutputBlock, ...] = ()
        reach = 2 * self.context
        line_number = record.line_number

        if record.matched:
            if self._block and line_number - self._last_match > reach:
                flushed = (self._flush(),)
            self._block.extend(r for r in self._leading if r.line_number >= line_number - self.context)
            self._leading.clear()
            self._block.append(record)
            self._last_match = line_number
        elif self._block and line_number <= self._last_match + self.context:
            self._block.append(record)
        elif self.context:
            self._leading.append(record)

        if self._block and line_number - self._last_match >= reach:
            flushed += (self._flush(),)
        return flushed

    def finish(self) -> tuple[OutputBlock, ...]:
        """Flush whatever is still open at end of input."""
        self._leading.clear()
        if self._block:
            return (self._flush(),)
        return ()

    def _flush(self) -> OutputBlock:
        block = OutputBlock(tuple(self._block))
        self._block = []
        logger.debug(f"[CONTEXT] Flushed block lines {block.first_line}-{block.last_line}")
        return block


def aggregate(records: Iterable[LineRecord], context: int = 0) -> Iterator[OutputBlock]:
    """Run records through a fresh ContextWindow, yielding blocks as they complete."""
    window = ContextWindow(context)
    for record in records:
        flushed = window.push(record)
        if flushed:
            yield from flushed
    yield from window.finish()
