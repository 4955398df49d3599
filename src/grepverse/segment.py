"""Splitting byte content into numbered text lines

Both entry points yield (line_number, offset, text) tuples. Line numbers
advance once per line in the source, including lines that are dropped because
they cannot be decoded, so numbering always matches the file content.
"""

import logging
from collections.abc import Iterator
from typing import BinaryIO

from grepverse.errors import LineDecodeError
from grepverse.models import DecodePolicy
from grepverse.utils import CARRIAGE_RETURN_BYTES, NEWLINE_SYMBOL_BYTES

logger = logging.getLogger(__name__)

COUNT_BLOCK_SIZE = 1024 * 1024  # 1MB slices for newline counting


def decode_line(
    raw: bytes, line_number: int, decode_errors: DecodePolicy = DecodePolicy.SKIP, encoding: str = 'utf-8'
) -> str | None:
    """
    Decode one line span without its terminator.

    A single trailing carriage return is stripped so CRLF content produces the
    same text as LF content.

    Returns:
        Decoded text, or None when the line is dropped under DecodePolicy.SKIP

    Raises:
        LineDecodeError: Under DecodePolicy.STRICT
    """
    if raw.endswith(CARRIAGE_RETURN_BYTES):
        raw = raw[:-1]
    try:
        return raw.decode(encoding)
    except UnicodeDecodeError as e:
        if decode_errors == DecodePolicy.REPLACE:
            return raw.decode(encoding, errors='replace')
        if decode_errors == DecodePolicy.STRICT:
            raise LineDecodeError(line_number, str(e)) from e
        logger.debug(f"[SEGMENT] Dropping undecodable line {line_number}: {e}")
        return None


def iter_buffer_lines(
    buffer,
    first_line: int = 1,
    start: int = 0,
    end: int | None = None,
    decode_errors: DecodePolicy = DecodePolicy.SKIP,
    encoding: str = 'utf-8',
) -> Iterator[tuple[int, int, str]]:
    """
    Lazily split buffer[start:end] into lines.

    The buffer only needs find() and slicing, so bytes and mmap objects both
    work; nothing outside [start, end) is read.

    Args:
        buffer: bytes-like object supporting find(sub, start, end)
        first_line: Number assigned to the first line in the range
        start: Byte offset where the range begins (must be a line start)
        end: Exclusive end offset, defaults to len(buffer)
        decode_errors: Policy for undecodable lines
        encoding: Text encoding

    Yields:
        (line_number, offset, text) for every decodable line
    """
    if end is None:
        end = len(buffer)

    pos = start
    line_number = first_line
    while pos < end:
        newline_pos = buffer.find(NEWLINE_SYMBOL_BYTES, pos, end)
        if newline_pos == -1:
            # trailing line without terminator
            stop = end
            next_pos = end
        else:
            stop = newline_pos
            next_pos = newline_pos + len(NEWLINE_SYMBOL_BYTES)

        text = decode_line(buffer[pos:stop], line_number, decode_errors, encoding)
        if text is not None:
            yield line_number, pos, text

        line_number += 1
        pos = next_pos


def iter_stream_lines(
    stream: BinaryIO,
    first_line: int = 1,
    decode_errors: DecodePolicy = DecodePolicy.SKIP,
    encoding: str = 'utf-8',
) -> Iterator[tuple[int, int, str]]:
    """
    Lazily split a binary stream into lines, reading one line at a time.

    Offsets are counted from the current stream position, which is the start
    of the content for freshly opened files and for standard input.
    """
    offset = 0
    line_number = first_line
    for raw in stream:
        size = len(raw)
        if raw.endswith(NEWLINE_SYMBOL_BYTES):
            raw = raw[: -len(NEWLINE_SYMBOL_BYTES)]

        text = decode_line(raw, line_number, decode_errors, encoding)
        if text is not None:
            yield line_number, offset, text

        line_number += 1
        offset += size


def count_terminators(buffer, start: int = 0, end: int | None = None) -> int:
    """Count newline bytes in buffer[start:end], reading it in 1MB slices."""
    if end is None:
        end = len(buffer)

    count = 0
    pos = start
    while pos < end:
        block_end = min(pos + COUNT_BLOCK_SIZE, end)
        count += buffer[pos:block_end].count(NEWLINE_SYMBOL_BYTES)
        pos = block_end
    return count


def count_lines(buffer, start: int = 0, end: int | None = None) -> int:
    """Number of lines in buffer[start:end], counting a final unterminated line."""
    if end is None:
        end = len(buffer)
    if end <= start:
        return 0

    count = count_terminators(buffer, start, end)
    if buffer[end - 1 : end] != NEWLINE_SYMBOL_BYTES:
        count += 1
    return count
