"""Sequential and parallel scanning pipelines

Every pipeline is the same three steps: segment bytes into lines, mark each
line with the matcher, group the marked lines into OutputBlocks with a
ContextWindow. The sequential scanner runs that once over a stream; the
parallel scanner runs one independent pipeline per line-aligned chunk of a
memory-mapped file and stitches the per-chunk blocks back into global order.
"""

import errno
import io
import logging
import mmap
import os
import threading
import time
from collections.abc import Iterable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import BinaryIO

from grepverse.cli import prometheus as prom
from grepverse.context import ContextWindow, aggregate
from grepverse.errors import LineDecodeError, SourceAccessError, WorkerFailure
from grepverse.matcher import Matcher, build_matcher
from grepverse.models import Chunk, ChunkPlanResponse, LineRecord, OutputBlock, ScanConfig
from grepverse.segment import count_lines, iter_buffer_lines, iter_stream_lines
from grepverse.utils import NEWLINE_SYMBOL_BYTES

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """Output of one chunk worker.

    head and tail hold the records within `context` lines of the chunk edges
    so that blocks crossing a boundary can be completed during the merge.
    """

    chunk: Chunk
    blocks: list[OutputBlock] = field(default_factory=list)
    head: list[LineRecord] = field(default_factory=list)
    tail: list[LineRecord] = field(default_factory=list)
    elapsed: float = 0.0


def iter_records(lines: Iterable[tuple[int, int, str]], matcher: Matcher) -> Iterator[LineRecord]:
    for line_number, offset, text in lines:
        yield LineRecord(line_number, text, matcher(text), offset)


# --- chunk planning ---------------------------------------------------------


def get_chunk_offsets(buffer, chunk_count: int) -> list[int]:
    """
    Calculate line-aligned starting offsets for splitting a buffer into chunks.

    Naive split points are i * (size // chunk_count). Each one is moved forward
    to the byte right after the first newline at or after split - 1, so a split
    point that already sits at a line start stays put. Split points that
    collapse onto the previous one or onto the end of the buffer are dropped,
    which means fewer chunks than requested for buffers with very long lines.

    Args:
        buffer: bytes or mmap
        chunk_count: Requested number of chunks (clamped to [1, len(buffer)])

    Returns:
        Ascending list of chunk start offsets, always beginning with 0

    Examples:
        b"aa\\nbb\\ncc\\n", 3 chunks -> [0, 3, 6]
        b"aaaaaaaa\\nb\\n", 2 chunks -> [0, 9]
    """
    size = len(buffer)
    chunk_count = max(1, min(chunk_count, size))
    chunk_size = size // chunk_count
    logger.debug(f"[PLAN] size={size} chunk_count={chunk_count} chunk_size={chunk_size}")

    offsets = [0]
    for i in range(1, chunk_count):
        raw_offset = i * chunk_size
        newline_pos = buffer.find(NEWLINE_SYMBOL_BYTES, max(raw_offset - 1, offsets[-1]))
        if newline_pos == -1:
            break
        aligned_offset = newline_pos + len(NEWLINE_SYMBOL_BYTES)
        if aligned_offset >= size:
            break
        if aligned_offset > offsets[-1]:
            offsets.append(aligned_offset)
            logger.debug(f"[PLAN] Aligned offset[{i}]: {raw_offset} -> {aligned_offset} (line boundary)")

    return offsets


def default_chunk_count(size: int, config: ScanConfig) -> int:
    """One chunk per worker, but no chunk smaller than min_chunk_bytes."""
    return max(1, min(config.max_workers, size // config.min_chunk_bytes))


def plan_chunks(buffer, chunk_count: int, executor: Executor | None = None) -> list[Chunk]:
    """
    Partition a buffer into line-aligned chunks with global starting line numbers.

    Line counts for all chunks are computed first (concurrently when an
    executor is given) and turned into a prefix sum, so each chunk knows the
    number of its first line before any matching starts.
    """
    size = len(buffer)
    if size == 0:
        return []

    offsets = get_chunk_offsets(buffer, chunk_count)
    bounds = list(zip(offsets, offsets[1:] + [size]))

    if executor is None:
        counts = [count_lines(buffer, start, end) for start, end in bounds]
    else:
        counts = list(executor.map(lambda b: count_lines(buffer, b[0], b[1]), bounds))

    chunks = []
    first_line = 1
    for index, ((start, end), line_count) in enumerate(zip(bounds, counts)):
        chunks.append(Chunk(index=index, start=start, end=end, first_line=first_line, line_count=line_count))
        first_line += line_count

    logger.debug(f"[PLAN] {len(chunks)} chunk(s), {first_line - 1} line(s) total")
    return chunks


# --- workers and merge ------------------------------------------------------


def process_chunk(buffer, chunk: Chunk, matcher: Matcher, config: ScanConfig) -> ChunkResult:
    """
    Run a full segment -> match -> context pipeline over one chunk.

    Only reads buffer[chunk.start:chunk.end] and only mutates its own
    ContextWindow and result lists.
    """
    start_time = time.time()
    thread_id = threading.current_thread().name
    prom.active_workers.inc()

    logger.debug(
        f"[WORKER {thread_id}] Starting chunk {chunk.index}: bytes {chunk.start}-{chunk.end}, "
        f"lines {chunk.first_line}-{chunk.last_line}"
    )

    try:
        result = ChunkResult(chunk=chunk)
        window = ContextWindow(config.context)
        head_end = chunk.first_line + config.context
        tail_start = chunk.last_line - config.context

        lines = iter_buffer_lines(
            buffer,
            first_line=chunk.first_line,
            start=chunk.start,
            end=chunk.end,
            decode_errors=config.decode_errors,
            encoding=config.encoding,
        )
        for record in iter_records(lines, matcher):
            if config.context:
                if record.line_number < head_end:
                    result.head.append(record)
                if record.line_number > tail_start:
                    result.tail.append(record)
            flushed = window.push(record)
            if flushed:
                result.blocks.extend(flushed)
        result.blocks.extend(window.finish())

        result.elapsed = time.time() - start_time
        logger.debug(
            f"[WORKER {thread_id}] Chunk {chunk.index} completed: "
            f"{len(result.blocks)} block(s) in {result.elapsed:.3f}s"
        )

        prom.lines_scanned.inc(chunk.line_count)
        prom.worker_tasks_completed.inc()
        return result

    except Exception as e:
        elapsed = time.time() - start_time
        logger.error(f"[WORKER {thread_id}] Chunk {chunk.index} failed after {elapsed:.3f}s: {e}")
        prom.worker_tasks_failed.inc()
        raise

    finally:
        prom.active_workers.dec()


def _stitch_candidates(results: list[ChunkResult]) -> Iterator[LineRecord]:
    for result in results:
        by_line: dict[int, LineRecord] = {}
        for record in result.head:
            by_line[record.line_number] = record
        for block in result.blocks:
            for record in block:
                by_line[record.line_number] = record
        for record in result.tail:
            by_line[record.line_number] = record
        for line_number in sorted(by_line):
            yield by_line[line_number]


def merge_chunk_results(results: list[ChunkResult], context: int) -> list[OutputBlock]:
    """
    Combine per-chunk blocks into one globally ordered block list.

    Without context, chunk blocks can never interact and are concatenated in
    chunk order. With context, a block near a chunk edge may need lines from
    the neighbouring chunk or may merge with a block on the other side, so the
    printable candidates (blocks plus edge records) are replayed through one
    fresh ContextWindow. Because the window measures distance in line numbers,
    the replay yields exactly what a sequential scan would.
    """
    ordered = sorted(results, key=lambda r: r.chunk.index)
    if context == 0 or len(ordered) <= 1:
        return [block for result in ordered for block in result.blocks]

    blocks = list(aggregate(_stitch_candidates(ordered), context))
    logger.debug(
        f"[MERGE] Stitched {sum(len(r.blocks) for r in ordered)} chunk block(s) into {len(blocks)} block(s)"
    )
    return blocks


# --- scanners ---------------------------------------------------------------


class SequentialScanner:
    """Single pass over a binary stream; used for stdin and oversized files."""

    def __init__(self, matcher: Matcher, config: ScanConfig):
        self.matcher = matcher
        self.config = config

    def iter_blocks(self, stream: BinaryIO) -> Iterator[OutputBlock]:
        prom.scans_total.labels(scanner='sequential').inc()
        lines = iter_stream_lines(
            stream,
            first_line=1,
            decode_errors=self.config.decode_errors,
            encoding=self.config.encoding,
        )
        yield from aggregate(iter_records(lines, self.matcher), self.config.context)

    def scan(self, stream: BinaryIO) -> list[OutputBlock]:
        return list(self.iter_blocks(stream))


class ParallelChunkScanner:
    """
    Data-parallel scan of an in-memory or memory-mapped buffer.

    The buffer is only read, and it must stay open until scan_buffer()
    returns: the worker pool is shut down (waiting for every task) before
    that happens.
    """

    def __init__(self, matcher: Matcher, config: ScanConfig):
        self.matcher = matcher
        self.config = config

    def scan_buffer(self, buffer, chunk_count: int | None = None) -> list[OutputBlock]:
        """
        Scan a buffer using up to max_workers threads.

        Args:
            buffer: bytes or mmap
            chunk_count: Number of chunks to request, defaults to one per worker
                         (limited by min_chunk_bytes)

        Returns:
            Output blocks in global line order

        Raises:
            WorkerFailure: If any chunk task raised
            LineDecodeError: Under the strict decode policy
        """
        prom.scans_total.labels(scanner='parallel').inc()
        size = len(buffer)
        if chunk_count is None:
            chunk_count = default_chunk_count(size, self.config)

        start_time = time.time()
        with ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix='Worker') as executor:
            chunks = plan_chunks(buffer, chunk_count, executor)
            prom.chunks_per_scan.observe(len(chunks))
            logger.info(f"[SCAN] {size} bytes split into {len(chunks)} chunk(s) for {self.config.max_workers} worker(s)")
            results = self._run_chunks(executor, buffer, chunks)

        blocks = merge_chunk_results(results, self.config.context)
        logger.info(f"[SCAN] Completed: {len(blocks)} block(s) in {time.time() - start_time:.3f}s")
        return blocks

    def _run_chunks(self, executor: Executor, buffer, chunks: list[Chunk]) -> list[ChunkResult]:
        future_to_chunk = {
            executor.submit(process_chunk, buffer, chunk, self.matcher, self.config): chunk for chunk in chunks
        }

        results = []
        for future in as_completed(future_to_chunk):
            chunk = future_to_chunk[future]
            try:
                results.append(future.result())
            except Exception as e:
                for f in future_to_chunk:
                    f.cancel()
                if isinstance(e, LineDecodeError):
                    raise
                raise WorkerFailure(chunk.index, str(e)) from e

        return results


# --- sources ----------------------------------------------------------------


def _is_stream(source) -> bool:
    return hasattr(source, 'read')


def _binary_stream(stream) -> BinaryIO:
    if isinstance(stream, io.TextIOBase):
        buffer = getattr(stream, 'buffer', None)
        if buffer is None:
            raise TypeError("Text streams without an underlying binary buffer cannot be scanned")
        return buffer
    return stream


def _source_size(path: str) -> int:
    try:
        if os.path.isdir(path):
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        return os.path.getsize(path)
    except OSError as e:
        prom.source_errors.inc()
        raise SourceAccessError(path, e.strerror or str(e)) from e


def scan_stream(stream, config: ScanConfig, matcher: Matcher | None = None) -> Iterator[OutputBlock]:
    """Lazily scan a readable stream (always sequential)."""
    if matcher is None:
        matcher = build_matcher(config.match)
    return _iter_stream(_binary_stream(stream), config, matcher)


def _iter_stream(stream: BinaryIO, config: ScanConfig, matcher: Matcher) -> Iterator[OutputBlock]:
    name = str(getattr(stream, 'name', '<stream>'))
    try:
        yield from SequentialScanner(matcher, config).iter_blocks(stream)
    except OSError as e:
        prom.source_errors.inc()
        raise SourceAccessError(name, str(e)) from e


def scan_mapped_file(
    path: str, config: ScanConfig, matcher: Matcher, chunk_count: int | None = None
) -> list[OutputBlock]:
    """Memory-map a file and scan it with the parallel scanner."""
    try:
        with open(path, 'rb') as f:
            try:
                buffer = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
            except ValueError:
                # file shrank to zero bytes after it was sized
                return []
            try:
                return ParallelChunkScanner(matcher, config).scan_buffer(buffer, chunk_count)
            finally:
                buffer.close()
    except OSError as e:
        prom.source_errors.inc()
        raise SourceAccessError(path, e.strerror or str(e)) from e


def _iter_path(path: str, config: ScanConfig, matcher: Matcher, chunk_count: int | None) -> Iterator[OutputBlock]:
    size = _source_size(path)

    if size > config.mmap_threshold_bytes:
        logger.info(f"[SCAN] {path} is {size} bytes, above mapping threshold; scanning sequentially")
        try:
            f = open(path, 'rb')
        except OSError as e:
            prom.source_errors.inc()
            raise SourceAccessError(path, e.strerror or str(e)) from e
        with f:
            yield from _iter_stream(f, config, matcher)
        return

    if size == 0:
        logger.debug(f"[SCAN] {path} is empty")
        return

    yield from scan_mapped_file(path, config, matcher, chunk_count)


def plan_path(path: str | os.PathLike, config: ScanConfig, chunk_count: int | None = None) -> ChunkPlanResponse:
    """Describe how scan_path() would split a file, without matching anything."""
    path = os.fspath(path)
    size = _source_size(path)
    response = ChunkPlanResponse(
        path=path, size_bytes=size, workers=config.max_workers, parallel=size <= config.mmap_threshold_bytes
    )
    if not response.parallel or size == 0:
        return response

    if chunk_count is None:
        chunk_count = default_chunk_count(size, config)
    try:
        with open(path, 'rb') as f, mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as buffer:
            response.chunks = plan_chunks(buffer, chunk_count)
    except (OSError, ValueError) as e:
        prom.source_errors.inc()
        raise SourceAccessError(path, str(e)) from e
    return response


def scan_path(
    path: str | os.PathLike, config: ScanConfig, matcher: Matcher | None = None, chunk_count: int | None = None
) -> list[OutputBlock]:
    """
    Scan a regular file, choosing mapped parallel or buffered sequential access.

    Raises:
        SourceAccessError: If the file cannot be opened, mapped or read
        WorkerFailure: If a chunk worker fails
    """
    if matcher is None:
        matcher = build_matcher(config.match)
    return list(_iter_path(os.fspath(path), config, matcher, chunk_count))


def iter_scan(source, config: ScanConfig, matcher: Matcher | None = None) -> Iterator[OutputBlock]:
    """
    Scan a path or a stream, yielding blocks in line order.

    The matcher is built before anything is read, so an invalid pattern fails
    immediately. Streams and oversized files are consumed lazily.
    """
    if matcher is None:
        matcher = build_matcher(config.match)
    if _is_stream(source):
        return scan_stream(source, config, matcher)
    return _iter_path(os.fspath(source), config, matcher, None)


def scan(source, config: ScanConfig) -> list[OutputBlock]:
    """
    Scan a path or a readable stream and return its ordered output blocks.

    Raises:
        InvalidPatternError: If the pattern does not compile (before any I/O)
        SourceAccessError: If the source cannot be read
        WorkerFailure: If a parallel chunk task fails
        LineDecodeError: Under DecodePolicy.STRICT
    """
    return list(iter_scan(source, config))
