"""Source discovery: text-file sniffing, directory walking and glob filters"""

import fnmatch
import logging
import os
from collections.abc import Iterator, Sequence

from grepverse.utils import get_max_files

logger = logging.getLogger(__name__)


def is_text_file(filepath: str, sample_size: int = 8192) -> bool:
    """
    Check if a file is a text file by reading a sample and looking for null bytes.
    Binary files typically contain null bytes, while text files don't.
    """
    try:
        with open(filepath, 'rb') as f:
            sample = f.read(sample_size)
    except OSError:
        return False
    return b'\x00' not in sample


def should_process_file(filepath: str, include: Sequence[str] = (), exclude: Sequence[str] = ()) -> bool:
    """
    Apply include/exclude glob patterns to the file name (not the full path).

    A file passes when it matches at least one include pattern (or none are
    given) and matches no exclude pattern.
    """
    name = os.path.basename(filepath)
    if include and not any(fnmatch.fnmatch(name, pattern) for pattern in include):
        return False
    return not any(fnmatch.fnmatch(name, pattern) for pattern in exclude)


def walk_files(
    root: str,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    text_only: bool = True,
    max_files: int | None = None,
) -> Iterator[str]:
    """
    Yield regular files under root, depth first, without recursion.

    Directories are kept on an explicit stack so very deep trees cannot exhaust
    the interpreter's call stack. Entries are visited in sorted order, and
    symlinked directories are not followed.

    Args:
        root: Directory to walk
        include: Glob patterns a file name must match (any of)
        exclude: Glob patterns that reject a file name
        text_only: Skip files whose first 8KB contain a null byte
        max_files: Stop after this many files, defaults to GREPVERSE_MAX_FILES
    """
    if max_files is None:
        max_files = get_max_files()

    logger.info(f"[WALK] Walking directory: {root}")
    yielded = 0
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.warning(f"[WALK] Cannot list {directory}: {e}")
            continue

        subdirectories = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirectories.append(entry.path)
                    continue
                if not entry.is_file():
                    logger.debug(f"[WALK] Skipping non-file: {entry.path}")
                    continue
            except OSError as e:
                logger.warning(f"[WALK] Cannot stat {entry.path}: {e}")
                continue

            if not should_process_file(entry.path, include, exclude):
                logger.debug(f"[WALK] Filtered out: {entry.path}")
                continue

            if text_only and not is_text_file(entry.path):
                logger.debug(f"[WALK] Skipped binary file: {entry.path}")
                continue

            if yielded >= max_files:
                logger.warning(f"[WALK] Reached max_files limit ({max_files}), stopping walk")
                return
            yielded += 1
            yield entry.path

        # reversed so the stack pops subdirectories in sorted order
        stack.extend(reversed(subdirectories))

    logger.info(f"[WALK] Completed: {yielded} file(s) under {root}")


def collect_sources(
    paths: Sequence[str], recursive: bool = False, include: Sequence[str] = (), exclude: Sequence[str] = ()
) -> Iterator[str]:
    """
    Expand command-line paths into the sources to scan.

    '-' (standard input) and plain paths are passed through untouched, even
    when they do not exist, so the scanner can report the access error for
    them. Directories are walked when recursive is set and skipped otherwise;
    files found by walking are filtered by the glob patterns, and so are
    explicitly named files.
    """
    for path in paths:
        if path == '-':
            yield path
        elif os.path.isdir(path):
            if recursive:
                yield from walk_files(path, include, exclude)
            else:
                logger.warning(f"[WALK] {path} is a directory, skipping (use --recursive)")
        elif should_process_file(path, include, exclude):
            yield path
        else:
            logger.debug(f"[WALK] Filtered out: {path}")
