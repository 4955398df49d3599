"""Shared constants and environment helpers"""

import logging
import os

import psutil

logger = logging.getLogger(__name__)

NEWLINE_SYMBOL = '\n'
NEWLINE_SYMBOL_BYTES = NEWLINE_SYMBOL.encode()
CARRIAGE_RETURN_BYTES = b'\r'


def get_int_env(name: str, default: int = 0) -> int:
    """Read an integer from the environment.

    Unset or empty variables return the default. Values that do not parse as
    integers are logged and replaced with the default as well.
    """
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value {raw!r}, using default {default}")
        return default


def human_readable_size(size_bytes: int) -> str:
    """Convert bytes to human-readable format."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024:
            return f'{size_bytes:.2f} {unit}'
        size_bytes /= 1024
    return f'{size_bytes:.2f} PB'


DEFAULT_MAX_MMAP_MB = 1024
DEFAULT_MIN_CHUNK_SIZE_KB = 64
DEFAULT_MAX_FILES = 100000


def get_mmap_threshold_bytes() -> int:
    """Largest file size that is memory-mapped and scanned in parallel.

    Controlled by GREPVERSE_MAX_MMAP_MB. Bigger files are streamed through
    the sequential scanner instead.
    Default: 1024MB
    """
    threshold_mb = get_int_env('GREPVERSE_MAX_MMAP_MB')
    if threshold_mb <= 0:
        threshold_mb = DEFAULT_MAX_MMAP_MB
    return threshold_mb * 1024 * 1024


def get_max_workers() -> int:
    """Size of the chunk worker pool.

    Controlled by GREPVERSE_MAX_WORKERS, otherwise the number of CPUs this
    process is allowed to run on.
    """
    workers = get_int_env('GREPVERSE_MAX_WORKERS')
    if workers > 0:
        return workers
    try:
        return max(1, len(psutil.Process().cpu_affinity()))
    except (AttributeError, psutil.Error):
        # cpu_affinity() is not available on macOS
        return max(1, psutil.cpu_count(logical=True) or 1)


def get_min_chunk_bytes() -> int:
    """Smallest chunk the planner creates when no chunk count is forced."""
    size_kb = get_int_env('GREPVERSE_MIN_CHUNK_SIZE_KB')
    if size_kb <= 0:
        size_kb = DEFAULT_MIN_CHUNK_SIZE_KB
    return size_kb * 1024


def get_max_files() -> int:
    max_files = get_int_env('GREPVERSE_MAX_FILES')
    return max_files if max_files > 0 else DEFAULT_MAX_FILES
