"""Prometheus metrics for scans and chunk workers

Metrics live in the default prometheus_client registry; embedding
applications can expose them with prometheus_client.generate_latest().
"""

from prometheus_client import Counter, Gauge, Histogram

scans_total = Counter(
    'grepverse_scans_total',
    'Scans started, by scanner kind',
    ['scanner'],
)

active_workers = Gauge(
    'grepverse_active_workers',
    'Chunk workers currently running',
)

worker_tasks_completed = Counter(
    'grepverse_worker_tasks_completed_total',
    'Chunk tasks that finished successfully',
)

worker_tasks_failed = Counter(
    'grepverse_worker_tasks_failed_total',
    'Chunk tasks that raised',
)

chunks_per_scan = Histogram(
    'grepverse_chunks_per_scan',
    'Number of line-aligned chunks a mapped buffer was split into',
    buckets=(1, 2, 4, 8, 16, 32, 64, 128),
)

lines_scanned = Counter(
    'grepverse_lines_scanned_total',
    'Lines segmented and matched by chunk workers',
)

source_errors = Counter(
    'grepverse_source_errors_total',
    'Sources that could not be opened, mapped or read',
)
