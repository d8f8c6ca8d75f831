"""Prometheus metrics definitions for b2vfs.

All metrics use the ``b2vfs_`` prefix. Nothing is registered until
init_metrics() is called; until then the module-level references stay
``None`` and record_operation() does nothing, so embedding applications
that do not use Prometheus never touch the global registry.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Adapter operation counter  (labels: operation, status)
# ---------------------------------------------------------------------------
operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_written_total: Counter | None = None
bytes_read_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics (idempotent)."""
    global _initialized
    global operations_total, bytes_written_total, bytes_read_total

    if _initialized:
        return

    operations_total = Counter(
        "b2vfs_operations_total",
        "Total adapter operations by type and outcome",
        ["operation", "status"],
    )

    bytes_written_total = Counter(
        "b2vfs_bytes_written_total",
        "Total bytes uploaded through the adapter",
    )

    bytes_read_total = Counter(
        "b2vfs_bytes_read_total",
        "Total bytes downloaded through the adapter",
    )

    _initialized = True


def record_operation(operation: str, status: str) -> None:
    if operations_total is not None:
        operations_total.labels(operation=operation, status=status).inc()


def record_bytes_written(count: int) -> None:
    if bytes_written_total is not None:
        bytes_written_total.inc(count)


def record_bytes_read(count: int) -> None:
    if bytes_read_total is not None:
        bytes_read_total.inc(count)
