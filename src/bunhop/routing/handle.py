"""The shared, atomically replaceable reference to the active RouteTable."""

from __future__ import annotations

import threading

import structlog

from bunhop.routing.table import RouteTable

logger = structlog.get_logger(__name__)


class SharedRouteHandle:
    """Single-writer, many-reader cell holding the current :class:`RouteTable`.

    Readers call :meth:`load` once per request and work against the
    returned snapshot; a load is a single attribute read and never blocks.
    Writers go through :meth:`publish`, which stamps the next generation
    and stores the new reference in one assignment. The lock only orders
    writers against each other.

    Args:
        table: Optional initial table. Without one, :meth:`load` raises
            until the first :meth:`publish`.
    """

    def __init__(self, table: RouteTable | None = None) -> None:
        self._write_lock = threading.Lock()
        self._table: RouteTable | None = None
        if table is not None:
            self.publish(table)

    @property
    def ready(self) -> bool:
        return self._table is not None

    def load(self) -> RouteTable:
        """Return the currently published table."""
        table = self._table
        if table is None:
            raise RuntimeError("SharedRouteHandle has no table; call publish() first.")
        return table

    def publish(self, table: RouteTable) -> RouteTable:
        """Atomically replace the current table with *table*.

        Returns:
            The published table, stamped with its generation number.
        """
        with self._write_lock:
            current = self._table
            generation = 1 if current is None else current.generation + 1
            stamped = table.with_generation(generation)
            self._table = stamped
        logger.info("handle.published", generation=generation, routes=len(stamped))
        return stamped
