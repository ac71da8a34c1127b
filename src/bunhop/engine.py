"""Request-facing facade: snapshot, match, expand or delegate."""

from __future__ import annotations

import structlog

from bunhop.models import DelegateRoute, HopAction, ResolvedRoute, Unmatched
from bunhop.routing import delegate, matcher
from bunhop.routing.handle import SharedRouteHandle
from bunhop.routing.table import RouteTable
from bunhop.routing.template import expand

logger = structlog.get_logger(__name__)


class RouteEngine:
    """Resolves queries against whatever table the handle currently holds.

    Every call loads the table once and uses that snapshot throughout, so a
    reload that lands mid-request never mixes two tables.

    Args:
        handle:           Shared handle published into by the reloader.
        delegate_timeout: Wall-clock limit for delegate programs, in seconds.
        delegate_max_output: Largest accepted delegate stdout, in bytes.
    """

    def __init__(
        self,
        handle: SharedRouteHandle,
        delegate_timeout: float = delegate.DEFAULT_TIMEOUT_SECONDS,
        delegate_max_output: int = delegate.DEFAULT_MAX_OUTPUT_BYTES,
    ) -> None:
        self._handle = handle
        self._delegate_timeout = delegate_timeout
        self._delegate_max_output = delegate_max_output

    @property
    def handle(self) -> SharedRouteHandle:
        return self._handle

    def current_table(self) -> RouteTable:
        """Return the active table, for listings and health reporting."""
        return self._handle.load()

    def resolve(self, query: str) -> ResolvedRoute | Unmatched:
        """Resolve *query* against the current snapshot."""
        return matcher.resolve(query, self._handle.load())

    async def hop(self, query: str) -> HopAction | Unmatched:
        """Resolve *query* and compute the redirect or body to return.

        Returns:
            :class:`HopAction`, or :class:`Unmatched` if nothing matched.

        Raises:
            DelegateError: If a delegate route fails.
        """
        table = self._handle.load()
        with structlog.contextvars.bound_contextvars(generation=table.generation):
            return await self._hop(query, table)

    async def _hop(self, query: str, table: RouteTable) -> HopAction | Unmatched:
        resolved = matcher.resolve(query, table)
        if isinstance(resolved, Unmatched):
            logger.info("hop.unmatched", query=query)
            return resolved

        entry = resolved.entry
        if isinstance(entry, DelegateRoute):
            response = await delegate.invoke(
                entry.executable_path,
                resolved.args,
                timeout=self._delegate_timeout,
                max_output=self._delegate_max_output,
            )
            action = HopAction.from_delegate(response)
        else:
            action = HopAction(kind="redirect", value=expand(entry.template, resolved.args))

        logger.info(
            "hop.resolved",
            keyword=resolved.keyword,
            via_default=resolved.via_default,
            action=action.kind,
        )
        return action
