"""Query tokenisation and resolution against a RouteTable."""

from __future__ import annotations

import structlog

from bunhop.models import ResolvedRoute, Unmatched
from bunhop.routing.table import RouteTable

logger = structlog.get_logger(__name__)


def split_query(query: str) -> tuple[str, str]:
    """Split *query* into its keyword and the (possibly empty) remainder.

    Args:
        query: Raw query string, e.g. ``"  g hello   world "``.

    Returns:
        ``(keyword, remainder)``, e.g. ``("g", "hello   world")``.
    """
    parts = query.strip().split(maxsplit=1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


def resolve(query: str, table: RouteTable) -> ResolvedRoute | Unmatched:
    """Resolve *query* against *table*.

    The leading token is looked up as a keyword. If it is unknown, or the
    argument count violates the route's ``min_args``/``max_args``, the
    whole query becomes the argument payload of the default route (whose
    own bounds are not checked). Without a default route the query is
    :class:`Unmatched`.

    Args:
        query: Raw query string.
        table: Snapshot to resolve against.

    Returns:
        :class:`ResolvedRoute` or :class:`Unmatched`.
    """
    keyword, remainder = split_query(query)
    if not keyword:
        logger.debug("matcher.empty_query")
        return Unmatched(query=query)

    entry = table.get(keyword)
    if entry is not None:
        args = tuple(remainder.split())
        if entry.accepts(len(args)):
            logger.debug("matcher.resolved", keyword=keyword, args=len(args))
            return ResolvedRoute(keyword=keyword, entry=entry, args=args)
        logger.debug(
            "matcher.bounds_rejected",
            keyword=keyword,
            args=len(args),
            min_args=entry.min_args,
            max_args=entry.max_args,
        )

    if table.default_route is not None:
        default_entry = table.get(table.default_route)
        if default_entry is not None:
            args = tuple(query.split())
            logger.debug("matcher.default_route", keyword=table.default_route, args=len(args))
            return ResolvedRoute(
                keyword=table.default_route,
                entry=default_entry,
                args=args,
                via_default=True,
            )

    logger.debug("matcher.unmatched", keyword=keyword)
    return Unmatched(query=query)
