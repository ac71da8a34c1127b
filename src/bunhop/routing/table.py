"""Compilation of a ConfigDocument into an immutable, query-ready table."""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Optional

import structlog

from bunhop.errors import DanglingDefaultRoute, InvalidKeyword
from bunhop.models import ConfigDocument, RouteEntry, RouteGroup

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RouteTable:
    """Flattened keyword -> route mapping plus listing metadata.

    Never mutated after construction. ``generation`` increases with every
    table published into a :class:`~bunhop.routing.handle.SharedRouteHandle`.
    """

    routes: Mapping[str, RouteEntry]
    groups: tuple[RouteGroup, ...] = ()
    default_route: Optional[str] = None
    public_address: str = ""
    generation: int = 0

    def get(self, keyword: str) -> RouteEntry | None:
        return self.routes.get(keyword)

    def __len__(self) -> int:
        return len(self.routes)

    def __contains__(self, keyword: object) -> bool:
        return keyword in self.routes

    def with_generation(self, generation: int) -> "RouteTable":
        """Return a copy of this table stamped with *generation*."""
        return replace(self, generation=generation)


def _check_keyword(keyword: str, group: RouteGroup) -> None:
    if not keyword.strip() or any(ch.isspace() for ch in keyword):
        raise InvalidKeyword(keyword, group.name)


def compile_table(document: ConfigDocument, generation: int = 0) -> RouteTable:
    """Build a :class:`RouteTable` from *document*.

    Groups are walked in document order and routes within each group in
    document order; a keyword defined again replaces the earlier entry.

    Args:
        document:   Parsed configuration.
        generation: Stamp to put on the resulting table.

    Returns:
        The compiled table.

    Raises:
        InvalidKeyword:       A keyword is empty or contains whitespace.
        DanglingDefaultRoute: ``default_route`` is not among the keywords.
    """
    mapping: dict[str, RouteEntry] = {}
    for group in document.groups:
        for keyword, entry in group.routes.items():
            _check_keyword(keyword, group)
            previous = mapping.get(keyword)
            mapping[keyword] = entry
            if previous is not None:
                logger.debug("table.route_overridden", keyword=keyword, group=group.name)

    if document.default_route is not None and document.default_route not in mapping:
        raise DanglingDefaultRoute(document.default_route)

    table = RouteTable(
        routes=MappingProxyType(mapping),
        groups=tuple(document.groups),
        default_route=document.default_route,
        public_address=document.public_address,
        generation=generation,
    )
    logger.debug("table.compiled", routes=len(mapping), groups=len(table.groups))
    return table
