"""Substitution of the percent-encoded query into a route template."""

from __future__ import annotations

from typing import Sequence
from urllib.parse import quote

QUERY_MARKER = "{{query}}"

# Only RFC 3986 unreserved characters survive unencoded.
_SAFE_CHARS = "-._~"


def encode_query(args: Sequence[str]) -> str:
    """Join *args* with single spaces and percent-encode the result.

    Args:
        args: Argument words, in order.

    Returns:
        String safe to embed in a URL query component, e.g. ``"a%20b"``.
    """
    return quote(" ".join(args), safe=_SAFE_CHARS, encoding="utf-8")


def expand(template: str, args: Sequence[str]) -> str:
    """Replace the first ``{{query}}`` in *template* with the encoded *args*.

    A template without the marker is returned unchanged. Any later marker
    occurrences are left as literal text.

    Args:
        template: Route template, e.g. ``"https://google.com/search?q={{query}}"``.
        args:     Argument words to substitute.

    Returns:
        The expanded target.
    """
    if QUERY_MARKER not in template:
        return template
    return template.replace(QUERY_MARKER, encode_query(args), 1)
