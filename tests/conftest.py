"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import stat
from pathlib import Path
from typing import Callable

import pytest

from bunhop.routing.document import parse_document
from bunhop.routing.table import RouteTable, compile_table


# ---------------------------------------------------------------------------
# Pytest configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

SAMPLE_CONFIG = """\
bind_address: "127.0.0.1:8080"
public_address: "localhost:8080"
default_route: "g"
groups:
  - name: "Meta commands"
    description: "Commands for bunhop"
    routes:
      ls: &ls
        path: "/routes"
        max_args: 0
      help:
        path: "/routes"
        max_args: 0
        hidden: true
      list: *ls
  - name: "Google"
    routes:
      g: "https://google.com/search?q={{query}}"
      yt:
        path: "https://www.youtube.com/results?search_query={{query}}"
        description: "Search youtube videos"
  - name: "Uncategorized routes"
    routes:
      r: "https://reddit.com/r/{{query}}"
      nice: "https://youtu.be/dQw4w9WgXcQ"
      two:
        path: "https://example.com/{{query}}"
        min_args: 1
        max_args: 2
  - name: "Hidden group"
    hidden: true
    routes:
      sneaky: "https://nyan.cat"
"""


@pytest.fixture
def sample_config_text() -> str:
    """The YAML text of a representative config file."""
    return SAMPLE_CONFIG


@pytest.fixture
def sample_table() -> RouteTable:
    """The compiled table for :data:`SAMPLE_CONFIG`."""
    return compile_table(parse_document(SAMPLE_CONFIG))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file on disk holding :data:`SAMPLE_CONFIG`."""
    path = tmp_path / "bunhop.yaml"
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Delegate fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_delegate(tmp_path: Path) -> Callable[[str, str], str]:
    """Factory writing an executable shell script into ``tmp_path``.

    Returns a callable ``(name, body) -> absolute path``.
    """

    def _make(name: str, body: str) -> str:
        path = tmp_path / name
        path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make
