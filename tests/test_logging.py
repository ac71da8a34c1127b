"""Tests for logging configuration and processors."""

from __future__ import annotations

import logging

import structlog

from bunhop.utils.logging import configure_logging, truncate_query


class TestTruncateQuery:
    """Tests for the query-capping processor."""

    def test_long_query_truncated(self) -> None:
        event = truncate_query(None, "info", {"event": "hop.unmatched", "query": "q" * 200})
        assert event["query"] == "q" * 80 + "..."

    def test_short_query_untouched(self) -> None:
        event = truncate_query(None, "info", {"event": "hop.unmatched", "query": "g cats"})
        assert event["query"] == "g cats"

    def test_records_without_query(self) -> None:
        event = {"event": "reload.published", "generation": 2}
        assert truncate_query(None, "info", dict(event)) == event


class TestConfigureLogging:
    """Tests for the global logging setup."""

    def test_processors_installed(self) -> None:
        configure_logging("production", "warning")
        processors = structlog.get_config()["processors"]
        assert structlog.contextvars.merge_contextvars in processors
        assert truncate_query in processors
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_defaults_to_info(self) -> None:
        configure_logging("development", "chatty")
        assert logging.getLogger().level == logging.INFO
