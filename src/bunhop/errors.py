"""Exception hierarchy for the route engine."""

from __future__ import annotations

from pathlib import Path


class BunhopError(Exception):
    """Base class for every error raised by bunhop."""


class ConfigNotFoundError(BunhopError):
    """No usable configuration file could be found or created."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigParseError(BunhopError):
    """The configuration document is malformed or does not fit the schema."""


class ConfigValidationError(BunhopError):
    """The document parsed but describes an invalid route table."""


class DanglingDefaultRoute(ConfigValidationError):
    """``default_route`` names a keyword that no group defines."""

    def __init__(self, keyword: str) -> None:
        super().__init__(f"default route {keyword!r} is not defined by any group")
        self.keyword = keyword


class InvalidKeyword(ConfigValidationError):
    """A route keyword is empty or can never be typed as a single token."""

    def __init__(self, keyword: str, group: str) -> None:
        super().__init__(f"invalid keyword {keyword!r} in group {group!r}")
        self.keyword = keyword
        self.group = group


class DelegateError(BunhopError):
    """A delegate program could not produce a usable response."""

    def __init__(self, executable: str, cause: str) -> None:
        super().__init__(f"{executable}: {cause}")
        self.executable = executable
        self.cause = cause
