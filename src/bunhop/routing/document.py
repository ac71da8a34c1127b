"""Loading and locating the YAML configuration document."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Sequence

import structlog
import yaml
from pydantic import ValidationError

from bunhop.errors import ConfigNotFoundError, ConfigParseError
from bunhop.models import ConfigDocument

logger = structlog.get_logger(__name__)

CONFIG_FILENAME = "bunhop.yaml"
MAX_CONFIG_BYTES = 100 * 1024 * 1024

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "bunhop.default.yaml"


class _ConfigLoader(yaml.SafeLoader):
    """Safe loader that keeps plain scalar mapping keys as their literal text.

    YAML 1.1 would otherwise turn keywords such as `no`, `on` or `0x10` into
    booleans and integers.
    """

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        self.flatten_mapping(node)
        mapping: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            if not isinstance(key_node, yaml.ScalarNode):
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    "found a non-scalar key",
                    key_node.start_mark,
                )
            mapping[key_node.value] = self.construct_object(value_node, deep=deep)
        return mapping


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _is_executable_path(path: str) -> bool:
    """Return True if *path* names an existing file to run as a delegate."""
    return os.path.isabs(path) and os.path.isfile(path)


def _normalise_route(keyword: str, value: Any, source: str) -> dict[str, Any]:
    # Aliased routes share one object; never mutate it in place.
    if isinstance(value, str):
        entry: dict[str, Any] = {"path": value}
    elif isinstance(value, dict):
        entry = dict(value)
    else:
        raise ConfigParseError(
            f"{source}: route {keyword!r} must be a string or a mapping"
        )

    path = entry.pop("path", None)
    if not isinstance(path, str):
        raise ConfigParseError(f"{source}: route {keyword!r} needs a string 'path'")

    if _is_executable_path(path):
        logger.debug("document.delegate_route", keyword=keyword, path=path)
        entry.update(kind="delegate", executable_path=path)
    else:
        entry.update(kind="static", template=path)
    return entry


def _normalise_group(group: Any, source: str) -> dict[str, Any]:
    if not isinstance(group, dict):
        raise ConfigParseError(f"{source}: every group must be a mapping")

    routes = group.get("routes") or {}
    if not isinstance(routes, dict):
        raise ConfigParseError(
            f"{source}: routes of group {group.get('name')!r} must be a mapping"
        )

    normalised: dict[str, Any] = {}
    for key, value in routes.items():
        keyword = str(key)
        normalised[keyword] = _normalise_route(keyword, value, source)
    return {**group, "routes": normalised}


def parse_document(text: str, source: str = "<string>") -> ConfigDocument:
    """Parse YAML *text* into a :class:`ConfigDocument`.

    Aliases are expanded by the YAML loader, so an aliased route becomes an
    ordinary duplicate entry. Within one ``routes`` mapping a repeated key
    keeps its last value.

    Args:
        text:   Raw YAML document.
        source: Label used in error messages, usually the file path.

    Returns:
        The validated document.

    Raises:
        ConfigParseError: On YAML syntax errors or a schema mismatch.
    """
    try:
        raw = yaml.load(text, Loader=_ConfigLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"{source}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigParseError(f"{source}: expected a mapping at the top level")

    groups = raw.get("groups") or []
    if not isinstance(groups, list):
        raise ConfigParseError(f"{source}: 'groups' must be a list")

    data = {**raw, "groups": [_normalise_group(g, source) for g in groups]}
    try:
        return ConfigDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigParseError(f"{source}: {exc}") from exc


def load_document(path: Path, allow_large: bool = False) -> ConfigDocument:
    """Read and parse the configuration file at *path*.

    Raises:
        ConfigNotFoundError: If the file cannot be read.
        ConfigParseError:    If it is too large, not UTF-8, or invalid.
    """
    try:
        size = path.stat().st_size
        if size > MAX_CONFIG_BYTES and not allow_large:
            raise ConfigParseError(
                f"{path}: config is {size} bytes, larger than the "
                f"{MAX_CONFIG_BYTES} byte limit; enable allow_large_config to load it"
            )
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigParseError(f"{path}: not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ConfigNotFoundError(f"failed to read {path}: {exc}", path) from exc

    logger.debug("document.read", path=str(path), size=size)
    return parse_document(text, source=str(path))


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def default_locations() -> list[Path]:
    """Candidate config paths, highest priority first."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return [
        Path("/etc") / CONFIG_FILENAME,
        Path(config_home) / CONFIG_FILENAME,
        Path.home() / CONFIG_FILENAME,
    ]


def locate_config(
    explicit: Path | None = None,
    candidates: Sequence[Path] | None = None,
) -> Path:
    """Return the path of the configuration file to use.

    An explicit path must be readable. Otherwise the first readable
    candidate wins; if none exists, the bundled default config is written to
    the first writable candidate.

    Raises:
        ConfigNotFoundError: If no path can be read or created.
    """
    if explicit is not None:
        if not os.access(explicit, os.R_OK) or not explicit.is_file():
            raise ConfigNotFoundError(f"cannot read config at {explicit}", explicit)
        return explicit

    locations = list(candidates) if candidates is not None else default_locations()
    logger.debug("document.search", locations=[str(p) for p in locations])

    for location in locations:
        if location.is_file() and os.access(location, os.R_OK):
            logger.debug("document.found", path=str(location))
            return location

    default_text = _DEFAULT_CONFIG_PATH.read_text(encoding="utf-8")
    for location in locations:
        try:
            with location.open("x", encoding="utf-8") as fh:
                fh.write(default_text)
        except OSError as exc:
            logger.debug("document.create_failed", path=str(location), error=str(exc))
            continue
        logger.info("document.created_default", path=str(location))
        return location

    raise ConfigNotFoundError("no valid config path was found")
