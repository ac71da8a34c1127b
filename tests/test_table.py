"""Tests for RouteTable compilation."""

from __future__ import annotations

from pathlib import Path

import pytest

from bunhop.errors import ConfigValidationError, DanglingDefaultRoute, InvalidKeyword
from bunhop.models import ConfigDocument, RouteGroup, StaticRoute
from bunhop.routing.document import parse_document
from bunhop.routing.table import RouteTable, compile_table


def _group(name: str, routes: dict[str, str], **kwargs: object) -> RouteGroup:
    return RouteGroup(
        name=name,
        routes={k: StaticRoute(template=v) for k, v in routes.items()},
        **kwargs,
    )


def _doc(*groups: RouteGroup, default_route: str | None = None) -> ConfigDocument:
    return ConfigDocument(
        bind_address="127.0.0.1:8080",
        public_address="localhost:8080",
        default_route=default_route,
        groups=list(groups),
    )


class TestCompileTable:
    """Tests for flattening groups into the keyword mapping."""

    def test_empty_groups_yield_empty_table(self) -> None:
        table = compile_table(_doc())
        assert len(table) == 0
        assert table.default_route is None

    def test_disjoint_groups_are_summed(self) -> None:
        table = compile_table(
            _doc(_group("x", {"a": "b", "c": "d"}), _group("5", {"1": "2", "3": "4"}))
        )
        assert {k: v.template for k, v in table.routes.items()} == {
            "a": "b",
            "c": "d",
            "1": "2",
            "3": "4",
        }

    def test_overlapping_groups_use_later_routes(self) -> None:
        """The last definition of a keyword in document order wins."""
        table = compile_table(
            _doc(_group("x", {"a": "b", "c": "d"}), _group("5", {"a": "1", "b": "2"}))
        )
        assert table.get("a").template == "1"
        assert table.get("b").template == "2"
        assert table.get("c").template == "d"

    def test_last_wins_across_many_groups(self) -> None:
        table = compile_table(
            _doc(_group("1", {"k": "first"}), _group("2", {"k": "second"}), _group("3", {"k": "third"}))
        )
        assert table.get("k").template == "third"

    def test_alias_duplicates_use_later_definition(self) -> None:
        """Alias-expanded duplicates follow the same last-wins rule."""
        text = """\
bind_address: "a"
public_address: "b"
groups:
  - name: "one"
    routes:
      k: &shared
        path: "https://shared/{{query}}"
        max_args: 1
      other: *shared
  - name: "two"
    routes:
      other: "https://override"
  - name: "three"
    routes:
      k: *shared
"""
        table = compile_table(parse_document(text))
        assert table.get("other").template == "https://override"
        assert table.get("k").template == "https://shared/{{query}}"
        assert table.get("k").max_args == 1

    def test_groups_retained_in_order(self, sample_table: RouteTable) -> None:
        assert [g.name for g in sample_table.groups] == [
            "Meta commands",
            "Google",
            "Uncategorized routes",
            "Hidden group",
        ]

    def test_hidden_routes_still_resolvable(self, sample_table: RouteTable) -> None:
        """Hiding only affects listings."""
        assert "sneaky" in sample_table
        assert "help" in sample_table

    def test_public_address_carried(self, sample_table: RouteTable) -> None:
        assert sample_table.public_address == "localhost:8080"

    def test_generation_stamp(self) -> None:
        assert compile_table(_doc(), generation=7).generation == 7


class TestTableImmutability:
    """A compiled table cannot be changed in place."""

    def test_routes_mapping_is_read_only(self, sample_table: RouteTable) -> None:
        with pytest.raises(TypeError):
            sample_table.routes["new"] = StaticRoute(template="x")  # type: ignore[index]

    def test_fields_are_frozen(self, sample_table: RouteTable) -> None:
        with pytest.raises(AttributeError):
            sample_table.default_route = "r"  # type: ignore[misc]

    def test_with_generation_copies(self, sample_table: RouteTable) -> None:
        stamped = sample_table.with_generation(3)
        assert stamped.generation == 3
        assert sample_table.generation == 0
        assert stamped.routes is sample_table.routes


class TestValidation:
    """Semantic validation performed at compile time."""

    def test_dangling_default_route(self) -> None:
        with pytest.raises(DanglingDefaultRoute) as excinfo:
            compile_table(_doc(_group("x", {"a": "b"}), default_route="zz"))
        assert excinfo.value.keyword == "zz"
        assert "zz" in str(excinfo.value)

    def test_default_route_defined_in_any_group(self) -> None:
        table = compile_table(
            _doc(_group("x", {"a": "b"}), _group("y", {"g": "c"}), default_route="g")
        )
        assert table.default_route == "g"

    @pytest.mark.parametrize("keyword", ["", "   ", "two words", "tab\there"])
    def test_invalid_keyword(self, keyword: str) -> None:
        with pytest.raises(InvalidKeyword) as excinfo:
            compile_table(_doc(_group("bad", {keyword: "x"})))
        assert excinfo.value.group == "bad"

    def test_validation_errors_share_base(self) -> None:
        assert issubclass(DanglingDefaultRoute, ConfigValidationError)
        assert issubclass(InvalidKeyword, ConfigValidationError)

    def test_empty_quoted_keyword_from_yaml(self) -> None:
        text = 'bind_address: "a"\npublic_address: "b"\ngroups:\n  - name: "n"\n    routes:\n      "": "x"\n'
        with pytest.raises(InvalidKeyword):
            compile_table(parse_document(text))


def test_bundled_default_config_compiles() -> None:
    """The config written on first start is itself valid."""
    path = Path(__file__).resolve().parents[1] / "src" / "bunhop" / "bunhop.default.yaml"
    table = compile_table(parse_document(path.read_text(encoding="utf-8")))
    assert table.default_route == "g"
    assert table.get("list") == table.get("ls")
