"""Pydantic v2 data models for the route engine and its HTTP shell."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator


# ---------------------------------------------------------------------------
# Configuration document
# ---------------------------------------------------------------------------


class _Route(BaseModel):
    """Fields shared by every route variant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_args: Optional[int] = Field(default=None, ge=0)
    max_args: Optional[int] = Field(default=None, ge=0)
    hidden: bool = False
    description: Optional[str] = None

    def accepts(self, arg_count: int) -> bool:
        """Return True if *arg_count* words satisfy the route's bounds."""
        if self.min_args is not None and arg_count < self.min_args:
            return False
        if self.max_args is not None and arg_count > self.max_args:
            return False
        return True


class StaticRoute(_Route):
    """A URL template, optionally containing the ``{{query}}`` marker."""

    kind: Literal["static"] = "static"
    template: str


class DelegateRoute(_Route):
    """An executable that computes the response for a query."""

    kind: Literal["delegate"] = "delegate"
    executable_path: str


RouteEntry = Annotated[Union[StaticRoute, DelegateRoute], Field(discriminator="kind")]


class RouteGroup(BaseModel):
    """A named, ordered collection of routes."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    hidden: bool = False
    routes: dict[str, RouteEntry] = Field(default_factory=dict)


class ConfigDocument(BaseModel):
    """Parsed representation of the YAML configuration file."""

    model_config = ConfigDict(frozen=True)

    bind_address: str
    public_address: str
    default_route: Optional[str] = None
    groups: list[RouteGroup] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Resolution results
# ---------------------------------------------------------------------------


class ResolvedRoute(BaseModel):
    """A query matched to a route, with the argument words to apply."""

    model_config = ConfigDict(frozen=True)

    keyword: str
    entry: RouteEntry
    args: tuple[str, ...] = ()
    via_default: bool = False


class Unmatched(BaseModel):
    """No route and no usable default for the query."""

    model_config = ConfigDict(frozen=True)

    query: str


class DelegateResponse(BaseModel):
    """The single JSON object a delegate program prints to stdout.

    Exactly one of ``redirect`` or ``body`` must be present.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    redirect: Optional[StrictStr] = None
    body: Optional[StrictStr] = None

    @model_validator(mode="after")
    def _exactly_one_key(self) -> "DelegateResponse":
        present = self.model_fields_set
        if len(present) != 1:
            raise ValueError("expected exactly one of 'redirect' or 'body'")
        if getattr(self, next(iter(present))) is None:
            raise ValueError(f"{next(iter(present))!r} must be a string")
        return self


class HopAction(BaseModel):
    """What the HTTP layer should do for a resolved query."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["redirect", "body"]
    value: str

    @classmethod
    def from_delegate(cls, response: DelegateResponse) -> "HopAction":
        if response.redirect is not None:
            return cls(kind="redirect", value=response.redirect)
        return cls(kind="body", value=response.body or "")


# ---------------------------------------------------------------------------
# API response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response from GET /health."""

    status: str
    generation: int
    routes: int
    watcher: str
    last_reload: Optional[str] = None
    last_reload_error: Optional[str] = None


class RouteListing(BaseModel):
    """A single visible route in GET /routes."""

    keyword: str
    kind: str
    target: str
    description: Optional[str] = None


class GroupListing(BaseModel):
    """A visible route group in GET /routes."""

    name: str
    description: Optional[str] = None
    routes: list[RouteListing]


class RoutesResponse(BaseModel):
    """Response from GET /routes."""

    public_address: str
    default_route: Optional[str] = None
    groups: list[GroupListing]
