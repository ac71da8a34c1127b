"""FastAPI application entry point with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from bunhop.config import settings
from bunhop.engine import RouteEngine
from bunhop.errors import DelegateError
from bunhop.models import (
    DelegateRoute,
    GroupListing,
    HealthResponse,
    RouteListing,
    RoutesResponse,
    Unmatched,
)
from bunhop.routing.document import locate_config
from bunhop.routing.handle import SharedRouteHandle
from bunhop.routing.watcher import ConfigWatcher, load_table
from bunhop.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the initial route table, start the watcher, stop it on shutdown.

    Any failure to find, parse or validate the config at startup is fatal:
    the service never serves without a valid table.
    """
    configure_logging(settings.environment, settings.log_level)
    log = structlog.get_logger(__name__)

    config_path = locate_config(settings.config_path)
    log.info("bunhop.startup", config=str(config_path), environment=settings.environment)

    handle = SharedRouteHandle(load_table(config_path, allow_large=settings.allow_large_config))
    app.state.engine = RouteEngine(
        handle,
        delegate_timeout=settings.delegate_timeout_seconds,
        delegate_max_output=settings.delegate_max_output_bytes,
    )
    app.state.watcher = ConfigWatcher(
        config_path,
        handle,
        debounce_seconds=settings.reload_debounce_seconds,
        allow_large=settings.allow_large_config,
    )
    if settings.watch_config:
        app.state.watcher.start()

    log.info("bunhop.ready", routes=len(handle.load()))

    yield

    log.info("bunhop.shutdown")
    app.state.watcher.stop()


app = FastAPI(
    title="bunhop",
    description="Self-hosted bang redirector with hot-reloaded routes.",
    version="0.1.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/hop", summary="Resolve a bang query")
async def hop(
    to: str = Query(..., max_length=2048, description="Query, e.g. 'g hello world'"),
) -> Response:
    """Redirect to, or return the body for, the route matching *to*."""
    engine: RouteEngine = app.state.engine
    action = await engine.hop(to)

    if isinstance(action, Unmatched):
        return PlainTextResponse("not found", status_code=404)
    if action.kind == "redirect":
        return RedirectResponse(action.value, status_code=302)
    return PlainTextResponse(action.value)


@app.get("/routes", response_model=RoutesResponse, summary="List visible routes")
async def routes() -> RoutesResponse:
    """List every non-hidden route of every non-hidden group."""
    table = app.state.engine.current_table()
    groups: list[GroupListing] = []
    for group in table.groups:
        if group.hidden:
            continue
        listed = [
            RouteListing(
                keyword=keyword,
                kind=entry.kind,
                target=(
                    entry.executable_path
                    if isinstance(entry, DelegateRoute)
                    else entry.template
                ),
                description=entry.description,
            )
            for keyword, entry in group.routes.items()
            if not entry.hidden
        ]
        groups.append(
            GroupListing(name=group.name, description=group.description, routes=listed)
        )

    return RoutesResponse(
        public_address=table.public_address,
        default_route=table.default_route,
        groups=groups,
    )


@app.get("/health", response_model=HealthResponse, summary="Service health check")
async def health() -> HealthResponse:
    """Report the active table generation and the watcher's state."""
    table = app.state.engine.current_table()
    watcher: ConfigWatcher = app.state.watcher
    last = watcher.last_outcome

    return HealthResponse(
        status="ok" if watcher.last_error is None else "degraded",
        generation=table.generation,
        routes=len(table),
        watcher=watcher.state.value if watcher.running else "disabled",
        last_reload=last.value if last is not None else None,
        last_reload_error=watcher.last_error,
    )


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


@app.exception_handler(DelegateError)
async def delegate_error_handler(request: Request, exc: DelegateError) -> PlainTextResponse:
    """Log the delegate's failure and return a generic error."""
    logger.error(
        "hop.delegate_failed",
        path=str(request.url.path),
        executable=exc.executable,
        error=exc.cause,
    )
    return PlainTextResponse("Something went wrong :(\n", status_code=500)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all error handler that logs and returns a structured response."""
    logger.error("unhandled_exception", path=str(request.url), error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error.", "error": str(exc)},
    )
