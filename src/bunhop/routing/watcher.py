"""Config file watching with debounced, validated hot reload."""

from __future__ import annotations

import enum
import threading
from pathlib import Path
from typing import Callable

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from bunhop.errors import BunhopError
from bunhop.routing.document import load_document
from bunhop.routing.handle import SharedRouteHandle
from bunhop.routing.table import RouteTable, compile_table

logger = structlog.get_logger(__name__)

_DEFAULT_DEBOUNCE_SECONDS = 0.5


class ReloadState(str, enum.Enum):
    """Phases of the reload state machine."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RELOADING = "reloading"
    PUBLISHED = "published"
    REJECTED_AND_RETAINED = "rejected_and_retained"


def load_table(path: Path, allow_large: bool = False) -> RouteTable:
    """Parse, compile and validate the config file at *path*.

    Raises:
        BunhopError: Any read, parse or validation failure.
    """
    return compile_table(load_document(path, allow_large=allow_large))


class _ConfigEventHandler(FileSystemEventHandler):
    """Forwards modification events for one file to its watcher.

    Editors that save by writing a new file and renaming it over the old
    one produce a move event instead, which is not treated as a change.
    """

    def __init__(self, watcher: "ConfigWatcher") -> None:
        self._watcher = watcher

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if Path(str(event.src_path)).resolve() == self._watcher.path:
            self._watcher.notify_change()


class ConfigWatcher:
    """Watches the config file and republishes the route table on change.

    Change events move the watcher from ``IDLE`` to ``DEBOUNCING``; every
    further event restarts the debounce timer. When it fires the watcher
    enters ``RELOADING``, then ``PUBLISHED`` if the new document compiles or
    ``REJECTED_AND_RETAINED`` if it does not, and finally returns to
    ``IDLE``. A rejected reload leaves the handle untouched. Reloads are
    serialized, so only one ``RELOADING`` phase is ever active.

    Args:
        path:             Config file to watch.
        handle:           Handle the new tables are published into.
        debounce_seconds: Quiet period required before reloading.
        allow_large:      Lift the config size cap.
        on_reload:        Optional callback receiving each published table.
    """

    def __init__(
        self,
        path: Path,
        handle: SharedRouteHandle,
        debounce_seconds: float = _DEFAULT_DEBOUNCE_SECONDS,
        allow_large: bool = False,
        on_reload: Callable[[RouteTable], None] | None = None,
    ) -> None:
        self.path = Path(path).resolve()
        self._handle = handle
        self._debounce = debounce_seconds
        self._allow_large = allow_large
        self._on_reload = on_reload

        self._lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._observer: Observer | None = None

        self._state = ReloadState.IDLE
        self.last_outcome: ReloadState | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> ReloadState:
        return self._state

    @property
    def running(self) -> bool:
        return self._observer is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin watching the config file's directory.

        A failure to install the watch is logged and leaves hot reload
        disabled; the current table keeps serving.
        """
        if self._observer is not None:
            return
        observer = Observer()
        try:
            observer.schedule(_ConfigEventHandler(self), str(self.path.parent), recursive=False)
            observer.start()
        except OSError as exc:
            logger.warning(
                "watcher.start_failed",
                path=str(self.path),
                error=str(exc),
                detail="changes to this file won't be seen",
            )
            return
        self._observer = observer
        logger.info("watcher.started", path=str(self.path))

    def stop(self) -> None:
        """Stop watching and cancel any pending reload."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._state is ReloadState.DEBOUNCING:
                self._state = ReloadState.IDLE
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
            logger.info("watcher.stopped", path=str(self.path))

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def notify_change(self) -> None:
        """Record a change event and (re)start the debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            if self._state is ReloadState.IDLE:
                self._state = ReloadState.DEBOUNCING
            timer = threading.Timer(self._debounce, self._debounced_reload)
            timer.args = (timer,)
            timer.daemon = True
            self._timer = timer
            timer.start()
        logger.debug("watcher.change_seen", path=str(self.path))

    def _debounced_reload(self, timer: threading.Timer) -> None:
        with self._lock:
            # Superseded by a newer event or by stop().
            if self._timer is not timer:
                return
            self._timer = None
        self.reload()

    def reload(self) -> bool:
        """Load, compile and publish the config file.

        Returns:
            ``True`` if a new table was published, ``False`` if the
            document was rejected and the previous table retained.
        """
        with self._reload_lock:
            with self._lock:
                self._state = ReloadState.RELOADING

            try:
                table = load_table(self.path, allow_large=self._allow_large)
            except BunhopError as exc:
                outcome = ReloadState.REJECTED_AND_RETAINED
                self.last_error = str(exc)
                logger.warning(
                    "reload.rejected",
                    path=str(self.path),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            else:
                published = self._handle.publish(table)
                outcome = ReloadState.PUBLISHED
                self.last_error = None
                logger.info(
                    "reload.published",
                    path=str(self.path),
                    generation=published.generation,
                    routes=len(published),
                )
                if self._on_reload is not None:
                    try:
                        self._on_reload(published)
                    except Exception:  # noqa: BLE001
                        logger.exception("reload.callback_failed")

            with self._lock:
                self.last_outcome = outcome
                # A change that arrived mid-reload has already restarted the timer.
                self._state = (
                    ReloadState.DEBOUNCING if self._timer is not None else ReloadState.IDLE
                )
            return outcome is ReloadState.PUBLISHED
