"""Reload orchestration: component registry, listeners and watcher wiring.

Flow of one reload:
1. Lazily initialize the reloader on first use
2. Notify listeners and the event sink that a reload started
3. Run the reloader and time it
4. Mark components whose namespace failed or was loaded, invoking their
   callbacks
5. Notify listeners, then the event sink, of the outcome

Listeners always hear about a milestone before the event sink does.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from hotwire.events.bus import EventSink
from hotwire.events.emit import (
    emit_file_changed,
    emit_reload_error,
    emit_reload_start,
    emit_reload_success,
)
from hotwire.reload.claims import ClaimChecker, no_claims
from hotwire.reload.debounce import CoordinatingDebouncer
from hotwire.reload.models import (
    CallbackKind,
    ChangeKind,
    ComponentRegistration,
    ComponentStatus,
    ListenerEventType,
    ReloadOptions,
    ReloadOutcome,
    ReloadResult,
)
from hotwire.reload.reloader import DEFAULT_DIRS, ModuleReloader, Reloader
from hotwire.reload.watcher import FileWatcher

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], Any]


@dataclass
class _WatchSession:
    watcher: FileWatcher
    debouncer: CoordinatingDebouncer
    dirs: list[str]


class ReloadOrchestrator:
    """Owns the component registry and listeners, and drives reloads.

    reload() calls are not serialized: overlapping calls race against each
    other in the reloader and in the callback phase. Coalescing bursts of
    changes into one reload is the debouncer's job, not this class's.

    Listener failures are logged and never stop other listeners or the
    reload. Component callback failures propagate to the reload() caller
    unless isolate_component_errors is set.
    """

    def __init__(
        self,
        reloader: Reloader | None = None,
        event_sink: EventSink | None = None,
        watcher_factory: Callable[[], FileWatcher] = FileWatcher,
        debouncer_factory: Callable[..., CoordinatingDebouncer] = CoordinatingDebouncer,
        default_dirs: Iterable[str | Path] = DEFAULT_DIRS,
        isolate_component_errors: bool = False,
    ):
        self.reloader = reloader or ModuleReloader()
        self.event_sink = event_sink
        self.default_dirs = [str(d) for d in default_dirs]
        self.isolate_component_errors = isolate_component_errors
        self._watcher_factory = watcher_factory
        self._debouncer_factory = debouncer_factory

        self._components: dict[str, ComponentRegistration] = {}
        self._listeners: dict[str, Listener] = {}
        self._initialized = False
        self._session: _WatchSession | None = None
        self._lock = threading.RLock()

    def init(
        self,
        dirs: Iterable[str | Path] | None = None,
        no_reload: Iterable[str] | None = None,
        no_unload: Iterable[str] | None = None,
    ) -> None:
        """Initialize the reloader with source directories.

        Args:
            dirs: Source directories (default: the orchestrator's default_dirs).
            no_reload: Namespaces never reloaded.
            no_unload: Namespaces reloaded but never unloaded.
        """
        dirs = [str(d) for d in dirs] if dirs is not None else self.default_dirs
        with self._lock:
            self.reloader.init(dirs, no_reload=no_reload, no_unload=no_unload)
            self._initialized = True
        logger.info(f"Reloader initialized for {', '.join(dirs)}")

    def _ensure_initialized(self) -> None:
        with self._lock:
            if not self._initialized:
                self.init()

    def add_listener(self, listener_id: str, handler: Listener) -> None:
        """Add a listener receiving every lifecycle notification.

        Notifications are dicts with a "type" key:
        - reload-start {options}
        - reload-success {loaded, unloaded, elapsed_ms}
        - reload-error {failed, error}
        - component-callback {component, callback}
        """
        with self._lock:
            self._listeners[listener_id] = handler

    def remove_listener(self, listener_id: str) -> None:
        """Remove a listener."""
        with self._lock:
            self._listeners.pop(listener_id, None)

    def _notify(self, event: dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners.items())

        for listener_id, handler in listeners:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Listener {listener_id} error: {e}")

    def register(
        self,
        component_id: str,
        ns: str,
        on_reload: Callable[[], Any] | None = None,
        on_error: Callable[[BaseException | None], Any] | None = None,
    ) -> str:
        """Register a component for reload callbacks.

        Re-registering an id replaces the previous registration.

        Args:
            component_id: Unique component ID.
            ns: Namespace (module name) the component is bound to.
            on_reload: Called after its namespace reloads successfully.
            on_error: Called with the error when its namespace fails.

        Returns:
            The component ID.

        Raises:
            ValueError: If component_id or ns is empty.
        """
        if not component_id:
            raise ValueError("component_id is required")
        if not ns:
            raise ValueError("ns is required")

        registration = ComponentRegistration(component_id=component_id, ns=ns)
        if on_reload is not None:
            registration.on_reload = on_reload
        if on_error is not None:
            registration.on_error = on_error

        with self._lock:
            self._components[component_id] = registration
        logger.debug(f"Registered component {component_id} for {ns}")
        return component_id

    def unregister(self, component_id: str) -> None:
        """Unregister a component. Unknown IDs are ignored."""
        with self._lock:
            self._components.pop(component_id, None)

    def get_component(self, component_id: str) -> ComponentRegistration | None:
        """Get a snapshot of a component registration."""
        with self._lock:
            registration = self._components.get(component_id)
            return replace(registration) if registration else None

    def list_components(self) -> list[str]:
        """List all registered component IDs."""
        with self._lock:
            return list(self._components)

    def _mark(self, component_id: str, **changes: Any) -> None:
        with self._lock:
            registration = self._components.get(component_id)
            if registration is not None:
                for name, value in changes.items():
                    setattr(registration, name, value)

    def _invoke(self, component_id: str, callback: Callable[..., Any], *args: Any) -> None:
        if not self.isolate_component_errors:
            callback(*args)
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Component {component_id} callback error: {e}")

    def _run_component_callbacks(self, result: ReloadResult) -> None:
        """Run callbacks for components whose namespaces failed or reloaded."""
        loaded = set(result.loaded)
        with self._lock:
            components = list(self._components.values())

        for component in components:
            if result.failed is not None and component.ns == result.failed:
                self._mark(component.component_id, status=ComponentStatus.ERROR)
                self._notify(
                    {
                        "type": ListenerEventType.COMPONENT_CALLBACK,
                        "component": component.component_id,
                        "callback": CallbackKind.ON_ERROR,
                    }
                )
                self._invoke(component.component_id, component.on_error, result.error)

            elif component.ns in loaded:
                self._mark(
                    component.component_id,
                    status=ComponentStatus.IDLE,
                    last_reload=datetime.now(UTC),
                )
                self._notify(
                    {
                        "type": ListenerEventType.COMPONENT_CALLBACK,
                        "component": component.component_id,
                        "callback": CallbackKind.ON_RELOAD,
                    }
                )
                self._invoke(component.component_id, component.on_reload)

    def reload(self, options: ReloadOptions | None = None) -> ReloadOutcome:
        """Reload changed namespaces and notify components and listeners.

        Args:
            options: Passed through to the reloader (default: changed only,
                no throw).

        Returns:
            ReloadOutcome with the reloader's result, success and timing.
        """
        options = options or ReloadOptions()
        self._ensure_initialized()

        self._notify({"type": ListenerEventType.RELOAD_START, "options": options})
        if self.event_sink is not None:
            emit_reload_start(self.event_sink)

        start = time.monotonic()
        result = self.reloader.reload(options)
        elapsed_ms = (time.monotonic() - start) * 1000
        success = result.failed is None

        self._run_component_callbacks(result)

        if success:
            self._notify(
                {
                    "type": ListenerEventType.RELOAD_SUCCESS,
                    "loaded": result.loaded,
                    "unloaded": result.unloaded,
                    "elapsed_ms": elapsed_ms,
                }
            )
            if self.event_sink is not None:
                emit_reload_success(self.event_sink, result.loaded, result.unloaded, elapsed_ms)
            logger.info(f"Reload complete: {len(result.loaded)} loaded in {elapsed_ms:.1f}ms")
        else:
            self._notify(
                {
                    "type": ListenerEventType.RELOAD_ERROR,
                    "failed": result.failed,
                    "error": result.error,
                }
            )
            if self.event_sink is not None:
                emit_reload_error(self.event_sink, result.failed, result.error)
            logger.warning(f"Reload failed in {result.failed}: {result.error}")

        return ReloadOutcome(
            success=success,
            loaded=result.loaded,
            unloaded=result.unloaded,
            failed=result.failed,
            error=result.error,
            elapsed_ms=elapsed_ms,
            options=options,
        )

    def reload_all(self) -> ReloadOutcome:
        """Force reload of every namespace. Prefer reload() for incremental work."""
        return self.reload(ReloadOptions(only="all"))

    @contextmanager
    def reloading(self, options: ReloadOptions | None = None) -> Iterator[None]:
        """Run the block, then reload. Nothing is reloaded if the block raises."""
        yield
        self.reload(options)

    def find_namespaces(self, pattern: str) -> list[str]:
        """Find namespaces matching a pattern."""
        self._ensure_initialized()
        return self.reloader.find_namespaces(pattern)

    def status(self) -> dict[str, Any]:
        """Get current hot-reload status.

        Returns:
            Dict with initialized, components (read-only snapshot) and
            listener_count.
        """
        with self._lock:
            return {
                "initialized": self._initialized,
                "components": MappingProxyType(
                    {cid: replace(reg) for cid, reg in self._components.items()}
                ),
                "listener_count": len(self._listeners),
            }

    def reset(self) -> None:
        """Drop all registrations and listeners. Meant for tests."""
        self.stop_watcher()
        with self._lock:
            self._components.clear()
            self._listeners.clear()
            self._initialized = False

    def init_with_watcher(
        self,
        dirs: Iterable[str | Path] | None = None,
        claim_checker: ClaimChecker | None = None,
        cooldown_ms: float = 100,
        no_reload: Iterable[str] | None = None,
        no_unload: Iterable[str] | None = None,
    ) -> bool:
        """Initialize the reloader and start watching its directories.

        When a file changes the watcher hands it to the debouncer. Claimed
        files wait for their claim to be released; the rest wait out the
        cooldown. Each fired batch emits file/changed per file and runs
        reload(). An already running watcher session is replaced.

        Args:
            dirs: Source directories to watch and reload.
            claim_checker: Returns currently claimed paths (default: none).
            cooldown_ms: Debounce window for unclaimed files.
            no_reload: Namespaces never reloaded.
            no_unload: Namespaces reloaded but never unloaded.

        Returns:
            True once the watcher is running.
        """
        dirs = [str(d) for d in dirs] if dirs is not None else self.default_dirs
        self.init(dirs, no_reload=no_reload, no_unload=no_unload)

        debouncer = self._debouncer_factory(
            self._on_files_changed,
            claim_checker or no_claims,
            cooldown_ms=cooldown_ms,
        )
        watcher = self._watcher_factory()

        with self._lock:
            previous, self._session = self._session, _WatchSession(watcher, debouncer, dirs)
        if previous is not None:
            self._stop_session(previous)

        watcher.start(dirs, debouncer.handle_event)
        logger.info(f"Watching {', '.join(dirs)} (cooldown {cooldown_ms}ms)")
        return True

    def _on_files_changed(self, files: frozenset[str]) -> None:
        if self.event_sink is not None:
            for file in sorted(files):
                emit_file_changed(self.event_sink, file, ChangeKind.MODIFY)
        self.reload()

    @staticmethod
    def _stop_session(session: _WatchSession) -> None:
        session.watcher.stop()
        session.debouncer.stop()

    def stop_watcher(self) -> bool:
        """Stop the file watcher if running.

        Returns:
            True if a watcher was stopped.
        """
        with self._lock:
            session, self._session = self._session, None
        if session is None:
            return False

        self._stop_session(session)
        logger.info("Watcher stopped")
        return True

    def watcher_status(self) -> dict[str, Any] | None:
        """Get watcher status, or None when not watching."""
        with self._lock:
            session = self._session
        if session is None:
            return None
        return {
            "watching": session.watcher.watching(),
            "dirs": list(session.dirs),
            "pending": sorted(session.debouncer.pending_files()),
        }

    def watching_paths(self) -> list[str]:
        """Directories being watched; empty when not watching."""
        with self._lock:
            return list(self._session.dirs) if self._session else []

    def on_claims_released(self, paths: Iterable[str]) -> frozenset[str]:
        """Forward a claim release to the active debouncer."""
        with self._lock:
            session = self._session
        if session is None:
            return frozenset()
        return session.debouncer.on_claims_released(paths)

    def flush_pending(self) -> frozenset[str]:
        """Fire every buffered change in the active debouncer now."""
        with self._lock:
            session = self._session
        if session is None:
            return frozenset()
        return session.debouncer.flush_pending()
