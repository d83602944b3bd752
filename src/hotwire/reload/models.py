"""Data types shared by the watcher, debouncer and orchestrator."""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ChangeKind(str, Enum):
    """Kind of filesystem change reported by the watcher."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass(frozen=True)
class FileChangeEvent:
    """A normalized filesystem change."""

    path: str
    kind: ChangeKind = ChangeKind.MODIFY


class ComponentStatus(str, Enum):
    """Reload state of a registered component."""

    IDLE = "idle"
    ERROR = "error"


class ListenerEventType(str, Enum):
    """Lifecycle notifications delivered to orchestrator listeners."""

    RELOAD_START = "reload-start"
    RELOAD_SUCCESS = "reload-success"
    RELOAD_ERROR = "reload-error"
    COMPONENT_CALLBACK = "component-callback"


class CallbackKind(str, Enum):
    """Which component callback a component-callback notification announces."""

    ON_RELOAD = "on-reload"
    ON_ERROR = "on-error"


def _noop_reload() -> None:
    return None


def _noop_error(_error: BaseException | None) -> None:
    return None


@dataclass
class ComponentRegistration:
    """A component bound to one namespace, notified after reloads."""

    component_id: str
    ns: str
    on_reload: Callable[[], Any] = _noop_reload
    on_error: Callable[[BaseException | None], Any] = _noop_error
    status: ComponentStatus = ComponentStatus.IDLE
    last_reload: datetime | None = None


@dataclass(frozen=True)
class ReloadOptions:
    """Options passed through to the reloader.

    ``only`` selects what to reload: ``"changed"`` (default), ``"all"``,
    or a regex (string or compiled pattern) matched against module names.
    """

    only: str | re.Pattern[str] = "changed"
    throw: bool = False

    @property
    def pattern(self) -> re.Pattern[str] | None:
        """The selection pattern, or None for the changed/all modes."""
        if isinstance(self.only, re.Pattern):
            return self.only
        if self.only in ("changed", "all"):
            return None
        return re.compile(self.only)


@dataclass(frozen=True)
class ReloadResult:
    """What the reloader did during one pass."""

    loaded: tuple[str, ...] = ()
    unloaded: tuple[str, ...] = ()
    failed: str | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class ReloadOutcome:
    """Result of ReloadOrchestrator.reload() returned to callers."""

    success: bool
    loaded: tuple[str, ...] = ()
    unloaded: tuple[str, ...] = ()
    failed: str | None = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0
    options: ReloadOptions = field(default_factory=ReloadOptions)
