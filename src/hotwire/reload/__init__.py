"""Hot-reload coordination.

- File watching for source changes
- Claim-aware debouncing of change bursts
- Reload dispatch to registered components and listeners
"""

from hotwire.reload.claims import ClaimChecker, make_claim_checker, no_claims
from hotwire.reload.debounce import CoordinatingDebouncer
from hotwire.reload.models import (
    ChangeKind,
    ComponentRegistration,
    ComponentStatus,
    FileChangeEvent,
    ListenerEventType,
    ReloadOptions,
    ReloadOutcome,
    ReloadResult,
)
from hotwire.reload.orchestrator import ReloadOrchestrator
from hotwire.reload.reloader import ModuleReloader, Reloader, ReloadError
from hotwire.reload.watcher import FileWatcher

__all__ = [
    "ChangeKind",
    "ClaimChecker",
    "ComponentRegistration",
    "ComponentStatus",
    "CoordinatingDebouncer",
    "FileChangeEvent",
    "FileWatcher",
    "ListenerEventType",
    "ModuleReloader",
    "ReloadError",
    "ReloadOptions",
    "ReloadOrchestrator",
    "ReloadOutcome",
    "ReloadResult",
    "Reloader",
    "make_claim_checker",
    "no_claims",
]
