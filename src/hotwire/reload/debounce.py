"""Claim-aware debouncing for hot-reload triggers.

Changes are buffered under one of two policies:
- Unclaimed files: collected for a cooldown window, then fired as one batch
- Claimed files: held until the claim is released

Every unclaimed event schedules its own cooldown wait and none of them is
cancelled by later events. The first wait to finish drains the buffer,
so waits finishing after it find nothing to fire. A burst therefore fires
within one cooldown of its first event, with every event that arrived
before the drain included in the batch.
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from hotwire.reload.claims import ClaimChecker, no_claims
from hotwire.reload.models import FileChangeEvent

logger = logging.getLogger(__name__)

FireCallback = Callable[[frozenset[str]], Any]


class CoordinatingDebouncer:
    """Debouncer that defers reloads of claimed files.

    handle_event(), on_claims_released() and flush_pending() may be called
    concurrently from the watcher thread and from claim-release
    notifications. Both buffers are only touched under one lock.
    """

    def __init__(
        self,
        on_fire: FireCallback,
        claim_checker: ClaimChecker = no_claims,
        cooldown_ms: float = 100,
        join_timeout: float = 5.0,
    ):
        """Initialize the debouncer.

        Args:
            on_fire: Called with each batch of paths to reload.
            claim_checker: Returns the currently claimed paths. Queried on
                every event, so it must be cheap.
            cooldown_ms: Debounce window for unclaimed files.
            join_timeout: Seconds stop() waits for the timer thread.
        """
        if cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be >= 0, got {cooldown_ms}")

        self.on_fire = on_fire
        self.claim_checker = claim_checker
        self.cooldown_ms = cooldown_ms
        self.join_timeout = join_timeout

        self._pending: set[str] = set()
        self._unclaimed: set[str] = set()
        self._waits: set[concurrent.futures.Future] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._stopped = False
        # Reentrant: cancelling a wait runs its done-callback in the caller's thread
        self._lock = threading.RLock()

    @property
    def cooldown(self) -> float:
        """Debounce window in seconds."""
        return self.cooldown_ms / 1000

    def pending_files(self) -> frozenset[str]:
        """Get the files held back by claims."""
        with self._lock:
            return frozenset(self._pending)

    def unclaimed_files(self) -> frozenset[str]:
        """Get the files waiting for the cooldown to elapse."""
        with self._lock:
            return frozenset(self._unclaimed)

    def handle_event(self, event: FileChangeEvent | str) -> None:
        """Buffer a file change according to its current claim state.

        Args:
            event: The change, or a bare path.
        """
        path = event.path if isinstance(event, FileChangeEvent) else str(event)
        claimed = path in self.claim_checker()

        with self._lock:
            if self._stopped:
                logger.debug(f"Debouncer stopped, ignoring change to {path}")
                return

            if claimed:
                self._unclaimed.discard(path)
                self._pending.add(path)
            else:
                self._pending.discard(path)
                self._unclaimed.add(path)
                self._schedule_wait()

        logger.debug(f"Buffered {path} ({'claimed' if claimed else 'unclaimed'})")

    def on_claims_released(self, released: Iterable[str]) -> frozenset[str]:
        """Fire the pending files whose claims were released.

        Args:
            released: Paths whose claims were just released.

        Returns:
            The paths that were fired; empty if none of them were pending.
        """
        released = set(released)
        with self._lock:
            batch = frozenset(self._pending & released)
            self._pending -= batch

        if batch:
            self._fire(batch, "claims released")
        return batch

    def flush_pending(self) -> frozenset[str]:
        """Fire every buffered file now, ignoring cooldown and claims.

        Returns:
            The paths that were fired.
        """
        with self._lock:
            batch = frozenset(self._pending | self._unclaimed)
            self._pending.clear()
            self._unclaimed.clear()

        if batch:
            self._fire(batch, "flush")
        return batch

    def stop(self) -> None:
        """Cancel outstanding cooldown waits and clear both buffers.

        A batch already being fired may still complete; nothing new fires
        once this returns.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            waits = list(self._waits)
            self._waits.clear()
            self._pending.clear()
            self._unclaimed.clear()
            loop, thread = self._loop, self._loop_thread
            self._loop = self._loop_thread = None

        for wait in waits:
            wait.cancel()

        if loop is not None:
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=self.join_timeout)

        logger.debug(f"Debouncer stopped, {len(waits)} cooldown waits cancelled")

    def _schedule_wait(self) -> None:
        """Start a cooldown wait on the timer loop. Caller holds the lock."""
        loop = self._ensure_loop()
        wait = asyncio.run_coroutine_threadsafe(self._wait_and_fire(), loop)
        self._waits.add(wait)
        wait.add_done_callback(self._forget_wait)

    def _forget_wait(self, wait: concurrent.futures.Future) -> None:
        with self._lock:
            self._waits.discard(wait)

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=self._run_loop,
                args=(loop,),
                name="hotwire-debounce",
                daemon=True,
            )
            thread.start()
            self._loop, self._loop_thread = loop, thread
        return self._loop

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            leftover = asyncio.all_tasks(loop)
            for task in leftover:
                task.cancel()
            loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))
            loop.close()

    async def _wait_and_fire(self) -> None:
        await asyncio.sleep(self.cooldown)

        with self._lock:
            if self._stopped:
                return
            batch = frozenset(self._unclaimed)
            self._unclaimed.clear()

        if batch:
            self._fire(batch, "cooldown")

    def _fire(self, batch: frozenset[str], reason: str) -> None:
        """Deliver a batch. The buffer is already cleared, so a failure drops it."""
        logger.info(f"Firing {len(batch)} changed files ({reason})")
        try:
            self.on_fire(batch)
        except Exception as e:
            logger.error(f"Debounce callback error ({reason}): {e}")
