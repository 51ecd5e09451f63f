"""
The work queue of the keys to be reconciled.

The watch-streams put the keys of the affected AddonConfigs into the queue
on every admitted event; the reconciliation cycles put them back with delays
as decided by the cycles' directives. The queue merges the duplicates:

* A key is queued at most once. Adding an already queued key is a no-op.
* A key is processed by at most one worker at a time. If the key is added
  while being processed, it is marked "dirty" and re-queued once the ongoing
  cycle is finished (so that the new changes are not missed).
* Of several delayed requeues of the same key, only the earliest one is kept.
  An immediate requeue cancels the delayed one.

The distinct keys are processed concurrently by a limited pool of workers.

When a cycle fails with an error, the key is retried with a per-key
exponential backoff; any successful cycle resets the backoff for that key.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import references
from addonctrl._core.intents import states

logger = logging.getLogger(__name__)

Reconcile = Callable[[references.ObjectKey], Awaitable[states.Directive]]

if TYPE_CHECKING:
    KeysQueue = asyncio.Queue[references.ObjectKey]
else:
    KeysQueue = asyncio.Queue


class WorkQueue:

    def __init__(self, *, settings: configuration.OperatorSettings) -> None:
        super().__init__()
        self.settings = settings
        self._ready: KeysQueue = asyncio.Queue()
        self._queued: set[references.ObjectKey] = set()
        self._processing: set[references.ObjectKey] = set()
        self._dirty: set[references.ObjectKey] = set()
        self._timers: dict[references.ObjectKey, asyncio.TimerHandle] = {}
        self._failures: dict[references.ObjectKey, int] = {}
        self._error_delays: tuple[float, ...] = tuple(settings.queueing.error_delays) or (0,)

    @property
    def queued(self) -> frozenset[references.ObjectKey]:
        return frozenset(self._queued)

    @property
    def processing(self) -> frozenset[references.ObjectKey]:
        return frozenset(self._processing)

    @property
    def delayed(self) -> frozenset[references.ObjectKey]:
        return frozenset(self._timers)

    def add(self, key: references.ObjectKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        if key in self._processing:
            self._dirty.add(key)
        elif key not in self._queued:
            self._queued.add(key)
            self._ready.put_nowait(key)

    def add_after(self, key: references.ObjectKey, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay
        timer = self._timers.get(key)
        if timer is not None and timer.when() <= when:
            return
        if timer is not None:
            timer.cancel()
        self._timers[key] = loop.call_at(when, self._fire, key)

    def _fire(self, key: references.ObjectKey) -> None:
        self._timers.pop(key, None)
        self.add(key)

    async def get(self) -> references.ObjectKey:
        key = await self._ready.get()
        self._queued.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: references.ObjectKey) -> None:
        self._processing.discard(key)
        if key in self._dirty:
            self._dirty.discard(key)
            self.add(key)

    def get_error_delay(self, key: references.ObjectKey) -> float:
        """
        Count one more failure of the key and get the backoff for its retry.
        """
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        return self._error_delays[min(failures, len(self._error_delays) - 1)]

    def forget_errors(self, key: references.ObjectKey) -> None:
        self._failures.pop(key, None)

    async def process_one(self, reconcile: Reconcile) -> None:
        key = await self.get()
        try:
            directive = await reconcile(key)
        except Exception:
            delay = self.get_error_delay(key)
            logger.exception(f"Reconciliation of {key} has failed; retrying in {delay}s.")
            self.done(key)
            self.add_after(key, delay)
        else:
            self.forget_errors(key)
            self.done(key)
            if directive.delay is not None:
                self.add_after(key, directive.delay)

    async def worker(self, reconcile: Reconcile) -> None:
        while True:
            await self.process_one(reconcile)

    async def run(
            self,
            reconcile: Reconcile,
            *,
            workers: int | None = None,
    ) -> None:
        """
        Process the keys forever, until cancelled.
        """
        limit = workers if workers is not None else self.settings.queueing.worker_limit
        tasks = [asyncio.create_task(self.worker(reconcile), name=f'reconciliation worker #{i}')
                 for i in range(max(1, limit))]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks, timeout=self.settings.queueing.exit_timeout)
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
