"""
mission/offline_queue.py
Deferred execution of field-agent mutations while connectivity is down.

While offline, perform() appends the action instead of running it. Going
back online flushes: the queue is captured and cleared first, then the
captured actions run in enqueue order. Anything enqueued while a flush is
running belongs to the next flush, so no action is lost or run twice.

A failing action is logged and skipped; the rest of the batch still runs.
Nothing is retried.
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)

Action          = Callable[[], object]
PendingListener = Callable[[int], None]


class OfflineActionQueue:

    def __init__(self, online: bool = True):
        self._online  = online
        self._queue:  Deque[Action] = deque()
        self._listeners: Dict[int, PendingListener] = {}
        self._next_token = 0

    # ── STATE ────────────────────────────────────────────────
    @property
    def online(self) -> bool:
        return self._online

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def subscribe(self, listener: PendingListener) -> Callable[[], None]:
        """listener(pending_count) on every change. Returns an idempotent unsubscribe."""
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def _publish(self) -> None:
        count = len(self._queue)
        for listener in list(self._listeners.values()):
            try:
                listener(count)
            except Exception:
                logger.exception("Pending-count listener failed")

    # ── OPERATIONS ───────────────────────────────────────────
    def perform(self, action: Action, immediate: bool = False) -> bool:
        """
        Run action now, or queue it when offline and not immediate.
        Returns True if it ran, False if it was queued.
        Exceptions from an action run now propagate to the caller.
        """
        if not self._online and not immediate:
            self._queue.append(action)
            logger.debug(f"Offline: action queued ({len(self._queue)} pending)")
            self._publish()
            return False
        action()
        return True

    def set_connectivity(self, online: bool) -> None:
        was_online   = self._online
        self._online = bool(online)
        if self._online and not was_online:
            logger.info(f"Connectivity restored — replaying {len(self._queue)} queued action(s)")
            self.flush()
        elif was_online and not self._online:
            logger.info("Connectivity lost — queuing field actions")

    def flush(self) -> int:
        """
        Run every action queued so far, oldest first.
        Returns how many completed without raising.
        """
        batch = list(self._queue)
        self._queue.clear()
        self._publish()

        completed = 0
        for position, action in enumerate(batch, start=1):
            try:
                action()
                completed += 1
            except Exception:
                logger.exception(f"Queued action {position}/{len(batch)} failed — continuing")
        if batch:
            logger.info(f"Flush complete: {completed}/{len(batch)} action(s) succeeded")
        return completed
