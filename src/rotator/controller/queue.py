# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/controller/queue.py
from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Hashable, List, Optional, Set, Tuple

from ..utils.retry import backoff_delay


class WorkQueue:
    """
    Keyed work queue with the usual controller guarantees:

      - a key is queued at most once (re-adds collapse)
      - a key handed to a worker is not handed to another until done();
        adds in the meantime re-queue it on done()
      - add_after() delays a key; only the earliest pending delay is kept
      - add_rate_limited() delays by per-key exponential backoff until forget()
    """

    def __init__(
        self,
        backoff_base: float = 5.0,
        backoff_max: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._delayed: List[Tuple[float, int, Hashable]] = []
        self._waiting: Dict[Hashable, float] = {}
        self._failures: Dict[Hashable, int] = {}
        self._seq = itertools.count()
        self._shutdown = False

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    def add(self, key: Hashable) -> None:
        with self._cond:
            self._add_locked(key)

    def _add_locked(self, key: Hashable) -> None:
        if self._shutdown or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_after(self, key: Hashable, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutdown:
                return
            due = self._clock() + delay
            current = self._waiting.get(key)
            if current is not None and current <= due:
                return
            self._waiting[key] = due
            heapq.heappush(self._delayed, (due, next(self._seq), key))
            self._cond.notify_all()

    def add_rate_limited(self, key: Hashable) -> float:
        with self._cond:
            failures = self._failures.get(key, 0) + 1
            self._failures[key] = failures
        delay = backoff_delay(failures, self.backoff_base, self.backoff_max)
        self.add_after(key, delay)
        return delay

    def forget(self, key: Hashable) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def failures(self, key: Hashable) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------
    def _promote_due_locked(self) -> Optional[float]:
        """Move due delayed keys to the queue; return the next due time, if any."""
        now = self._clock()
        while self._delayed:
            due, _, key = self._delayed[0]
            if self._waiting.get(key) != due:
                heapq.heappop(self._delayed)  # superseded by an earlier add_after
                continue
            if due > now:
                return due
            heapq.heappop(self._delayed)
            del self._waiting[key]
            self._add_locked(key)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """
        Block until a key is ready. Returns None on shutdown or when
        *timeout* seconds pass without work.
        """
        end = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                next_due = self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutdown:
                    return None

                now = self._clock()
                waits = [t - now for t in (next_due, end) if t is not None]
                if end is not None and now >= end:
                    return None
                self._cond.wait(max(0.0, min(waits)) if waits else None)

    def done(self, key: Hashable) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
