import time
import heapq
import logging
import itertools
from typing import Callable, Dict, Hashable, List, Optional, Tuple

log = logging.getLogger(__name__)


class TimerTable:
    """
    Cancellable delayed callbacks, keyed by an arbitrary hashable.

    The table never runs anything on its own: the control loop asks how long
    it may sleep (`seconds_until_next`) and then calls `run_due`. Scheduling
    a key that is already pending replaces the old entry, so each key has at
    most one live timer. Cancelling a missing key is a no-op.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._heap: List[Tuple[float, int, Hashable]] = []
        self._pending: Dict[Hashable, Tuple[float, int, Callable[[], None]]] = {}
        self._sequence = itertools.count()

    def call_later(self, delay: float, key: Hashable, callback: Callable[[], None]) -> None:
        """
        Schedules `callback` to run `delay` seconds from now under `key`.
        A pending timer with the same key is cancelled first.
        """
        deadline = self.clock() + max(delay, 0)
        seq = next(self._sequence)
        self._pending[key] = (deadline, seq, callback)
        heapq.heappush(self._heap, (deadline, seq, key))

    def cancel(self, key: Hashable) -> bool:
        """Cancels the timer under `key`. Returns True if one was pending."""
        return self._pending.pop(key, None) is not None

    def cancel_matching(self, predicate: Callable[[Hashable], bool]) -> int:
        keys = [key for key in self._pending if predicate(key)]
        for key in keys:
            del self._pending[key]
        return len(keys)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def _discard_stale(self) -> None:
        # Heap entries outlive cancellation; drop those no longer current.
        while self._heap:
            deadline, seq, key = self._heap[0]
            entry = self._pending.get(key)
            if entry is not None and entry[1] == seq:
                return
            heapq.heappop(self._heap)

    def seconds_until_next(self) -> Optional[float]:
        """Seconds until the earliest timer is due, or None if nothing is pending."""
        self._discard_stale()
        if not self._heap:
            return None
        return max(self._heap[0][0] - self.clock(), 0.0)

    def run_due(self) -> int:
        """
        Runs every timer whose deadline has passed, earliest first.
        A timer is removed before its callback runs, so a callback may
        safely re-schedule its own key.

        :return: The number of callbacks run.
        """
        ran = 0
        now = self.clock()
        while True:
            self._discard_stale()
            if not self._heap or self._heap[0][0] > now:
                return ran
            _, _, key = heapq.heappop(self._heap)
            _, _, callback = self._pending.pop(key)
            ran += 1
            try:
                callback()
            except Exception as e:
                log.error(f"Timer {key!r} failed: {e}", exc_info=True)
