"""
Bounded in-memory stores for input signals and accepted composites.
"""

import bisect
import logging
import threading
from collections import defaultdict, deque
from datetime import datetime
from typing import Deque, Dict, List, Optional

from contracts.aggregated_signal import AggregatedSignal
from contracts.signal import InputSignal

logger = logging.getLogger(__name__)


class InputSignalStore:
    """Per-instrument queues ordered by signal timestamp, oldest evicted first"""

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._queues: Dict[str, Deque[InputSignal]] = defaultdict(deque)
        self._lock = threading.Lock()
        self.evicted_total = 0

    def add(self, signal: InputSignal) -> Optional[InputSignal]:
        """Insert a signal; returns the evicted signal if capacity overflowed

        A signal older than everything in a full queue is never stored and is
        returned as its own eviction.
        """
        evicted = None
        with self._lock:
            queue = self._queues[signal.instrument]
            if len(queue) >= self.capacity and signal.timestamp < queue[0].timestamp:
                evicted = signal
                self.evicted_total += 1
            elif not queue or signal.timestamp >= queue[-1].timestamp:
                queue.append(signal)
            else:
                keys = [s.timestamp for s in queue]
                queue.insert(bisect.bisect_right(keys, signal.timestamp), signal)

            if evicted is None and len(queue) > self.capacity:
                evicted = queue.popleft()
                self.evicted_total += 1

        if evicted is not None:
            logger.debug(
                f"Evicted signal {evicted.id} from {signal.instrument} "
                f"(capacity {self.capacity})"
            )
        return evicted

    def resize(self, capacity: int) -> int:
        """Change the per-instrument capacity; returns how many signals were evicted"""
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        evicted = 0
        with self._lock:
            self.capacity = capacity
            for queue in self._queues.values():
                while len(queue) > capacity:
                    queue.popleft()
                    evicted += 1
            self.evicted_total += evicted
        return evicted

    def get_active(self, instrument: str, now: datetime) -> List[InputSignal]:
        """Signals still inside their validity window"""
        with self._lock:
            queue = self._queues.get(instrument)
            if not queue:
                return []
            return [s for s in queue if s.is_active(now)]

    def get_all(self, instrument: str) -> List[InputSignal]:
        with self._lock:
            return list(self._queues.get(instrument, ()))

    def prune_expired(self, now: datetime) -> int:
        """Drop signals past their validity window; returns how many"""
        removed = 0
        with self._lock:
            for instrument in list(self._queues):
                queue = self._queues[instrument]
                kept = [s for s in queue if s.is_active(now)]
                removed += len(queue) - len(kept)
                if kept:
                    self._queues[instrument] = deque(kept)
                else:
                    del self._queues[instrument]
        return removed

    def instruments(self) -> List[str]:
        with self._lock:
            return [k for k, v in self._queues.items() if v]

    def count(self, instrument: Optional[str] = None) -> int:
        with self._lock:
            if instrument is not None:
                return len(self._queues.get(instrument, ()))
            return sum(len(q) for q in self._queues.values())


class AggregatedSignalStore:
    """Bounded history of accepted composites plus the latest per instrument"""

    def __init__(self, capacity: int = 500) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._history: Deque[AggregatedSignal] = deque(maxlen=capacity)
        self._latest: Dict[str, AggregatedSignal] = {}
        self._lock = threading.Lock()

    def add(self, aggregated: AggregatedSignal) -> None:
        with self._lock:
            self._history.append(aggregated)
            self._latest[aggregated.instrument] = aggregated

    def resize(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        with self._lock:
            self.capacity = capacity
            self._history = deque(self._history, maxlen=capacity)

    def latest(self, instrument: str) -> Optional[AggregatedSignal]:
        with self._lock:
            return self._latest.get(instrument)

    def latest_all(self) -> List[AggregatedSignal]:
        with self._lock:
            return list(self._latest.values())

    def recent(
        self, instrument: Optional[str] = None, limit: Optional[int] = None
    ) -> List[AggregatedSignal]:
        """Newest first, optionally filtered by instrument"""
        with self._lock:
            items = [
                a
                for a in reversed(self._history)
                if instrument is None or a.instrument == instrument
            ]
        return items[:limit] if limit is not None else items

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
