"""
Source Registry - identity, weights and performance of signal sources

All mutation goes through the registry's lock. Aggregation never reads the
live table; it works on the immutable snapshot returned by ``snapshot()``.
"""

import logging
import math
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

from contracts.source import SignalOutcome, SignalSource, SourceCategory
from shared.constants import DEFAULT_RELIABILITY, DEFAULT_WIN_RATE
from signalengine.errors import ConfigurationError, InputValidationError

logger = logging.getLogger(__name__)


@dataclass
class _SourceState:
    id: str
    name: str
    category: SourceCategory
    static_weight: float
    adaptive_weight: float
    reliability: float = DEFAULT_RELIABILITY
    active: bool = True
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen: Optional[datetime] = None
    total_signals: int = 0
    total_outcomes: int = 0
    successful_outcomes: int = 0
    recent_outcomes: Deque[bool] = field(default_factory=deque)

    def recent_win_rate(self) -> float:
        if not self.recent_outcomes:
            return DEFAULT_WIN_RATE
        return sum(self.recent_outcomes) / len(self.recent_outcomes)

    def to_model(self) -> SignalSource:
        return SignalSource(
            id=self.id,
            name=self.name,
            category=self.category,
            static_weight=self.static_weight,
            adaptive_weight=self.adaptive_weight,
            reliability=self.reliability,
            active=self.active,
            registered_at=self.registered_at,
            last_seen=self.last_seen,
            total_signals=self.total_signals,
            total_outcomes=self.total_outcomes,
            successful_outcomes=self.successful_outcomes,
            recent_win_rate=self.recent_win_rate(),
        )


class SourceRegistry:
    """Owned, lock-protected table of signal sources"""

    def __init__(
        self, performance_window: int = 50, reliability_smoothing: float = 0.1
    ) -> None:
        if performance_window < 1:
            raise ConfigurationError(["performance_window must be >= 1"])
        if not 0.0 <= reliability_smoothing <= 1.0:
            raise ConfigurationError(["reliability_smoothing must be within [0, 1]"])

        self.performance_window = performance_window
        self.reliability_smoothing = reliability_smoothing
        self._sources: Dict[str, _SourceState] = {}
        self._lock = threading.RLock()

    def register(
        self,
        name: str,
        category: SourceCategory | str,
        initial_weight: float,
        source_id: Optional[str] = None,
    ) -> str:
        """Register a source and return its id"""
        errors: List[str] = []
        if not name:
            errors.append("source name must not be empty")
        if (
            initial_weight is None
            or not math.isfinite(initial_weight)
            or initial_weight < 0
        ):
            errors.append(
                f"source weight must be a finite number >= 0, got {initial_weight}"
            )
        try:
            category = SourceCategory(category)
        except ValueError:
            errors.append(f"unknown source category: {category}")
        if errors:
            raise ConfigurationError(errors)

        with self._lock:
            sid = source_id or uuid.uuid4().hex[:12]
            if sid in self._sources:
                raise ConfigurationError([f"source id already registered: {sid}"])
            self._sources[sid] = _SourceState(
                id=sid,
                name=name,
                category=category,
                static_weight=float(initial_weight),
                adaptive_weight=float(initial_weight),
                recent_outcomes=deque(maxlen=self.performance_window),
            )

        logger.info(
            f"Registered source {name} ({category.value}) as {sid} "
            f"with weight {initial_weight}"
        )
        return sid

    def _require(self, source_id: str) -> _SourceState:
        state = self._sources.get(source_id)
        if state is None:
            raise InputValidationError(f"unknown source: {source_id}")
        return state

    def get(self, source_id: str) -> Optional[SignalSource]:
        with self._lock:
            state = self._sources.get(source_id)
            return state.to_model() if state else None

    def is_active(self, source_id: str) -> bool:
        with self._lock:
            state = self._sources.get(source_id)
            return bool(state and state.active)

    def set_active(self, source_id: str, active: bool) -> SignalSource:
        with self._lock:
            state = self._require(source_id)
            state.active = active
            snapshot = state.to_model()
        logger.info(f"Source {source_id} {'activated' if active else 'deactivated'}")
        return snapshot

    def record_signal(self, source_id: str, seen_at: datetime) -> None:
        """Bump the running totals for an accepted signal"""
        with self._lock:
            state = self._require(source_id)
            state.total_signals += 1
            if state.last_seen is None or seen_at > state.last_seen:
                state.last_seen = seen_at

    def record_outcome(self, source_id: str, outcome: SignalOutcome) -> SignalSource:
        """Fold a performance outcome into reliability and adaptive weight

        reliability <- (1 - a) * reliability + a * success
        adaptive_weight = static_weight * (0.5 + reliability)
        """
        with self._lock:
            state = self._require(source_id)
            hit = 1.0 if outcome.success else 0.0

            state.total_outcomes += 1
            if outcome.success:
                state.successful_outcomes += 1
            state.recent_outcomes.append(outcome.success)

            a = self.reliability_smoothing
            state.reliability = min(1.0, max(0.0, (1 - a) * state.reliability + a * hit))
            state.adaptive_weight = state.static_weight * (0.5 + state.reliability)
            snapshot = state.to_model()

        logger.debug(
            f"Source {source_id} outcome={'win' if outcome.success else 'loss'} "
            f"reliability={snapshot.reliability:.3f} "
            f"adaptive_weight={snapshot.adaptive_weight:.3f}"
        )
        return snapshot

    def configure(self, performance_window: int, reliability_smoothing: float) -> None:
        """Apply new performance settings; outcome windows keep their newest entries"""
        with self._lock:
            self.reliability_smoothing = reliability_smoothing
            if performance_window != self.performance_window:
                self.performance_window = performance_window
                for state in self._sources.values():
                    state.recent_outcomes = deque(
                        state.recent_outcomes, maxlen=performance_window
                    )

    def snapshot(self) -> Dict[str, SignalSource]:
        """Consistent copy of the whole table"""
        with self._lock:
            return {sid: state.to_model() for sid, state in self._sources.items()}

    def list_sources(self) -> List[SignalSource]:
        return list(self.snapshot().values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)

    def __contains__(self, source_id: object) -> bool:
        with self._lock:
            return source_id in self._sources
