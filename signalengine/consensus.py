"""
Consensus & Conflict Analyzer

Pairwise agreement across the active signal set, conflict detection between
opposing sources, and the split of contributing signals into supporting and
conflicting factors.
"""

import itertools
import logging
from typing import Dict, List, Sequence, Tuple

from contracts.aggregated_signal import ConflictResolutionStrategy, SourceConflict
from contracts.signal import InputSignal, SignalDirection
from contracts.source import SignalSource

logger = logging.getLogger(__name__)


def pairwise_agreement(a: SignalDirection, b: SignalDirection) -> float:
    """1.0 same sign, 0.0 opposite signs, 0.5 when either side is neutral"""
    sign_a, sign_b = SignalDirection(a).sign, SignalDirection(b).sign
    if sign_a == 0 or sign_b == 0:
        return 0.5
    return 1.0 if sign_a == sign_b else 0.0


class ConsensusAnalyzer:
    """Agreement and conflict analysis over one instrument's active signals"""

    def calculate_consensus(self, signals: Sequence[InputSignal]) -> float:
        """Mean pairwise agreement; 1.0 with fewer than two signals"""
        if len(signals) < 2:
            return 1.0
        pairs = list(itertools.combinations(signals, 2))
        total = sum(pairwise_agreement(a.direction, b.direction) for a, b in pairs)
        return total / len(pairs)

    def detect_conflicts(self, signals: Sequence[InputSignal]) -> List[SourceConflict]:
        """Every pair of signals with strictly opposite direction signs"""
        conflicts = []
        for a, b in itertools.combinations(signals, 2):
            if a.direction.sign * b.direction.sign >= 0:
                continue
            mean_confidence = (a.confidence + b.confidence) / 2
            mean_magnitude = (abs(a.direction) + abs(b.direction)) / 2
            severity = min(1.0, max(0.0, mean_confidence * mean_magnitude / 2))
            conflicts.append(
                SourceConflict(
                    source_a=a.source_id,
                    source_b=b.source_id,
                    direction_a=a.direction,
                    direction_b=b.direction,
                    severity=severity,
                )
            )
        return conflicts

    def count_directions(self, signals: Sequence[InputSignal]) -> Tuple[int, int, int]:
        """(bullish, bearish, neutral)"""
        bullish = sum(1 for s in signals if s.direction.sign > 0)
        bearish = sum(1 for s in signals if s.direction.sign < 0)
        return bullish, bearish, len(signals) - bullish - bearish

    def split_factors(
        self,
        signals: Sequence[InputSignal],
        direction: SignalDirection,
        sources: Dict[str, SignalSource],
    ) -> Tuple[List[str], List[str]]:
        """Human-readable supporting and conflicting factors"""
        supporting: List[str] = []
        conflicting: List[str] = []
        composite_sign = SignalDirection(direction).sign

        for signal in signals:
            label = self._describe(signal, sources.get(signal.source_id))
            sign = signal.direction.sign
            if composite_sign == 0:
                (supporting if sign == 0 else conflicting).append(label)
            elif sign == composite_sign:
                supporting.append(label)
            elif sign == -composite_sign:
                conflicting.append(label)
        return supporting, conflicting

    @staticmethod
    def _describe(signal: InputSignal, source: SignalSource | None) -> str:
        name = source.name if source else signal.source_id
        category = source.category.value if source else "unknown"
        text = f"{name} ({category}): {signal.direction.name}"
        if signal.reason:
            text += f" - {signal.reason}"
        return text

    def apply_resolution(
        self,
        signals: List[InputSignal],
        strategy: ConflictResolutionStrategy,
        weights: Dict[str, float],
    ) -> List[InputSignal]:
        """Pre-aggregation filtering for the strongest_wins strategy"""
        if strategy != ConflictResolutionStrategy.STRONGEST_WINS or len(signals) < 2:
            return signals

        def power(s: InputSignal) -> float:
            return weights.get(s.source_id, 0.0) * s.confidence * s.strength

        directional = [s for s in signals if s.direction.sign != 0]
        if not directional:
            return signals
        strongest = max(directional, key=power)
        kept = [s for s in signals if s.direction.sign != -strongest.direction.sign]
        if len(kept) != len(signals):
            logger.debug(
                f"strongest_wins kept {len(kept)}/{len(signals)} signals "
                f"(strongest: {strongest.source_id} {strongest.direction.name})"
            )
        return kept

    def should_hold(
        self,
        conflicts: Sequence[SourceConflict],
        strategy: ConflictResolutionStrategy,
        max_severity: float,
    ) -> bool:
        """Whether the hold strategy forces a neutral composite"""
        if strategy != ConflictResolutionStrategy.HOLD:
            return False
        return any(c.severity >= max_severity for c in conflicts)
