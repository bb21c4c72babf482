"""
Trade Parameter Synthesizer

Derives entry, stop and target levels for a composite from its contributing
signals, plus the risk-reward ratio and a Kelly-style position size.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from contracts.market_context import MarketContext
from contracts.signal import InputSignal, SignalDirection
from shared.constants import (
    HIGH_RISK_REWARD_THRESHOLD,
    LOW_RISK_REWARD_THRESHOLD,
    RISK_REWARD_SIZE_NUDGE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeLevels:
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: Optional[float]
    position_size: float


def risk_reward_ratio(
    direction: SignalDirection, entry: float, stop: float, target: float
) -> Optional[float]:
    """Reward distance over risk distance; None when undefined"""
    sign = SignalDirection(direction).sign
    if sign > 0:
        risk, reward = entry - stop, target - entry
    elif sign < 0:
        risk, reward = stop - entry, entry - target
    else:
        return None
    if risk <= 0:
        return None
    return reward / risk


class TradeParameterSynthesizer:
    """Weighted trade levels and position sizing"""

    def __init__(
        self,
        base_risk_pct: float = 0.02,
        min_position_size: float = 0.01,
        max_position_size: float = 0.10,
    ) -> None:
        self.base_risk_pct = base_risk_pct
        self.min_position_size = min_position_size
        self.max_position_size = max_position_size

    def synthesize(
        self,
        signals: Sequence[InputSignal],
        direction: SignalDirection,
        weights: Dict[str, float],
        confidence: float,
        consensus: float,
        context: Optional[MarketContext] = None,
    ) -> TradeLevels:
        sign = SignalDirection(direction).sign
        aligned = [s for s in signals if sign != 0 and s.direction.sign == sign]
        basis = aligned or list(signals)

        entry = self._weighted_level(basis, weights, "entry_price")
        stop = self._weighted_level(basis, weights, "stop_loss")
        target = self._weighted_level(basis, weights, "take_profit")
        rr = risk_reward_ratio(direction, entry, stop, target)
        size = self.position_size(confidence, consensus, rr, context)

        return TradeLevels(
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            risk_reward=rr,
            position_size=size,
        )

    @staticmethod
    def _weighted_level(
        signals: Sequence[InputSignal], weights: Dict[str, float], field: str
    ) -> float:
        total_weight = 0.0
        total = 0.0
        for signal in signals:
            w = weights.get(signal.source_id, 0.0) * signal.confidence
            total_weight += w
            total += w * getattr(signal, field)
        if total_weight <= 0:
            # Zero-weight sources only: fall back to the plain mean
            if not signals:
                return 0.0
            return sum(getattr(s, field) for s in signals) / len(signals)
        return total / total_weight

    def position_size(
        self,
        confidence: float,
        consensus: float,
        risk_reward: Optional[float],
        context: Optional[MarketContext] = None,
    ) -> float:
        """base x (1 + confidence) x (1 + consensus), nudged by RR and volatility"""
        size = self.base_risk_pct * (1 + confidence) * (1 + consensus)

        if risk_reward is not None and risk_reward > HIGH_RISK_REWARD_THRESHOLD:
            size *= 1 + RISK_REWARD_SIZE_NUDGE
        elif risk_reward is None or risk_reward < LOW_RISK_REWARD_THRESHOLD:
            size *= 1 - RISK_REWARD_SIZE_NUDGE

        if context is not None and context.volatility > 0:
            size /= context.volatility

        return min(self.max_position_size, max(self.min_position_size, size))
