"""
Market Context Adjuster

Scales composite confidence by the externally supplied market snapshot.
"""

import logging
from typing import Optional

from contracts.market_context import MarketContext, VolatilityRegime
from contracts.signal import SignalDirection
from shared.constants import (
    HIGH_VOLATILITY_CONFIDENCE_FACTOR,
    LOW_VOLATILITY_CONFIDENCE_FACTOR,
    QUALITY_VOLATILITY_ADJUSTMENT,
    RISK_SENTIMENT_BONUS,
    RISK_SENTIMENT_THRESHOLD,
    TREND_ALIGNMENT_BONUS,
)

logger = logging.getLogger(__name__)


class MarketContextAdjuster:
    """Volatility, trend and risk-sentiment adjustments"""

    def __init__(
        self, high_volatility_threshold: float = 1.5, low_volatility_threshold: float = 0.5
    ) -> None:
        self.high_volatility_threshold = high_volatility_threshold
        self.low_volatility_threshold = low_volatility_threshold

    def regime(self, context: Optional[MarketContext]) -> Optional[VolatilityRegime]:
        if context is None:
            return None
        return context.volatility_regime(
            self.high_volatility_threshold, self.low_volatility_threshold
        )

    def adjust(
        self,
        confidence: float,
        direction: SignalDirection,
        context: Optional[MarketContext],
    ) -> float:
        """Adjusted confidence, clamped to [0, 1]; unchanged without a snapshot"""
        if context is None:
            return confidence

        adjusted = confidence
        regime = self.regime(context)
        if regime == VolatilityRegime.HIGH:
            adjusted *= HIGH_VOLATILITY_CONFIDENCE_FACTOR
        elif regime == VolatilityRegime.VERY_LOW:
            adjusted *= LOW_VOLATILITY_CONFIDENCE_FACTOR

        sign = SignalDirection(direction).sign
        if sign != 0:
            trend_sign = (context.trend_direction > 0) - (context.trend_direction < 0)
            if trend_sign == sign:
                adjusted *= TREND_ALIGNMENT_BONUS

            sentiment = context.risk_sentiment
            if abs(sentiment) > RISK_SENTIMENT_THRESHOLD and (sentiment > 0) == (sign > 0):
                adjusted *= RISK_SENTIMENT_BONUS

        adjusted = min(1.0, max(0.0, adjusted))
        if adjusted != confidence:
            logger.debug(
                f"Market context adjusted confidence {confidence:.3f} -> {adjusted:.3f} "
                f"(volatility={context.volatility}, regime={regime.value})"
            )
        return adjusted

    def volatility_bonus(self, context: Optional[MarketContext]) -> float:
        """Quality-score bonus: +5 very low volatility, -5 high, 0 otherwise"""
        regime = self.regime(context)
        if regime == VolatilityRegime.VERY_LOW:
            return QUALITY_VOLATILITY_ADJUSTMENT
        if regime == VolatilityRegime.HIGH:
            return -QUALITY_VOLATILITY_ADJUSTMENT
        return 0.0
