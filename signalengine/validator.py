"""
Validation gate and quality scoring for candidate composites.
"""

import logging
import math
from typing import List, Optional, Tuple

from shared.constants import (
    QUALITY_RISK_REWARD_CAP,
    QUALITY_SIGNAL_COUNT_CAP,
    QUALITY_WEIGHT_CONFIDENCE,
    QUALITY_WEIGHT_CONSENSUS,
    QUALITY_WEIGHT_RISK_REWARD,
    QUALITY_WEIGHT_SIGNAL_COUNT,
    QUALITY_WEIGHT_STRENGTH,
)

logger = logging.getLogger(__name__)

# Absolute confidence floor regardless of configuration
CONFIDENCE_FLOOR = 0.3


class SignalValidator:
    """Threshold checks a composite must pass before it is stored"""

    def __init__(
        self,
        min_signal_strength: float = 0.5,
        min_consensus: float = 0.6,
        min_confidence: float = 0.3,
        min_risk_reward: float = 1.0,
    ) -> None:
        self.min_signal_strength = min_signal_strength
        self.min_consensus = min_consensus
        self.min_confidence = max(CONFIDENCE_FLOOR, min_confidence)
        self.min_risk_reward = min_risk_reward

    def validate(
        self,
        strength: float,
        confidence: float,
        consensus: float,
        entry_price: float,
        stop_loss: float,
        take_profit: float,
        risk_reward: Optional[float],
    ) -> Tuple[bool, List[str]]:
        """Returns (passed, failed checks)"""
        failures: List[str] = []

        if strength < self.min_signal_strength:
            failures.append(
                f"strength {strength:.3f} below minimum {self.min_signal_strength}"
            )
        if consensus < self.min_consensus:
            failures.append(
                f"consensus {consensus:.3f} below minimum {self.min_consensus}"
            )
        if confidence < self.min_confidence:
            failures.append(
                f"confidence {confidence:.3f} below minimum {self.min_confidence}"
            )
        levels = (entry_price, stop_loss, take_profit)
        if not all(math.isfinite(level) and level > 0 for level in levels):
            failures.append("trade levels must be positive")
        if risk_reward is None or not math.isfinite(risk_reward):
            failures.append("risk-reward undefined")
        elif risk_reward < self.min_risk_reward:
            failures.append(
                f"risk-reward {risk_reward:.2f} below minimum {self.min_risk_reward}"
            )

        return not failures, failures

    @staticmethod
    def quality_score(
        strength: float,
        confidence: float,
        consensus: float,
        risk_reward: Optional[float],
        signal_count: int,
        volatility_bonus: float = 0.0,
    ) -> float:
        rr_component = 0.0
        if risk_reward is not None and math.isfinite(risk_reward) and risk_reward > 0:
            rr_component = min(1.0, risk_reward / QUALITY_RISK_REWARD_CAP)

        score = (
            QUALITY_WEIGHT_STRENGTH * strength
            + QUALITY_WEIGHT_CONFIDENCE * confidence
            + QUALITY_WEIGHT_CONSENSUS * consensus
            + QUALITY_WEIGHT_RISK_REWARD * rr_component
            + QUALITY_WEIGHT_SIGNAL_COUNT
            * min(1.0, signal_count / QUALITY_SIGNAL_COUNT_CAP)
            + volatility_bonus
        )
        return min(100.0, max(0.0, score))
