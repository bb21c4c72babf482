from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class MarketRegime(str, Enum):
    """Regime label supplied by the market-analysis collaborator"""

    TRENDING = "trending"
    RANGING = "ranging"
    VOLATILE = "volatile"
    QUIET = "quiet"
    UNKNOWN = "unknown"


class VolatilityRegime(str, Enum):
    """Volatility bucket derived from the volatility ratio"""

    VERY_LOW = "very_low"
    NORMAL = "normal"
    HIGH = "high"


class MarketContext(BaseModel):
    """Externally computed market snapshot"""

    volatility: float = Field(
        1.0, ge=0, description="Current volatility relative to normal (1.0 = normal)"
    )
    trend_direction: int = Field(
        0, ge=-2, le=2, description="Prevailing trend on the -2..2 scale"
    )
    risk_sentiment: float = Field(
        0.0, ge=-1, le=1, description="Risk-on (+) / risk-off (-) reading"
    )
    regime: MarketRegime = Field(MarketRegime.UNKNOWN, description="Regime label")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    def volatility_regime(
        self, high_threshold: float, low_threshold: float
    ) -> VolatilityRegime:
        if self.volatility >= high_threshold:
            return VolatilityRegime.HIGH
        if self.volatility <= low_threshold:
            return VolatilityRegime.VERY_LOW
        return VolatilityRegime.NORMAL
