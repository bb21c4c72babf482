import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SignalDirection(IntEnum):
    """Five-point direction scale"""

    STRONG_SELL = -2
    SELL = -1
    NEUTRAL = 0
    BUY = 1
    STRONG_BUY = 2

    @property
    def sign(self) -> int:
        """-1, 0 or 1"""
        return (self.value > 0) - (self.value < 0)


class TimeFrame(str, Enum):
    """Timeframes the upstream analyzers work on"""

    TICK = "tick"  # Real-time tick data
    MINUTE_1 = "1m"  # 1 minute
    MINUTE_5 = "5m"  # 5 minutes
    MINUTE_15 = "15m"  # 15 minutes
    MINUTE_30 = "30m"  # 30 minutes
    HOUR_1 = "1h"  # 1 hour
    HOUR_4 = "4h"  # 4 hours
    DAY_1 = "1d"  # 1 day
    WEEK_1 = "1w"  # 1 week
    MONTH_1 = "1M"  # 1 month


class RiskLevel(str, Enum):
    """Risk level declared by the originating analyzer"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MarketCondition(str, Enum):
    """Market condition the analyzer observed when emitting the signal"""

    TRENDING = "trending"
    RANGING = "ranging"
    VOLATILE = "volatile"
    UNKNOWN = "unknown"


class InputSignal(BaseModel):
    """Directional recommendation from one source for one instrument"""

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Unique identifier for this signal",
    )
    instrument: str = Field(..., min_length=1, description="Instrument (e.g., EURUSD)")
    source_id: str = Field(..., description="Registered source that produced it")

    direction: SignalDirection = Field(..., description="Direction (-2..2)")
    strength: float = Field(..., ge=0, le=1, description="Signal strength (0-1)")
    confidence: float = Field(..., ge=0, le=1, description="Signal confidence (0-1)")

    # Proposed trade levels
    entry_price: float = Field(..., description="Proposed entry price")
    stop_loss: float = Field(..., description="Proposed stop loss price")
    take_profit: float = Field(..., description="Proposed take profit price")

    timeframe: TimeFrame = Field(TimeFrame.HOUR_1, description="Originating timeframe")
    validity_minutes: int = Field(
        60, ge=0, description="Minutes the signal stays eligible for aggregation"
    )

    # Human-readable only, never used for control flow
    reason: str = Field("", description="Free-text rationale")

    risk_level: RiskLevel = Field(RiskLevel.MEDIUM, description="Declared risk level")
    market_condition: MarketCondition = Field(
        MarketCondition.UNKNOWN, description="Observed market condition"
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Signal timestamp (UTC)",
    )

    model_config = {"frozen": True}

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v: Any) -> datetime:
        """Ensure timestamp is timezone-aware"""
        if isinstance(v, str):
            v = datetime.fromisoformat(v.replace("Z", "+00:00"))
        elif isinstance(v, int | float):
            v = datetime.fromtimestamp(v, tz=timezone.utc)
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def expires_at(self) -> datetime:
        return self.timestamp + timedelta(minutes=self.validity_minutes)

    def is_active(self, now: datetime) -> bool:
        """Whether the signal is still inside its validity window"""
        return now <= self.expires_at

    def age_minutes(self, now: datetime) -> float:
        return max(0.0, (now - self.timestamp).total_seconds() / 60.0)

