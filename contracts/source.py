"""
Signal Source Models.

A source is one upstream analyzer (an indicator suite, a fundamental model,
a sentiment feed, a third-party vendor). Its static weight is configured at
registration; its adaptive weight and reliability follow the performance
outcomes reported back to the engine.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SourceCategory(str, Enum):
    """Kinds of upstream analyzers"""

    TECHNICAL = "technical"
    FUNDAMENTAL = "fundamental"
    SENTIMENT = "sentiment"
    EXTERNAL = "external"


class SignalSource(BaseModel):
    """Snapshot of a registered source"""

    id: str = Field(..., description="Source identifier")
    name: str = Field(..., description="Display name")
    category: SourceCategory = Field(..., description="Analyzer category")

    static_weight: float = Field(..., ge=0, description="Configured weight")
    adaptive_weight: float = Field(..., ge=0, description="Performance-driven weight")
    reliability: float = Field(
        0.5, ge=0, le=1, description="Smoothed success rate of reported outcomes"
    )

    active: bool = Field(True, description="Inactive sources are ignored")
    registered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen: Optional[datetime] = Field(
        None, description="Timestamp of the last accepted signal"
    )

    # Running totals
    total_signals: int = Field(0, ge=0, description="Accepted signals")
    total_outcomes: int = Field(0, ge=0, description="Reported outcomes")
    successful_outcomes: int = Field(0, ge=0, description="Successful outcomes")
    recent_win_rate: float = Field(
        0.5, ge=0, le=1, description="Win rate over the recent outcome window"
    )

    @property
    def accuracy(self) -> float:
        """Lifetime share of successful outcomes (0 without history)"""
        if self.total_outcomes == 0:
            return 0.0
        return self.successful_outcomes / self.total_outcomes

    def effective_weight(self, adaptive: bool) -> float:
        return self.adaptive_weight if adaptive else self.static_weight


class SignalOutcome(BaseModel):
    """Performance event for a source, reported by an external collaborator"""

    success: bool = Field(..., description="Whether the source's call was right")
    pnl: Optional[float] = Field(None, description="Realised PnL, informational")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
