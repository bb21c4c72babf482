"""
Aggregated Signal Models.

This module defines the composite recommendation the engine produces for an
instrument, together with the submission result and the aggregation report
handed to monitoring consumers.
"""

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from contracts.market_context import MarketContext
from contracts.signal import SignalDirection
from contracts.source import SignalSource, SourceCategory


class AggregationMethod(str, Enum):
    """Selectable aggregation algorithms"""

    CONFIDENCE_WEIGHTED = "confidence_weighted"
    CONSENSUS = "consensus"
    PERFORMANCE_WEIGHTED = "performance_weighted"
    ENSEMBLE = "ensemble"


class ConflictResolutionStrategy(str, Enum):
    """How opposing signals are treated before and after aggregation"""

    WEIGHTED_AVERAGE = "weighted_average"
    STRONGEST_WINS = "strongest_wins"
    HOLD = "hold"


class SourceConflict(BaseModel):
    """Two active signals pointing in opposite directions"""

    source_a: str
    source_b: str
    direction_a: SignalDirection
    direction_b: SignalDirection
    severity: float = Field(..., ge=0, le=1)


class AggregatedSignal(BaseModel):
    """Composite recommendation for one instrument"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    instrument: str = Field(..., description="Instrument")
    timestamp: datetime = Field(..., description="When the composite was computed")

    direction: SignalDirection = Field(..., description="Composite direction (-2..2)")
    strength: float = Field(..., ge=0, le=1)
    confidence: float = Field(..., ge=0, le=1)
    consensus: float = Field(..., ge=0, le=1)

    bullish_count: int = Field(0, ge=0)
    bearish_count: int = Field(0, ge=0)
    neutral_count: int = Field(0, ge=0)
    signal_count: int = Field(0, ge=0)

    category_weights: Dict[SourceCategory, float] = Field(
        default_factory=dict, description="Share of total weight per source category"
    )
    quality_score: float = Field(..., ge=0, le=100)

    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: float = Field(..., description="Reward distance / risk distance")
    position_size: float = Field(
        ..., ge=0, le=1, description="Recommended risk fraction of the account"
    )

    supporting_factors: List[str] = Field(default_factory=list)
    conflicting_factors: List[str] = Field(default_factory=list)
    conflicts: List[SourceConflict] = Field(default_factory=list)

    method: AggregationMethod
    time_horizon_minutes: int = Field(
        ..., ge=0, description="Minutes the composite stays actionable"
    )
    source_ids: List[str] = Field(default_factory=list)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "instrument": "EURUSD",
                "timestamp": "2025-10-20T10:30:00Z",
                "direction": 1,
                "strength": 0.71,
                "confidence": 0.8,
                "consensus": 0.67,
                "bullish_count": 2,
                "bearish_count": 1,
                "neutral_count": 0,
                "signal_count": 3,
                "category_weights": {"technical": 0.58, "sentiment": 0.42},
                "quality_score": 71.4,
                "entry_price": 1.1,
                "stop_loss": 1.095,
                "take_profit": 1.11,
                "risk_reward": 2.0,
                "position_size": 0.05,
                "method": "ensemble",
                "time_horizon_minutes": 60,
            }
        },
    }

    @property
    def expires_at(self) -> datetime:
        return self.timestamp + timedelta(minutes=self.time_horizon_minutes)

    def is_actionable(self, now: datetime) -> bool:
        """Non-neutral and still inside its time horizon"""
        return self.direction != SignalDirection.NEUTRAL and now <= self.expires_at


class SubmissionResult(BaseModel):
    """Outcome of handing a signal to the engine"""

    status: str = Field(..., description="accepted or rejected")
    signal_id: Optional[str] = None
    reason: Optional[str] = None
    aggregated: Optional[AggregatedSignal] = Field(
        None, description="Composite produced by the triggered aggregation"
    )

    @property
    def accepted(self) -> bool:
        return self.status == "accepted"


class AggregationReport(BaseModel):
    """Snapshot for human/monitoring consumption"""

    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    method: AggregationMethod
    sources: List[SignalSource] = Field(default_factory=list)
    recent_signals: List[AggregatedSignal] = Field(default_factory=list)
    market_context: Optional[MarketContext] = None
    statistics: Dict[str, Any] = Field(default_factory=dict)
    parameters: Dict[str, Any] = Field(default_factory=dict)
