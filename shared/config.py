"""
Configuration settings for the Signal Aggregation Engine

Aggregation parameters left unset here fall back to the documented defaults in
signalengine/defaults.py; environment variables only carry overrides.
"""

from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import LogLevel

AGGREGATION_PARAMETER_FIELDS = (
    "aggregation_method",
    "ensemble_weights",
    "use_adaptive_weights",
    "use_time_decay",
    "conflict_tolerance",
    "conflict_resolution",
    "max_conflict_severity",
    "min_signal_strength",
    "min_consensus",
    "min_confidence",
    "min_risk_reward",
    "base_risk_pct",
    "min_position_size",
    "max_position_size",
    "high_volatility_threshold",
    "low_volatility_threshold",
    "performance_window",
    "reliability_smoothing",
    "max_signals_per_instrument",
    "max_aggregated_history",
)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Aggregation method
    aggregation_method: Optional[str] = None
    ensemble_weights: Optional[dict[str, float]] = None
    use_adaptive_weights: Optional[bool] = None
    use_time_decay: Optional[bool] = None

    # Conflict handling
    conflict_tolerance: Optional[float] = None
    conflict_resolution: Optional[str] = None
    max_conflict_severity: Optional[float] = None

    # Validation gate
    min_signal_strength: Optional[float] = None
    min_consensus: Optional[float] = None
    min_confidence: Optional[float] = None
    min_risk_reward: Optional[float] = None

    # Position sizing
    base_risk_pct: Optional[float] = None
    min_position_size: Optional[float] = None
    max_position_size: Optional[float] = None

    # Market context
    high_volatility_threshold: Optional[float] = None
    low_volatility_threshold: Optional[float] = None

    # Source performance
    performance_window: Optional[int] = None
    reliability_smoothing: Optional[float] = None

    # Capacities
    max_signals_per_instrument: Optional[int] = None
    max_aggregated_history: Optional[int] = None

    # Periodic re-aggregation
    tick_interval_seconds: int = 60

    # Monitoring Configuration
    prometheus_enabled: bool = True
    audit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    def aggregation_parameters(self) -> dict[str, Any]:
        """Aggregation parameters overridden by the environment"""
        params = {
            name: getattr(self, name)
            for name in AGGREGATION_PARAMETER_FIELDS
            if getattr(self, name) is not None
        }
        if "ensemble_weights" in params:
            params["ensemble_weights"] = dict(params["ensemble_weights"])
        return params

    def validate_required_settings(self) -> None:
        """Validate that required settings are present"""
        if self.log_level.upper() not in LogLevel.__members__:
            raise ValueError(f"LOG_LEVEL must be a logging level, got {self.log_level}")
        if self.tick_interval_seconds <= 0:
            raise ValueError("TICK_INTERVAL_SECONDS must be positive")

