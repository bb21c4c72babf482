"""
Signal Aggregation Engine - Centralized Constants

This module provides a central location for application constants and the
environment variables read outside of the pydantic settings object.

All modules should import constants from this file rather than defining their own.
"""

import os
from enum import Enum

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================


class LogLevel(str, Enum):
    """Logging levels"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# APPLICATION CONSTANTS
# =============================================================================

# Application Info
APP_NAME = "Signal Aggregation Engine"
APP_VERSION = "0.1.0"
APP_DESCRIPTION = (
    "Multi-source consensus aggregation of directional trading signals"
)

# =============================================================================
# MONITORING CONFIGURATION
# =============================================================================

# Prometheus
METRICS_NAMESPACE = "signalengine"

# Logging
LOG_FORMAT = os.getenv(
    "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
AUDIT_LOGGER_NAME = "signalengine.audit"


# =============================================================================
# AGGREGATION CONSTANTS
# =============================================================================

# Market-context multipliers
HIGH_VOLATILITY_CONFIDENCE_FACTOR = 0.8
LOW_VOLATILITY_CONFIDENCE_FACTOR = 1.2
TREND_ALIGNMENT_BONUS = 1.1
RISK_SENTIMENT_BONUS = 1.05
RISK_SENTIMENT_THRESHOLD = 0.5

# Position sizing nudges
HIGH_RISK_REWARD_THRESHOLD = 2.0
LOW_RISK_REWARD_THRESHOLD = 1.5
RISK_REWARD_SIZE_NUDGE = 0.2

# Quality score components (sum to 95, volatility adds +/-5)
QUALITY_WEIGHT_STRENGTH = 25.0
QUALITY_WEIGHT_CONFIDENCE = 25.0
QUALITY_WEIGHT_CONSENSUS = 20.0
QUALITY_WEIGHT_RISK_REWARD = 15.0
QUALITY_WEIGHT_SIGNAL_COUNT = 10.0
QUALITY_VOLATILITY_ADJUSTMENT = 5.0
QUALITY_RISK_REWARD_CAP = 3.0
QUALITY_SIGNAL_COUNT_CAP = 5

# Win rate assumed for a source without reported outcomes
DEFAULT_WIN_RATE = 0.5
DEFAULT_RELIABILITY = 0.5

# Recent composites included in the aggregation report
REPORT_RECENT_SIGNALS = 20

