import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from contracts.aggregated_signal import AggregatedSignal, SubmissionResult
from contracts.market_context import MarketContext, MarketRegime
from contracts.signal import InputSignal
from contracts.source import SignalOutcome, SignalSource, SourceCategory
from shared.config import Settings
from shared.constants import APP_DESCRIPTION, APP_NAME, APP_VERSION
from shared.logger import configure_logging
from signalengine.defaults import get_default_parameters, get_parameter_schema
from signalengine.errors import ConfigurationError, InputValidationError
from signalengine.signal_aggregator import SignalAggregator

logger = logging.getLogger(__name__)

# Global aggregator instance (created at startup unless injected)
_aggregator: Optional[SignalAggregator] = None


def set_aggregator(aggregator: Optional[SignalAggregator]) -> None:
    """Set the global aggregator instance."""
    global _aggregator
    _aggregator = aggregator


def get_aggregator() -> SignalAggregator:
    """Get the global aggregator instance."""
    if _aggregator is None:
        raise HTTPException(status_code=500, detail="Signal aggregator not initialized")
    return _aggregator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager"""
    settings = Settings()
    configure_logging(settings)
    logger.info(f"Starting {APP_NAME}...")

    if _aggregator is None:
        settings.validate_required_settings()
        set_aggregator(SignalAggregator(settings))

    aggregator = get_aggregator()
    await aggregator.start()
    logger.info(
        f"Aggregator ready (method={aggregator.method.value}, "
        f"sources={len(aggregator.registry)})"
    )

    yield

    logger.info(f"Shutting down {APP_NAME}...")
    try:
        await aggregator.stop()
    except Exception as e:
        logger.error(f"Shutdown error: {e}")
    logger.info(f"{APP_NAME} shut down complete")


# Initialize FastAPI app
app = FastAPI(
    title=f"{APP_NAME} API",
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(InputValidationError)
async def input_validation_handler(
    request: Request, exc: InputValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422, content={"detail": str(exc), "reason": exc.reason}
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"detail": str(exc), "errors": exc.errors}
    )


# =============================================================================
# Request/Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response model"""

    status: str
    version: str
    timestamp: str
    components: dict[str, Any]


class SourceRegistration(BaseModel):
    """Request model for registering a source"""

    name: str = Field(..., description="Display name")
    category: SourceCategory = Field(..., description="Analyzer category")
    initial_weight: float = Field(..., description="Static weight (>= 0)")
    source_id: Optional[str] = Field(None, description="Explicit id (optional)")


class PerformanceReport(BaseModel):
    """Request model for a source performance outcome"""

    success: bool = Field(..., description="Whether the source's call was right")
    pnl: Optional[float] = Field(None, description="Realised PnL, informational")


class MarketContextUpdate(BaseModel):
    """Request model for the market snapshot"""

    volatility: float = Field(1.0, description="Volatility ratio (1.0 = normal)")
    trend_direction: int = Field(0, description="Trend on the -2..2 scale")
    risk_sentiment: float = Field(0.0, description="Risk sentiment in [-1, 1]")
    regime: MarketRegime = Field(MarketRegime.UNKNOWN, description="Regime label")


class ConfigUpdateRequest(BaseModel):
    """Request model for updating aggregation parameters"""

    parameters: Dict[str, Any] = Field(..., description="Parameters to update")
    validate_only: bool = Field(
        False, description="If true, only validate parameters without applying"
    )


# =============================================================================
# Service endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    """Service information"""
    aggregator = get_aggregator()
    return {
        "service": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "environment": aggregator.settings.environment,
        "method": aggregator.method.value,
    }


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint"""
    try:
        aggregator = get_aggregator()
        stats = aggregator.get_statistics()
        components = {
            "aggregator": {
                "status": "healthy",
                "method": aggregator.method.value,
                "tick_running": aggregator.running,
            },
            "sources": {
                "status": "healthy",
                "registered": stats["sources"],
                "active": stats["active_sources"],
            },
            "audit_logger": {"enabled": aggregator.audit.enabled},
        }
        return HealthResponse(
            status="healthy",
            version=APP_VERSION,
            timestamp=datetime.now(timezone.utc).isoformat(),
            components=components,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Health check error: {e}")
        raise HTTPException(status_code=500, detail=f"Health check failed: {e}")


@app.get("/live")
async def liveness_check() -> dict[str, Any]:
    """Liveness probe"""
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/metrics")
async def metrics() -> PlainTextResponse:
    """Get Prometheus metrics"""
    from prometheus_client import generate_latest

    if not get_aggregator().settings.prometheus_enabled:
        raise HTTPException(status_code=404, detail="Metrics are disabled")

    return PlainTextResponse(generate_latest())


# =============================================================================
# Sources
# =============================================================================


@app.post("/sources", response_model=SignalSource, status_code=201)
async def register_source(request: SourceRegistration) -> SignalSource:
    """Register a signal source"""
    aggregator = get_aggregator()
    source_id = aggregator.register_source(
        request.name, request.category, request.initial_weight, request.source_id
    )
    return aggregator.registry.get(source_id)


@app.get("/sources", response_model=List[SignalSource])
async def list_sources() -> List[SignalSource]:
    """List registered sources"""
    return get_aggregator().registry.list_sources()


def _unknown_source(source_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Unknown source: {source_id}")


@app.post("/sources/{source_id}/deactivate", response_model=SignalSource)
async def deactivate_source(source_id: str) -> SignalSource:
    """Exclude a source's signals from aggregation"""
    aggregator = get_aggregator()
    if source_id not in aggregator.registry:
        raise _unknown_source(source_id)
    return aggregator.deactivate_source(source_id)


@app.post("/sources/{source_id}/activate", response_model=SignalSource)
async def activate_source(source_id: str) -> SignalSource:
    """Re-include a deactivated source"""
    aggregator = get_aggregator()
    if source_id not in aggregator.registry:
        raise _unknown_source(source_id)
    return aggregator.activate_source(source_id)


@app.post("/sources/{source_id}/performance", response_model=SignalSource)
async def report_performance(source_id: str, report: PerformanceReport) -> SignalSource:
    """Report a performance outcome for a source"""
    aggregator = get_aggregator()
    if source_id not in aggregator.registry:
        raise _unknown_source(source_id)
    outcome = SignalOutcome(
        success=report.success, pnl=report.pnl, timestamp=aggregator.clock()
    )
    return aggregator.report_source_performance(source_id, outcome)


# =============================================================================
# Signals
# =============================================================================


@app.post("/signals", response_model=SubmissionResult)
async def submit_signal(signal: InputSignal) -> SubmissionResult:
    """Submit a signal; malformed signals and unknown sources return 422"""
    aggregator = get_aggregator()
    aggregated = await aggregator.submit(signal)
    return SubmissionResult(
        status="accepted", signal_id=signal.id, aggregated=aggregated
    )


@app.put("/market-context", response_model=MarketContext)
async def update_market_context(update: MarketContextUpdate) -> MarketContext:
    """Replace the market snapshot used for confidence adjustment"""
    return get_aggregator().update_market_context(
        volatility=update.volatility,
        trend_direction=update.trend_direction,
        risk_sentiment=update.risk_sentiment,
        regime=update.regime,
    )


@app.get("/signals/active", response_model=List[AggregatedSignal])
async def active_signals() -> List[AggregatedSignal]:
    """Actionable composites across all instruments"""
    return get_aggregator().get_active_aggregated_signals()


@app.get("/signals/{instrument}", response_model=AggregatedSignal)
async def latest_signal(instrument: str) -> AggregatedSignal:
    """Latest accepted composite for an instrument"""
    aggregated = get_aggregator().get_aggregated_signal(instrument)
    if aggregated is None:
        raise HTTPException(
            status_code=404, detail=f"No composite for instrument {instrument}"
        )
    return aggregated


@app.get("/signals/{instrument}/history", response_model=List[AggregatedSignal])
async def signal_history(instrument: str, limit: int = 20) -> List[AggregatedSignal]:
    """Recent composites for an instrument, newest first"""
    return get_aggregator().get_recent_aggregated_signals(instrument, limit)


@app.get("/report")
async def aggregation_report() -> dict[str, Any]:
    """Aggregation report for monitoring"""
    return get_aggregator().generate_aggregation_report().model_dump(mode="json")


# =============================================================================
# Configuration
# =============================================================================


@app.get("/config")
async def get_config() -> dict[str, Any]:
    """Active aggregation parameters"""
    return {"parameters": dict(get_aggregator().parameters)}


@app.get("/config/schema")
async def get_config_schema() -> dict[str, Any]:
    """Parameter schema with validation rules"""
    return {"schema": get_parameter_schema()}


@app.get("/config/defaults")
async def get_config_defaults() -> dict[str, Any]:
    """Documented default values of every aggregation parameter"""
    return {"parameters": get_default_parameters()}


@app.put("/config")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Validate and apply aggregation parameter overrides"""
    aggregator = get_aggregator()
    if request.validate_only:
        errors = aggregator.validate_overrides(request.parameters)
        if errors:
            raise ConfigurationError(errors)
        return {"validation": "passed", "parameters": request.parameters}

    parameters = aggregator.update_parameters(request.parameters)
    return {"validation": "passed", "parameters": parameters}


if __name__ == "__main__":
    import uvicorn

    _settings = Settings()
    uvicorn.run(
        "signalengine.api:app",
        host=_settings.api_host,
        port=_settings.api_port,
        reload=_settings.is_development,
        log_level=_settings.log_level.lower(),
    )
