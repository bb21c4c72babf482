"""
Signal Aggregator - Multi-source signal consensus and composite generation

This module accepts directional signals from registered sources, keeps a
bounded time-windowed set per instrument, and combines the active set into a
single quality-scored recommendation using a configurable aggregation method.
Source weights adapt to the performance outcomes reported back to the engine.
"""

import asyncio
import logging
import math
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from contracts.aggregated_signal import (
    AggregatedSignal,
    AggregationMethod,
    AggregationReport,
    ConflictResolutionStrategy,
    SubmissionResult,
)
from contracts.market_context import MarketContext, MarketRegime
from contracts.signal import InputSignal, SignalDirection
from contracts.source import SignalOutcome, SignalSource, SourceCategory
from shared.audit import AuditLogger
from shared.config import Settings
from shared.constants import REPORT_RECENT_SIGNALS
from signalengine import metrics
from signalengine.aggregation_methods import (
    WeightedSignal,
    build_strategy,
    time_decay,
)
from signalengine.consensus import ConsensusAnalyzer
from signalengine.defaults import (
    get_default_parameters,
    merge_parameters,
    validate_parameters,
)
from signalengine.errors import ConfigurationError, InputValidationError
from signalengine.market_context import MarketContextAdjuster
from signalengine.signal_store import AggregatedSignalStore, InputSignalStore
from signalengine.source_registry import SourceRegistry
from signalengine.trade_parameters import TradeParameterSynthesizer
from signalengine.validator import SignalValidator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SignalAggregator:
    """Aggregates signals from multiple sources into per-instrument composites"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[SourceRegistry] = None,
        clock: Optional[Clock] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.settings = settings or Settings()
        params = merge_parameters(
            get_default_parameters(), self.settings.aggregation_parameters()
        )
        is_valid, errors = validate_parameters(params)
        if not is_valid:
            raise ConfigurationError(errors)

        self.clock: Clock = clock or utc_now
        self.audit = audit or AuditLogger(self.settings)
        self.registry = registry or SourceRegistry(
            performance_window=params["performance_window"],
            reliability_smoothing=params["reliability_smoothing"],
        )

        self.signal_store = InputSignalStore(params["max_signals_per_instrument"])
        self.aggregated_store = AggregatedSignalStore(params["max_aggregated_history"])
        self.consensus = ConsensusAnalyzer()
        self.market_context: Optional[MarketContext] = None

        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._running = False
        self._tick_task: Optional[asyncio.Task] = None

        self.stats: Dict[str, int] = {
            "signals_received": 0,
            "signals_rejected": 0,
            "signals_evicted": 0,
            "aggregations": 0,
            "composites_accepted": 0,
            "composites_rejected": 0,
            "empty_aggregations": 0,
            "outcomes_reported": 0,
        }

        self._apply_parameters(params)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _apply_parameters(self, params: Dict[str, Any]) -> None:
        """Build every parameter-dependent component, then swap them in"""
        strategy = build_strategy(params["aggregation_method"], params)
        adjuster = MarketContextAdjuster(
            high_volatility_threshold=params["high_volatility_threshold"],
            low_volatility_threshold=params["low_volatility_threshold"],
        )
        synthesizer = TradeParameterSynthesizer(
            base_risk_pct=params["base_risk_pct"],
            min_position_size=params["min_position_size"],
            max_position_size=params["max_position_size"],
        )
        validator = SignalValidator(
            min_signal_strength=params["min_signal_strength"],
            min_consensus=params["min_consensus"],
            min_confidence=params["min_confidence"],
            min_risk_reward=params["min_risk_reward"],
        )

        self.parameters = params
        self.method = AggregationMethod(params["aggregation_method"])
        self.conflict_resolution = ConflictResolutionStrategy(
            params["conflict_resolution"]
        )
        self.strategy = strategy
        self.adjuster = adjuster
        self.synthesizer = synthesizer
        self.validator = validator

    def validate_overrides(self, overrides: Dict[str, Any]) -> List[str]:
        """Errors the overrides would produce against the active parameters"""
        is_valid, errors = validate_parameters(overrides)
        if is_valid:
            is_valid, errors = validate_parameters(
                merge_parameters(self.parameters, overrides)
            )
        return errors

    def update_parameters(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and apply runtime overrides; the old config stays on error"""
        errors = self.validate_overrides(overrides)
        if errors:
            logger.warning(f"Rejected parameter update: {errors}")
            raise ConfigurationError(errors)

        merged = merge_parameters(self.parameters, overrides)
        self._apply_parameters(merged)
        self.settings = self.settings.model_copy(update=overrides)
        self.registry.configure(
            merged["performance_window"], merged["reliability_smoothing"]
        )
        evicted = self.signal_store.resize(merged["max_signals_per_instrument"])
        self.stats["signals_evicted"] += evicted
        self.aggregated_store.resize(merged["max_aggregated_history"])

        logger.info(f"Aggregation parameters updated: {sorted(overrides)}")
        return dict(merged)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def register_source(
        self,
        name: str,
        category: SourceCategory | str,
        initial_weight: float,
        source_id: Optional[str] = None,
    ) -> str:
        sid = self.registry.register(name, category, initial_weight, source_id)
        source = self.registry.get(sid)
        self._publish_source(source, "registered")
        return sid

    def deactivate_source(self, source_id: str) -> SignalSource:
        source = self.registry.set_active(source_id, False)
        self._publish_source(source, "deactivated")
        return source

    def activate_source(self, source_id: str) -> SignalSource:
        source = self.registry.set_active(source_id, True)
        self._publish_source(source, "activated")
        return source

    def report_source_performance(
        self, source_id: str, outcome: SignalOutcome | bool
    ) -> SignalSource:
        """Feed a performance outcome back into the source's adaptive weight"""
        if isinstance(outcome, bool):
            outcome = SignalOutcome(success=outcome, timestamp=self.clock())
        source = self.registry.record_outcome(source_id, outcome)
        self.stats["outcomes_reported"] += 1
        metrics.source_outcomes_total.labels(
            source_id=source_id, result="win" if outcome.success else "loss"
        ).inc()
        self._publish_source(source, "performance")
        return source

    def _publish_source(self, source: Optional[SignalSource], action: str) -> None:
        if source is None:
            return
        weight = source.effective_weight(self.parameters["use_adaptive_weights"])
        metrics.source_weight.labels(
            source_id=source.id, category=source.category.value
        ).set(weight if source.active else 0.0)
        self.audit.log_source(source.model_dump(mode="json"), action)

    # ------------------------------------------------------------------
    # Market context
    # ------------------------------------------------------------------

    def update_market_context(
        self,
        volatility: float = 1.0,
        trend_direction: int = 0,
        risk_sentiment: float = 0.0,
        regime: MarketRegime | str = MarketRegime.UNKNOWN,
    ) -> MarketContext:
        try:
            context = MarketContext(
                volatility=volatility,
                trend_direction=trend_direction,
                risk_sentiment=risk_sentiment,
                regime=regime,
                updated_at=self.clock(),
            )
        except ValidationError as e:
            raise InputValidationError(f"market context: {e.errors()[0]['msg']}") from e

        self.market_context = context
        logger.info(
            f"Market context updated: volatility={volatility}, "
            f"trend={trend_direction}, risk_sentiment={risk_sentiment}, "
            f"regime={context.regime.value}"
        )
        return context

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def _validate_signal(self, signal: InputSignal) -> None:
        """Validate incoming signal"""
        if not signal.instrument:
            raise InputValidationError("instrument is required", signal.id)

        if int(signal.direction) not in range(-2, 3):
            raise InputValidationError(
                f"direction must be within [-2, 2], got {signal.direction}", signal.id
            )

        if not 0 <= signal.strength <= 1:
            raise InputValidationError(
                f"strength must be within [0, 1], got {signal.strength}", signal.id
            )

        if not 0 <= signal.confidence <= 1:
            raise InputValidationError(
                f"confidence must be within [0, 1], got {signal.confidence}", signal.id
            )

        for label, price in (
            ("entry price", signal.entry_price),
            ("stop loss", signal.stop_loss),
            ("take profit", signal.take_profit),
        ):
            if not math.isfinite(price):
                raise InputValidationError(
                    f"{label} must be a finite number, got {price}", signal.id
                )

        if signal.entry_price <= 0:
            raise InputValidationError(
                f"entry price must be positive, got {signal.entry_price}", signal.id
            )

        if signal.source_id not in self.registry:
            raise InputValidationError(f"unknown source: {signal.source_id}", signal.id)

        if not self.registry.is_active(signal.source_id):
            raise InputValidationError(
                f"source is inactive: {signal.source_id}", signal.id
            )

    async def submit(self, signal: InputSignal) -> Optional[AggregatedSignal]:
        """Accept a signal and re-aggregate its instrument

        Raises InputValidationError for malformed signals or unknown/inactive
        sources. Returns the composite produced by the triggered aggregation,
        or None when nothing passed the validation gate or the signal was too
        old to fit a full queue.
        """
        try:
            self._validate_signal(signal)
        except InputValidationError as e:
            self.stats["signals_rejected"] += 1
            metrics.signals_rejected_total.labels(reason=_reason_label(e.reason)).inc()
            self.audit.log_signal(signal.model_dump(mode="json"), status="rejected")
            logger.info(f"Rejected signal {signal.id}: {e.reason}")
            raise

        evicted = self.signal_store.add(signal)
        if evicted is not None:
            self.stats["signals_evicted"] += 1
            metrics.signals_evicted_total.labels(instrument=signal.instrument).inc()
        if evicted is signal:
            self.audit.log_signal(signal.model_dump(mode="json"), status="evicted")
            logger.info(
                f"Dropped signal {signal.id}: older than every queued "
                f"{signal.instrument} signal at capacity"
            )
            return None
        self.registry.record_signal(signal.source_id, signal.timestamp)

        source = self.registry.get(signal.source_id)
        self.stats["signals_received"] += 1
        metrics.signals_received_total.labels(
            instrument=signal.instrument, category=source.category.value
        ).inc()
        self.audit.log_signal(signal.model_dump(mode="json"), status="accepted")
        logger.info(
            f"Accepted signal from {signal.source_id}: {signal.direction.name} "
            f"{signal.instrument} (strength={signal.strength}, "
            f"confidence={signal.confidence})"
        )

        return await self.aggregate(signal.instrument)

    async def process_signal(self, signal: InputSignal) -> SubmissionResult:
        """Non-raising wrapper around submit()"""
        try:
            aggregated = await self.submit(signal)
            return SubmissionResult(
                status="accepted", signal_id=signal.id, aggregated=aggregated
            )
        except InputValidationError as e:
            return SubmissionResult(
                status="rejected", signal_id=signal.id, reason=e.reason
            )
        except Exception as e:
            logger.error(f"Error processing signal: {e}")
            self.audit.log_error(str(e), context={"signal_id": signal.id})
            return SubmissionResult(status="error", signal_id=signal.id, reason=str(e))

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def aggregate(self, instrument: str) -> Optional[AggregatedSignal]:
        """Aggregate the active signals of one instrument"""
        async with self._locks[instrument]:
            return self._aggregate(instrument)

    async def aggregate_all(self) -> Dict[str, Optional[AggregatedSignal]]:
        """Re-aggregate every instrument with stored signals concurrently"""
        instruments = self.signal_store.instruments()
        results = await asyncio.gather(*(self.aggregate(i) for i in instruments))
        return dict(zip(instruments, results))

    def _aggregate(self, instrument: str) -> Optional[AggregatedSignal]:
        started = time.perf_counter()
        now = self.clock()
        params = self.parameters
        method = self.method

        sources = self.registry.snapshot()
        signals = [
            s
            for s in self.signal_store.get_active(instrument, now)
            if s.source_id in sources and sources[s.source_id].active
        ]
        metrics.active_signals.labels(instrument=instrument).set(len(signals))
        if not signals:
            self.stats["empty_aggregations"] += 1
            logger.debug(f"No active signals for {instrument}")
            return None

        adaptive = params["use_adaptive_weights"]
        weights = {
            sid: source.effective_weight(adaptive) for sid, source in sources.items()
        }
        signals = self.consensus.apply_resolution(
            signals, self.conflict_resolution, weights
        )

        weighted = [
            WeightedSignal(
                signal=s,
                source_weight=weights[s.source_id],
                decay=(
                    time_decay(s.age_minutes(now), s.validity_minutes)
                    if params["use_time_decay"]
                    else 1.0
                ),
                win_rate=sources[s.source_id].recent_win_rate,
            )
            for s in signals
        ]
        result = self.strategy.aggregate(weighted)

        consensus = self.consensus.calculate_consensus(signals)
        conflicts = self.consensus.detect_conflicts(signals)
        direction = result.direction
        if direction != SignalDirection.NEUTRAL and self.consensus.should_hold(
            conflicts, self.conflict_resolution, params["max_conflict_severity"]
        ):
            logger.info(f"Holding {instrument}: conflict severity over threshold")
            direction = SignalDirection.NEUTRAL

        context = self.market_context
        confidence = self.adjuster.adjust(result.confidence, direction, context)
        levels = self.synthesizer.synthesize(
            signals, direction, weights, confidence, consensus, context
        )
        quality = self.validator.quality_score(
            result.strength,
            confidence,
            consensus,
            levels.risk_reward,
            len(signals),
            self.adjuster.volatility_bonus(context),
        )

        self.stats["aggregations"] += 1
        metrics.aggregation_duration_seconds.labels(method=method.value).observe(
            time.perf_counter() - started
        )
        metrics.composite_quality_score.labels(instrument=instrument).observe(quality)
        metrics.composite_consensus.labels(instrument=instrument).observe(consensus)

        passed, failures = self.validator.validate(
            result.strength,
            confidence,
            consensus,
            levels.entry_price,
            levels.stop_loss,
            levels.take_profit,
            levels.risk_reward,
        )
        if not passed:
            self.stats["composites_rejected"] += 1
            metrics.aggregations_total.labels(
                instrument=instrument, method=method.value, outcome="rejected"
            ).inc()
            self.audit.log_rejection(instrument, failures)
            logger.info(f"Composite for {instrument} rejected: {'; '.join(failures)}")
            return None

        bullish, bearish, neutral = self.consensus.count_directions(signals)
        supporting, conflicting = self.consensus.split_factors(
            signals, direction, sources
        )
        aggregated = AggregatedSignal(
            instrument=instrument,
            timestamp=now,
            direction=direction,
            strength=result.strength,
            confidence=confidence,
            consensus=consensus,
            bullish_count=bullish,
            bearish_count=bearish,
            neutral_count=neutral,
            signal_count=len(signals),
            category_weights=self._category_weights(weighted, sources),
            quality_score=quality,
            entry_price=levels.entry_price,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            risk_reward=levels.risk_reward,
            position_size=levels.position_size,
            supporting_factors=supporting,
            conflicting_factors=conflicting,
            conflicts=conflicts,
            method=method,
            time_horizon_minutes=max(s.validity_minutes for s in signals),
            source_ids=sorted({s.source_id for s in signals}),
        )

        self.aggregated_store.add(aggregated)
        self.stats["composites_accepted"] += 1
        metrics.aggregations_total.labels(
            instrument=instrument, method=method.value, outcome="accepted"
        ).inc()
        self.audit.log_aggregation(aggregated.model_dump(mode="json"))
        logger.info(
            f"Composite for {instrument}: {direction.name} "
            f"(strength={aggregated.strength:.3f}, confidence={confidence:.3f}, "
            f"consensus={consensus:.3f}, quality={quality:.1f})"
        )
        return aggregated

    @staticmethod
    def _category_weights(
        weighted: List[WeightedSignal], sources: Dict[str, SignalSource]
    ) -> Dict[SourceCategory, float]:
        """Share of the total confidence weight per source category"""
        totals: Dict[SourceCategory, float] = defaultdict(float)
        for item in weighted:
            totals[sources[item.signal.source_id].category] += item.confidence_weight
        grand_total = sum(totals.values())
        if grand_total <= 0:
            return {}
        return {category: w / grand_total for category, w in totals.items()}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_aggregated_signal(self, instrument: str) -> Optional[AggregatedSignal]:
        return self.aggregated_store.latest(instrument)

    def get_active_aggregated_signals(self) -> List[AggregatedSignal]:
        """Latest composites that are non-neutral and inside their time horizon"""
        now = self.clock()
        return [a for a in self.aggregated_store.latest_all() if a.is_actionable(now)]

    def get_recent_aggregated_signals(
        self, instrument: Optional[str] = None, limit: int = REPORT_RECENT_SIGNALS
    ) -> List[AggregatedSignal]:
        return self.aggregated_store.recent(instrument, limit)

    def get_statistics(self) -> Dict[str, Any]:
        sources = self.registry.list_sources()
        return {
            **self.stats,
            "sources": len(sources),
            "active_sources": sum(1 for s in sources if s.active),
            "stored_signals": self.signal_store.count(),
            "instruments": len(self.signal_store.instruments()),
            "stored_composites": len(self.aggregated_store),
            "active_composites": len(self.get_active_aggregated_signals()),
        }

    def generate_aggregation_report(self) -> AggregationReport:
        return AggregationReport(
            generated_at=self.clock(),
            method=self.method,
            sources=self.registry.list_sources(),
            recent_signals=self.get_recent_aggregated_signals(),
            market_context=self.market_context,
            statistics=self.get_statistics(),
            parameters=dict(self.parameters),
        )

    # ------------------------------------------------------------------
    # Periodic tick
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> Dict[str, Optional[AggregatedSignal]]:
        """Prune expired input signals and re-aggregate every instrument"""
        pruned = self.signal_store.prune_expired(self.clock())
        if pruned:
            logger.debug(f"Pruned {pruned} expired signals")
        return await self.aggregate_all()

    async def start(self) -> None:
        """Start the periodic re-aggregation loop"""
        if self._running:
            return
        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.info(
            f"Signal aggregator started (tick every "
            f"{self.settings.tick_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the periodic loop"""
        self._running = False

        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        logger.info("Signal aggregator stopped")

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.settings.tick_interval_seconds)
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Aggregation tick error: {e}")
                self.audit.log_error(str(e), context={"task": "tick"})


def _reason_label(reason: str) -> str:
    """Low-cardinality metric label for an intake rejection reason"""
    return reason.split(":")[0].split(" must ")[0].strip().replace(" ", "_")
