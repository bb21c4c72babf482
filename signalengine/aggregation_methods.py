"""
Aggregation Methods - interchangeable algorithms combining active signals

Every method consumes the same weighted input set and returns a
``MethodResult``. Methods are looked up through ``STRATEGY_REGISTRY`` so a
new algorithm only needs a ``@register_strategy`` class.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Type

from contracts.aggregated_signal import AggregationMethod
from contracts.signal import InputSignal, SignalDirection


@dataclass(frozen=True)
class WeightedSignal:
    """An active signal with the weights resolved for one aggregation pass"""

    signal: InputSignal
    source_weight: float
    decay: float = 1.0
    win_rate: float = 0.5

    @property
    def confidence_weight(self) -> float:
        return self.source_weight * self.signal.confidence * self.decay

    @property
    def performance_weight(self) -> float:
        return self.source_weight * self.win_rate * self.decay


@dataclass(frozen=True)
class MethodResult:
    score: float
    direction: SignalDirection
    strength: float
    confidence: float


NEUTRAL_RESULT = MethodResult(0.0, SignalDirection.NEUTRAL, 0.0, 0.0)


def time_decay(age_minutes: float, validity_minutes: float) -> float:
    """exp(-age / (validity / 2)); half the validity window is the decay constant"""
    half_window = validity_minutes / 2.0
    if half_window <= 0:
        return 1.0 if age_minutes <= 0 else 0.0
    return math.exp(-max(0.0, age_minutes) / half_window)


def clamp_direction(score: float) -> SignalDirection:
    """Round half away from zero, clamp to [-2, 2]"""
    magnitude = math.floor(abs(score) + 0.5)
    value = int(math.copysign(magnitude, score)) if magnitude else 0
    return SignalDirection(max(-2, min(2, value)))


def _weighted_mean(pairs: Iterable[tuple[float, float]]) -> Optional[float]:
    total_weight = 0.0
    total = 0.0
    for weight, value in pairs:
        total_weight += weight
        total += weight * value
    if total_weight <= 0:
        return None
    return total / total_weight


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


class AggregationStrategy(ABC):
    """Strategy interface for aggregation algorithms"""

    method: AggregationMethod

    @abstractmethod
    def aggregate(self, inputs: Sequence[WeightedSignal]) -> MethodResult:
        """Combine the weighted inputs into one result"""


STRATEGY_REGISTRY: Dict[AggregationMethod, Type[AggregationStrategy]] = {}


def register_strategy(
    method: AggregationMethod,
) -> Callable[[Type[AggregationStrategy]], Type[AggregationStrategy]]:
    def decorator(cls: Type[AggregationStrategy]) -> Type[AggregationStrategy]:
        cls.method = method
        STRATEGY_REGISTRY[method] = cls
        return cls

    return decorator


class _WeightedAverageStrategy(AggregationStrategy):
    """Shared weighted-mean logic, parameterised by the per-signal weight"""

    def weight(self, item: WeightedSignal) -> float:
        raise NotImplementedError

    def aggregate(self, inputs: Sequence[WeightedSignal]) -> MethodResult:
        weighted = [(self.weight(i), i) for i in inputs]
        score = _weighted_mean((w, float(i.signal.direction)) for w, i in weighted)
        if score is None:
            return NEUTRAL_RESULT
        strength = _weighted_mean((w, i.signal.strength) for w, i in weighted) or 0.0
        confidence = (
            _weighted_mean((w, i.signal.confidence) for w, i in weighted) or 0.0
        )
        return MethodResult(
            score=score,
            direction=clamp_direction(score),
            strength=_clamp01(strength),
            confidence=_clamp01(confidence),
        )


@register_strategy(AggregationMethod.CONFIDENCE_WEIGHTED)
class ConfidenceWeightedStrategy(_WeightedAverageStrategy):
    """Weight = source weight x confidence x time decay"""

    def __init__(self, **_: Any) -> None:
        pass

    def weight(self, item: WeightedSignal) -> float:
        return item.confidence_weight


@register_strategy(AggregationMethod.PERFORMANCE_WEIGHTED)
class PerformanceWeightedStrategy(_WeightedAverageStrategy):
    """Weight = source weight x recent win rate x time decay"""

    def __init__(self, **_: Any) -> None:
        pass

    def weight(self, item: WeightedSignal) -> float:
        return item.performance_weight


@register_strategy(AggregationMethod.CONSENSUS)
class ConsensusVotingStrategy(AggregationStrategy):
    """Confidence-weighted majority vote with a conflict tolerance band"""

    def __init__(self, conflict_tolerance: float = 0.2, **_: Any) -> None:
        self.conflict_tolerance = conflict_tolerance

    def aggregate(self, inputs: Sequence[WeightedSignal]) -> MethodResult:
        bull = sum(
            i.confidence_weight * abs(i.signal.direction)
            for i in inputs
            if i.signal.direction.sign > 0
        )
        bear = sum(
            i.confidence_weight * abs(i.signal.direction)
            for i in inputs
            if i.signal.direction.sign < 0
        )
        total = bull + bear

        if total <= 0 or abs(bull - bear) <= self.conflict_tolerance * total:
            strength = _weighted_mean(
                (i.confidence_weight, i.signal.strength) for i in inputs
            )
            confidence = _weighted_mean(
                (i.confidence_weight, i.signal.confidence) for i in inputs
            )
            if strength is None:
                return NEUTRAL_RESULT
            return MethodResult(
                score=0.0,
                direction=SignalDirection.NEUTRAL,
                strength=_clamp01(strength),
                confidence=_clamp01((confidence or 0.0) * 0.5),
            )

        sign = 1 if bull > bear else -1
        winner, loser = (bull, bear) if sign > 0 else (bear, bull)
        magnitude = 2 if winner > 2 * loser else 1
        direction = SignalDirection(sign * magnitude)

        side = [i for i in inputs if i.signal.direction.sign == sign]
        strength = _weighted_mean((i.confidence_weight, i.signal.strength) for i in side)
        confidence = _weighted_mean(
            (i.confidence_weight, i.signal.confidence) for i in side
        )
        return MethodResult(
            score=float(direction),
            direction=direction,
            strength=_clamp01(strength or 0.0),
            confidence=_clamp01((confidence or 0.0) * winner / total),
        )


@register_strategy(AggregationMethod.ENSEMBLE)
class EnsembleStrategy(AggregationStrategy):
    """Linear blend of independently computed component methods"""

    def __init__(
        self,
        ensemble_weights: Optional[Dict[str, float]] = None,
        conflict_tolerance: float = 0.2,
        **_: Any,
    ) -> None:
        weights = ensemble_weights or {
            AggregationMethod.CONFIDENCE_WEIGHTED.value: 0.4,
            AggregationMethod.CONSENSUS.value: 0.3,
            AggregationMethod.PERFORMANCE_WEIGHTED.value: 0.3,
        }
        total = sum(weights.values())
        if total <= 0:
            raise ValueError("ensemble weights must have a positive sum")

        self.components = []
        for name, weight in weights.items():
            method = AggregationMethod(name)
            if method == AggregationMethod.ENSEMBLE:
                raise ValueError("ensemble cannot contain itself")
            strategy = STRATEGY_REGISTRY[method](conflict_tolerance=conflict_tolerance)
            self.components.append((weight / total, strategy))

    def aggregate(self, inputs: Sequence[WeightedSignal]) -> MethodResult:
        score = strength = confidence = 0.0
        for weight, strategy in self.components:
            result = strategy.aggregate(inputs)
            score += weight * result.score
            strength += weight * result.strength
            confidence += weight * result.confidence
        return MethodResult(
            score=score,
            direction=clamp_direction(score),
            strength=_clamp01(strength),
            confidence=_clamp01(confidence),
        )


def build_strategy(
    method: AggregationMethod | str, parameters: Dict[str, Any]
) -> AggregationStrategy:
    """Instantiate the registered strategy for ``method``"""
    method = AggregationMethod(method)
    try:
        strategy_cls = STRATEGY_REGISTRY[method]
    except KeyError:
        raise ValueError(f"No strategy registered for {method.value}") from None
    return strategy_cls(
        conflict_tolerance=parameters.get("conflict_tolerance", 0.2),
        ensemble_weights=parameters.get("ensemble_weights"),
    )
