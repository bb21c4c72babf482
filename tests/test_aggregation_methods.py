"""
Tests for signalengine/aggregation_methods.py
"""

import math
import random

import pytest

from contracts.aggregated_signal import AggregationMethod
from contracts.signal import SignalDirection
from signalengine.aggregation_methods import (
    STRATEGY_REGISTRY,
    ConfidenceWeightedStrategy,
    ConsensusVotingStrategy,
    EnsembleStrategy,
    PerformanceWeightedStrategy,
    WeightedSignal,
    build_strategy,
    clamp_direction,
    time_decay,
)


@pytest.fixture
def three_sources(make_signal):
    """Two buys against one weak sell"""
    return [
        WeightedSignal(make_signal("a", 1, strength=0.8, confidence=0.9), 0.4),
        WeightedSignal(make_signal("b", 1, strength=0.6, confidence=0.7), 0.3),
        WeightedSignal(make_signal("c", -1, strength=0.5, confidence=0.5), 0.1),
    ]


@pytest.mark.parametrize(
    "score,expected",
    [(0.0, 0), (0.49, 0), (0.5, 1), (-0.5, -1), (1.49, 1), (1.5, 2), (2.7, 2), (-3.0, -2)],
)
def test_clamp_direction(score, expected):
    assert clamp_direction(score) == SignalDirection(expected)


def test_time_decay():
    assert time_decay(0, 60) == 1.0
    assert time_decay(30, 60) == pytest.approx(math.exp(-1))
    assert time_decay(0, 0) == 1.0
    assert time_decay(1, 0) == 0.0


def test_registry_covers_every_method():
    assert set(STRATEGY_REGISTRY) == set(AggregationMethod)
    assert isinstance(
        build_strategy("consensus", {"conflict_tolerance": 0.3}), ConsensusVotingStrategy
    )
    assert build_strategy(AggregationMethod.CONSENSUS, {}).conflict_tolerance == 0.2


def test_build_strategy_unknown_method():
    with pytest.raises(ValueError):
        build_strategy("majority_of_moons", {})


class TestConfidenceWeighted:
    def test_weighted_result(self, three_sources):
        result = ConfidenceWeightedStrategy().aggregate(three_sources)
        assert result.score == pytest.approx(0.52 / 0.62)
        assert result.direction == SignalDirection.BUY
        assert result.strength == pytest.approx(0.439 / 0.62)
        assert result.confidence == pytest.approx(0.8)

    def test_order_independent(self, three_sources):
        strategy = ConfidenceWeightedStrategy()
        baseline = strategy.aggregate(three_sources)
        shuffled = list(three_sources)
        for seed in range(5):
            random.Random(seed).shuffle(shuffled)
            result = strategy.aggregate(shuffled)
            assert result.direction == baseline.direction
            assert result.score == pytest.approx(baseline.score)
            assert result.strength == pytest.approx(baseline.strength)
            assert result.confidence == pytest.approx(baseline.confidence)

    def test_decay_reduces_influence(self, make_signal):
        inputs = [
            WeightedSignal(make_signal("a", 2), 0.5, decay=0.01),
            WeightedSignal(make_signal("b", -1), 0.5, decay=1.0),
        ]
        assert ConfidenceWeightedStrategy().aggregate(inputs).direction < 0

    def test_zero_weight_is_neutral(self, make_signal):
        inputs = [WeightedSignal(make_signal("a", 2), 0.0)]
        result = ConfidenceWeightedStrategy().aggregate(inputs)
        assert result.direction == SignalDirection.NEUTRAL
        assert result.strength == 0.0

    def test_empty_input(self):
        result = ConfidenceWeightedStrategy().aggregate([])
        assert result.direction == SignalDirection.NEUTRAL


class TestConsensusVoting:
    def test_decisive_win_is_strong(self, three_sources):
        result = ConsensusVotingStrategy().aggregate(three_sources)
        assert result.direction == SignalDirection.STRONG_BUY
        assert result.score == 2.0
        assert result.strength == pytest.approx(0.414 / 0.57)
        assert result.confidence == pytest.approx(0.471 / 0.62)

    def test_narrow_win_is_plain(self, make_signal):
        inputs = [
            WeightedSignal(make_signal("a", -1, confidence=0.9), 0.5),
            WeightedSignal(make_signal("b", 1, confidence=0.6), 0.5),
        ]
        result = ConsensusVotingStrategy(conflict_tolerance=0.1).aggregate(inputs)
        assert result.direction == SignalDirection.SELL

    def test_inside_tolerance_is_neutral(self, make_signal):
        inputs = [
            WeightedSignal(make_signal("a", 1, confidence=0.8), 0.5),
            WeightedSignal(make_signal("b", -1, confidence=0.8), 0.5),
        ]
        result = ConsensusVotingStrategy().aggregate(inputs)
        assert result.direction == SignalDirection.NEUTRAL
        assert result.confidence == pytest.approx(0.4)
        assert result.strength == pytest.approx(0.8)

    def test_all_neutral_inputs(self, make_signal):
        inputs = [WeightedSignal(make_signal("a", 0, confidence=0.6), 0.5)]
        result = ConsensusVotingStrategy().aggregate(inputs)
        assert result.direction == SignalDirection.NEUTRAL
        assert result.confidence == pytest.approx(0.3)


class TestPerformanceWeighted:
    def test_win_rate_replaces_confidence(self, make_signal):
        inputs = [
            WeightedSignal(make_signal("a", 1, confidence=0.9), 0.5, win_rate=0.1),
            WeightedSignal(make_signal("b", -1, confidence=0.4), 0.5, win_rate=0.9),
        ]
        assert ConfidenceWeightedStrategy().aggregate(inputs).score > 0
        assert PerformanceWeightedStrategy().aggregate(inputs).score < 0

    def test_default_win_rate(self, three_sources):
        result = PerformanceWeightedStrategy().aggregate(three_sources)
        assert result.score == pytest.approx(0.75)
        assert result.direction == SignalDirection.BUY


class TestEnsemble:
    def test_default_blend(self, three_sources):
        result = EnsembleStrategy().aggregate(three_sources)
        expected_score = 0.4 * (0.52 / 0.62) + 0.3 * 2.0 + 0.3 * 0.75
        assert result.score == pytest.approx(expected_score)
        assert result.direction == SignalDirection.BUY
        assert 0.0 <= result.strength <= 1.0
        assert 0.0 <= result.confidence <= 1.0

    def test_weights_are_normalised(self, three_sources):
        scaled = EnsembleStrategy(
            ensemble_weights={
                "confidence_weighted": 4,
                "consensus": 3,
                "performance_weighted": 3,
            }
        ).aggregate(three_sources)
        default = EnsembleStrategy().aggregate(three_sources)
        assert scaled.score == pytest.approx(default.score)

    def test_single_component(self, three_sources):
        only_votes = EnsembleStrategy(ensemble_weights={"consensus": 1.0})
        assert only_votes.aggregate(three_sources).direction == SignalDirection.STRONG_BUY

    def test_invalid_weights(self):
        with pytest.raises(ValueError):
            EnsembleStrategy(ensemble_weights={"consensus": 0.0})
        with pytest.raises(ValueError):
            EnsembleStrategy(ensemble_weights={"ensemble": 1.0})
