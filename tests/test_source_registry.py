"""
Tests for signalengine/source_registry.py
"""

import threading
from datetime import datetime, timezone

import pytest

from contracts.source import SignalOutcome, SourceCategory
from signalengine.errors import ConfigurationError, InputValidationError
from signalengine.source_registry import SourceRegistry


@pytest.fixture
def registry() -> SourceRegistry:
    return SourceRegistry(performance_window=4, reliability_smoothing=0.5)


class TestRegistration:
    def test_register_returns_id(self, registry):
        sid = registry.register("RSI", SourceCategory.TECHNICAL, 0.4)
        assert sid in registry
        source = registry.get(sid)
        assert source.name == "RSI"
        assert source.static_weight == 0.4
        assert source.adaptive_weight == 0.4
        assert source.reliability == 0.5
        assert source.active

    def test_register_explicit_id(self, registry):
        assert registry.register("News", "sentiment", 0.2, source_id="news") == "news"

    def test_duplicate_id_rejected(self, registry):
        registry.register("News", "sentiment", 0.2, source_id="news")
        with pytest.raises(ConfigurationError):
            registry.register("News 2", "sentiment", 0.2, source_id="news")

    @pytest.mark.parametrize(
        "name,category,weight",
        [
            ("", "technical", 0.1),
            ("RSI", "technical", -0.1),
            ("RSI", "technical", float("nan")),
            ("RSI", "technical", float("inf")),
            ("RSI", "astrology", 0.1),
        ],
    )
    def test_invalid_registration(self, registry, name, category, weight):
        with pytest.raises(ConfigurationError):
            registry.register(name, category, weight)
        assert len(registry) == 0

    def test_invalid_construction(self):
        with pytest.raises(ConfigurationError):
            SourceRegistry(performance_window=0)
        with pytest.raises(ConfigurationError):
            SourceRegistry(reliability_smoothing=1.5)


class TestActivation:
    def test_deactivate_and_reactivate(self, registry):
        sid = registry.register("RSI", "technical", 0.4)
        assert not registry.set_active(sid, False).active
        assert not registry.is_active(sid)
        assert registry.set_active(sid, True).active

    def test_unknown_source(self, registry):
        with pytest.raises(InputValidationError):
            registry.set_active("missing", False)
        assert not registry.is_active("missing")


class TestPerformance:
    def test_record_signal_updates_totals(self, registry):
        sid = registry.register("RSI", "technical", 0.4)
        seen = datetime(2025, 10, 20, tzinfo=timezone.utc)
        registry.record_signal(sid, seen)
        source = registry.get(sid)
        assert source.total_signals == 1
        assert source.last_seen == seen

    def test_outcome_updates_reliability_and_weight(self, registry):
        sid = registry.register("RSI", "technical", 0.4)
        source = registry.record_outcome(sid, SignalOutcome(success=True))
        # 0.5 * 0.5 + 0.5 * 1.0
        assert source.reliability == pytest.approx(0.75)
        assert source.adaptive_weight == pytest.approx(0.4 * 1.25)
        assert source.static_weight == 0.4
        assert source.accuracy == 1.0

        source = registry.record_outcome(sid, SignalOutcome(success=False))
        assert source.reliability == pytest.approx(0.375)
        assert source.adaptive_weight == pytest.approx(0.4 * 0.875)
        assert source.accuracy == 0.5

    def test_recent_win_rate_window(self, registry):
        sid = registry.register("RSI", "technical", 0.4)
        assert registry.get(sid).recent_win_rate == 0.5
        for success in (False, False, True, True, True, True):
            registry.record_outcome(sid, SignalOutcome(success=success))
        # Window of 4 keeps only the last four wins
        assert registry.get(sid).recent_win_rate == 1.0
        assert registry.get(sid).total_outcomes == 6

    def test_outcome_unknown_source(self, registry):
        with pytest.raises(InputValidationError):
            registry.record_outcome("missing", SignalOutcome(success=True))

    def test_configure_shrinks_window(self, registry):
        sid = registry.register("RSI", "technical", 0.4)
        for success in (False, True, True, True):
            registry.record_outcome(sid, SignalOutcome(success=success))
        registry.configure(performance_window=2, reliability_smoothing=0.1)
        assert registry.get(sid).recent_win_rate == 1.0
        assert registry.reliability_smoothing == 0.1


def test_snapshot_is_a_copy(registry):
    sid = registry.register("RSI", "technical", 0.4)
    snapshot = registry.snapshot()
    registry.set_active(sid, False)
    assert snapshot[sid].active
    assert not registry.get(sid).active


def test_rejected_nan_weight_leaves_table_usable(registry):
    sid = registry.register("RSI", "technical", 0.4)
    with pytest.raises(ConfigurationError, match="finite"):
        registry.register("Broken", "technical", float("nan"), source_id="broken")

    assert "broken" not in registry
    assert list(registry.snapshot()) == [sid]
    registry.record_signal(sid, datetime.now(timezone.utc))
    assert registry.get(sid).total_signals == 1


def test_snapshots_stay_consistent_under_concurrent_outcomes():
    registry = SourceRegistry(performance_window=50, reliability_smoothing=0.1)
    ids = [registry.register(f"S{i}", "technical", 0.5) for i in range(3)]
    writers, reports = 4, 200
    errors = []
    done = threading.Event()

    def report(source_id: str, success: bool) -> None:
        for _ in range(reports):
            registry.record_outcome(source_id, SignalOutcome(success=success))

    def read() -> None:
        while not done.is_set():
            for source in registry.snapshot().values():
                expected = source.static_weight * (0.5 + source.reliability)
                if abs(source.adaptive_weight - expected) > 1e-9:
                    errors.append(source.id)
                if source.successful_outcomes > source.total_outcomes:
                    errors.append(source.id)

    reader = threading.Thread(target=read)
    reader.start()
    threads = [
        threading.Thread(target=report, args=(ids[i % len(ids)], i % 2 == 0))
        for i in range(writers)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    done.set()
    reader.join()

    assert errors == []
    snapshot = registry.snapshot()
    assert sum(s.total_outcomes for s in snapshot.values()) == writers * reports
