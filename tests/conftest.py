"""
Global test configuration and fixtures for the signal aggregation engine.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator
from unittest.mock import Mock, patch

import pytest

# Set up test environment BEFORE any imports that might trigger validation
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "AUDIT_ENABLED": "true",
    }
)

from contracts.signal import InputSignal, SignalDirection  # noqa: E402
from shared.audit import AuditLogger  # noqa: E402
from shared.config import Settings  # noqa: E402
from signalengine.signal_aggregator import SignalAggregator  # noqa: E402

BASE_TIME = datetime(2025, 10, 20, 10, 30, tzinfo=timezone.utc)


class FixedClock:
    """Controllable clock injected into the aggregator"""

    def __init__(self, now: datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Set up test environment."""
    # Environment is already set up above
    yield


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with library defaults, independent of any local .env"""
    return Settings(_env_file=None, environment="test")


@pytest.fixture
def mock_audit() -> Mock:
    """Audit logger double recording every call"""
    return Mock(spec=AuditLogger, enabled=True)


@pytest.fixture
def aggregator(
    test_settings: Settings, clock: FixedClock, mock_audit: Mock
) -> SignalAggregator:
    return SignalAggregator(settings=test_settings, clock=clock, audit=mock_audit)


@pytest.fixture
def make_signal(clock: FixedClock) -> Callable[..., InputSignal]:
    """Factory for input signals stamped with the test clock"""

    def _make(source_id: str, direction: int = 1, **overrides: Any) -> InputSignal:
        data: dict[str, Any] = {
            "instrument": "EURUSD",
            "source_id": source_id,
            "direction": SignalDirection(direction),
            "strength": 0.8,
            "confidence": 0.8,
            "entry_price": 1.1000,
            "stop_loss": 1.0950 if direction >= 0 else 1.1050,
            "take_profit": 1.1100 if direction >= 0 else 1.0900,
            "validity_minutes": 60,
            "timestamp": clock(),
        }
        data.update(overrides)
        return InputSignal(**data)

    return _make


@pytest.fixture
def mock_environment_variables():
    """Mock environment variables for testing."""
    test_vars = {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "AGGREGATION_METHOD": "consensus",
        "MIN_CONSENSUS": "0.7",
    }

    with patch.dict(os.environ, test_vars):
        yield test_vars
