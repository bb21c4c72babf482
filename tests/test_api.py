"""
Tests for signalengine/api.py
"""

from typing import Any, Generator

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from shared.config import Settings
from signalengine.api import app, get_aggregator, set_aggregator
from signalengine.defaults import get_default_parameters
from signalengine.signal_aggregator import SignalAggregator


@pytest.fixture
def client(aggregator: SignalAggregator) -> Generator[TestClient, None, None]:
    set_aggregator(aggregator)
    with TestClient(app) as test_client:
        yield test_client
    set_aggregator(None)


@pytest.fixture
def signal_payload(clock) -> dict[str, Any]:
    return {
        "instrument": "EURUSD",
        "source_id": "tech",
        "direction": 1,
        "strength": 0.8,
        "confidence": 0.8,
        "entry_price": 1.1,
        "stop_loss": 1.095,
        "take_profit": 1.11,
        "validity_minutes": 60,
        "timestamp": clock().isoformat(),
    }


def _register(client: TestClient, source_id: str = "tech", weight: float = 0.5):
    return client.post(
        "/sources",
        json={
            "name": "Technical suite",
            "category": "technical",
            "initial_weight": weight,
            "source_id": source_id,
        },
    )


class TestServiceEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["method"] == "ensemble"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["aggregator"]["tick_running"] is True
        assert data["components"]["sources"]["registered"] == 0

    def test_live(self, client):
        response = client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "signalengine_signals_received_total" in response.text

    def test_metrics_disabled(self, clock, mock_audit):
        settings = Settings(_env_file=None, prometheus_enabled=False)
        set_aggregator(
            SignalAggregator(settings=settings, clock=clock, audit=mock_audit)
        )
        with TestClient(app) as test_client:
            assert test_client.get("/metrics").status_code == 404
        set_aggregator(None)

    def test_tick_loop_stops_on_shutdown(self, aggregator):
        set_aggregator(aggregator)
        with TestClient(app):
            assert aggregator.running
        assert not aggregator.running
        set_aggregator(None)


def test_uninitialized_aggregator():
    set_aggregator(None)
    with pytest.raises(HTTPException) as exc_info:
        get_aggregator()
    assert exc_info.value.status_code == 500


class TestSources:
    def test_register_and_list(self, client):
        response = _register(client)
        assert response.status_code == 201
        assert response.json()["id"] == "tech"
        assert response.json()["static_weight"] == 0.5

        listed = client.get("/sources").json()
        assert [s["id"] for s in listed] == ["tech"]

    def test_register_negative_weight(self, client):
        response = _register(client, weight=-1.0)
        assert response.status_code == 400
        assert "source weight" in response.json()["errors"][0]

    def test_register_unknown_category(self, client):
        response = client.post(
            "/sources",
            json={"name": "x", "category": "astrology", "initial_weight": 0.5},
        )
        assert response.status_code == 422

    def test_deactivate_and_activate(self, client):
        _register(client)
        response = client.post("/sources/tech/deactivate")
        assert response.status_code == 200
        assert response.json()["active"] is False

        response = client.post("/sources/tech/activate")
        assert response.json()["active"] is True

    def test_performance(self, client):
        _register(client)
        response = client.post("/sources/tech/performance", json={"success": True})
        assert response.status_code == 200
        data = response.json()
        assert data["total_outcomes"] == 1
        assert data["adaptive_weight"] > 0.5

    @pytest.mark.parametrize("action", ["deactivate", "activate"])
    def test_unknown_source(self, client, action):
        response = client.post(f"/sources/ghost/{action}")
        assert response.status_code == 404

    def test_performance_unknown_source(self, client):
        response = client.post("/sources/ghost/performance", json={"success": False})
        assert response.status_code == 404


class TestSignals:
    def test_submit_accepted(self, client, signal_payload):
        _register(client)
        response = client.post("/signals", json=signal_payload)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "accepted"
        assert data["aggregated"]["direction"] == 1
        assert data["aggregated"]["source_ids"] == ["tech"]

    def test_submit_unknown_source(self, client, signal_payload):
        response = client.post("/signals", json=signal_payload)
        assert response.status_code == 422
        assert response.json()["reason"] == "unknown source: tech"

    def test_submit_inactive_source(self, client, signal_payload):
        _register(client)
        client.post("/sources/tech/deactivate")
        response = client.post("/signals", json=signal_payload)
        assert response.status_code == 422
        assert "inactive" in response.json()["reason"]

    def test_submit_out_of_range_confidence(self, client, signal_payload):
        _register(client)
        signal_payload["confidence"] = 1.5
        response = client.post("/signals", json=signal_payload)
        assert response.status_code == 422

    def test_latest_and_active(self, client, signal_payload):
        _register(client)
        client.post("/signals", json=signal_payload)

        latest = client.get("/signals/EURUSD")
        assert latest.status_code == 200
        assert latest.json()["instrument"] == "EURUSD"

        active = client.get("/signals/active").json()
        assert [a["instrument"] for a in active] == ["EURUSD"]

        history = client.get("/signals/EURUSD/history", params={"limit": 5}).json()
        assert len(history) == 1

    def test_latest_missing(self, client):
        response = client.get("/signals/USDCHF")
        assert response.status_code == 404


class TestMarketContext:
    def test_update(self, client):
        response = client.put(
            "/market-context",
            json={"volatility": 2.0, "trend_direction": -1, "regime": "trending"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["volatility"] == 2.0
        assert data["regime"] == "trending"

    def test_invalid_update(self, client):
        response = client.put("/market-context", json={"trend_direction": 5})
        assert response.status_code == 422


class TestReportAndConfig:
    def test_report(self, client, signal_payload):
        _register(client)
        client.post("/signals", json=signal_payload)
        report = client.get("/report").json()
        assert report["method"] == "ensemble"
        assert len(report["sources"]) == 1
        assert len(report["recent_signals"]) == 1
        assert report["statistics"]["signals_received"] == 1

    def test_get_config(self, client):
        parameters = client.get("/config").json()["parameters"]
        assert parameters["aggregation_method"] == "ensemble"

    def test_schema(self, client):
        schema = client.get("/config/schema").json()["schema"]
        assert "min_consensus" in schema
        assert schema["aggregation_method"]["allowed_values"]

    def test_defaults(self, client):
        defaults = client.get("/config/defaults").json()["parameters"]
        assert defaults == get_default_parameters()

        client.put("/config", json={"parameters": {"min_consensus": 0.4}})
        defaults = client.get("/config/defaults").json()["parameters"]
        assert defaults["min_consensus"] == 0.6

    def test_update_config(self, client):
        response = client.put(
            "/config",
            json={"parameters": {"aggregation_method": "consensus", "min_consensus": 0.4}},
        )
        assert response.status_code == 200
        assert response.json()["parameters"]["min_consensus"] == 0.4
        assert client.get("/").json()["method"] == "consensus"

    def test_update_config_invalid(self, client):
        response = client.put("/config", json={"parameters": {"min_consensus": 7}})
        assert response.status_code == 400
        assert response.json()["errors"] == ["min_consensus must be <= 1.0, got 7"]
        assert client.get("/config").json()["parameters"]["min_consensus"] == 0.6

    def test_validate_only(self, client):
        response = client.put(
            "/config",
            json={"parameters": {"min_consensus": 0.4}, "validate_only": True},
        )
        assert response.status_code == 200
        assert response.json()["validation"] == "passed"
        assert client.get("/config").json()["parameters"]["min_consensus"] == 0.6

    def test_validate_only_cross_field(self, client):
        response = client.put(
            "/config",
            json={"parameters": {"min_position_size": 0.5}, "validate_only": True},
        )
        assert response.status_code == 400
