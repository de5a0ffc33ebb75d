"""Integration tests for the Tradepost REST API."""

import pytest
from fastapi.testclient import TestClient

from tradepost.api.app import create_app


@pytest.fixture
def client():
    app = create_app()
    return TestClient(app)


def _create(client, **body):
    body.setdefault("preset", "baseline")
    body.setdefault("agents", 4)
    resp = client.post("/api/simulation/sessions", json=body)
    assert resp.status_code == 200
    return resp.json()["id"]


def _engine(client, sid):
    return client.app.state.session_manager.get_session(sid).engine


class TestHealthCheck:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSessionLifecycle:
    def test_create_session_defaults(self, client):
        resp = client.post("/api/simulation/sessions", json={})
        assert resp.status_code == 200
        data = resp.json()
        assert "id" in data
        assert data["status"] == "created"
        assert data["tick"] == 0
        assert data["agent_count"] == 20  # default

    def test_create_session_with_config(self, client):
        resp = client.post("/api/simulation/sessions", json={
            "config": {"initial_gold": 250.0, "random_seed": 7},
            "agents": 3,
            "name": "small",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "small"
        assert data["agent_count"] == 3
        assert data["config"]["initial_gold"] == 250.0

    def test_create_session_from_preset(self, client):
        resp = client.post("/api/simulation/sessions", json={"preset": "volatile_market", "agents": 2})
        assert resp.status_code == 200
        assert resp.json()["config"]["experiment_name"] == "volatile_market"

    def test_unknown_preset(self, client):
        resp = client.post("/api/simulation/sessions", json={"preset": "hyperinflation"})
        assert resp.status_code == 404

    def test_invalid_config(self, client):
        resp = client.post("/api/simulation/sessions", json={"config": {"no_such_option": 1}})
        assert resp.status_code == 422

    def test_invalid_catalog(self, client):
        resp = client.post("/api/simulation/sessions", json={
            "config": {"item_catalog": [{"item_id": "x", "name": "X", "category": "resource", "base_cost": -1}]},
        })
        assert resp.status_code == 422

    def test_list_presets(self, client):
        resp = client.get("/api/simulation/presets")
        assert resp.status_code == 200
        names = [p["name"] for p in resp.json()]
        assert "baseline" in names and "high_inequality" in names

    def test_list_sessions(self, client):
        _create(client)
        _create(client)
        resp = client.get("/api/simulation/sessions")
        assert resp.status_code == 200
        assert len(resp.json()) == 2

    def test_get_session(self, client):
        sid = _create(client)
        resp = client.get(f"/api/simulation/sessions/{sid}")
        assert resp.status_code == 200
        assert resp.json()["id"] == sid

    def test_get_missing_session(self, client):
        assert client.get("/api/simulation/sessions/nope").status_code == 404

    def test_delete_session(self, client):
        sid = _create(client)
        resp = client.delete(f"/api/simulation/sessions/{sid}")
        assert resp.json() == {"deleted": True}
        assert client.get(f"/api/simulation/sessions/{sid}").status_code == 404
        assert client.delete(f"/api/simulation/sessions/{sid}").status_code == 404


class TestStepAndRun:
    def test_step(self, client):
        sid = _create(client)
        resp = client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 3})
        assert resp.status_code == 200
        data = resp.json()
        assert data["session"]["tick"] == 3
        assert data["session"]["status"] == "idle"
        assert [s["tick"] for s in data["snapshots"]] == [1, 2, 3]
        assert data["snapshots"][0]["agent_count"] == 4

    def test_step_validation(self, client):
        sid = _create(client)
        assert client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 0}).status_code == 422

    def test_step_missing_session(self, client):
        assert client.post("/api/simulation/sessions/nope/step", json={"n": 1}).status_code == 404

    def test_background_run(self, client):
        sid = _create(client)
        resp = client.post(f"/api/simulation/sessions/{sid}/run", json={"ticks": 12})
        assert resp.status_code == 200
        client.app.state.session_manager.wait(sid, timeout=60)
        data = client.get(f"/api/simulation/sessions/{sid}").json()
        assert data["tick"] == 12
        assert data["status"] == "idle"

    def test_finished_runs_are_forgotten(self, client):
        manager = client.app.state.session_manager
        sid = _create(client)
        for _ in range(2):
            manager.run_async(sid, 2).join(timeout=60)
        assert manager._threads == {}
        assert not manager.is_running(sid)
        assert manager.get_session(sid).tick == 4

    def test_metrics(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 12})
        rows = client.get(f"/api/simulation/sessions/{sid}/metrics").json()
        assert len(rows) == 12
        assert rows[-1]["health_grade"] is not None

    def test_time_series(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 4})
        data = client.get(f"/api/simulation/sessions/{sid}/metrics/price_index").json()
        assert data["field"] == "price_index"
        assert data["ticks"] == [1, 2, 3, 4]
        assert len(data["values"]) == 4

    def test_unknown_metric(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})
        resp = client.get(f"/api/simulation/sessions/{sid}/metrics/no_such_field")
        assert resp.status_code == 404


class TestMarketEndpoints:
    def test_items(self, client):
        sid = _create(client)
        items = client.get(f"/api/market/{sid}/items").json()
        assert len(items) == 20
        assert {"item_id", "current_price", "supply", "flags"} <= set(items[0])

    def test_item_detail(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 2})
        data = client.get(f"/api/market/{sid}/items/item_0").json()
        assert data["item_id"] == "item_0"
        assert data["trend"] in ("rising", "falling", "stable")
        assert [p["tick"] for p in data["price_history"]] == [0, 1, 2]

    def test_missing_item(self, client):
        sid = _create(client)
        assert client.get(f"/api/market/{sid}/items/nothing").status_code == 404

    def test_missing_session(self, client):
        assert client.get("/api/market/nope/items").status_code == 404

    def test_metrics_and_phenomena(self, client):
        sid = _create(client)
        metrics = client.get(f"/api/market/{sid}/metrics").json()
        assert metrics["tick"] == 0
        assert metrics["active_traders"] == 0
        assert isinstance(client.get(f"/api/market/{sid}/phenomena").json(), list)

    def test_place_and_cancel_sell_order(self, client):
        sid = _create(client)
        inventory = _engine(client, sid).market.get_inventory("abe_0")
        item_id = next(iter(inventory))
        resp = client.post(f"/api/market/{sid}/orders", json={
            "agent_id": "abe_0", "item_id": item_id, "side": "sell", "quantity": 1, "price_limit": 1e6,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["accepted"] is True
        assert data["order"]["status"] == "pending"
        assert data["trades"] == []
        order_id = data["order"]["order_id"]

        open_orders = client.get(f"/api/market/{sid}/orders", params={"agent_id": "abe_0"}).json()
        assert [o["order_id"] for o in open_orders] == [order_id]

        assert client.delete(f"/api/market/{sid}/orders/{order_id}").json() == {"cancelled": True}
        assert client.delete(f"/api/market/{sid}/orders/{order_id}").status_code == 404

    def test_matched_orders_produce_trades(self, client):
        sid = _create(client)
        inventory = _engine(client, sid).market.get_inventory("abe_0")
        item_id = next(iter(inventory))
        client.post(f"/api/market/{sid}/orders", json={
            "agent_id": "abe_0", "item_id": item_id, "side": "sell", "quantity": 1, "price_limit": 1.0,
        })
        data = client.post(f"/api/market/{sid}/orders", json={
            "agent_id": "bess_1", "item_id": item_id, "side": "buy", "quantity": 1, "price_limit": 3.0,
        }).json()
        assert data["accepted"] is True
        assert data["order"]["status"] == "filled"
        assert [(t["buyer_id"], t["seller_id"]) for t in data["trades"]] == [("bess_1", "abe_0")]
        trades = client.get(f"/api/market/{sid}/trades").json()
        assert trades[-1]["price"] == 2.0

    def test_rejected_order(self, client):
        sid = _create(client)
        resp = client.post(f"/api/market/{sid}/orders", json={
            "agent_id": "abe_0", "item_id": "item_0", "side": "buy", "quantity": 1, "price_limit": 1e9,
        })
        assert resp.status_code == 200
        assert resp.json() == {"accepted": False, "order": None, "trades": []}

    def test_order_unknown_item_or_agent(self, client):
        sid = _create(client)
        order = {"agent_id": "abe_0", "item_id": "nothing", "side": "buy", "quantity": 1, "price_limit": 1.0}
        assert client.post(f"/api/market/{sid}/orders", json=order).status_code == 404
        order.update(item_id="item_0", agent_id="zed")
        assert client.post(f"/api/market/{sid}/orders", json=order).status_code == 404

    def test_order_validation(self, client):
        sid = _create(client)
        order = {"agent_id": "abe_0", "item_id": "item_0", "side": "hold", "quantity": 1, "price_limit": 1.0}
        assert client.post(f"/api/market/{sid}/orders", json=order).status_code == 422
        order.update(side="buy", quantity=0)
        assert client.post(f"/api/market/{sid}/orders", json=order).status_code == 422

    def test_report(self, client):
        sid = _create(client)
        report = client.get(f"/api/market/{sid}/report").json()["report"]
        assert report.startswith("=== MARKET REPORT ===")


class TestTradingEndpoints:
    def test_reputations(self, client):
        sid = _create(client)
        reps = client.get(f"/api/trading/{sid}/reputations").json()
        assert [r["agent_id"] for r in reps] == ["abe_0", "bess_1", "cal_2", "dottie_3"]
        assert reps[0]["total_trades"] == 0

    def test_single_reputation(self, client):
        sid = _create(client)
        assert client.get(f"/api/trading/{sid}/reputations/abe_0").json()["agent_id"] == "abe_0"
        assert client.get(f"/api/trading/{sid}/reputations/zed").status_code == 404

    def test_network_after_running(self, client):
        sid = _create(client, agents=6)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 24})
        network = client.get(f"/api/trading/{sid}/network").json()
        assert len(network["nodes"]) == 6
        routes = client.get(f"/api/trading/{sid}/routes", params={"limit": 3}).json()
        assert len(routes) <= 3
        assert len(network["edges"]) >= len(routes)

    def test_offers(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 12})
        for offer in client.get(f"/api/trading/{sid}/offers").json():
            assert offer["status"] in ("pending", "countered")

    def test_opportunities(self, client):
        sid = _create(client)
        assert isinstance(client.get(f"/api/trading/{sid}/opportunities/abe_0").json(), list)
        assert client.get(f"/api/trading/{sid}/opportunities/zed").status_code == 404

    def test_report(self, client):
        sid = _create(client)
        report = client.get(f"/api/trading/{sid}/report").json()["report"]
        assert report.startswith("=== TRADING NETWORK REPORT ===")


class TestAnalysisEndpoints:
    def test_wealth(self, client):
        sid = _create(client)
        data = client.get(f"/api/analysis/{sid}/wealth").json()
        assert data["agent_count"] == 4
        assert 0.0 <= data["gini_coefficient"] <= 1.0

    def test_health(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 12})
        data = client.get(f"/api/analysis/{sid}/health").json()
        assert data["grade"] in ("A", "B", "C", "D", "F")
        assert 0 <= data["overall_score"] <= 100
        assert set(data["components"]) == {
            "market_liquidity", "trading_activity", "wealth_distribution",
            "price_stability", "resource_availability", "economic_growth",
        }

    def test_bottlenecks(self, client):
        sid = _create(client)
        for b in client.get(f"/api/analysis/{sid}/bottlenecks").json():
            assert 0.0 <= b["severity"] <= 1.0

    def test_flow_graph_and_nodes(self, client):
        sid = _create(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 12})
        graph = client.get(f"/api/analysis/{sid}/flow-graph", params={"hours": 2}).json()
        assert set(graph) == {"nodes", "edges"}
        nodes = client.get(f"/api/analysis/{sid}/nodes").json()
        assert {n["node_id"] for n in nodes} >= {"job_system", "tax_system"}

    def test_report(self, client):
        sid = _create(client)
        report = client.get(f"/api/analysis/{sid}/report").json()["report"]
        assert report.startswith("=== ECONOMIC ANALYSIS REPORT ===")

    def test_agent_profile(self, client):
        sid = _create(client)
        data = client.get(f"/api/analysis/{sid}/agents/abe_0").json()
        assert data["entity"]["entity_id"] == "abe_0"
        assert data["profile"].startswith("=== ECONOMIC PROFILE: abe_0 ===")
        assert client.get(f"/api/analysis/{sid}/agents/zed").status_code == 404
