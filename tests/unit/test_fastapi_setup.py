"""Test FastAPI application setup and endpoints."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from mev_shield.main import create_app
from mev_shield.simulation.simulation_models import TradeIntent

POOL = "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc"
WETH = "0xC02aaA39b223FE8D0A0E5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


@pytest.fixture
def agent():
    response = MagicMock()
    response.to_dict.return_value = {"strategy": {"type": "DIRECT", "reasoning": "low risk", "plan": None}}

    agent = MagicMock()
    agent.handle_swap = AsyncMock(return_value=response)
    agent.analyze_pool_threat = AsyncMock(return_value={"profile": {"pool_address": POOL.lower()}, "assessment": None})
    return agent


@pytest.fixture
def app(agent):
    """App with a mocked agent; the lifespan does not run outside a `with` block."""
    app = create_app()
    app.state.shield_agent = agent
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def test_app_creation():
    """Test that FastAPI app can be created."""
    app = create_app()
    assert app.title == "MEV Shield API"
    assert app.version == "0.1.0"


def test_openapi_spec(client):
    """Test that OpenAPI spec is accessible."""
    response = client.get("/openapi.json")
    assert response.status_code == 200
    spec = response.json()
    assert spec["info"]["title"] == "MEV Shield API"
    assert "/swap" in spec["paths"]
    assert "/pool-threat" in spec["paths"]


class TestHealth:
    """Health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live(self, client):
        assert client.get("/health/live").json()["status"] == "alive"

    def test_ready(self, client):
        assert client.get("/health/ready").json()["status"] == "ready"

    def test_not_ready_without_agent(self):
        client = TestClient(create_app())
        response = client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_detailed(self, app, client):
        provider = MagicMock()
        provider.get_all_chain_health = AsyncMock(return_value={
            "ethereum": {"status": "healthy"},
            "arbitrum": {"status": "unhealthy"},
        })
        app.state.blockchain_provider = provider

        data = client.get("/health/detailed").json()

        assert data["status"] == "degraded"
        assert data["summary"] == {"total": 2, "healthy": 1, "unhealthy": 1}


class TestSwapEndpoint:
    """POST /swap."""

    def test_swap(self, client, agent):
        response = client.post("/swap", json={
            "trader": "0xabc",
            "token_in": WETH,
            "token_out": USDC,
            "amount_in": str(10 ** 30),
            "chain": "Ethereum",
        })

        assert response.status_code == 200
        assert response.json()["strategy"]["type"] == "DIRECT"
        intent = agent.handle_swap.await_args.args[0]
        assert intent == TradeIntent("0xabc", WETH, USDC, 10 ** 30, "ethereum")

    def test_integer_amount(self, client, agent):
        response = client.post("/swap", json={
            "trader": "0xabc", "token_in": WETH, "token_out": USDC, "amount_in": 1000,
        })
        assert response.status_code == 200
        assert agent.handle_swap.await_args.args[0].amount_in == 1000

    @pytest.mark.parametrize("amount", ["not-a-number", "-1", str(2 ** 256)])
    def test_invalid_amount(self, client, agent, amount):
        response = client.post("/swap", json={
            "trader": "0xabc", "token_in": WETH, "token_out": USDC, "amount_in": amount,
        })
        assert response.status_code == 400
        assert "Invalid swap request" in response.json()["detail"]
        agent.handle_swap.assert_not_awaited()

    def test_missing_field(self, client):
        response = client.post("/swap", json={"trader": "0xabc"})
        assert response.status_code == 422

    def test_agent_not_initialized(self):
        client = TestClient(create_app())
        response = client.post("/swap", json={
            "trader": "0xabc", "token_in": WETH, "token_out": USDC, "amount_in": "1",
        })
        assert response.status_code == 503


class TestPoolThreatEndpoint:
    """GET and POST /pool-threat."""

    def test_get(self, client, agent):
        response = client.get("/pool-threat", params={"pool": POOL})

        assert response.status_code == 200
        assert response.json()["profile"]["pool_address"] == POOL.lower()
        agent.analyze_pool_threat.assert_awaited_once_with(POOL, None, None, bypass_cache=False)

    def test_get_with_trade(self, client, agent):
        client.get("/pool-threat", params={
            "pool": POOL, "trade_size_usd": 50000, "pool_depth_usd": 2000000, "refresh": "true",
        })
        agent.analyze_pool_threat.assert_awaited_once_with(POOL, 50000.0, 2000000.0, bypass_cache=True)

    @pytest.mark.parametrize("params", [{}, {"pool": "0x123"}, {"pool": "not-an-address"}])
    def test_invalid_pool(self, client, agent, params):
        response = client.get("/pool-threat", params=params)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or missing `pool` address"
        agent.analyze_pool_threat.assert_not_awaited()

    def test_post(self, client, agent):
        response = client.post("/pool-threat", json={"pool": POOL, "trade_size_usd": 1000, "pool_depth_usd": 5000})

        assert response.status_code == 200
        agent.analyze_pool_threat.assert_awaited_once_with(POOL, 1000.0, 5000.0, bypass_cache=False)

    def test_post_missing_pool(self, client):
        response = client.post("/pool-threat", json={})
        assert response.status_code == 400
