"""Integration test for application startup with all services."""
import os
import subprocess
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from mev_shield.main import create_app
from mev_shield.shield_agent import ShieldAgent

SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "src"))


def mocked_client_class():
    instance = MagicMock()
    instance.initialize = AsyncMock()
    instance.close = AsyncMock()
    instance.get_all_chain_health = AsyncMock(return_value={"ethereum": {"status": "healthy"}})
    return MagicMock(return_value=instance), instance


def test_app_startup_with_mocked_services():
    """The lifespan wires the agent and closes every client on shutdown."""
    provider_class, provider = mocked_client_class()
    oracle_class, oracle = mocked_client_class()
    bridge_class, bridge = mocked_client_class()
    fetcher_class, fetcher = mocked_client_class()

    with patch("mev_shield.main.BlockchainProvider", provider_class), \
         patch("mev_shield.main.LiFiPriceOracle", oracle_class), \
         patch("mev_shield.main.LiFiBridgeQuoteProvider", bridge_class), \
         patch("mev_shield.main.GraphSwapFetcher", fetcher_class), \
         patch("mev_shield.main.settings") as mock_settings:
        mock_settings.graph_api_key = "test-key"

        app = create_app()
        with TestClient(app) as client:
            assert isinstance(app.state.shield_agent, ShieldAgent)
            assert app.state.shield_agent.profiler.swap_provider is fetcher

            assert client.get("/health/ready").json()["status"] == "ready"
            assert client.get("/health/detailed").json()["status"] == "healthy"

        assert app.state.shield_agent is None

    provider.initialize.assert_awaited_once()
    for client_mock in (oracle, bridge, fetcher, provider):
        client_mock.close.assert_awaited_once()


def test_startup_without_graph_key():
    """Without a Graph API key, profiles fall back to defaults."""
    provider_class, _ = mocked_client_class()
    oracle_class, _ = mocked_client_class()
    bridge_class, _ = mocked_client_class()
    fetcher_class, _ = mocked_client_class()

    with patch("mev_shield.main.BlockchainProvider", provider_class), \
         patch("mev_shield.main.LiFiPriceOracle", oracle_class), \
         patch("mev_shield.main.LiFiBridgeQuoteProvider", bridge_class), \
         patch("mev_shield.main.GraphSwapFetcher", fetcher_class), \
         patch("mev_shield.main.settings") as mock_settings:
        mock_settings.graph_api_key = None

        app = create_app()
        with TestClient(app):
            assert app.state.shield_agent.profiler.swap_provider is None
            assert len(app.state.clients) == 2

    fetcher_class.assert_not_called()


@pytest.mark.parametrize("module", [
    "mev_shield.main",
    "mev_shield.shield_agent",
    "mev_shield.blockchain_connector",
    "mev_shield.data_collector",
    "mev_shield.mev_detection",
])
def test_module_imports_in_fresh_interpreter(module):
    """Each entry point imports on its own, whatever was loaded before."""
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        capture_output=True,
        text=True,
        env={**os.environ, "PYTHONPATH": SRC_DIR + os.pathsep + os.environ.get("PYTHONPATH", "")},
    )
    assert result.returncode == 0, result.stderr
