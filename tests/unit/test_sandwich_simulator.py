"""Unit tests for the sandwich simulator."""
import random

import pytest

from mev_shield.data_collector.market_data import price_chain
from mev_shield.mev_protection.chain_configs import get_chain_config
from mev_shield.protocols.dex_protocols.uniswap_v2_math import ReservePair
from mev_shield.simulation.sandwich_simulator import SandwichSimulator, simulate_sandwich
from mev_shield.simulation.simulation_models import RiskLevel, TradeIntent

ETH = 10 ** 18
USDC = 10 ** 6
GWEI = 10 ** 9
WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


@pytest.fixture
def simulator():
    return SandwichSimulator(fee_bps=30, sandwich_gas_units=300_000)


@pytest.fixture
def reserves():
    """500 ETH / 1M USDC, oriented ETH -> USDC."""
    return ReservePair(reserve_in=500 * ETH, reserve_out=1_000_000 * USDC)


def intent(amount_in):
    return TradeIntent(trader="0xalice", token_in=WETH_ADDRESS, token_out=USDC_ADDRESS, amount_in=amount_in)


def simulate(simulator, reserves, amount_in, gas_gwei=30, eth_price=2500.0):
    return simulator.simulate(
        intent(amount_in),
        reserves,
        gas_gwei * GWEI,
        eth_price,
        token_in_decimals=18,
        token_out_decimals=6,
        output_token_price_usd=1.0,
    )


class TestSandwichScenarios:
    """Test the reference scenarios."""

    def test_large_trade_is_viable(self, simulator, reserves):
        """20 ETH into 500 ETH / 1M USDC at 30 gwei and $2500 ETH."""
        result = simulate(simulator, reserves, 20 * ETH)

        assert result.attacker_profit > 0
        assert result.attack_viable
        assert result.risk in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        assert result.sandwich_gas_cost_usd == pytest.approx(22.5)
        assert result.clean_output >= result.attacked_output
        assert result.user_loss == result.clean_output - result.attacked_output
        assert not result.degraded

    def test_small_trade_not_viable(self, simulator, reserves):
        """A ~$100 trade still has a frontrun but cannot pay for the attacker's gas."""
        result = simulate(simulator, reserves, 4 * ETH // 100)

        assert result.optimal_frontrun_amount > 0
        assert result.attacker_profit_usd < result.sandwich_gas_cost_usd
        assert not result.attack_viable
        assert result.risk == RiskLevel.LOW
        assert result.clean_output_usd == pytest.approx(79.7, abs=0.5)

    def test_usd_view_uses_pool_price(self, simulator, reserves):
        result = simulate(simulator, reserves, 20 * ETH)

        assert result.pool_depth_usd == pytest.approx(2_000_000.0)
        assert result.clean_output_usd == pytest.approx(result.clean_output / USDC)
        assert result.implied_price == pytest.approx(result.clean_output / USDC / 20)
        assert result.trade_to_pool_ratio == pytest.approx(result.clean_output_usd / 2_000_000)

    def test_higher_gas_reduces_viability(self, simulator, reserves):
        cheap = simulate(simulator, reserves, ETH, gas_gwei=1)
        expensive = simulate(simulator, reserves, ETH, gas_gwei=500)

        assert cheap.attacker_profit_usd == pytest.approx(expensive.attacker_profit_usd)
        assert expensive.sandwich_gas_cost_usd > cheap.sandwich_gas_cost_usd
        assert not expensive.attack_viable


class TestEdgeCases:
    """Test degenerate inputs."""

    def test_zero_amount(self, simulator, reserves):
        result = simulate(simulator, reserves, 0)

        assert result.clean_output == 0
        assert not result.attack_viable
        assert result.risk == RiskLevel.LOW

    def test_empty_reserves_fall_back(self, simulator):
        result = simulate(simulator, ReservePair(reserve_in=0, reserve_out=1000), ETH)

        assert result.degraded
        assert result.risk == RiskLevel.MEDIUM
        assert not result.attack_viable

    def test_fallback(self, simulator):
        result = simulator.fallback("no pair")

        assert result.degraded
        assert result.degraded_reason == "no pair"
        assert result.to_dict()["risk"] == "MEDIUM"

    def test_assumptions_carried(self, simulator, reserves):
        result = simulator.simulate(intent(ETH), reserves, 30 * GWEI, 2500.0, assumptions=["gas price assumed"])
        assert result.assumptions == ["gas price assumed"]

    def test_convenience_function(self, reserves):
        result = simulate_sandwich(intent(20 * ETH), reserves, 30 * GWEI, 2500.0,
                                   token_out_decimals=6)
        assert result.attack_viable


class TestRiskClassification:
    """Test loss-percent tiers."""

    @pytest.mark.parametrize("loss_percent,level", [
        (0.05, RiskLevel.LOW),
        (0.1, RiskLevel.LOW),
        (0.2, RiskLevel.MEDIUM),
        (0.5, RiskLevel.MEDIUM),
        (1.0, RiskLevel.HIGH),
        (2.5, RiskLevel.CRITICAL),
    ])
    def test_thresholds(self, simulator, loss_percent, level):
        assert simulator._classify_risk(loss_percent) == level


class TestTradeIntent:
    """Test intent validation and serialization."""

    def test_rejects_non_int(self):
        with pytest.raises(TypeError):
            TradeIntent("0xa", "0xb", "0xc", amount_in=1.5)
        with pytest.raises(TypeError):
            TradeIntent("0xa", "0xb", "0xc", amount_in=True)

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            TradeIntent("0xa", "0xb", "0xc", amount_in=-1)
        with pytest.raises(ValueError):
            TradeIntent("0xa", "0xb", "0xc", amount_in=2 ** 256)

    def test_amounts_serialized_as_strings(self):
        big = 2 ** 200
        assert TradeIntent("0xa", "0xb", "0xc", amount_in=big).to_dict()["amount_in"] == str(big)


class TestCleanOutputDominates:
    """The victim never receives more under attack than without it."""

    @pytest.mark.parametrize("reserve_in,reserve_out,amount_in", [
        (1, 1, 1),
        (500 * ETH, 1_000_000 * USDC, 1),
        (500 * ETH, 1_000_000 * USDC, 10 ** 9),
        (500 * ETH, 1_000_000 * USDC, 5_000 * ETH),
        (10 ** 6, 10 ** 30, 10 ** 12),
        (10 ** 30, 10 ** 6, 10 ** 20),
        (2 ** 112 - 1, 2 ** 112 - 1, 2 ** 100),
    ])
    def test_edge_cases(self, simulator, reserve_in, reserve_out, amount_in):
        result = simulate(simulator, ReservePair(reserve_in, reserve_out), amount_in)

        assert result.clean_output >= result.attacked_output
        assert result.user_loss == result.clean_output - result.attacked_output

    def test_random_pools_and_sizes(self, simulator):
        rng = random.Random(1234)
        for _ in range(2000):
            reserve_in = rng.randint(1, 10 ** rng.randint(1, 30))
            reserve_out = rng.randint(1, 10 ** rng.randint(1, 30))
            # Up to 100x the input reserve, so trades larger than the pool are covered
            amount_in = rng.randint(1, reserve_in * 100)

            result = simulate(simulator, ReservePair(reserve_in, reserve_out), amount_in)

            assert result.clean_output >= result.attacked_output, (reserve_in, reserve_out, amount_in)
            assert result.user_loss >= 0
            assert result.attacker_profit >= 0


class TestSandwichGas:
    """Attacker gas comes from the same per-chain profile the optimizer prices."""

    def test_default_gas_matches_chain_pricing(self, reserves):
        simulator = SandwichSimulator()
        result = simulate(simulator, reserves, 20 * ETH)

        pricing = price_chain("ethereum", 30 * GWEI, 2500.0, 2_000_000.0)
        assert result.sandwich_gas_cost_usd == pytest.approx(pricing.sandwich_gas_cost_usd)
        assert result.sandwich_gas_cost_usd == pytest.approx(30.75)

    def test_gas_follows_intent_chain(self):
        simulator = SandwichSimulator()

        assert simulator.gas_units_for("ethereum") == get_chain_config("ethereum").sandwich_gas_units
        assert simulator.gas_units_for("arbitrum") == 2 * 700_000 + 50_000

    def test_explicit_override(self, simulator):
        assert simulator.gas_units_for("arbitrum") == 300_000
