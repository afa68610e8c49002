"""
Unit tests for Uniswap V2 Math implementation.

Tests the exact integer constant product formula and the closed-form frontrun.
"""
import pytest

from mev_shield.protocols.dex_protocols.uniswap_v2_math import (
    ReservePair,
    UniswapV2Math,
    amount_out,
    integer_sqrt,
    optimal_frontrun_amount,
)

ETH = 10 ** 18
USDC = 10 ** 6


class TestIntegerSqrt:
    """Test the floor integer square root."""

    @pytest.mark.parametrize("value,expected", [(0, 0), (-5, 0), (1, 1), (2, 1), (3, 1), (4, 2), (15, 3), (16, 4)])
    def test_small_values(self, value, expected):
        assert integer_sqrt(value) == expected

    def test_large_value_is_exact(self):
        assert integer_sqrt(10 ** 40) == 10 ** 20
        assert integer_sqrt(10 ** 40 - 1) == 10 ** 20 - 1


class TestAmountOut:
    """Test the constant product output formula."""

    def test_basic_swap_calculation(self):
        """1000 in against 1M/1M reserves with the 0.3% fee."""
        # (1000 * 9970 * 1000000) // (1000000 * 10000 + 1000 * 9970)
        assert amount_out(1000, 1_000_000, 1_000_000) == 996

    def test_matches_manual_formula(self):
        v2_math = UniswapV2Math()
        amount_in, reserve_in, reserve_out = 5 * ETH, 500 * ETH, 1_000_000 * USDC

        expected = (amount_in * 9970 * reserve_out) // (reserve_in * 10000 + amount_in * 9970)
        assert v2_math.calculate_amount_out(amount_in, reserve_in, reserve_out) == expected

    @pytest.mark.parametrize("amount_in,reserve_in,reserve_out", [
        (0, 1000, 1000),
        (-1, 1000, 1000),
        (100, 0, 1000),
        (100, 1000, 0),
    ])
    def test_degenerate_inputs_return_zero(self, amount_in, reserve_in, reserve_out):
        assert amount_out(amount_in, reserve_in, reserve_out) == 0

    def test_output_is_monotonic_in_input(self):
        reserve_in, reserve_out = 500 * ETH, 1_000_000 * USDC
        outputs = [amount_out(n * ETH, reserve_in, reserve_out) for n in range(1, 50)]
        assert all(b >= a for a, b in zip(outputs, outputs[1:]))

    def test_output_below_reserve(self):
        assert amount_out(10 ** 30, 1000, 1000) < 1000

    def test_fee_strictly_costs(self):
        no_fee = UniswapV2Math(fee_bps=0).calculate_amount_out(10 * ETH, 500 * ETH, 1_000_000 * USDC)
        with_fee = UniswapV2Math(fee_bps=30).calculate_amount_out(10 * ETH, 500 * ETH, 1_000_000 * USDC)
        assert with_fee < no_fee

    @pytest.mark.parametrize("fee_bps", [-1, 10_000, 20_000])
    def test_invalid_fee_rejected(self, fee_bps):
        with pytest.raises(ValueError):
            UniswapV2Math(fee_bps=fee_bps)


class TestApplySwap:
    """Test reserve shifting."""

    def test_reserves_shift_by_trade(self):
        v2_math = UniswapV2Math()
        reserves = ReservePair(reserve_in=500 * ETH, reserve_out=1_000_000 * USDC)

        out, after = v2_math.apply_swap(ETH, reserves)

        assert out > 0
        assert after.reserve_in == reserves.reserve_in + ETH
        assert after.reserve_out == reserves.reserve_out - out

    def test_zero_output_leaves_reserves(self):
        reserves = ReservePair(reserve_in=1000, reserve_out=1000)
        out, after = UniswapV2Math().apply_swap(0, reserves)
        assert out == 0
        assert after == reserves

    def test_flipped(self):
        reserves = ReservePair(reserve_in=1, reserve_out=2)
        assert reserves.flipped() == ReservePair(reserve_in=2, reserve_out=1)
        assert reserves.is_valid
        assert not ReservePair(reserve_in=0, reserve_out=2).is_valid


class TestOptimalFrontrun:
    """Test the closed-form optimal frontrun."""

    def test_zero_victim_means_no_frontrun(self):
        assert optimal_frontrun_amount(500 * ETH, 0) == 0

    def test_degenerate_reserves(self):
        assert optimal_frontrun_amount(0, ETH) == 0
        assert optimal_frontrun_amount(ETH, -1) == 0

    def test_frontrun_grows_with_victim(self):
        reserve_in = 500 * ETH
        small = optimal_frontrun_amount(reserve_in, ETH)
        large = optimal_frontrun_amount(reserve_in, 20 * ETH)
        assert 0 < small < large

    def test_frontrun_sandwich_is_profitable(self):
        """20 ETH into 500 ETH / 1M USDC leaves a profitable sandwich after fees."""
        v2_math = UniswapV2Math()
        reserves = ReservePair(reserve_in=500 * ETH, reserve_out=1_000_000 * USDC)
        victim = 20 * ETH

        def profit(frontrun):
            bought, after_front = v2_math.apply_swap(frontrun, reserves)
            _, after_victim = v2_math.apply_swap(victim, after_front)
            sold, _ = v2_math.apply_swap(bought, after_victim.flipped())
            return sold - frontrun

        best = v2_math.optimal_frontrun_amount(reserves.reserve_in, victim)
        assert profit(best) > 0
        assert profit(best) > profit(best // 2)


class TestPriceImpact:
    """Test price impact and spot price helpers."""

    def test_large_trade_has_more_impact(self):
        v2_math = UniswapV2Math()
        small = v2_math.calculate_price_impact(1000, 10_000_000, 10_000_000)
        large = v2_math.calculate_price_impact(1_000_000, 10_000_000, 10_000_000)
        assert small < large

    def test_spot_price_fee(self):
        v2_math = UniswapV2Math()
        assert v2_math.get_spot_price(100, 200, include_fee=False) == 2
        assert v2_math.get_spot_price(100, 200) < 2
        assert v2_math.get_spot_price(0, 200) == 0
