"""Per-swap execution quality against reconstructed pre-trade reserves."""
import logging
from decimal import Decimal
from typing import Sequence

from mev_shield.mev_detection.swap_models import NormalizedSwap
from mev_shield.protocols.dex_protocols.uniswap_v2_math import DEFAULT_FEE_BPS, UniswapV2Math

logger = logging.getLogger(__name__)

MAX_REASONABLE_SLIPPAGE_PCT = 20.0


class SlippageAnalyzer:
    """Compares each swap's actual output with what its pre-trade reserves promised."""

    def __init__(self,
                 fee_bps: int = DEFAULT_FEE_BPS,
                 token0_decimals: int = 18,
                 token1_decimals: int = 18,
                 max_slippage_pct: float = MAX_REASONABLE_SLIPPAGE_PCT):
        self.math = UniswapV2Math(fee_bps)
        self.scale0 = Decimal(10) ** token0_decimals
        self.scale1 = Decimal(10) ** token1_decimals
        self.max_slippage_pct = max_slippage_pct

    def analyze(self, swap: NormalizedSwap) -> NormalizedSwap:
        """Annotate expected output, slippage, price impact and dollar loss."""
        if swap.buy_token0:
            reserve_in, reserve_out = swap.reserve1_before, swap.reserve0_before
            out_scale = self.scale0
        else:
            reserve_in, reserve_out = swap.reserve0_before, swap.reserve1_before
            out_scale = self.scale1

        expected_raw = self.math.calculate_amount_out(swap.raw_in, reserve_in, reserve_out)
        swap.expected_out = Decimal(expected_raw) / out_scale

        if expected_raw > 0:
            shortfall = Decimal(expected_raw - swap.raw_out) / Decimal(expected_raw) * 100
            slippage = float(shortfall)
        else:
            slippage = 0.0
        swap.slippage_pct = min(max(slippage, 0.0), self.max_slippage_pct)

        impact = self.math.calculate_price_impact(swap.raw_in, reserve_in, reserve_out)
        swap.price_impact_pct = float(impact * 100)
        swap.loss_usd = float(swap.amount_usd) * swap.slippage_pct / 100
        return swap

    def analyze_all(self, swaps: Sequence[NormalizedSwap]) -> None:
        for swap in swaps:
            self.analyze(swap)
