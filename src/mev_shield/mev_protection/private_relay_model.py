"""
Private Relay Cost Model.

Prices a private-relay submission from the arbitrage the trade creates on a
constant-product pool. The builder's opportunity cost is the best competing
searcher bundle, which scales with the square of the price distortion rather
than with the user's sandwich loss.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Searcher economics
ARB_EFFICIENCY_CONSTANT = 1.0     # k in arb ~ k * reserve_in_usd * delta^2
SEARCHER_CAPTURE_RATE = 0.60      # share of theoretical arb a searcher actually captures
SEARCHER_GAS_COST_USD = 0.50      # searcher's own gas for the arb transaction
SEARCHER_BID_RATE = 0.70          # share of net capture bid to the builder
INCLUSION_PREMIUM = 1.10          # user must outbid the best searcher by 10%
MIN_PRIVATE_TIP_USD = 0.10
PRIVATE_RELAY_GAS_UNITS = 180_000


@dataclass(frozen=True)
class PrivateRelayCost:
    """Breakdown of one private-relay submission."""
    base_gas_cost_usd: float
    price_distortion: float
    created_arb_profit_usd: float
    searcher_bid_usd: float
    required_payment_usd: float
    estimated_tip_usd: float
    total_cost_usd: float
    available: bool = True

    @classmethod
    def unavailable(cls) -> "PrivateRelayCost":
        return cls(
            base_gas_cost_usd=math.inf,
            price_distortion=0.0,
            created_arb_profit_usd=0.0,
            searcher_bid_usd=0.0,
            required_payment_usd=math.inf,
            estimated_tip_usd=math.inf,
            total_cost_usd=math.inf,
            available=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "base_gas_cost_usd": self.base_gas_cost_usd if self.available else None,
            "price_distortion": self.price_distortion,
            "created_arb_profit_usd": self.created_arb_profit_usd,
            "searcher_bid_usd": self.searcher_bid_usd,
            "estimated_tip_usd": self.estimated_tip_usd if self.available else None,
            "total_cost_usd": self.total_cost_usd if self.available else None,
        }


class PrivateRelayCostModel:
    """AMM-curvature based private relay pricing."""

    def __init__(self,
                 arb_efficiency: float = ARB_EFFICIENCY_CONSTANT,
                 capture_rate: float = SEARCHER_CAPTURE_RATE,
                 searcher_gas_usd: float = SEARCHER_GAS_COST_USD,
                 bid_rate: float = SEARCHER_BID_RATE,
                 inclusion_premium: float = INCLUSION_PREMIUM,
                 min_tip_usd: float = MIN_PRIVATE_TIP_USD,
                 relay_gas_units: int = PRIVATE_RELAY_GAS_UNITS):
        self.arb_efficiency = arb_efficiency
        self.capture_rate = capture_rate
        self.searcher_gas_usd = searcher_gas_usd
        self.bid_rate = bid_rate
        self.inclusion_premium = inclusion_premium
        self.min_tip_usd = min_tip_usd
        self.relay_gas_units = relay_gas_units

    def cost(self,
             trade_size_usd: float,
             pool_depth_usd: float,
             gas_price_wei: int,
             eth_price_usd: float,
             available: bool = True) -> PrivateRelayCost:
        """
        Cost of sending the whole trade through a private relay.

        Args:
            trade_size_usd: Trade size in USD
            pool_depth_usd: Pool TVL in USD (both sides)
            gas_price_wei: Current gas price
            eth_price_usd: Native token price used to price gas
            available: False when the chain has no private relay

        Returns:
            PrivateRelayCost; infinite cost when the relay is unavailable
        """
        if not available:
            return PrivateRelayCost.unavailable()

        base_gas_cost_usd = self.relay_gas_units * gas_price_wei / 1e18 * eth_price_usd

        reserve_in_usd = pool_depth_usd / 2
        delta = trade_size_usd / reserve_in_usd if reserve_in_usd > 0 else 0.0
        created_arb = self.arb_efficiency * reserve_in_usd * delta * delta

        gross = created_arb * self.capture_rate
        net = max(0.0, gross - self.searcher_gas_usd)
        bid = net * self.bid_rate

        # No competing bundle means no auction pressure
        required = bid * self.inclusion_premium if bid > 0 else 0.0
        tip = max(required, self.min_tip_usd)

        logger.debug(
            f"Private relay: depth=${pool_depth_usd:,.0f} delta={delta:.6f} "
            f"arb=${created_arb:.4f} bid=${bid:.4f} tip=${tip:.4f} gas=${base_gas_cost_usd:.4f}"
        )

        return PrivateRelayCost(
            base_gas_cost_usd=base_gas_cost_usd,
            price_distortion=delta,
            created_arb_profit_usd=created_arb,
            searcher_bid_usd=bid,
            required_payment_usd=required,
            estimated_tip_usd=tip,
            total_cost_usd=base_gas_cost_usd + tip,
        )

    def partial_tip(self, full_tip_usd: float, private_ratio: float) -> float:
        """Tip for sending only part of the trade privately; arb scales with the square of size."""
        return max(full_tip_usd * private_ratio * private_ratio, self.min_tip_usd)
