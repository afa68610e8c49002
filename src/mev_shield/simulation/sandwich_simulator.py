"""
Sandwich Attack Simulator.

Replays the optimal frontrun -> victim -> backrun sequence against a
constant-product pool to measure what a rational attacker would extract from
a trade, and whether doing so pays for the attacker's gas.
"""
import logging
from decimal import Decimal
from typing import Optional, Sequence

from mev_shield.mev_protection.chain_configs import get_chain_config
from mev_shield.protocols.dex_protocols.uniswap_v2_math import (
    DEFAULT_FEE_BPS,
    ReservePair,
    UniswapV2Math,
)
from mev_shield.simulation.simulation_models import (
    RiskLevel,
    SandwichSimulationResult,
    TradeIntent,
)

logger = logging.getLogger(__name__)

WEI_PER_ETH = Decimal(10) ** 18


class SandwichSimulator:
    """
    Closed-form sandwich simulation on raw integer reserves.

    The simulation never trusts an external price for the attacker's leg:
    USD figures are derived from the pool's own implied price so that
    attacker profit and user loss stay consistent with pool state.
    """

    def __init__(self,
                 fee_bps: int = DEFAULT_FEE_BPS,
                 sandwich_gas_units: Optional[int] = None):
        self.math = UniswapV2Math(fee_bps)
        self.sandwich_gas_units = sandwich_gas_units

        # Loss-percent thresholds, checked highest first
        self.risk_thresholds = [
            (2.0, RiskLevel.CRITICAL),
            (0.5, RiskLevel.HIGH),
            (0.1, RiskLevel.MEDIUM),
        ]

    def simulate(self,
                 intent: TradeIntent,
                 reserves: ReservePair,
                 gas_price_wei: int,
                 eth_price_usd: float,
                 token_in_decimals: int = 18,
                 token_out_decimals: int = 18,
                 output_token_price_usd: float = 1.0,
                 assumptions: Optional[Sequence[str]] = None) -> SandwichSimulationResult:
        """
        Simulate the optimal sandwich against a trade.

        Args:
            intent: The victim trade
            reserves: Pool reserves oriented token_in -> token_out
            gas_price_wei: Current gas price on the trade's chain
            eth_price_usd: Native token price used to price the attacker's gas
            token_in_decimals: Decimals of the input token
            token_out_decimals: Decimals of the output token
            output_token_price_usd: USD price of one output token
            assumptions: Market inputs that were assumed rather than observed

        Returns:
            SandwichSimulationResult; a conservative fallback when reserves are unusable
        """
        if not reserves.is_valid:
            return self.fallback("pool reserves unavailable or empty")

        assumed = list(assumptions or [])
        amount_in = intent.amount_in
        sandwich_gas_usd = self._sandwich_gas_cost_usd(intent.chain, gas_price_wei, eth_price_usd)
        in_scale = Decimal(10) ** token_in_decimals
        out_scale = Decimal(10) ** token_out_decimals
        out_price = Decimal(str(output_token_price_usd))
        pool_depth_usd = 2 * Decimal(reserves.reserve_out) / out_scale * out_price

        clean_output = self.math.calculate_amount_out(amount_in, reserves.reserve_in, reserves.reserve_out)
        if clean_output <= 0:
            logger.debug(f"No output for {amount_in} against {reserves}; nothing to attack")
            return SandwichSimulationResult(
                sandwich_gas_cost_usd=float(sandwich_gas_usd),
                pool_depth_usd=float(pool_depth_usd),
                gas_price_wei=gas_price_wei,
                eth_price_usd=eth_price_usd,
                assumptions=assumed,
            )

        implied_price = (Decimal(clean_output) / out_scale) / (Decimal(amount_in) / in_scale)
        clean_output_usd = Decimal(clean_output) / out_scale * out_price

        frontrun = self.math.optimal_frontrun_amount(reserves.reserve_in, amount_in)
        if frontrun <= 0:
            return SandwichSimulationResult(
                clean_output=clean_output,
                attacked_output=clean_output,
                clean_output_usd=float(clean_output_usd),
                sandwich_gas_cost_usd=float(sandwich_gas_usd),
                pool_depth_usd=float(pool_depth_usd),
                implied_price=float(implied_price),
                gas_price_wei=gas_price_wei,
                eth_price_usd=eth_price_usd,
                assumptions=assumed,
            )

        # Frontrun -> victim -> backrun, each against the reserves left by the previous step
        attacker_bought, after_frontrun = self.math.apply_swap(frontrun, reserves)
        attacked_output, after_victim = self.math.apply_swap(amount_in, after_frontrun)
        backrun_revenue, _ = self.math.apply_swap(attacker_bought, after_victim.flipped())

        attacker_profit = max(0, backrun_revenue - frontrun)
        user_loss = max(0, clean_output - attacked_output)

        attacker_profit_usd = Decimal(attacker_profit) / in_scale * implied_price * out_price
        user_loss_usd = Decimal(user_loss) / out_scale * out_price
        loss_percent = Decimal(user_loss) / Decimal(clean_output) * 100

        attack_viable = attacker_profit_usd > sandwich_gas_usd
        risk = self._classify_risk(float(loss_percent)) if attack_viable else RiskLevel.LOW

        logger.debug(
            f"Sandwich sim: frontrun={frontrun} profit=${attacker_profit_usd:.2f} "
            f"gas=${sandwich_gas_usd:.2f} loss={loss_percent:.3f}% viable={attack_viable}"
        )

        return SandwichSimulationResult(
            clean_output=clean_output,
            attacked_output=attacked_output,
            user_loss=user_loss,
            attacker_profit=attacker_profit,
            optimal_frontrun_amount=frontrun,
            clean_output_usd=float(clean_output_usd),
            user_loss_usd=float(user_loss_usd),
            attacker_profit_usd=float(attacker_profit_usd),
            sandwich_gas_cost_usd=float(sandwich_gas_usd),
            pool_depth_usd=float(pool_depth_usd),
            implied_price=float(implied_price),
            loss_percent=float(loss_percent),
            attack_viable=attack_viable,
            risk=risk,
            gas_price_wei=gas_price_wei,
            eth_price_usd=eth_price_usd,
            assumptions=assumed,
        )

    def fallback(self, reason: str) -> SandwichSimulationResult:
        """Conservative result used when pool or chain data is missing."""
        logger.warning(f"⚠️ Sandwich simulation degraded: {reason}")
        return SandwichSimulationResult(
            risk=RiskLevel.MEDIUM,
            attack_viable=False,
            degraded=True,
            degraded_reason=reason,
        )

    def gas_units_for(self, chain: str) -> int:
        """Attacker gas for a frontrun and backrun on the given chain."""
        if self.sandwich_gas_units is not None:
            return self.sandwich_gas_units
        return get_chain_config(chain).sandwich_gas_units

    def _sandwich_gas_cost_usd(self, chain: str, gas_price_wei: int, eth_price_usd: float) -> Decimal:
        if gas_price_wei <= 0 or eth_price_usd <= 0:
            return Decimal(0)
        gas_eth = Decimal(self.gas_units_for(chain) * gas_price_wei) / WEI_PER_ETH
        return gas_eth * Decimal(str(eth_price_usd))

    def _classify_risk(self, loss_percent: float) -> RiskLevel:
        for threshold, level in self.risk_thresholds:
            if loss_percent > threshold:
                return level
        return RiskLevel.LOW


# Convenience functions

def simulate_sandwich(intent: TradeIntent,
                      reserves: ReservePair,
                      gas_price_wei: int,
                      eth_price_usd: float,
                      **kwargs) -> SandwichSimulationResult:
    """Simulate a sandwich with default fee and gas settings."""
    simulator = SandwichSimulator()
    return simulator.simulate(intent, reserves, gas_price_wei, eth_price_usd, **kwargs)
