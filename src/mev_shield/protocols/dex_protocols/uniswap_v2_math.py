"""
Uniswap V2 Math Implementation.

Implements the exact constant product formula (x * y = k) used by Uniswap V2
and its forks, on raw fixed-point integers, together with the closed-form
sandwich frontrun that maximizes an attacker's profit against a single victim.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple
import logging

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000
DEFAULT_FEE_BPS = 30  # 0.3%


@dataclass(frozen=True)
class ReservePair:
    """Pool reserves oriented along a trade direction."""
    reserve_in: int
    reserve_out: int

    @property
    def is_valid(self) -> bool:
        return self.reserve_in > 0 and self.reserve_out > 0

    def flipped(self) -> "ReservePair":
        """Same pool seen from the opposite trade direction."""
        return ReservePair(reserve_in=self.reserve_out, reserve_out=self.reserve_in)


def integer_sqrt(value: int) -> int:
    """
    Floor square root of a non-negative integer using Babylonian iteration.

    Returns 0 for non-positive input.
    """
    if value <= 0:
        return 0
    if value <= 3:
        return 1

    z = value
    x = value // 2 + 1
    while x < z:
        z = x
        x = (value // x + x) // 2
    return z


class UniswapV2Math:
    """
    Exact implementation of Uniswap V2 constant product AMM math.

    All trade math operates on raw token units (ints) so that chained swaps
    never accumulate floating point drift. Degenerate inputs return 0, which
    callers treat as "no trade possible".
    """

    def __init__(self, fee_bps: int = DEFAULT_FEE_BPS):
        """
        Initialize Uniswap V2 math.

        Args:
            fee_bps: Trading fee in basis points (default 30 = 0.3%)
        """
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {fee_bps}")
        self.fee_bps = fee_bps
        self.fee_multiplier = BPS_DENOMINATOR - fee_bps

    def calculate_amount_out(self,
                             amount_in: int,
                             reserve_in: int,
                             reserve_out: int) -> int:
        """
        Calculate output amount for a given input using the exact V2 formula.

        Formula: amountOut = (amountIn * γ * reserveOut) / (reserveIn * 10000 + amountIn * γ)
        with γ = 10000 - fee_bps.

        Args:
            amount_in: Amount of input token (raw units)
            reserve_in: Reserve of input token in pool
            reserve_out: Reserve of output token in pool

        Returns:
            Amount of output token (raw units), 0 for degenerate input
        """
        if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
            return 0

        amount_in_with_fee = amount_in * self.fee_multiplier
        numerator = amount_in_with_fee * reserve_out
        denominator = reserve_in * BPS_DENOMINATOR + amount_in_with_fee

        return numerator // denominator

    def apply_swap(self, amount_in: int, reserves: ReservePair) -> Tuple[int, ReservePair]:
        """
        Swap against the given reserves and return the output with the shifted reserves.

        The input reserve grows by the full input (fee included), as on-chain.
        """
        amount_out = self.calculate_amount_out(amount_in, reserves.reserve_in, reserves.reserve_out)
        if amount_out <= 0:
            return 0, reserves
        return amount_out, ReservePair(
            reserve_in=reserves.reserve_in + amount_in,
            reserve_out=reserves.reserve_out - amount_out,
        )

    def optimal_frontrun_amount(self, reserve_in: int, victim_amount_in: int) -> int:
        """
        Closed-form frontrun size maximizing a sandwich attacker's profit.

        frontrun = sqrt(γR * (γR + γΔ)) - γR

        where γ = 1 - fee, R is the input reserve and Δ the victim's input.

        Returns:
            Frontrun input amount, or 0 when no profitable frontrun exists
        """
        if reserve_in <= 0 or victim_amount_in < 0:
            return 0

        gamma_reserve = reserve_in * self.fee_multiplier // BPS_DENOMINATOR
        gamma_victim = victim_amount_in * self.fee_multiplier // BPS_DENOMINATOR
        if gamma_reserve <= 0:
            return 0

        root = integer_sqrt(gamma_reserve * (gamma_reserve + gamma_victim))
        if root <= gamma_reserve:
            return 0
        return root - gamma_reserve

    def calculate_price_impact(self,
                               amount_in: int,
                               reserve_in: int,
                               reserve_out: int) -> Decimal:
        """
        Calculate the price impact of a trade.

        Price impact = 1 - (post_trade_price / pre_trade_price)

        Returns:
            Price impact as a decimal (0.01 = 1% impact)
        """
        if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
            return Decimal('0')

        amount_out = self.calculate_amount_out(amount_in, reserve_in, reserve_out)
        if amount_out <= 0:
            return Decimal('1')  # 100% impact if trade fails

        pre_trade_price = Decimal(reserve_out) / Decimal(reserve_in)
        post_trade_price = Decimal(reserve_out - amount_out) / Decimal(reserve_in + amount_in)

        return Decimal('1') - (post_trade_price / pre_trade_price)

    def get_spot_price(self,
                       reserve_in: int,
                       reserve_out: int,
                       include_fee: bool = True) -> Decimal:
        """
        Get the current spot price (output tokens per input token, raw units).
        """
        if reserve_in <= 0 or reserve_out <= 0:
            return Decimal('0')

        spot_price = Decimal(reserve_out) / Decimal(reserve_in)
        if include_fee:
            spot_price = spot_price * Decimal(self.fee_multiplier) / Decimal(BPS_DENOMINATOR)
        return spot_price


# Convenience functions

def amount_out(amount_in: int, reserve_in: int, reserve_out: int,
               fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """Output of a constant-product swap; 0 when any operand is non-positive."""
    return UniswapV2Math(fee_bps).calculate_amount_out(amount_in, reserve_in, reserve_out)


def optimal_frontrun_amount(reserve_in: int, victim_amount_in: int,
                            fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """Profit-maximizing frontrun input against a victim trade; 0 if none."""
    return UniswapV2Math(fee_bps).optimal_frontrun_amount(reserve_in, victim_amount_in)
