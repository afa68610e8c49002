"""
Executor hand-off.

Turns a chosen strategy into per-chunk swap instructions with raw input
amounts and minimum acceptable outputs. Nothing here signs or submits a
transaction.
"""
import logging
import random
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any, Dict, List, Optional

from mev_shield.mev_protection.decision_engine import Strategy, StrategyType
from mev_shield.mev_protection.execution_models import ExecutionChannel, ExecutionPlan
from mev_shield.protocols.dex_protocols.uniswap_v2_math import BPS_DENOMINATOR, ReservePair, UniswapV2Math
from mev_shield.simulation.simulation_models import TradeIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionInstruction:
    """One swap for the executor."""
    chunk_index: int
    amount_in: int
    chain: str
    channel: ExecutionChannel
    expected_out: int
    min_amount_out: int
    block_delay: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_index": self.chunk_index,
            "amount_in": str(self.amount_in),
            "chain": self.chain,
            "channel": self.channel.value,
            "expected_out": str(self.expected_out),
            "min_amount_out": str(self.min_amount_out),
            "block_delay": self.block_delay,
        }


def min_amount_out(expected_out: int, slippage_bps: int) -> int:
    """Lowest output accepted for a chunk under the slippage tolerance."""
    return expected_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


class ChunkSplitter:
    """
    Splits a trade's raw input across plan chunks.

    Chunks are priced one after another against the reserves the previous
    chunk leaves behind. Optional block-delay jitter only varies timing; it
    is not a protection mechanism.
    """

    def __init__(self, fee_bps: int = 30, jitter_block_delays: bool = False, seed: Optional[int] = None):
        self.math = UniswapV2Math(fee_bps)
        self.jitter_block_delays = jitter_block_delays
        self._random = random.Random(seed)

    def instructions_for(self,
                         strategy: Strategy,
                         intent: TradeIntent,
                         reserves: Optional[ReservePair],
                         slippage_bps: int) -> List[ExecutionInstruction]:
        """Instructions for any strategy; single-transaction strategies yield one instruction."""
        if strategy.plan is not None and strategy.type in (StrategyType.SPLIT, StrategyType.FULL_SHIELD):
            return self.split(strategy.plan, intent, reserves, slippage_bps)

        channel = ExecutionChannel.PRIVATE_RELAY if strategy.type == StrategyType.PRIVATE else ExecutionChannel.PUBLIC
        expected = self._expected_out(intent.amount_in, reserves)
        return [ExecutionInstruction(
            chunk_index=0,
            amount_in=intent.amount_in,
            chain=intent.chain,
            channel=channel,
            expected_out=expected,
            min_amount_out=min_amount_out(expected, slippage_bps),
        )]

    def split(self,
              plan: ExecutionPlan,
              intent: TradeIntent,
              reserves: Optional[ReservePair],
              slippage_bps: int) -> List[ExecutionInstruction]:
        """
        Per-chunk instructions for a plan.

        Raw amounts are proportional to each chunk's USD share; the last chunk
        takes the remainder so they sum exactly to the intent's amount_in.
        """
        amounts = self.split_raw_amount(intent.amount_in, [c.amount_usd for c in plan.chunks])

        instructions = []
        current = reserves
        public_seen = 0
        for chunk, amount in zip(plan.chunks, amounts):
            if current is not None and current.is_valid:
                expected, current = self.math.apply_swap(amount, current)
            else:
                expected = 0

            if chunk.channel == ExecutionChannel.PUBLIC:
                delay = public_seen
                if self.jitter_block_delays and public_seen > 0:
                    delay += self._random.randint(0, 1)
                public_seen += 1
            else:
                delay = 0

            instructions.append(ExecutionInstruction(
                chunk_index=chunk.index,
                amount_in=amount,
                chain=chunk.chain,
                channel=chunk.channel,
                expected_out=expected,
                min_amount_out=min_amount_out(expected, slippage_bps),
                block_delay=delay,
            ))

        logger.debug(f"Split {intent.amount_in} into {len(instructions)} instructions")
        return instructions

    @staticmethod
    def split_raw_amount(amount_in: int, usd_amounts: List[Decimal]) -> List[int]:
        """Divide a raw amount in proportion to USD chunk sizes, exactly."""
        if not usd_amounts:
            return []
        total_usd = sum(usd_amounts, Decimal(0))
        if total_usd <= 0:
            return [amount_in] + [0] * (len(usd_amounts) - 1)

        with localcontext() as ctx:
            ctx.prec = 100  # uint256 amounts need more than the default 28 digits
            amounts = [
                int((Decimal(amount_in) * usd / total_usd).to_integral_value(rounding=ROUND_DOWN))
                for usd in usd_amounts[:-1]
            ]
        amounts.append(amount_in - sum(amounts))
        return amounts

    def _expected_out(self, amount_in: int, reserves: Optional[ReservePair]) -> int:
        if reserves is None or not reserves.is_valid:
            return 0
        return self.math.calculate_amount_out(amount_in, reserves.reserve_in, reserves.reserve_out)
