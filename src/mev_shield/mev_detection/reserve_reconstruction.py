"""
Swap normalization and backward reserve reconstruction.

Historical swaps only carry the amounts that moved, so pre-trade reserves are
rebuilt by starting from the pool's current reserves and undoing swaps from
newest to oldest. No archival RPC calls are needed.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Sequence, Tuple

from mev_shield.mev_detection.swap_models import NormalizedSwap, SwapRecord

logger = logging.getLogger(__name__)

MIN_OUTPUT_INPUT_RATIO = Decimal("0.000001")


def normalize_swaps(records: Iterable[SwapRecord],
                    token0_decimals: int = 18,
                    token1_decimals: int = 18) -> List[NormalizedSwap]:
    """
    Orient raw swap events by direction, drop decoding artifacts and sort chronologically.

    Args:
        records: Raw swap events, in any order
        token0_decimals: Decimals of the pair's token0
        token1_decimals: Decimals of the pair's token1

    Returns:
        Normalized swaps sorted by (block number, log index)
    """
    scale0 = Decimal(10) ** token0_decimals
    scale1 = Decimal(10) ** token1_decimals

    swaps: List[NormalizedSwap] = []
    dropped = 0

    for record in records:
        if record.amount0_in <= 0 and record.amount1_in <= 0:
            dropped += 1
            continue
        if record.amount0_out <= 0 and record.amount1_out <= 0:
            dropped += 1
            continue

        buy_token0 = record.amount1_in > 0 and record.amount0_out > 0
        if buy_token0:
            amount_in = Decimal(record.amount1_in) / scale1
            amount_out = Decimal(record.amount0_out) / scale0
        else:
            amount_in = Decimal(record.amount0_in) / scale0
            amount_out = Decimal(record.amount1_out) / scale1

        if amount_in <= 0 or amount_out <= 0:
            dropped += 1
            continue
        if amount_out / amount_in < MIN_OUTPUT_INPUT_RATIO:
            dropped += 1
            continue

        swaps.append(NormalizedSwap(
            tx_hash=record.tx_hash,
            block_number=record.block_number,
            log_index=record.log_index,
            timestamp=record.timestamp,
            trader=record.trader.lower(),
            sender=record.sender.lower(),
            buy_token0=buy_token0,
            amount0_in=record.amount0_in,
            amount0_out=record.amount0_out,
            amount1_in=record.amount1_in,
            amount1_out=record.amount1_out,
            amount_in=amount_in,
            amount_out=amount_out,
            amount_usd=record.amount_usd,
        ))

    if dropped:
        logger.debug(f"Dropped {dropped} malformed swaps during normalization")

    swaps.sort(key=lambda s: s.order_key)
    return swaps


def reconstruct_reserves(swaps: Sequence[NormalizedSwap],
                         current_reserves: Tuple[int, int]) -> Tuple[int, int]:
    """
    Annotate each swap with its pre- and post-trade reserves, in place.

    Walks the chronologically sorted swaps from newest to oldest, undoing each
    swap's effect on the pool. Reserves are floored at 1.

    Returns:
        Reserves before the earliest swap
    """
    reserve0, reserve1 = current_reserves

    for swap in reversed(swaps):
        swap.reserve0_after = reserve0
        swap.reserve1_after = reserve1

        # The pool received amount_in and paid out amount_out
        reserve0 = max(1, reserve0 - swap.amount0_in + swap.amount0_out)
        reserve1 = max(1, reserve1 - swap.amount1_in + swap.amount1_out)

        swap.reserve0_before = reserve0
        swap.reserve1_before = reserve1

    return (reserve0, reserve1)


def replay_forward(swaps: Sequence[NormalizedSwap],
                   earliest_reserves: Tuple[int, int]) -> Tuple[int, int]:
    """Apply swaps oldest to newest starting from the given reserves."""
    reserve0, reserve1 = earliest_reserves
    for swap in swaps:
        reserve0 = reserve0 + swap.amount0_in - swap.amount0_out
        reserve1 = reserve1 + swap.amount1_in - swap.amount1_out
    return (reserve0, reserve1)
