"""
DEX Protocol Math Implementations.

Exact integer implementations of constant-product AMM math used by the
sandwich simulator, the historical profiler and the chunk splitter.
"""
from .uniswap_v2_math import (
    UniswapV2Math,
    ReservePair,
    integer_sqrt,
    amount_out,
    optimal_frontrun_amount,
)

__all__ = [
    "UniswapV2Math",
    "ReservePair",
    "integer_sqrt",
    "amount_out",
    "optimal_frontrun_amount",
]
