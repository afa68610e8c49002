"""
Historical Swap and Pool Profile Data Models.

Defines the records the profiler ingests (raw swap events and pool state),
the normalized swap it annotates in place, and the aggregated pool profile
it produces.
"""
import math
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PoolRiskTier(str, Enum):
    """MEV temperature tiers for a pool."""
    LOW = "LOW"            # < 25
    MEDIUM = "MEDIUM"      # 25 - 50
    HIGH = "HIGH"          # 50 - 75
    EXTREME = "EXTREME"    # >= 75


@dataclass(frozen=True)
class SwapRecord:
    """A raw swap event as returned by a historical swap provider."""
    id: str
    tx_hash: str
    block_number: int
    log_index: int
    timestamp: int
    trader: str       # transaction origin
    sender: str       # router / caller of the pair
    recipient: str
    amount0_in: int   # raw units
    amount0_out: int
    amount1_in: int
    amount1_out: int
    amount_usd: Decimal = Decimal(0)


@dataclass(frozen=True)
class PoolState:
    """Current state of a constant-product pair."""
    pool_address: str
    reserve0: int
    reserve1: int
    token0: str = ""
    token1: str = ""
    token0_symbol: str = ""
    token1_symbol: str = ""
    token0_decimals: int = 18
    token1_decimals: int = 18

    @property
    def reserves(self) -> Tuple[int, int]:
        return (self.reserve0, self.reserve1)


@dataclass
class NormalizedSwap:
    """A historical trade oriented by direction and annotated during profiling."""
    tx_hash: str
    block_number: int
    log_index: int
    timestamp: int
    trader: str
    sender: str
    buy_token0: bool  # True when token1 went in and token0 came out

    # Raw integer amounts
    amount0_in: int
    amount0_out: int
    amount1_in: int
    amount1_out: int

    # Human-scale amounts along the trade direction
    amount_in: Decimal
    amount_out: Decimal
    amount_usd: Decimal

    # Reconstructed reserves (raw units)
    reserve0_before: int = 0
    reserve1_before: int = 0
    reserve0_after: int = 0
    reserve1_after: int = 0

    # Per-swap analysis
    expected_out: Decimal = Decimal(0)
    slippage_pct: float = 0.0
    price_impact_pct: float = 0.0
    loss_usd: float = 0.0

    # Sandwich annotation
    is_sandwich: bool = False
    attacker: Optional[str] = None
    front_tx: Optional[str] = None
    back_tx: Optional[str] = None
    estimated_profit_usd: float = 0.0
    victim_loss_usd: float = 0.0
    block_span: int = 0

    @property
    def order_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)

    @property
    def raw_in(self) -> int:
        return self.amount1_in if self.buy_token0 else self.amount0_in

    @property
    def raw_out(self) -> int:
        return self.amount0_out if self.buy_token0 else self.amount1_out

    def precedes(self, other: "NormalizedSwap") -> bool:
        return self.order_key < other.order_key


@dataclass
class AttackerStats:
    """Aggregated activity of one sandwich attacker."""
    address: str
    attack_count: int = 0
    estimated_profit_usd: float = 0.0
    victim_loss_usd: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "attack_count": self.attack_count,
            "estimated_profit_usd": round(self.estimated_profit_usd, 2),
            "victim_loss_usd": round(self.victim_loss_usd, 2),
        }


@dataclass
class PoolMEVProfile:
    """Empirical MEV temperature of a pool."""
    pool_address: str
    score: float = 25.0
    risk_level: PoolRiskTier = PoolRiskTier.MEDIUM
    mev_cost_multiplier: float = 1.5
    safe_threshold_usd: float = 500.0

    victim_rate: float = 0.0
    avg_victim_slippage: float = 0.0
    max_victim_slippage: float = 0.0
    min_attacked_size_usd: Optional[float] = None
    max_attacked_size_usd: Optional[float] = None
    sandwich_count: int = 0
    sandwich_rate: float = 0.0
    total_loss_usd: float = 0.0
    total_volume_usd: float = 0.0
    arb_pattern_count: int = 0
    top_attackers: List[AttackerStats] = field(default_factory=list)

    sample_size: int = 0
    timestamp: float = field(default_factory=time.time)
    is_default: bool = False
    note: Optional[str] = None

    def adjusted_mev(self, base_mev_usd: float) -> float:
        """Scale a theoretical MEV estimate by this pool's observed aggression."""
        return base_mev_usd * self.mev_cost_multiplier

    def is_chunk_safe(self, chunk_size_usd: float) -> bool:
        return chunk_size_usd < self.safe_threshold_usd

    def recommended_splits(self, trade_size_usd: float, max_splits: int = 10) -> int:
        """Number of chunks that keeps each chunk under the safe threshold."""
        if trade_size_usd < 1000 or trade_size_usd < self.safe_threshold_usd:
            return 1

        base = math.ceil(trade_size_usd / self.safe_threshold_usd)
        if self.score >= 75:
            base = math.ceil(base * 1.5)
        elif self.score >= 50:
            base = math.ceil(base * 1.25)
        return min(base, max_splits)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_address": self.pool_address,
            "score": self.score,
            "risk_level": self.risk_level.value,
            "mev_cost_multiplier": round(self.mev_cost_multiplier, 4),
            "safe_threshold_usd": round(self.safe_threshold_usd, 2),
            "victim_rate": round(self.victim_rate, 4),
            "avg_victim_slippage": round(self.avg_victim_slippage, 4),
            "max_victim_slippage": round(self.max_victim_slippage, 4),
            "min_attacked_size_usd": self.min_attacked_size_usd,
            "max_attacked_size_usd": self.max_attacked_size_usd,
            "sandwich_count": self.sandwich_count,
            "sandwich_rate": round(self.sandwich_rate, 4),
            "total_loss_usd": round(self.total_loss_usd, 2),
            "total_volume_usd": round(self.total_volume_usd, 2),
            "arb_pattern_count": self.arb_pattern_count,
            "top_attackers": [attacker.to_dict() for attacker in self.top_attackers],
            "sample_size": self.sample_size,
            "timestamp": self.timestamp,
            "is_default": self.is_default,
            "note": self.note,
        }


def default_profile(pool_address: str, note: Optional[str] = None) -> PoolMEVProfile:
    """Conservative profile used when history is missing or too thin to score."""
    return PoolMEVProfile(
        pool_address=pool_address,
        score=25.0,
        risk_level=PoolRiskTier.MEDIUM,
        mev_cost_multiplier=1.5,
        safe_threshold_usd=500.0,
        is_default=True,
        note=note,
    )
