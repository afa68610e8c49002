"""
Execution Plan Data Models.

Per-chain pricing snapshots, trade chunks, cost breakdowns and the execution
plan produced by the channel optimizer.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class ExecutionChannel(str, Enum):
    """How a chunk reaches the block builder."""
    PUBLIC = "public"                  # Standard public mempool
    PRIVATE_RELAY = "private_relay"    # Private relay bundle


class PlanWinner(str, Enum):
    """Which candidate the optimizer picked."""
    DIRECT_SWAP = "DIRECT_SWAP"
    PRIVATE_RELAY = "PRIVATE_RELAY"
    OPTIMIZED_PATH = "OPTIMIZED_PATH"


@dataclass(frozen=True)
class ChainPricing:
    """Live execution costs on one chain, fixed for the duration of an optimization."""
    chain: str
    gas_price_wei: int = 0
    native_price_usd: float = 0.0
    swap_gas_units: int = 0
    swap_gas_cost_usd: float = 0.0
    sandwich_gas_cost_usd: float = 0.0
    safe_threshold_usd: float = 0.0
    liquidity_depth_usd: float = 0.0
    available: bool = False
    assumed_inputs: tuple = ()
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, chain: str, error: str) -> "ChainPricing":
        return cls(chain=chain, available=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "gas_price_wei": str(self.gas_price_wei),
            "native_price_usd": round(self.native_price_usd, 4),
            "swap_gas_cost_usd": round(self.swap_gas_cost_usd, 4),
            "sandwich_gas_cost_usd": round(self.sandwich_gas_cost_usd, 4),
            "safe_threshold_usd": round(self.safe_threshold_usd, 2),
            "liquidity_depth_usd": round(self.liquidity_depth_usd, 2),
            "available": self.available,
            "assumed_inputs": list(self.assumed_inputs),
            "error": self.error,
        }


@dataclass(frozen=True)
class BridgeQuote:
    """One-way bridge cost from the primary chain to another chain."""
    from_chain: str
    to_chain: str
    fees_usd: float
    gas_usd: float
    execution_seconds: int = 300

    @property
    def total_usd(self) -> float:
        return self.fees_usd + self.gas_usd


@dataclass
class LiveMarketData:
    """Pricing for every chain considered in one optimization."""
    primary_chain: str
    pricing: Dict[str, ChainPricing] = field(default_factory=dict)
    bridge_quotes: Dict[str, BridgeQuote] = field(default_factory=dict)
    eth_price_usd: float = 0.0
    assumptions: List[str] = field(default_factory=list)

    def get(self, chain: str) -> Optional[ChainPricing]:
        pricing = self.pricing.get(chain)
        if pricing is None or not pricing.available:
            return None
        return pricing

    @property
    def available_chains(self) -> List[str]:
        return [name for name, pricing in self.pricing.items() if pricing.available]


@dataclass
class ChunkSpec:
    """One slice of a trade."""
    index: int
    amount_usd: Decimal
    chain: str
    channel: ExecutionChannel = ExecutionChannel.PUBLIC
    mev_exposure_usd: float = 0.0
    gas_cost_usd: float = 0.0
    bridge_cost_usd: float = 0.0
    relay_cost_usd: float = 0.0
    is_safe: bool = True

    @property
    def total_cost_usd(self) -> float:
        return self.mev_exposure_usd + self.gas_cost_usd + self.bridge_cost_usd + self.relay_cost_usd

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "amount_usd": str(self.amount_usd),
            "chain": self.chain,
            "channel": self.channel.value,
            "mev_exposure_usd": round(self.mev_exposure_usd, 4),
            "gas_cost_usd": round(self.gas_cost_usd, 4),
            "bridge_cost_usd": round(self.bridge_cost_usd, 4),
            "relay_cost_usd": round(self.relay_cost_usd, 4),
            "is_safe": self.is_safe,
        }


@dataclass
class CostBreakdown:
    """Aggregate cost of an execution candidate."""
    mev_exposure: float = 0.0
    gas_fees: float = 0.0
    bridge_fees: float = 0.0
    relay_fees: float = 0.0
    timing_risk: float = 0.0
    total_cost: float = 0.0
    savings: float = 0.0

    @classmethod
    def from_chunks(cls, chunks: List[ChunkSpec], timing_risk: float = 0.0) -> "CostBreakdown":
        mev = sum(c.mev_exposure_usd for c in chunks)
        gas = sum(c.gas_cost_usd for c in chunks)
        bridge = sum(c.bridge_cost_usd for c in chunks)
        relay = sum(c.relay_cost_usd for c in chunks)
        return cls(
            mev_exposure=mev,
            gas_fees=gas,
            bridge_fees=bridge,
            relay_fees=relay,
            timing_risk=timing_risk,
            total_cost=mev + gas + bridge + relay + timing_risk,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mev_exposure": round(self.mev_exposure, 4),
            "gas_fees": round(self.gas_fees, 4),
            "bridge_fees": round(self.bridge_fees, 4),
            "relay_fees": round(self.relay_fees, 4),
            "timing_risk": round(self.timing_risk, 4),
            "total_cost": round(self.total_cost, 4),
            "savings": round(self.savings, 4),
        }


@dataclass
class CrossChainOption:
    """Cost of executing the trade on another chain and bridging back."""
    chain: str
    bridge_cost_usd: float
    gas_cost_usd: float
    mev_exposure_usd: float
    execution_seconds: int = 0

    @property
    def total_cost_usd(self) -> float:
        return self.bridge_cost_usd + self.gas_cost_usd + self.mev_exposure_usd

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "bridge_cost_usd": round(self.bridge_cost_usd, 4),
            "gas_cost_usd": round(self.gas_cost_usd, 4),
            "mev_exposure_usd": round(self.mev_exposure_usd, 4),
            "total_cost_usd": round(self.total_cost_usd, 4),
            "execution_seconds": self.execution_seconds,
        }


@dataclass
class ExecutionPlan:
    """Minimum-cost execution found by the optimizer, with its baselines."""
    trade_size_usd: Decimal
    chunks: List[ChunkSpec]
    costs: CostBreakdown
    winner: PlanWinner
    direct_baseline: CostBreakdown
    private_baseline: CostBreakdown
    private_ratio: float = 0.0
    public_chunk_count: int = 1
    primary_chain: str = "ethereum"
    feasible: bool = True
    early_exit: bool = False
    warnings: List[str] = field(default_factory=list)
    cross_chain_options: List[CrossChainOption] = field(default_factory=list)
    reasoning: str = ""

    @property
    def total_cost(self) -> float:
        return self.costs.total_cost

    @property
    def unsafe_chunks(self) -> List[ChunkSpec]:
        return [c for c in self.chunks if not c.is_safe]

    @property
    def has_unsafe_chunk(self) -> bool:
        return any(not c.is_safe for c in self.chunks)

    def largest_unsafe_chunk(self) -> Optional[ChunkSpec]:
        unsafe = self.unsafe_chunks
        if not unsafe:
            return None
        return max(unsafe, key=lambda c: c.amount_usd)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_size_usd": str(self.trade_size_usd),
            "winner": self.winner.value,
            "private_ratio": self.private_ratio,
            "public_chunk_count": self.public_chunk_count,
            "primary_chain": self.primary_chain,
            "feasible": self.feasible,
            "early_exit": self.early_exit,
            "chunks": [c.to_dict() for c in self.chunks],
            "costs": self.costs.to_dict(),
            "comparison": {
                "direct_swap": self.direct_baseline.to_dict(),
                "private_relay": self.private_baseline.to_dict(),
                "optimized_path": self.costs.to_dict(),
            },
            "warnings": list(self.warnings),
            "cross_chain_options": [o.to_dict() for o in self.cross_chain_options],
            "reasoning": self.reasoning,
        }
