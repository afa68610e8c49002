"""Data models for trade intents and sandwich simulation results."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

UINT256_MAX = 2 ** 256 - 1


class RiskLevel(str, Enum):
    """Sandwich risk for a single trade."""
    LOW = "LOW"              # <= 0.1% loss, or attack not profitable
    MEDIUM = "MEDIUM"        # 0.1% - 0.5%
    HIGH = "HIGH"            # 0.5% - 2%
    CRITICAL = "CRITICAL"    # > 2%


@dataclass(frozen=True)
class TradeIntent:
    """A swap the caller wants to make."""
    trader: str
    token_in: str
    token_out: str
    amount_in: int  # raw units of token_in
    chain: str = "ethereum"

    def __post_init__(self):
        if isinstance(self.amount_in, bool) or not isinstance(self.amount_in, int):
            raise TypeError(f"amount_in must be an int, got {type(self.amount_in).__name__}")
        if not 0 <= self.amount_in <= UINT256_MAX:
            raise ValueError(f"amount_in out of uint256 range: {self.amount_in}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trader": self.trader,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": str(self.amount_in),
            "chain": self.chain,
        }


@dataclass
class SandwichSimulationResult:
    """Outcome of simulating the optimal sandwich against a trade."""
    clean_output: int = 0
    attacked_output: int = 0
    user_loss: int = 0
    attacker_profit: int = 0
    optimal_frontrun_amount: int = 0

    # USD view, priced from the pool's own implied price
    clean_output_usd: float = 0.0
    user_loss_usd: float = 0.0
    attacker_profit_usd: float = 0.0
    sandwich_gas_cost_usd: float = 0.0
    pool_depth_usd: float = 0.0
    implied_price: float = 0.0
    loss_percent: float = 0.0

    attack_viable: bool = False
    risk: RiskLevel = RiskLevel.LOW

    gas_price_wei: int = 0
    eth_price_usd: float = 0.0

    # Degraded mode
    degraded: bool = False
    degraded_reason: Optional[str] = None
    assumptions: List[str] = field(default_factory=list)

    @property
    def trade_to_pool_ratio(self) -> float:
        if self.pool_depth_usd <= 0:
            return 0.0
        return self.clean_output_usd / self.pool_depth_usd

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view with integer amounts as decimal strings."""
        return {
            "clean_output": str(self.clean_output),
            "attacked_output": str(self.attacked_output),
            "user_loss": str(self.user_loss),
            "attacker_profit": str(self.attacker_profit),
            "optimal_frontrun_amount": str(self.optimal_frontrun_amount),
            "clean_output_usd": round(self.clean_output_usd, 2),
            "user_loss_usd": round(self.user_loss_usd, 2),
            "attacker_profit_usd": round(self.attacker_profit_usd, 2),
            "sandwich_gas_cost_usd": round(self.sandwich_gas_cost_usd, 4),
            "pool_depth_usd": round(self.pool_depth_usd, 2),
            "implied_price": self.implied_price,
            "loss_percent": round(self.loss_percent, 4),
            "attack_viable": self.attack_viable,
            "risk": self.risk.value,
            "gas_price_wei": str(self.gas_price_wei),
            "eth_price_usd": round(self.eth_price_usd, 2),
            "degraded": self.degraded,
            "degraded_reason": self.degraded_reason,
            "assumptions": list(self.assumptions),
        }
