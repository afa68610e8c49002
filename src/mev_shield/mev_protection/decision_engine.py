"""
Execution Strategy Decision Engine.

Maps a sandwich simulation, the trade size, the user's policy and (when
needed) an optimizer plan onto one execution strategy. The engine keeps no
state between calls, so every decision is reproducible from its inputs.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from mev_shield.mev_protection.execution_models import ExecutionPlan, PlanWinner
from mev_shield.mev_protection.execution_optimizer import ExecutionChannelOptimizer
from mev_shield.policy.user_policy import UserPolicy
from mev_shield.simulation.simulation_models import RiskLevel, SandwichSimulationResult

logger = logging.getLogger(__name__)


class StrategyType(str, Enum):
    """How the trade should be executed."""
    DIRECT = "DIRECT"              # Plain public swap
    MEV_ROUTE = "MEV_ROUTE"        # Aggregator route with tight slippage
    PRIVATE = "PRIVATE"            # Whole trade via private relay
    SPLIT = "SPLIT"                # Optimized chunked execution
    FULL_SHIELD = "FULL_SHIELD"    # Split with the largest unsafe chunk sent privately


PLAN_STRATEGIES = (StrategyType.SPLIT, StrategyType.FULL_SHIELD)


@dataclass(frozen=True)
class Strategy:
    """A chosen strategy; SPLIT and FULL_SHIELD always carry their plan."""
    type: StrategyType
    reasoning: str
    plan: Optional[ExecutionPlan] = None

    def __post_init__(self):
        if self.type in PLAN_STRATEGIES and self.plan is None:
            raise ValueError(f"{self.type.value} strategy requires an execution plan")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "reasoning": self.reasoning,
            "plan": self.plan.to_dict() if self.plan else None,
        }


class DecisionEngine:
    """Deterministic strategy selection."""

    def __init__(self, optimizer: Optional[ExecutionChannelOptimizer] = None):
        self.optimizer = optimizer or ExecutionChannelOptimizer()

    @staticmethod
    def needs_plan(simulation: SandwichSimulationResult,
                   trade_size_usd: float,
                   policy: UserPolicy) -> bool:
        """True when the decision depends on an optimizer plan."""
        if not simulation.attack_viable or simulation.risk == RiskLevel.LOW:
            return False
        if simulation.risk == RiskLevel.MEDIUM and trade_size_usd <= policy.private_threshold_usd:
            return False
        return True

    def decide(self,
               simulation: SandwichSimulationResult,
               trade_size_usd: float,
               policy: UserPolicy,
               plan: Optional[ExecutionPlan] = None) -> Strategy:
        """
        Choose an execution strategy.

        Args:
            simulation: Sandwich simulation of the unsplit trade
            trade_size_usd: Trade size in USD
            policy: The trader's (clamped) policy
            plan: Optimizer plan; required once the trade is risky enough

        Returns:
            Strategy
        """
        strategy = self._decide(simulation, trade_size_usd, policy, plan)
        logger.info(f"🎯 Strategy {strategy.type.value}: {strategy.reasoning}")
        return strategy

    def _decide(self,
                simulation: SandwichSimulationResult,
                trade_size_usd: float,
                policy: UserPolicy,
                plan: Optional[ExecutionPlan]) -> Strategy:
        risk = simulation.risk

        if not simulation.attack_viable:
            if simulation.degraded:
                reason = f"Simulation degraded ({simulation.degraded_reason}); no viable attack could be shown."
            else:
                reason = (
                    f"Sandwich not profitable: attacker profit ${simulation.attacker_profit_usd:.2f} "
                    f"vs gas ${simulation.sandwich_gas_cost_usd:.2f}."
                )
            return Strategy(StrategyType.DIRECT, reason)

        if risk == RiskLevel.LOW:
            return Strategy(
                StrategyType.DIRECT,
                f"Attack viable but expected loss is small ({simulation.loss_percent:.3f}%).",
            )

        if risk == RiskLevel.MEDIUM and trade_size_usd <= policy.private_threshold_usd:
            return Strategy(
                StrategyType.MEV_ROUTE,
                f"Medium risk on a ${trade_size_usd:,.0f} trade, within the "
                f"${policy.private_threshold_usd:,.0f} private threshold; use a protected route.",
            )

        if plan is None:
            return Strategy(
                StrategyType.PRIVATE,
                f"{risk.value} risk and no execution plan available; defaulting to private relay.",
            )

        unmitigated = plan.direct_baseline.mev_exposure
        if plan.total_cost >= unmitigated:
            return Strategy(
                StrategyType.PRIVATE,
                f"Best plan costs ${plan.total_cost:.2f}, not below the unmitigated MEV "
                f"${unmitigated:.2f}; splitting adds no value.",
            )

        if plan.winner == PlanWinner.PRIVATE_RELAY:
            return Strategy(
                StrategyType.PRIVATE,
                f"Private relay is the cheapest execution at ${plan.total_cost:.2f}.",
            )

        if risk == RiskLevel.CRITICAL and plan.has_unsafe_chunk:
            shielded = self.optimizer.shield_largest_unsafe_chunk(plan)
            return Strategy(
                StrategyType.FULL_SHIELD,
                f"Critical risk with unsafe chunks; splitting into {len(shielded.chunks)} chunks "
                f"and shielding the largest unsafe one (${shielded.total_cost:.2f} total).",
                plan=shielded,
            )

        return Strategy(
            StrategyType.SPLIT,
            f"Split into {len(plan.chunks)} chunks for ${plan.total_cost:.2f}, saving "
            f"${plan.costs.savings:.2f} versus a direct swap.",
            plan=plan,
        )
