"""
Execution-Channel Optimizer.

Searches a hybrid grid of private-relay share x public chunk count for the
execution with the lowest expected MEV loss plus fees, and reports it next to
the direct-swap and private-relay baselines.
"""
import logging
import math
from dataclasses import dataclass, replace
from decimal import ROUND_DOWN, Decimal
from typing import List, Optional, Tuple

from mev_shield.mev_detection.swap_models import PoolMEVProfile
from mev_shield.mev_protection.chain_configs import get_chain_config
from mev_shield.mev_protection.execution_models import (
    ChainPricing,
    ChunkSpec,
    CostBreakdown,
    CrossChainOption,
    ExecutionChannel,
    ExecutionPlan,
    LiveMarketData,
    PlanWinner,
)
from mev_shield.mev_protection.private_relay_model import PrivateRelayCost, PrivateRelayCostModel

logger = logging.getLogger(__name__)

MAX_CHUNKS_NORMAL = 100
MAX_CHUNKS_WHALE = 20
WHALE_THRESHOLD_USD = 1_000_000

MEV_EXTRACTION_EFFICIENCY = 0.85
PRICE_VOLATILITY_PER_BLOCK = 0.00002
GAS_VOLATILITY_FACTOR = 0.05          # priority fee escalation per sqrt(chunk index)
LIQUIDITY_DECAY = 0.4                 # share of accumulated impact carried to the next block
SAFE_CHUNK_MEV_USD = 0.01

MAX_TRADE_TO_LIQUIDITY_RATIO = 0.10
LIQUIDITY_WARNING_RATIO = 0.05
BRIDGE_RETURN_COST_MULTIPLIER = 1.15  # bridging back costs more than the outbound leg
EARLY_EXIT_GAS_MULTIPLE = 2.0

PRIVATE_RATIOS = [i / 10 for i in range(11)]
USD_QUANTUM = Decimal("0.000001")


@dataclass
class _SearchContext:
    """Inputs held fixed across one grid search."""
    trade_size: Decimal
    trade_size_usd: float
    full_mev_usd: float
    chain: str
    safe_threshold_usd: float
    swap_gas_cost_usd: float
    relay: PrivateRelayCost
    relay_model: PrivateRelayCostModel

    @property
    def virtual_liquidity_usd(self) -> float:
        # Calibrated so an unsplit trade reproduces the full MEV estimate
        if self.full_mev_usd <= 0:
            return math.inf
        return self.trade_size_usd ** 2 * MEV_EXTRACTION_EFFICIENCY / (2 * self.full_mev_usd)


class ExecutionChannelOptimizer:
    """
    Minimum-cost execution planner.

    Pure computation over a LiveMarketData snapshot: identical inputs always
    produce an identical plan.
    """

    def __init__(self, relay_model: Optional[PrivateRelayCostModel] = None):
        self.relay_model = relay_model or PrivateRelayCostModel()

    def optimize(self,
                 trade_size_usd: float,
                 unmitigated_mev_usd: float,
                 profile: Optional[PoolMEVProfile],
                 market: LiveMarketData,
                 primary_chain: Optional[str] = None,
                 max_chunks: Optional[int] = None) -> ExecutionPlan:
        """
        Find the cheapest way to execute a trade.

        Args:
            trade_size_usd: Trade size in USD
            unmitigated_mev_usd: Simulated sandwich loss of a single public swap
            profile: Historical MEV profile of the pool, scales the loss and sets the safe chunk size
            market: Per-chain pricing snapshot
            primary_chain: Chain the trade executes on (defaults to market.primary_chain)
            max_chunks: Policy cap on the public chunk count

        Returns:
            ExecutionPlan with the winner and both baselines
        """
        chain = (primary_chain or market.primary_chain).lower()
        trade_size = Decimal(str(trade_size_usd))
        full_mev = profile.adjusted_mev(unmitigated_mev_usd) if profile else unmitigated_mev_usd

        pricing = market.get(chain)
        if pricing is None:
            logger.warning(f"⚠️ No pricing for {chain}; returning unoptimized plan")
            return self._fallback_plan(trade_size, full_mev, chain)

        chain_config = get_chain_config(chain)
        relay = self.relay_model.cost(
            trade_size_usd,
            pricing.liquidity_depth_usd,
            pricing.gas_price_wei,
            pricing.native_price_usd,
            available=chain_config.supports_private_relay,
        )

        ctx = _SearchContext(
            trade_size=trade_size,
            trade_size_usd=float(trade_size),
            full_mev_usd=full_mev,
            chain=chain,
            safe_threshold_usd=profile.safe_threshold_usd if profile else pricing.safe_threshold_usd,
            swap_gas_cost_usd=pricing.swap_gas_cost_usd,
            relay=relay,
            relay_model=self.relay_model,
        )

        direct_chunks, direct = self.evaluate(ctx, 0.0, 1)
        if relay.available:
            private_chunks, private = self.evaluate(ctx, 1.0, 0)
        else:
            private_chunks, private = [], CostBreakdown(total_cost=math.inf)

        feasible, warnings = self.check_liquidity(trade_size_usd, pricing)

        # Chunking cannot help when the exposure is smaller than its own overhead
        if full_mev <= EARLY_EXIT_GAS_MULTIPLE * pricing.swap_gas_cost_usd:
            if direct.total_cost <= private.total_cost:
                winner, chunks, costs = PlanWinner.DIRECT_SWAP, direct_chunks, direct
                ratio, n_public = 0.0, 1
            else:
                winner, chunks, costs = PlanWinner.PRIVATE_RELAY, private_chunks, private
                ratio, n_public = 1.0, 0
            logger.info(
                f"MEV ${full_mev:.2f} within {EARLY_EXIT_GAS_MULTIPLE:g}x swap gas "
                f"(${pricing.swap_gas_cost_usd:.2f}); early exit to {winner.value}"
            )
            return self._build_plan(
                ctx, winner, chunks, costs, direct, private, ratio, n_public,
                feasible, warnings, [], early_exit=True,
            )

        chunk_cap = self.max_chunk_count(trade_size_usd, max_chunks)
        best_ratio, best_n, best_chunks, best_costs = 0.0, 1, direct_chunks, direct

        for ratio in PRIVATE_RATIOS:
            if ratio > 0 and not relay.available:
                break
            counts = [0] if ratio >= 1.0 else range(1, chunk_cap + 1)
            for n_public in counts:
                chunks, costs = self.evaluate(ctx, ratio, n_public)
                if costs.total_cost < best_costs.total_cost:
                    best_ratio, best_n, best_chunks, best_costs = ratio, n_public, chunks, costs

        logger.debug(
            f"Grid best: {best_ratio:.0%} private + {best_n} public chunks -> ${best_costs.total_cost:.4f}"
        )

        # Ties resolve to the baselines
        if direct.total_cost <= best_costs.total_cost:
            winner, chunks, costs, ratio, n_public = PlanWinner.DIRECT_SWAP, direct_chunks, direct, 0.0, 1
        elif private.total_cost <= best_costs.total_cost:
            winner, chunks, costs, ratio, n_public = PlanWinner.PRIVATE_RELAY, private_chunks, private, 1.0, 0
        else:
            winner, chunks, costs, ratio, n_public = (
                PlanWinner.OPTIMIZED_PATH, best_chunks, best_costs, best_ratio, best_n
            )

        cross_chain = self.cross_chain_options(ctx, market)
        plan = self._build_plan(
            ctx, winner, chunks, costs, direct, private, ratio, n_public,
            feasible, warnings, cross_chain,
        )
        logger.info(
            f"🧭 Execution plan: {winner.value} ${costs.total_cost:.2f} "
            f"(direct ${direct.total_cost:.2f}, private ${private.total_cost:.2f})"
        )
        return plan

    def evaluate(self,
                 ctx: _SearchContext,
                 private_ratio: float,
                 n_public: int) -> Tuple[List[ChunkSpec], CostBreakdown]:
        """Cost one grid point: a private leg of `private_ratio` plus `n_public` equal public chunks."""
        if private_ratio >= 1.0:
            private_amount = ctx.trade_size
        elif private_ratio <= 0.0:
            private_amount = Decimal(0)
        else:
            private_amount = (ctx.trade_size * Decimal(str(private_ratio))).quantize(USD_QUANTUM, rounding=ROUND_DOWN)
        public_amount = ctx.trade_size - private_amount

        chunks: List[ChunkSpec] = []

        if private_amount > 0:
            chunks.append(ChunkSpec(
                index=0,
                amount_usd=private_amount,
                chain=ctx.chain,
                channel=ExecutionChannel.PRIVATE_RELAY,
                gas_cost_usd=ctx.relay.base_gas_cost_usd,
                relay_cost_usd=ctx.relay_model.partial_tip(ctx.relay.estimated_tip_usd, private_ratio),
                is_safe=True,
            ))

        if n_public > 0 and public_amount > 0:
            liquidity = ctx.virtual_liquidity_usd
            accumulated_impact = 0.0

            for i, amount in enumerate(split_amount(public_amount, n_public)):
                size = float(amount)
                mev = self._chunk_mev(ctx, size, liquidity)
                chunks.append(ChunkSpec(
                    index=len(chunks),
                    amount_usd=amount,
                    chain=ctx.chain,
                    channel=ExecutionChannel.PUBLIC,
                    mev_exposure_usd=mev,
                    gas_cost_usd=ctx.swap_gas_cost_usd * (1 + GAS_VOLATILITY_FACTOR * math.sqrt(i)),
                    is_safe=mev < SAFE_CHUNK_MEV_USD,
                ))

                # Pool absorbs the impact with partial recovery between blocks
                if math.isfinite(liquidity):
                    accumulated_impact = accumulated_impact * LIQUIDITY_DECAY + size / liquidity
                    liquidity = max(liquidity / (1 + accumulated_impact * 0.5), liquidity * 0.5)

        return chunks, CostBreakdown.from_chunks(chunks, self.timing_risk(ctx.trade_size_usd, len(chunks)))

    @staticmethod
    def _chunk_mev(ctx: _SearchContext, size_usd: float, liquidity_usd: float) -> float:
        if size_usd >= ctx.trade_size_usd:
            return ctx.full_mev_usd
        if size_usd < ctx.safe_threshold_usd or not math.isfinite(liquidity_usd):
            return 0.0
        return size_usd ** 2 / (2 * liquidity_usd) * MEV_EXTRACTION_EFFICIENCY

    @staticmethod
    def timing_risk(trade_size_usd: float, transaction_count: int) -> float:
        """Price drift while chunks wait for inclusion."""
        if transaction_count <= 1:
            return 0.0
        return trade_size_usd * PRICE_VOLATILITY_PER_BLOCK * math.sqrt(transaction_count)

    @staticmethod
    def max_chunk_count(trade_size_usd: float, policy_max: Optional[int] = None) -> int:
        cap = MAX_CHUNKS_WHALE if trade_size_usd >= WHALE_THRESHOLD_USD else MAX_CHUNKS_NORMAL
        if policy_max is not None:
            cap = min(cap, max(1, policy_max))
        return cap

    @staticmethod
    def check_liquidity(trade_size_usd: float, pricing: ChainPricing) -> Tuple[bool, List[str]]:
        """Flag trades too large for the chain's pool depth."""
        depth = pricing.liquidity_depth_usd
        if depth <= 0:
            return True, [f"Pool depth on {pricing.chain} unknown; liquidity check skipped"]

        ratio = trade_size_usd / depth
        if ratio > MAX_TRADE_TO_LIQUIDITY_RATIO:
            return False, [
                f"Trade (${trade_size_usd:,.0f}) is {ratio:.1%} of {pricing.chain} pool depth "
                f"(${depth:,.0f}); max safe is ${depth * MAX_TRADE_TO_LIQUIDITY_RATIO:,.0f}"
            ]
        if ratio > LIQUIDITY_WARNING_RATIO:
            return True, [
                f"Trade is {ratio:.1%} of {pricing.chain} pool depth; expect elevated price impact"
            ]
        return True, []

    def cross_chain_options(self, ctx: _SearchContext, market: LiveMarketData) -> List[CrossChainOption]:
        """Informational cost of executing on another chain and bridging back."""
        options = []
        for to_chain, quote in market.bridge_quotes.items():
            pricing = market.get(to_chain)
            if pricing is None or to_chain == ctx.chain:
                continue

            if get_chain_config(to_chain).has_sequencer or pricing.liquidity_depth_usd <= 0:
                mev = 0.0
            else:
                mev = ctx.trade_size_usd ** 2 / (2 * pricing.liquidity_depth_usd) * MEV_EXTRACTION_EFFICIENCY

            options.append(CrossChainOption(
                chain=to_chain,
                bridge_cost_usd=quote.total_usd * BRIDGE_RETURN_COST_MULTIPLIER,
                gas_cost_usd=pricing.swap_gas_cost_usd,
                mev_exposure_usd=mev,
                execution_seconds=quote.execution_seconds,
            ))
        return sorted(options, key=lambda o: o.total_cost_usd)

    def shield_largest_unsafe_chunk(self, plan: ExecutionPlan) -> ExecutionPlan:
        """Move the largest unsafe public chunk into a private-relay leg."""
        target = plan.largest_unsafe_chunk()
        if target is None:
            return plan
        if not math.isfinite(plan.private_baseline.total_cost):
            return replace(plan, warnings=plan.warnings + [
                f"Private relay unavailable on {plan.primary_chain}; chunk {target.index} left unshielded"
            ])

        trade_size_usd = float(plan.trade_size_usd)
        ratio = float(target.amount_usd) / trade_size_usd if trade_size_usd > 0 else 1.0
        shielded = replace(
            target,
            channel=ExecutionChannel.PRIVATE_RELAY,
            mev_exposure_usd=0.0,
            gas_cost_usd=plan.private_baseline.gas_fees,
            relay_cost_usd=self.relay_model.partial_tip(plan.private_baseline.relay_fees, ratio),
            is_safe=True,
        )
        chunks = [shielded if c.index == target.index else c for c in plan.chunks]

        costs = CostBreakdown.from_chunks(chunks, self.timing_risk(trade_size_usd, len(chunks)))
        costs.savings = plan.direct_baseline.total_cost - costs.total_cost
        private_total = sum(
            (c.amount_usd for c in chunks if c.channel == ExecutionChannel.PRIVATE_RELAY), Decimal(0)
        )

        logger.info(f"🛡️ Shielded chunk {target.index} (${target.amount_usd}) via private relay")
        return replace(
            plan,
            chunks=chunks,
            costs=costs,
            private_ratio=float(private_total / plan.trade_size_usd) if plan.trade_size_usd > 0 else 0.0,
            public_chunk_count=sum(1 for c in chunks if c.channel == ExecutionChannel.PUBLIC),
            reasoning=plan.reasoning + f" Largest unsafe chunk {target.index} shielded via private relay.",
        )

    def _build_plan(self, ctx: _SearchContext, winner: PlanWinner, chunks: List[ChunkSpec],
                    costs: CostBreakdown, direct: CostBreakdown, private: CostBreakdown,
                    private_ratio: float, n_public: int, feasible: bool, warnings: List[str],
                    cross_chain: List[CrossChainOption], early_exit: bool = False) -> ExecutionPlan:
        costs = replace(costs, savings=direct.total_cost - costs.total_cost)
        return ExecutionPlan(
            trade_size_usd=ctx.trade_size,
            chunks=chunks,
            costs=costs,
            winner=winner,
            direct_baseline=direct,
            private_baseline=private,
            private_ratio=private_ratio,
            public_chunk_count=n_public,
            primary_chain=ctx.chain,
            feasible=feasible,
            early_exit=early_exit,
            warnings=list(warnings),
            cross_chain_options=cross_chain,
            reasoning=self._describe(winner, costs, direct, private, private_ratio, n_public, early_exit),
        )

    @staticmethod
    def _describe(winner: PlanWinner, costs: CostBreakdown, direct: CostBreakdown,
                  private: CostBreakdown, private_ratio: float, n_public: int, early_exit: bool) -> str:
        if early_exit:
            prefix = "MEV exposure is below twice the swap gas; splitting cannot help."
        else:
            prefix = "Searched private share x public chunk grid."

        if winner == PlanWinner.DIRECT_SWAP:
            body = f"Direct swap is cheapest at ${direct.total_cost:.2f}."
        elif winner == PlanWinner.PRIVATE_RELAY:
            body = f"Private relay is cheapest at ${private.total_cost:.2f}."
        else:
            body = (
                f"{private_ratio:.0%} private + {n_public} public chunks costs ${costs.total_cost:.2f}, "
                f"saving ${direct.total_cost - costs.total_cost:.2f} versus a direct swap."
            )
        return f"{prefix} {body}"

    @staticmethod
    def _fallback_plan(trade_size: Decimal, full_mev: float, chain: str) -> ExecutionPlan:
        chunk = ChunkSpec(
            index=0,
            amount_usd=trade_size,
            chain=chain,
            mev_exposure_usd=full_mev,
            is_safe=full_mev < SAFE_CHUNK_MEV_USD,
        )
        direct = CostBreakdown.from_chunks([chunk])
        return ExecutionPlan(
            trade_size_usd=trade_size,
            chunks=[chunk],
            costs=direct,
            winner=PlanWinner.DIRECT_SWAP,
            direct_baseline=direct,
            private_baseline=CostBreakdown(total_cost=math.inf),
            primary_chain=chain,
            feasible=False,
            warnings=[f"Pricing for {chain} unavailable"],
            reasoning="No chain pricing available; plan not optimized.",
        )


def split_amount(total: Decimal, parts: int) -> List[Decimal]:
    """Split a USD amount into equal parts; the last part takes the remainder so the sum is exact."""
    if parts <= 1:
        return [total]
    share = (total / parts).quantize(USD_QUANTUM, rounding=ROUND_DOWN)
    return [share] * (parts - 1) + [total - share * (parts - 1)]


# Convenience functions
def optimize_execution(trade_size_usd: float,
                       unmitigated_mev_usd: float,
                       profile: Optional[PoolMEVProfile],
                       market: LiveMarketData,
                       max_chunks: Optional[int] = None) -> ExecutionPlan:
    """Optimize with a default optimizer."""
    return ExecutionChannelOptimizer().optimize(
        trade_size_usd, unmitigated_mev_usd, profile, market, max_chunks=max_chunks
    )
