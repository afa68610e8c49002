"""
MEV Shield Agent.

Request orchestrator: reads pool and market state, simulates the sandwich,
profiles the pool when the trade is risky, optimizes the execution channel,
decides a strategy and builds the executor hand-off. A request always gets a
response; missing data degrades to conservative assumptions that are listed
in the response.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from mev_shield.blockchain_connector.provider import ChainDataProvider
from mev_shield.config.settings import settings
from mev_shield.data_collector.errors import ProviderError, with_retry
from mev_shield.data_collector.market_data import MarketDataCollector
from mev_shield.data_collector.market_inputs import MarketInput
from mev_shield.data_collector.price_oracle import LiFiPriceOracle
from mev_shield.execution.chunk_splitter import ChunkSplitter, ExecutionInstruction
from mev_shield.mev_detection.mev_profiler import HistoricalMEVProfiler
from mev_shield.mev_detection.swap_models import PoolMEVProfile
from mev_shield.mev_protection.chain_configs import get_chain_config
from mev_shield.mev_protection.decision_engine import DecisionEngine, Strategy, StrategyType
from mev_shield.mev_protection.execution_models import ExecutionPlan
from mev_shield.mev_protection.execution_optimizer import ExecutionChannelOptimizer
from mev_shield.policy.user_policy import PolicyProvider, StaticPolicyProvider, UserPolicy
from mev_shield.protocols.dex_protocols.uniswap_v2_math import ReservePair
from mev_shield.simulation.sandwich_simulator import SandwichSimulator
from mev_shield.simulation.simulation_models import SandwichSimulationResult, TradeIntent

logger = logging.getLogger(__name__)

GWEI = 10 ** 9
STABLECOIN_SYMBOLS = ("USDC", "USDT", "DAI")


@dataclass
class PoolContext:
    """On-chain state read for one trade."""
    pair_address: Optional[str] = None
    reserves: Optional[ReservePair] = None
    token_in_decimals: int = 18
    token_out_decimals: int = 18
    gas_price: Optional[MarketInput] = None
    native_price: Optional[MarketInput] = None
    output_price: Optional[MarketInput] = None
    assumptions: List[str] = field(default_factory=list)


@dataclass
class ShieldResponse:
    """Everything decided for one swap request."""
    intent: TradeIntent
    simulation: SandwichSimulationResult
    trade_size_usd: Decimal
    strategy: Strategy
    policy: UserPolicy
    pair_address: Optional[str] = None
    plan: Optional[ExecutionPlan] = None
    profile: Optional[PoolMEVProfile] = None
    instructions: List[ExecutionInstruction] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.simulation.degraded or bool(self.assumptions)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable response; integer and Decimal amounts are rendered as strings."""
        return {
            "input": self.intent.to_dict(),
            "pair_address": self.pair_address,
            "simulation": self.simulation.to_dict(),
            "trade_size_usd": str(self.trade_size_usd),
            "policy": self.policy.to_dict(),
            "profile": self.profile.to_dict() if self.profile else None,
            "plan": self.plan.to_dict() if self.plan else None,
            "strategy": self.strategy.to_dict(),
            "execution": [instruction.to_dict() for instruction in self.instructions],
            "degraded": self.degraded,
            "assumptions": list(self.assumptions),
        }


class ShieldAgent:
    """Wires the MEV shield components to their data sources."""

    def __init__(self,
                 chain_provider: ChainDataProvider,
                 price_oracle: LiFiPriceOracle,
                 profiler: Optional[HistoricalMEVProfiler] = None,
                 market_collector: Optional[MarketDataCollector] = None,
                 policy_provider: Optional[PolicyProvider] = None,
                 simulator: Optional[SandwichSimulator] = None,
                 optimizer: Optional[ExecutionChannelOptimizer] = None,
                 splitter: Optional[ChunkSplitter] = None):
        self.chain_provider = chain_provider
        self.price_oracle = price_oracle
        self.profiler = profiler or HistoricalMEVProfiler()
        self.market_collector = market_collector or MarketDataCollector(chain_provider, price_oracle)
        self.policy_provider = policy_provider or StaticPolicyProvider()
        self.simulator = simulator or SandwichSimulator(settings.fee_bps)
        self.optimizer = optimizer or ExecutionChannelOptimizer()
        self.decision_engine = DecisionEngine(self.optimizer)
        self.splitter = splitter or ChunkSplitter(settings.fee_bps)

    async def handle_swap(self, intent: TradeIntent) -> ShieldResponse:
        """
        Analyze a swap and choose how to execute it.

        Never raises: an unexpected failure returns the most conservative
        strategy (private relay) with a degraded simulation.
        """
        policy = (await self.policy_provider.get_policy(intent.trader)).clamped()
        try:
            return await self._handle_swap(intent, policy)
        except Exception as e:
            logger.exception(f"❌ Swap analysis failed for {intent.trader}: {e}")
            simulation = self.simulator.fallback(f"analysis failed: {e}")
            return ShieldResponse(
                intent=intent,
                simulation=simulation,
                trade_size_usd=Decimal(0),
                strategy=Strategy(StrategyType.PRIVATE, "Analysis failed; defaulting to private relay."),
                policy=policy,
                assumptions=[f"analysis failed: {e}"],
            )

    async def _handle_swap(self, intent: TradeIntent, policy: UserPolicy) -> ShieldResponse:
        logger.info(
            f"🛡️ Swap request {intent.amount_in} {intent.token_in} -> {intent.token_out} on {intent.chain}"
        )
        pool = await self._read_pool(intent)

        if pool.reserves is None:
            reason = "no Uniswap V2 pair found" if pool.pair_address is None else "pool reserves unavailable"
            simulation = self.simulator.fallback(reason)
        else:
            simulation = self.simulator.simulate(
                intent,
                pool.reserves,
                pool.gas_price.value,
                pool.native_price.value,
                token_in_decimals=pool.token_in_decimals,
                token_out_decimals=pool.token_out_decimals,
                output_token_price_usd=pool.output_price.value,
                assumptions=pool.assumptions,
            )

        trade_size_usd = Decimal(str(round(simulation.clean_output_usd, 6)))
        trade_size = float(trade_size_usd)

        profile = None
        plan = None
        if self.decision_engine.needs_plan(simulation, trade_size, policy):
            profile = await self.profiler.get_profile(pool.pair_address)
            if get_chain_config(intent.chain).native_currency == "ETH":
                eth_price = pool.native_price
            else:
                eth_price = await self.price_oracle.get_native_price("ethereum")
            market = await self.market_collector.collect(
                intent.chain,
                pool.gas_price,
                eth_price,
                simulation.pool_depth_usd,
                bridge_token=intent.token_in,
                bridge_amount=intent.amount_in,
            )
            plan = self.optimizer.optimize(
                trade_size,
                simulation.user_loss_usd,
                profile,
                market,
                primary_chain=intent.chain,
                max_chunks=policy.effective_max_chunks,
            )

        strategy = self.decision_engine.decide(simulation, trade_size, policy, plan)
        instructions = self.splitter.instructions_for(
            strategy, intent, pool.reserves, policy.slippage_tolerance_bps
        )

        assumptions = list(pool.assumptions)
        if profile is not None and profile.is_default:
            assumptions.append(f"default pool profile ({profile.note})")

        return ShieldResponse(
            intent=intent,
            simulation=simulation,
            trade_size_usd=trade_size_usd,
            strategy=strategy,
            policy=policy,
            pair_address=pool.pair_address,
            plan=strategy.plan or plan,
            profile=profile,
            instructions=instructions,
            assumptions=assumptions,
        )

    async def _read_pool(self, intent: TradeIntent) -> PoolContext:
        """Read pair, reserves, decimals and prices; unavailable values fall back and are recorded."""
        chain = intent.chain
        pool = PoolContext()

        pool.pair_address = await self.chain_provider.get_pair_address(chain, intent.token_in, intent.token_out)

        reserves, decimals_in, decimals_out, gas_price, native_price = await asyncio.gather(
            self._get_reserves(chain, pool.pair_address, intent.token_in),
            self.chain_provider.get_token_decimals(chain, intent.token_in),
            self.chain_provider.get_token_decimals(chain, intent.token_out),
            self.chain_provider.get_gas_price(chain),
            self.price_oracle.get_native_price(chain),
        )

        pool.reserves = reserves
        pool.token_in_decimals = decimals_in if decimals_in is not None else 18
        pool.token_out_decimals = decimals_out if decimals_out is not None else 18
        if decimals_in is None or decimals_out is None:
            pool.assumptions.append("token decimals assumed 18")

        if gas_price is None:
            fallback = int(settings.fallback_gas_price_gwei * GWEI)
            pool.gas_price = MarketInput.fallback(fallback, reason=f"{chain} gas price unavailable")
            pool.assumptions.append(pool.gas_price.describe("gas_price_wei"))
        else:
            pool.gas_price = MarketInput.observed(gas_price, source="rpc")

        pool.native_price = native_price
        if native_price.assumed:
            pool.assumptions.append(native_price.describe("native_price_usd"))

        pool.output_price = await self._output_token_price(chain, intent.token_out, native_price)
        if pool.output_price.assumed:
            pool.assumptions.append(pool.output_price.describe("output_token_price_usd"))

        return pool

    async def _get_reserves(self, chain: str, pair_address: Optional[str], token_in: str) -> Optional[ReservePair]:
        if pair_address is None:
            return None
        return await self.chain_provider.get_reserves(chain, pair_address, token_in)

    async def _output_token_price(self, chain: str, token_out: str, native_price: MarketInput) -> MarketInput:
        """USD price of the output token: stablecoins at peg, WETH at the ETH price, others from LI.FI."""
        config = get_chain_config(chain)
        symbol = next(
            (s for s, address in config.token_addresses.items() if address.lower() == token_out.lower()),
            None,
        )
        if symbol in STABLECOIN_SYMBOLS:
            return MarketInput.observed(1.0, source="peg")
        if symbol == "WETH" and config.native_currency == "ETH":
            return native_price

        try:
            price = await with_retry(
                lambda: self.price_oracle.get_token_price(chain, token_out),
                settings.request_timeout_seconds,
                f"price of {token_out}",
            )
            return MarketInput.observed(price, source="lifi")
        except ProviderError as e:
            logger.warning(f"⚠️ Output token price unavailable, assuming $1: {e}")
            return MarketInput.fallback(1.0, reason="output token price unavailable")

    async def analyze_pool_threat(self,
                                  pool_address: str,
                                  trade_size_usd: Optional[float] = None,
                                  pool_depth_usd: Optional[float] = None,
                                  bypass_cache: bool = False) -> Dict[str, Any]:
        """Historical MEV profile of a pool, optionally applied to a prospective trade."""
        profile = await self.profiler.get_profile(pool_address, bypass_cache=bypass_cache)
        result: Dict[str, Any] = {"profile": profile.to_dict(), "assessment": None}

        if trade_size_usd is not None and pool_depth_usd is not None:
            gas_price = await self.chain_provider.get_gas_price("ethereum")
            if gas_price is None:
                gas_price = int(settings.fallback_gas_price_gwei * GWEI)
            eth_price = await self.price_oracle.get_native_price("ethereum")
            sandwich_gas_units = self.simulator.gas_units_for("ethereum")
            sandwich_gas_usd = sandwich_gas_units * gas_price / 10 ** 18 * eth_price.value

            assessment = self.profiler.assess_trade(profile, trade_size_usd, pool_depth_usd, sandwich_gas_usd)
            result["assessment"] = {
                "trade_size_usd": assessment.trade_size_usd,
                "pool_depth_usd": assessment.pool_depth_usd,
                "base_mev_usd": round(assessment.base_mev_usd, 4),
                "estimated_loss_usd": round(assessment.estimated_loss_usd, 4),
                "safe_chunk_size_usd": round(assessment.safe_chunk_size_usd, 2),
                "recommended_splits": assessment.recommended_splits,
                "trade_to_pool_ratio": round(assessment.trade_to_pool_ratio, 6),
                "is_shallow_pool": assessment.is_shallow_pool,
            }
        return result
