"""
MEV Protection Module.

Execution-channel optimization (direct, private relay or split) and the
decision engine that turns a simulation and a plan into a strategy.
"""
from .chain_configs import (
    ChainExecutionConfig,
    CHAIN_CONFIGS,
    get_chain_config,
    get_token_on_chain,
)
from .execution_models import (
    BridgeQuote,
    ChainPricing,
    ChunkSpec,
    CostBreakdown,
    CrossChainOption,
    ExecutionChannel,
    ExecutionPlan,
    LiveMarketData,
    PlanWinner,
)
from .private_relay_model import (
    PrivateRelayCost,
    PrivateRelayCostModel,
)
from .execution_optimizer import (
    ExecutionChannelOptimizer,
    optimize_execution,
    split_amount,
)
from .decision_engine import (
    DecisionEngine,
    Strategy,
    StrategyType,
)

__all__ = [
    # Chain parameters
    "ChainExecutionConfig",
    "CHAIN_CONFIGS",
    "get_chain_config",
    "get_token_on_chain",

    # Plan models
    "BridgeQuote",
    "ChainPricing",
    "ChunkSpec",
    "CostBreakdown",
    "CrossChainOption",
    "ExecutionChannel",
    "ExecutionPlan",
    "LiveMarketData",
    "PlanWinner",

    # Optimization
    "PrivateRelayCost",
    "PrivateRelayCostModel",
    "ExecutionChannelOptimizer",
    "optimize_execution",
    "split_amount",

    # Decisions
    "DecisionEngine",
    "Strategy",
    "StrategyType",
]
