"""
Historical MEV Detection Module.

Profiles pools from their swap history: reserve reconstruction, per-swap
slippage analysis, sandwich detection and MEV temperature scoring.
"""
from .swap_models import (
    SwapRecord,
    PoolState,
    NormalizedSwap,
    AttackerStats,
    PoolMEVProfile,
    PoolRiskTier,
    default_profile,
)
from .reserve_reconstruction import (
    normalize_swaps,
    reconstruct_reserves,
    replay_forward,
)
from .slippage_analyzer import SlippageAnalyzer
from .swap_provider import (
    HistoricalSwapProvider,
    SwapCursor,
    SwapPage,
)
from .sandwich_detector import (
    SandwichDetector,
    SandwichDetectionConfig,
    SandwichMatch,
)
from .mev_profiler import (
    HistoricalMEVProfiler,
    ProfilerConfig,
    PoolThreatAssessment,
)

__all__ = [
    # Models
    "SwapRecord",
    "PoolState",
    "NormalizedSwap",
    "AttackerStats",
    "PoolMEVProfile",
    "PoolRiskTier",
    "default_profile",

    # Reconstruction
    "normalize_swaps",
    "reconstruct_reserves",
    "replay_forward",

    # History source
    "HistoricalSwapProvider",
    "SwapCursor",
    "SwapPage",

    # Analysis
    "SlippageAnalyzer",
    "SandwichDetector",
    "SandwichDetectionConfig",
    "SandwichMatch",

    # Profiling
    "HistoricalMEVProfiler",
    "ProfilerConfig",
    "PoolThreatAssessment",
]
