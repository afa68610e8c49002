"""
Historical MEV Profiler.

Replays a pool's recent swaps against reconstructed reserves to measure how
often and how badly its traders get sandwiched, and condenses the evidence
into a 0-100 "MEV temperature" with an empirical safe trade size.
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from mev_shield.cache.ttl_cache import TTLCache
from mev_shield.config.settings import settings
from mev_shield.data_collector.errors import ProviderError, with_retry
from mev_shield.mev_detection.swap_provider import HistoricalSwapProvider
from mev_shield.mev_detection.reserve_reconstruction import normalize_swaps, reconstruct_reserves
from mev_shield.mev_detection.sandwich_detector import SandwichDetectionConfig, SandwichDetector
from mev_shield.mev_detection.slippage_analyzer import SlippageAnalyzer
from mev_shield.mev_detection.swap_models import (
    NormalizedSwap,
    PoolMEVProfile,
    PoolRiskTier,
    PoolState,
    SwapRecord,
    default_profile,
)

logger = logging.getLogger(__name__)


@dataclass
class ProfilerConfig:
    """Thresholds used when turning analyzed swaps into a score."""
    min_victim_slippage_pct: float = 0.3
    min_victim_trade_usd: float = 50.0
    max_reasonable_slippage_pct: float = 20.0
    min_victims_for_percentile: int = 10
    default_safe_threshold_usd: float = 500.0
    min_safe_threshold_usd: float = 100.0
    top_attackers: int = 5
    shallow_pool_ratio: float = 0.10
    mev_extraction_efficiency: float = 0.85


@dataclass
class PoolThreatAssessment:
    """A pool profile applied to one prospective trade."""
    profile: PoolMEVProfile
    trade_size_usd: float
    pool_depth_usd: float
    base_mev_usd: float
    estimated_loss_usd: float
    safe_chunk_size_usd: float
    recommended_splits: int
    trade_to_pool_ratio: float
    is_shallow_pool: bool


class HistoricalMEVProfiler:
    """
    Pool MEV temperature from historical swaps.

    Profiles are cached per pool with a time-to-live, including the default
    profile built for a pool with too little history. Provider failures also
    degrade to the default profile, but that one is not cached.
    """

    def __init__(self,
                 swap_provider: Optional[HistoricalSwapProvider] = None,
                 cache: Optional[TTLCache] = None,
                 fee_bps: Optional[int] = None,
                 detection_config: Optional[SandwichDetectionConfig] = None,
                 config: Optional[ProfilerConfig] = None,
                 min_swaps: Optional[int] = None,
                 target_swaps: Optional[int] = None,
                 page_size: Optional[int] = None,
                 timeout_seconds: Optional[float] = None):
        self.swap_provider = swap_provider
        self.cache = cache or TTLCache(settings.profile_cache_ttl_seconds, name="mev-profile")
        self.fee_bps = fee_bps if fee_bps is not None else settings.fee_bps
        self.detector = SandwichDetector(detection_config)
        self.config = config or ProfilerConfig()
        self.min_swaps = min_swaps if min_swaps is not None else settings.min_swaps_for_analysis
        self.target_swaps = target_swaps or settings.history_target_swaps
        self.page_size = page_size or settings.history_page_size
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

    async def get_profile(self, pool_address: str, bypass_cache: bool = False) -> PoolMEVProfile:
        """
        Return the pool's MEV profile, from cache when fresh.

        Never raises: missing history degrades to the default profile.
        """
        pool_address = pool_address.lower()
        if self.swap_provider is None:
            return default_profile(pool_address, note="no historical swap provider configured")

        try:
            return await self.cache.get_or_compute(
                pool_address,
                lambda: self._fetch_and_build(pool_address),
                bypass=bypass_cache,
            )
        except ProviderError as e:
            logger.warning(f"⚠️ MEV profile for {pool_address} degraded to default: {e}")
            return default_profile(pool_address, note=str(e))

    async def _fetch_and_build(self, pool_address: str) -> PoolMEVProfile:
        pool_state = await with_retry(
            lambda: self.swap_provider.fetch_pool_state(pool_address),
            self.timeout_seconds,
            f"pool state for {pool_address}",
        )
        if pool_state is None:
            raise ProviderError(f"pool {pool_address} not found", provider="history")

        # One timeout per expected page
        pages = max(1, math.ceil(self.target_swaps / self.page_size))
        records = await with_retry(
            lambda: self.swap_provider.fetch_history(pool_address, self.target_swaps, self.page_size),
            self.timeout_seconds * pages,
            f"swap history for {pool_address}",
        )
        return self.build_profile(pool_state, records)

    def build_profile(self, pool_state: PoolState, records: Sequence[SwapRecord]) -> PoolMEVProfile:
        """
        Score a pool from its swap history and current reserves.

        Pure computation: normalize, reconstruct reserves, analyze slippage,
        detect sandwiches and aggregate.
        """
        swaps = normalize_swaps(records, pool_state.token0_decimals, pool_state.token1_decimals)
        if len(swaps) < self.min_swaps:
            logger.info(
                f"Only {len(swaps)} usable swaps for {pool_state.pool_address} "
                f"(need {self.min_swaps}); using default profile"
            )
            profile = default_profile(pool_state.pool_address, note="insufficient swap history")
            profile.sample_size = len(swaps)
            return profile

        reconstruct_reserves(swaps, pool_state.reserves)

        analyzer = SlippageAnalyzer(
            fee_bps=self.fee_bps,
            token0_decimals=pool_state.token0_decimals,
            token1_decimals=pool_state.token1_decimals,
            max_slippage_pct=self.config.max_reasonable_slippage_pct,
        )
        analyzer.analyze_all(swaps)

        matches = self.detector.detect(swaps)
        profile = self._aggregate(pool_state.pool_address, swaps)
        profile.top_attackers = self.detector.rank_attackers(matches, limit=self.config.top_attackers)
        profile.arb_pattern_count = len(self.detector.detect_arbitrage_patterns(swaps))

        logger.info(
            f"🌡️ MEV temperature for {pool_state.pool_address}: {profile.score} "
            f"({profile.risk_level.value}), {profile.sandwich_count} sandwiches in {profile.sample_size} swaps"
        )
        return profile

    def _aggregate(self, pool_address: str, swaps: List[NormalizedSwap]) -> PoolMEVProfile:
        cfg = self.config
        count = len(swaps)

        victims = [
            s for s in swaps
            if s.slippage_pct >= cfg.min_victim_slippage_pct
            and float(s.amount_usd) >= cfg.min_victim_trade_usd
            and s.slippage_pct <= cfg.max_reasonable_slippage_pct
        ]
        sandwich_count = sum(1 for s in swaps if s.is_sandwich)

        victim_rate = len(victims) / count * 100 if count else 0.0
        avg_slippage = sum(v.slippage_pct for v in victims) / len(victims) if victims else 0.0
        max_slippage = max((v.slippage_pct for v in victims), default=0.0)
        total_loss = sum(v.loss_usd for v in victims)
        total_volume = float(sum((s.amount_usd for s in swaps), Decimal(0)))

        sandwich_density = sandwich_count / count * 100 if count else 0.0
        loss_to_volume = total_loss / total_volume * 100 if total_volume > 0 else 0.0

        score = self.calculate_score(victim_rate, avg_slippage, sandwich_density, loss_to_volume)

        victim_sizes = sorted(float(v.amount_usd) for v in victims)
        safe_threshold = self.safe_threshold(victim_sizes)

        return PoolMEVProfile(
            pool_address=pool_address,
            score=score,
            risk_level=self.categorize_score(score),
            mev_cost_multiplier=1.0 + score / 100 * 2.0,
            safe_threshold_usd=safe_threshold,
            victim_rate=victim_rate,
            avg_victim_slippage=avg_slippage,
            max_victim_slippage=max_slippage,
            min_attacked_size_usd=victim_sizes[0] if victim_sizes else None,
            max_attacked_size_usd=victim_sizes[-1] if victim_sizes else None,
            sandwich_count=sandwich_count,
            sandwich_rate=sandwich_density,
            total_loss_usd=total_loss,
            total_volume_usd=total_volume,
            sample_size=count,
        )

    @staticmethod
    def calculate_score(victim_rate: float,
                        avg_victim_slippage: float,
                        sandwich_density: float,
                        loss_to_volume: float) -> float:
        """
        Combine the three signals into a 0-100 score.

        Either the sandwich density or the loss/volume ratio alone can fill the
        last component, so a pool where detection misses attacks still reads hot.
        """
        victim_score = min(40.0, victim_rate * 6)
        slippage_score = min(30.0, avg_victim_slippage * 3)
        sandwich_score = min(30.0, max(sandwich_density * 30, loss_to_volume * 100))
        return round(min(100.0, victim_score + slippage_score + sandwich_score), 2)

    @staticmethod
    def categorize_score(score: float) -> PoolRiskTier:
        if score >= 75:
            return PoolRiskTier.EXTREME
        elif score >= 50:
            return PoolRiskTier.HIGH
        elif score >= 25:
            return PoolRiskTier.MEDIUM
        return PoolRiskTier.LOW

    def safe_threshold(self, sorted_victim_sizes: Sequence[float]) -> float:
        """10th percentile of victim trade sizes, floored."""
        cfg = self.config
        if len(sorted_victim_sizes) >= cfg.min_victims_for_percentile:
            p10 = sorted_victim_sizes[int(len(sorted_victim_sizes) * 0.1)]
        else:
            p10 = cfg.default_safe_threshold_usd
        return max(p10, cfg.min_safe_threshold_usd)

    def assess_trade(self,
                     profile: PoolMEVProfile,
                     trade_size_usd: float,
                     pool_depth_usd: float,
                     sandwich_gas_cost_usd: float) -> PoolThreatAssessment:
        """Apply a pool profile to a prospective trade."""
        if pool_depth_usd > 0:
            base_mev = trade_size_usd ** 2 / (2 * pool_depth_usd) * self.config.mev_extraction_efficiency
            ratio = trade_size_usd / pool_depth_usd
        else:
            base_mev = 0.0
            ratio = 0.0

        gas_bound = math.sqrt(2 * pool_depth_usd * sandwich_gas_cost_usd) if pool_depth_usd > 0 else 0.0

        return PoolThreatAssessment(
            profile=profile,
            trade_size_usd=trade_size_usd,
            pool_depth_usd=pool_depth_usd,
            base_mev_usd=base_mev,
            estimated_loss_usd=profile.adjusted_mev(base_mev),
            safe_chunk_size_usd=max(profile.safe_threshold_usd, gas_bound),
            recommended_splits=profile.recommended_splits(trade_size_usd),
            trade_to_pool_ratio=ratio,
            is_shallow_pool=ratio > self.config.shallow_pool_ratio,
        )
