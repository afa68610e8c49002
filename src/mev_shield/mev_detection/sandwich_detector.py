"""
Sandwich Pattern Detection.

Scans chronologically ordered swaps for front/victim/back triples: an
attacker trades ahead of the victim in the victim's direction, then unwinds
right after it.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from mev_shield.mev_detection.swap_models import AttackerStats, NormalizedSwap

logger = logging.getLogger(__name__)


@dataclass
class SandwichDetectionConfig:
    """Tuning knobs for the sliding detection window."""
    context_window: int = 5              # swaps inspected on each side of a victim
    max_blocks_between: int = 1          # victim block +/- this many blocks
    min_leg_usd: float = 10.0            # ignore dust legs
    min_profit_usd: float = 10.0
    max_profit_to_victim_ratio: float = 10.0
    arb_min_volume_usd: float = 5000.0


@dataclass
class SandwichMatch:
    """A confirmed front/back pair around one victim."""
    victim: NormalizedSwap
    front: NormalizedSwap
    back: NormalizedSwap
    profit_usd: float
    victim_loss_usd: float

    @property
    def attacker(self) -> str:
        return self.front.trader

    @property
    def block_span(self) -> int:
        return self.back.block_number - self.front.block_number


class SandwichDetector:
    """
    Windowed sandwich detector.

    The first qualifying front/back pair wins; the detector does not search
    for the most profitable pairing.
    """

    def __init__(self, config: Optional[SandwichDetectionConfig] = None):
        self.config = config or SandwichDetectionConfig()

    def detect(self, swaps: Sequence[NormalizedSwap]) -> List[SandwichMatch]:
        """
        Run detection over every swap as a candidate victim, annotating matches in place.

        Args:
            swaps: Swaps sorted by (block number, log index)

        Returns:
            One SandwichMatch per detected victim
        """
        window = self.config.context_window
        matches: List[SandwichMatch] = []

        for index, victim in enumerate(swaps):
            before = swaps[max(0, index - window):index]
            after = swaps[index + 1:index + 1 + window]

            match = self.match_victim(victim, before, after)
            if match is None:
                continue

            victim.is_sandwich = True
            victim.attacker = match.attacker
            victim.front_tx = match.front.tx_hash
            victim.back_tx = match.back.tx_hash
            victim.estimated_profit_usd = match.profit_usd
            victim.victim_loss_usd = match.victim_loss_usd
            victim.block_span = match.block_span
            matches.append(match)

        if matches:
            logger.info(f"Detected {len(matches)} sandwiches in {len(swaps)} swaps")
        return matches

    def match_victim(self,
                     victim: NormalizedSwap,
                     before: Sequence[NormalizedSwap],
                     after: Sequence[NormalizedSwap]) -> Optional[SandwichMatch]:
        """Find the first front/back pair around a single victim."""
        max_gap = self.config.max_blocks_between
        victim_block = victim.block_number

        front_window = [s for s in before if victim_block - max_gap <= s.block_number <= victim_block]
        back_window = [s for s in after if victim_block <= s.block_number <= victim_block + max_gap]

        for front in front_window:
            if not self._is_front_leg(front, victim):
                continue

            for back in back_window:
                if not self._is_back_leg(back, front, victim):
                    continue

                profit_usd = self._leg_profit_usd(front, back)
                if profit_usd < self.config.min_profit_usd:
                    continue
                if profit_usd > float(victim.amount_usd) * self.config.max_profit_to_victim_ratio:
                    continue

                return SandwichMatch(
                    victim=victim,
                    front=front,
                    back=back,
                    profit_usd=profit_usd,
                    victim_loss_usd=victim.loss_usd,
                )

        return None

    def _is_front_leg(self, front: NormalizedSwap, victim: NormalizedSwap) -> bool:
        if front.trader == victim.trader:
            return False
        # Two users routed through the same contract, not an attacker's own caller
        if front.sender == victim.sender and front.sender != front.trader:
            return False
        if front.buy_token0 != victim.buy_token0:
            return False
        if not front.precedes(victim):
            return False
        return float(front.amount_usd) >= self.config.min_leg_usd

    def _is_back_leg(self, back: NormalizedSwap, front: NormalizedSwap, victim: NormalizedSwap) -> bool:
        if back.trader != front.trader:
            return False
        if back.buy_token0 == front.buy_token0:
            return False
        if not victim.precedes(back):
            return False
        return float(back.amount_usd) >= self.config.min_leg_usd

    @staticmethod
    def _leg_profit_usd(front: NormalizedSwap, back: NormalizedSwap) -> float:
        if front.amount_usd <= 0 or back.amount_usd <= 0:
            return 0.0
        return float(max(Decimal(0), back.amount_usd - front.amount_usd))

    def rank_attackers(self, matches: Sequence[SandwichMatch], limit: int = 5) -> List[AttackerStats]:
        """Aggregate matches per attacker, most profitable first."""
        stats: Dict[str, AttackerStats] = {}
        for match in matches:
            entry = stats.setdefault(match.attacker, AttackerStats(address=match.attacker))
            entry.attack_count += 1
            entry.estimated_profit_usd += match.profit_usd
            entry.victim_loss_usd += match.victim_loss_usd

        ranked = sorted(stats.values(), key=lambda a: a.estimated_profit_usd, reverse=True)
        return ranked[:limit]

    def detect_arbitrage_patterns(self, swaps: Sequence[NormalizedSwap]) -> List[Tuple[str, int, float]]:
        """
        Traders active in both directions with meaningful volume.

        Returns:
            (address, trade_count, total_volume_usd) sorted by volume
        """
        by_trader: Dict[str, List[NormalizedSwap]] = defaultdict(list)
        for swap in swaps:
            by_trader[swap.trader].append(swap)

        patterns = []
        for address, trades in by_trader.items():
            if len(trades) < 2:
                continue
            buys = any(t.buy_token0 for t in trades)
            sells = any(not t.buy_token0 for t in trades)
            if not (buys and sells):
                continue
            volume = float(sum((t.amount_usd for t in trades), Decimal(0)))
            if volume > self.config.arb_min_volume_usd:
                patterns.append((address, len(trades), volume))

        return sorted(patterns, key=lambda p: p[2], reverse=True)
