"""Unit tests for windowed sandwich detection."""
from decimal import Decimal

import pytest

from mev_shield.mev_detection.sandwich_detector import SandwichDetectionConfig, SandwichDetector
from mev_shield.mev_detection.swap_models import NormalizedSwap


def swap(tx, block, log_index, trader, buy_token0, usd, sender=None):
    return NormalizedSwap(
        tx_hash=tx,
        block_number=block,
        log_index=log_index,
        timestamp=block * 12,
        trader=trader,
        sender=sender or trader,
        buy_token0=buy_token0,
        amount0_in=0 if buy_token0 else 1,
        amount0_out=1 if buy_token0 else 0,
        amount1_in=1 if buy_token0 else 0,
        amount1_out=0 if buy_token0 else 1,
        amount_in=Decimal(1),
        amount_out=Decimal(1),
        amount_usd=Decimal(str(usd)),
    )


@pytest.fixture
def detector():
    return SandwichDetector()


class TestSandwichDetection:
    """Test front/victim/back matching."""

    def test_detects_classic_sandwich(self, detector):
        swaps = [
            swap("front", 100, 0, "0xbot", True, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xbot", False, 10_150),
        ]

        matches = detector.detect(swaps)

        assert len(matches) == 1
        match = matches[0]
        assert match.attacker == "0xbot"
        assert match.profit_usd == pytest.approx(150.0)
        assert match.block_span == 0

        victim = swaps[1]
        assert victim.is_sandwich
        assert victim.front_tx == "front"
        assert victim.back_tx == "back"
        assert not swaps[0].is_sandwich

    def test_front_must_match_victim_direction(self, detector):
        swaps = [
            swap("front", 100, 0, "0xbot", False, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xbot", True, 10_150),
        ]
        assert detector.detect(swaps) == []

    def test_back_must_be_same_attacker(self, detector):
        swaps = [
            swap("front", 100, 0, "0xbot", True, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xother", False, 10_150),
        ]
        assert detector.detect(swaps) == []

    def test_shared_router_is_not_an_attacker(self, detector):
        """Two users trading through the same router contract are not a sandwich."""
        swaps = [
            swap("front", 100, 0, "0xbob", True, 10_000, sender="0xrouter"),
            swap("victim", 100, 1, "0xalice", True, 5_000, sender="0xrouter"),
            swap("back", 100, 2, "0xbob", False, 10_150, sender="0xrouter"),
        ]
        assert detector.detect(swaps) == []

    def test_attacker_contract_with_routed_victim(self, detector):
        swaps = [
            swap("front", 100, 0, "0xbot", True, 10_000, sender="0xbotcontract"),
            swap("victim", 100, 1, "0xalice", True, 5_000, sender="0xrouter"),
            swap("back", 100, 2, "0xbot", False, 10_150, sender="0xbotcontract"),
        ]
        assert len(detector.detect(swaps)) == 1

    def test_legs_outside_block_window_ignored(self, detector):
        swaps = [
            swap("front", 97, 0, "0xbot", True, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xbot", False, 10_150),
        ]
        assert detector.detect(swaps) == []

    def test_adjacent_block_legs_count(self, detector):
        swaps = [
            swap("front", 99, 0, "0xbot", True, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 101, 0, "0xbot", False, 10_150),
        ]
        matches = detector.detect(swaps)
        assert len(matches) == 1
        assert matches[0].block_span == 2

    @pytest.mark.parametrize("back_usd", [10_005, 200_000])
    def test_profit_bounds(self, detector, back_usd):
        """Profit below the minimum or above 10x the victim is not a sandwich."""
        swaps = [
            swap("front", 100, 0, "0xbot", True, 10_000),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xbot", False, back_usd),
        ]
        assert detector.detect(swaps) == []

    def test_dust_legs_ignored(self):
        detector = SandwichDetector(SandwichDetectionConfig(min_leg_usd=10.0, min_profit_usd=0.0))
        swaps = [
            swap("front", 100, 0, "0xbot", True, 5),
            swap("victim", 100, 1, "0xalice", True, 5_000),
            swap("back", 100, 2, "0xbot", False, 9),
        ]
        assert detector.detect(swaps) == []


class TestAttackerRanking:
    """Test attacker aggregation and arbitrage patterns."""

    def test_rank_attackers(self, detector):
        swaps = []
        for i, (bot, profit) in enumerate([("0xa", 50), ("0xb", 500), ("0xa", 60)]):
            block = 100 + i * 10
            swaps += [
                swap(f"f{i}", block, 0, bot, True, 10_000),
                swap(f"v{i}", block, 1, f"0xvictim{i}", True, 5_000),
                swap(f"b{i}", block, 2, bot, False, 10_000 + profit),
            ]

        ranked = detector.rank_attackers(detector.detect(swaps))

        assert [a.address for a in ranked] == ["0xb", "0xa"]
        assert ranked[1].attack_count == 2
        assert ranked[1].estimated_profit_usd == pytest.approx(110.0)

    def test_arbitrage_patterns(self, detector):
        swaps = [
            swap("1", 100, 0, "0xarb", True, 4_000),
            swap("2", 105, 0, "0xarb", False, 4_100),
            swap("3", 110, 0, "0xsmall", True, 100),
            swap("4", 111, 0, "0xsmall", False, 100),
            swap("5", 120, 0, "0xoneway", True, 9_000),
            swap("6", 121, 0, "0xoneway", True, 9_000),
        ]

        patterns = detector.detect_arbitrage_patterns(swaps)

        assert patterns == [("0xarb", 2, pytest.approx(8_100.0))]
