"""
Live market data collection for the execution optimizer.

Prices gas on every known chain concurrently and gathers bridge quotes from
the primary chain. A chain that does not answer is marked unavailable and
left out of the search; it never fails the whole collection.
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from mev_shield.data_collector.bridge_quotes import BridgeQuoteProvider
from mev_shield.data_collector.market_inputs import MarketInput
from mev_shield.data_collector.price_oracle import LiFiPriceOracle
from mev_shield.mev_protection.chain_configs import CHAIN_CONFIGS, get_chain_config
from mev_shield.mev_protection.execution_models import BridgeQuote, ChainPricing, LiveMarketData

if TYPE_CHECKING:
    from mev_shield.blockchain_connector.provider import ChainDataProvider

logger = logging.getLogger(__name__)

WEI_PER_NATIVE = 10 ** 18
SAFE_THRESHOLD_GAS_MULTIPLE = 1.5  # sandwiches below 1.5x their gas cost are not worth attacking


def price_chain(chain: str,
                gas_price_wei: int,
                native_price_usd: float,
                liquidity_depth_usd: float,
                assumed_inputs: tuple = ()) -> ChainPricing:
    """Build a chain's pricing snapshot from its gas and native token prices."""
    config = get_chain_config(chain)
    gas_unit_usd = gas_price_wei / WEI_PER_NATIVE * native_price_usd
    sandwich_gas_usd = config.sandwich_gas_units * gas_unit_usd

    return ChainPricing(
        chain=chain,
        gas_price_wei=gas_price_wei,
        native_price_usd=native_price_usd,
        swap_gas_units=config.swap_gas_units,
        swap_gas_cost_usd=config.swap_gas_units * gas_unit_usd,
        sandwich_gas_cost_usd=sandwich_gas_usd,
        safe_threshold_usd=sandwich_gas_usd * SAFE_THRESHOLD_GAS_MULTIPLE,
        liquidity_depth_usd=liquidity_depth_usd,
        available=True,
        assumed_inputs=tuple(assumed_inputs),
    )


class MarketDataCollector:
    """Concurrent per-chain pricing plus bridge quotes."""

    def __init__(self,
                 chain_provider: "ChainDataProvider",
                 price_oracle: LiFiPriceOracle,
                 bridge_provider: Optional[BridgeQuoteProvider] = None,
                 chains: Optional[List[str]] = None):
        self.chain_provider = chain_provider
        self.price_oracle = price_oracle
        self.bridge_provider = bridge_provider
        self.chains = chains or list(CHAIN_CONFIGS.keys())

    async def collect(self,
                      primary_chain: str,
                      primary_gas_price: MarketInput[int],
                      eth_price: MarketInput[float],
                      pool_depth_usd: float,
                      bridge_token: Optional[str] = None,
                      bridge_amount: int = 0) -> LiveMarketData:
        """
        Snapshot pricing for every chain.

        Args:
            primary_chain: Chain the trade executes on
            primary_gas_price: Gas price already resolved for the primary chain
            eth_price: ETH price already resolved for the request
            pool_depth_usd: Measured depth of the trade's pool on the primary chain
            bridge_token: Input token to quote bridges for, if any
            bridge_amount: Raw amount to quote

        Returns:
            LiveMarketData
        """
        primary_chain = primary_chain.lower()
        chains = list(dict.fromkeys([primary_chain] + self.chains))

        tasks = [
            self._chain_pricing(chain, primary_chain, primary_gas_price, eth_price, pool_depth_usd)
            for chain in chains
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        pricing: Dict[str, ChainPricing] = {}
        for chain, result in zip(chains, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to price {chain}: {result}")
                pricing[chain] = ChainPricing.unavailable(chain, str(result))
            else:
                pricing[chain] = result

        assumptions = []
        if eth_price.assumed:
            assumptions.append(eth_price.describe("eth_price_usd"))
        if primary_gas_price.assumed:
            assumptions.append(primary_gas_price.describe(f"{primary_chain}_gas_price_wei"))

        market = LiveMarketData(
            primary_chain=primary_chain,
            pricing=pricing,
            eth_price_usd=eth_price.value,
            assumptions=assumptions,
        )

        if self.bridge_provider and bridge_token and bridge_amount > 0:
            market.bridge_quotes = await self._bridge_quotes(market, bridge_token, bridge_amount)

        available = market.available_chains
        logger.info(f"📊 Priced {len(available)}/{len(chains)} chains: {available}")
        return market

    async def _chain_pricing(self,
                             chain: str,
                             primary_chain: str,
                             primary_gas_price: MarketInput[int],
                             eth_price: MarketInput[float],
                             pool_depth_usd: float) -> ChainPricing:
        config = get_chain_config(chain)
        assumed = []

        if chain == primary_chain:
            gas_price = primary_gas_price.value
            if primary_gas_price.assumed:
                assumed.append("gas_price")
            depth = pool_depth_usd
        else:
            gas_price = await self.chain_provider.get_gas_price(chain)
            if gas_price is None:
                return ChainPricing.unavailable(chain, "gas price unavailable")
            primary_multiplier = get_chain_config(primary_chain).liquidity_depth_multiplier
            depth = pool_depth_usd * config.liquidity_depth_multiplier / primary_multiplier

        if config.native_currency == "ETH":
            native = eth_price
        else:
            native = await self.price_oracle.get_native_price(chain)
        if native.assumed:
            assumed.append("native_price")

        return price_chain(chain, gas_price, native.value, depth, tuple(assumed))

    async def _bridge_quotes(self,
                             market: LiveMarketData,
                             token: str,
                             amount: int) -> Dict[str, BridgeQuote]:
        targets = [c for c in market.available_chains if c != market.primary_chain]
        results = await asyncio.gather(
            *[self.bridge_provider.quote(market.primary_chain, chain, token, amount) for chain in targets],
            return_exceptions=True,
        )

        quotes = {}
        for chain, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Bridge quote to {chain} failed: {result}")
            elif result is not None:
                quotes[chain] = result
        return quotes
