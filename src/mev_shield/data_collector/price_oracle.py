"""
Native token price oracle.

USD prices from the LI.FI token endpoint, with an explicit assumed fallback
when the API cannot be reached.
"""
import logging
from typing import Optional

import aiohttp

from mev_shield.cache.ttl_cache import TTLCache
from mev_shield.config.settings import settings
from mev_shield.data_collector.errors import DataUnavailableError, ProviderError, RateLimitError, with_retry
from mev_shield.data_collector.market_inputs import MarketInput
from mev_shield.mev_protection.chain_configs import get_chain_config

logger = logging.getLogger(__name__)


class LiFiPriceOracle:
    """Token USD prices via li.quest."""

    def __init__(self,
                 api_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 timeout_seconds: Optional[float] = None,
                 cache: Optional[TTLCache] = None):
        self.api_url = (api_url or settings.lifi_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.lifi_api_key
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.cache = cache or TTLCache(settings.bridge_quote_cache_ttl_seconds, name="token-price")

        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self):
        """Open the HTTP session."""
        if self.session is None:
            headers = {"x-lifi-api-key": self.api_key} if self.api_key else {}
            self.session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def get_token_price(self, chain: str, token_address: str) -> float:
        """
        USD price of a token.

        Raises:
            ProviderError: if LI.FI fails or returns no price
        """
        chain_id = get_chain_config(chain).chain_id
        if not chain_id:
            raise DataUnavailableError(f"unknown chain {chain}", provider="lifi", chain=chain)
        if not self.session:
            await self.initialize()

        try:
            async with self.session.get(
                f"{self.api_url}/token",
                params={"chain": str(chain_id), "token": token_address}
            ) as response:
                if response.status == 429:
                    raise RateLimitError("rate limited", provider="lifi", chain=chain)
                if response.status != 200:
                    raise ProviderError(f"token price HTTP {response.status}", provider="lifi", chain=chain)
                data = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(f"token price request failed: {e}", provider="lifi", chain=chain) from e

        try:
            price = float(data.get("priceUSD"))
        except (TypeError, ValueError):
            raise DataUnavailableError(f"no priceUSD for {token_address}", provider="lifi", chain=chain)
        if price <= 0:
            raise DataUnavailableError(f"non-positive price for {token_address}", provider="lifi", chain=chain)
        return price

    async def get_native_price(self, chain: str = "ethereum") -> MarketInput[float]:
        """
        USD price of the chain's gas token, never raising.

        Chains whose gas token is ETH are priced via their WETH; an unavailable
        price degrades to the configured fallback, flagged as assumed.
        """
        config = get_chain_config(chain)
        fallback_price = config.fallback_native_price_usd or settings.fallback_eth_price_usd

        if config.native_currency == "ETH":
            price_chain, token = "ethereum", get_chain_config("ethereum").weth_address
        else:
            # Zero address is the native token on LI.FI
            price_chain, token = config.chain_name, "0x0000000000000000000000000000000000000000"

        try:
            price = await self.cache.get_or_compute(
                (price_chain, token),
                lambda: with_retry(
                    lambda: self.get_token_price(price_chain, token),
                    self.timeout_seconds,
                    f"{config.native_currency} price",
                ),
            )
            return MarketInput.observed(price, source="lifi")
        except ProviderError as e:
            logger.warning(f"⚠️ Using fallback {config.native_currency} price ${fallback_price}: {e}")
            return MarketInput.fallback(fallback_price, reason=f"{config.native_currency} price unavailable")
