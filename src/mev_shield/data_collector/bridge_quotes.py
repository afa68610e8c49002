"""
Cross-chain bridge cost quotes.

Quotes are estimates only; nothing is ever bridged.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from mev_shield.cache.ttl_cache import TTLCache
from mev_shield.config.settings import settings
from mev_shield.data_collector.errors import ProviderError, RateLimitError, with_retry
from mev_shield.mev_protection.chain_configs import get_chain_config, get_token_on_chain
from mev_shield.mev_protection.execution_models import BridgeQuote

logger = logging.getLogger(__name__)

# LI.FI requires a sender; quotes are cost estimates so any address works
QUOTE_FROM_ADDRESS = "0x0000000000000000000000000000000000000001"


class BridgeQuoteProvider(ABC):
    """Source of bridge cost quotes between chains."""

    @abstractmethod
    async def quote(self,
                    from_chain: str,
                    to_chain: str,
                    token: str,
                    amount: int) -> Optional[BridgeQuote]:
        """Cost of bridging `amount` raw units of `token`, or None when no route exists."""
        pass


class LiFiBridgeQuoteProvider(BridgeQuoteProvider):
    """Bridge quotes from the LI.FI quote API, cached per route."""

    def __init__(self,
                 api_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 timeout_seconds: Optional[float] = None,
                 cache: Optional[TTLCache] = None):
        self.api_url = (api_url or settings.lifi_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.lifi_api_key
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.cache = cache or TTLCache(settings.bridge_quote_cache_ttl_seconds, name="bridge-quote")

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

    async def quote(self,
                    from_chain: str,
                    to_chain: str,
                    token: str,
                    amount: int) -> Optional[BridgeQuote]:
        from_config = get_chain_config(from_chain)
        to_config = get_chain_config(to_chain)
        if not from_config.chain_id or not to_config.chain_id:
            return None

        to_token = get_token_on_chain(token, from_chain, to_chain)
        if not to_token:
            logger.debug(f"No {to_chain} equivalent for {token}; skipping bridge quote")
            return None

        key = (from_chain, to_chain, token.lower(), amount)
        try:
            return await self.cache.get_or_compute(
                key,
                lambda: with_retry(
                    lambda: self._fetch_quote(from_config.chain_id, to_config.chain_id, token, to_token, amount,
                                              from_chain, to_chain),
                    self.timeout_seconds,
                    f"bridge quote {from_chain}->{to_chain}",
                ),
            )
        except ProviderError as e:
            logger.warning(f"⚠️ Bridge quote {from_chain}->{to_chain} unavailable: {e}")
            return None

    async def _fetch_quote(self, from_chain_id: int, to_chain_id: int, from_token: str, to_token: str,
                           amount: int, from_chain: str, to_chain: str) -> BridgeQuote:
        if not self.session:
            await self.initialize()

        params = {
            "fromChain": str(from_chain_id),
            "toChain": str(to_chain_id),
            "fromToken": from_token,
            "toToken": to_token,
            "fromAmount": str(amount),
            "fromAddress": QUOTE_FROM_ADDRESS,
        }
        try:
            async with self.session.get(f"{self.api_url}/quote", params=params) as response:
                if response.status == 429:
                    raise RateLimitError("rate limited", provider="lifi", chain=to_chain)
                if response.status != 200:
                    error_text = await response.text()
                    raise ProviderError(f"quote HTTP {response.status}: {error_text[:200]}",
                                        provider="lifi", chain=to_chain)
                data = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(f"quote request failed: {e}", provider="lifi", chain=to_chain) from e

        return self.parse_quote(data, from_chain, to_chain)

    @staticmethod
    def parse_quote(data: Dict[str, Any], from_chain: str, to_chain: str) -> BridgeQuote:
        """Sum fee and gas costs from a LI.FI quote."""
        estimate = data.get("estimate")
        if not estimate:
            raise ProviderError("quote has no estimate", provider="lifi", chain=to_chain)

        def total(costs) -> float:
            return sum(float(c.get("amountUSD") or 0) for c in costs or [])

        return BridgeQuote(
            from_chain=from_chain,
            to_chain=to_chain,
            fees_usd=total(estimate.get("feeCosts")),
            gas_usd=total(estimate.get("gasCosts")),
            execution_seconds=int(estimate.get("executionDuration") or 300),
        )
