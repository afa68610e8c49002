"""
The Graph client for Uniswap V2 swap history.

Fetches swap events and current pair state from the Uniswap V2 subgraph
through The Graph gateway.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import aiohttp

from mev_shield.config.settings import settings
from mev_shield.data_collector.errors import DataUnavailableError, ProviderError, RateLimitError
from mev_shield.mev_detection.swap_provider import HistoricalSwapProvider, SwapCursor, SwapPage
from mev_shield.mev_detection.swap_models import PoolState, SwapRecord

logger = logging.getLogger(__name__)

SWAPS_QUERY = """
query ($pair: String!, $first: Int!, $before: BigInt) {
  swaps(
    where: { pair: $pair, timestamp_lte: $before }
    orderBy: timestamp
    orderDirection: desc
    first: $first
  ) {
    id
    logIndex
    timestamp
    from
    to
    sender
    amount0In
    amount0Out
    amount1In
    amount1Out
    amountUSD
    transaction { id blockNumber }
    pair {
      token0 { decimals }
      token1 { decimals }
    }
  }
}
"""

PAIR_QUERY = """
query ($pair: String!) {
  pair(id: $pair) {
    id
    reserve0
    reserve1
    token0 { id symbol decimals }
    token1 { id symbol decimals }
  }
}
"""

# Far-future timestamp used when paging from the newest swap
LATEST_TIMESTAMP = 2 ** 62


def to_raw_units(value: Any, decimals: int) -> int:
    """Convert a subgraph decimal string into raw integer token units."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0
    return int((amount * (Decimal(10) ** decimals)).to_integral_value())


class GraphSwapFetcher(HistoricalSwapProvider):
    """Historical swap provider backed by The Graph's Uniswap V2 subgraph."""

    def __init__(self,
                 api_key: Optional[str] = None,
                 subgraph_id: Optional[str] = None,
                 gateway_url: Optional[str] = None,
                 timeout_seconds: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.graph_api_key
        self.subgraph_id = subgraph_id or settings.graph_subgraph_id
        self.gateway_url = (gateway_url or settings.graph_gateway_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds

        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return f"{self.gateway_url}/{self.api_key}/subgraphs/id/{self.subgraph_id}"

    async def initialize(self):
        """Open the HTTP session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Content-Type": "application/json"}
            )
            logger.info("Graph swap fetcher initialized")

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch_swaps(self,
                          pool_address: str,
                          count: int,
                          cursor: Optional[SwapCursor] = None) -> SwapPage:
        before = cursor.timestamp if cursor else LATEST_TIMESTAMP
        data = await self._query(SWAPS_QUERY, {
            "pair": pool_address.lower(),
            "first": count,
            "before": str(before),
        })

        records = [self._parse_swap(raw) for raw in data.get("swaps") or []]
        return SwapPage(records=records, requested=count)

    async def fetch_pool_state(self, pool_address: str) -> Optional[PoolState]:
        data = await self._query(PAIR_QUERY, {"pair": pool_address.lower()})
        pair = data.get("pair")
        if not pair:
            logger.warning(f"Pair {pool_address} not found in subgraph")
            return None

        token0 = pair["token0"]
        token1 = pair["token1"]
        decimals0 = int(token0["decimals"])
        decimals1 = int(token1["decimals"])

        return PoolState(
            pool_address=pool_address.lower(),
            reserve0=to_raw_units(pair["reserve0"], decimals0),
            reserve1=to_raw_units(pair["reserve1"], decimals1),
            token0=token0["id"],
            token1=token1["id"],
            token0_symbol=token0.get("symbol", ""),
            token1_symbol=token1.get("symbol", ""),
            token0_decimals=decimals0,
            token1_decimals=decimals1,
        )

    async def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise DataUnavailableError("GRAPH_API_KEY is not configured", provider="thegraph")
        if not self.session:
            await self.initialize()

        try:
            async with self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables}
            ) as response:
                if response.status == 429:
                    raise RateLimitError("rate limited", provider="thegraph")
                if response.status != 200:
                    error_text = await response.text()
                    raise ProviderError(f"HTTP {response.status}: {error_text[:200]}", provider="thegraph")
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(f"request failed: {e}", provider="thegraph") from e

        if payload.get("errors"):
            message = payload["errors"][0].get("message", "unknown error")
            raise ProviderError(f"query error: {message}", provider="thegraph")

        return payload.get("data") or {}

    @staticmethod
    def _parse_swap(raw: Dict[str, Any]) -> SwapRecord:
        pair = raw.get("pair") or {}
        decimals0 = int((pair.get("token0") or {}).get("decimals", 18))
        decimals1 = int((pair.get("token1") or {}).get("decimals", 18))
        transaction = raw.get("transaction") or {}

        try:
            amount_usd = Decimal(str(raw.get("amountUSD", "0")))
        except InvalidOperation:
            amount_usd = Decimal(0)

        return SwapRecord(
            id=raw["id"],
            tx_hash=transaction.get("id", raw["id"].split("-")[0]),
            block_number=int(transaction.get("blockNumber", 0)),
            log_index=int(raw.get("logIndex") or 0),
            timestamp=int(raw["timestamp"]),
            trader=(raw.get("from") or "").lower(),
            sender=(raw.get("sender") or "").lower(),
            recipient=(raw.get("to") or "").lower(),
            amount0_in=to_raw_units(raw.get("amount0In", "0"), decimals0),
            amount0_out=to_raw_units(raw.get("amount0Out", "0"), decimals0),
            amount1_in=to_raw_units(raw.get("amount1In", "0"), decimals1),
            amount1_out=to_raw_units(raw.get("amount1Out", "0"), decimals1),
            amount_usd=amount_usd,
        )
