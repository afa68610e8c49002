"""Data collection adapters: swap history, prices, bridge quotes and chain pricing."""

from .errors import (
    ProviderError,
    DataUnavailableError,
    RateLimitError,
    with_retry,
)
from .market_inputs import MarketInput
from .graph_swap_fetcher import GraphSwapFetcher
from .price_oracle import LiFiPriceOracle
from .bridge_quotes import BridgeQuoteProvider, LiFiBridgeQuoteProvider
from .market_data import MarketDataCollector, price_chain

__all__ = [
    "ProviderError",
    "DataUnavailableError",
    "RateLimitError",
    "with_retry",
    "MarketInput",
    "GraphSwapFetcher",
    "LiFiPriceOracle",
    "BridgeQuoteProvider",
    "LiFiBridgeQuoteProvider",
    "MarketDataCollector",
    "price_chain",
]
