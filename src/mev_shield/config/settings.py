"""Application settings and configuration."""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = Field(default="0.0.0.0", description="Host to bind the server")
    port: int = Field(default=3001, description="Port to bind the server")
    debug: bool = Field(default=False, description="Enable debug mode")

    # RPC URLs for different chains
    ethereum_rpc_url: Optional[str] = Field(
        default=None,
        description="Ethereum mainnet RPC URL",
        alias="ETHEREUM_RPC_URL"
    )

    arbitrum_rpc_url: Optional[str] = Field(
        default=None,
        description="Arbitrum mainnet RPC URL",
        alias="ARBITRUM_RPC_URL"
    )

    base_rpc_url: Optional[str] = Field(
        default=None,
        description="Base mainnet RPC URL",
        alias="BASE_RPC_URL"
    )

    optimism_rpc_url: Optional[str] = Field(
        default=None,
        description="Optimism mainnet RPC URL",
        alias="OPTIMISM_RPC_URL"
    )

    polygon_rpc_url: Optional[str] = Field(
        default=None,
        description="Polygon mainnet RPC URL",
        alias="POLYGON_RPC_URL"
    )

    # Historical swap data (The Graph)
    graph_api_key: Optional[str] = Field(
        default=None,
        description="The Graph gateway API key",
        alias="GRAPH_API_KEY"
    )

    graph_subgraph_id: str = Field(
        default="EYCKATKGBKLWvSfwvBjzfCBmGwYNdVkduYXVivCsLRFu",
        description="Uniswap V2 subgraph deployment ID",
        alias="GRAPH_SUBGRAPH_ID"
    )

    graph_gateway_url: str = Field(
        default="https://gateway.thegraph.com/api",
        description="The Graph gateway base URL",
        alias="GRAPH_GATEWAY_URL"
    )

    # Bridge quotes and token prices (LI.FI)
    lifi_api_url: str = Field(
        default="https://li.quest/v1",
        description="LI.FI API base URL",
        alias="LIFI_API_URL"
    )

    lifi_api_key: Optional[str] = Field(
        default=None,
        description="Optional LI.FI API key",
        alias="LIFI_API_KEY"
    )

    # I/O behaviour
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every external call",
        alias="REQUEST_TIMEOUT_SECONDS"
    )

    profile_cache_ttl_seconds: float = Field(
        default=300.0,
        description="Time-to-live for cached pool MEV profiles",
        alias="PROFILE_CACHE_TTL_SECONDS"
    )

    bridge_quote_cache_ttl_seconds: float = Field(
        default=60.0,
        description="Time-to-live for cached bridge quotes",
        alias="BRIDGE_QUOTE_CACHE_TTL_SECONDS"
    )

    # Degraded-mode assumptions
    fallback_eth_price_usd: float = Field(
        default=2500.0,
        description="ETH price assumed when no price source answers",
        alias="FALLBACK_ETH_PRICE_USD"
    )

    fallback_gas_price_gwei: float = Field(
        default=30.0,
        description="Gas price assumed when a chain does not answer",
        alias="FALLBACK_GAS_PRICE_GWEI"
    )

    # AMM / simulation settings
    fee_bps: int = Field(
        default=30,
        description="Constant-product pool fee in basis points",
        alias="FEE_BPS"
    )

    # Historical profiling settings
    history_target_swaps: int = Field(
        default=10_000,
        description="Number of historical swaps to profile per pool",
        alias="HISTORY_TARGET_SWAPS"
    )

    history_page_size: int = Field(
        default=1000,
        description="Page size for historical swap queries",
        alias="HISTORY_PAGE_SIZE"
    )

    min_swaps_for_analysis: int = Field(
        default=20,
        description="Minimum normalized swaps required to score a pool",
        alias="MIN_SWAPS_FOR_ANALYSIS"
    )

    # Default user policy
    default_private_threshold_usd: float = Field(
        default=5000.0,
        description="Trade size up to which MEDIUM risk goes through an MEV route",
        alias="DEFAULT_PRIVATE_THRESHOLD_USD"
    )

    default_slippage_tolerance_bps: int = Field(
        default=50,
        description="Default slippage tolerance for chunk minimum outputs",
        alias="DEFAULT_SLIPPAGE_TOLERANCE_BPS"
    )

    default_max_chunks: int = Field(
        default=100,
        description="Default upper bound on public chunks",
        alias="DEFAULT_MAX_CHUNKS"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Global settings instance
settings = Settings()
