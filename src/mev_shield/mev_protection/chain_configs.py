"""
Per-chain execution parameters.

Gas profiles, liquidity scaling and token/factory addresses for every chain
the execution optimizer can price.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainExecutionConfig:
    """Execution characteristics of a single chain."""
    chain_id: int
    chain_name: str

    # Gas profile
    swap_gas_units: int = 200_000
    sandwich_overhead_gas_units: int = 50_000

    # Uniswap V2 liquidity on this chain relative to Ethereum mainnet
    liquidity_depth_multiplier: float = 0.05

    # MEV protection features
    supports_private_relay: bool = False
    private_relay_url: Optional[str] = None
    has_sequencer: bool = False  # L2s with a centralized sequencer

    uniswap_v2_factory: Optional[str] = None
    native_currency: str = "ETH"
    fallback_native_price_usd: Optional[float] = None  # None: use the ETH fallback
    token_addresses: Dict[str, str] = field(default_factory=dict)

    @property
    def sandwich_gas_units(self) -> int:
        """Frontrun plus backrun, plus the attacker contract's overhead."""
        return 2 * self.swap_gas_units + self.sandwich_overhead_gas_units

    @property
    def weth_address(self) -> Optional[str]:
        return self.token_addresses.get("WETH")


DEFAULT_CHAIN_CONFIG = ChainExecutionConfig(chain_id=0, chain_name="unknown")


def _initialize_chain_configs() -> Dict[str, ChainExecutionConfig]:
    """Known chains keyed by lowercase name."""
    configs = [
        ChainExecutionConfig(
            chain_id=1,
            chain_name="ethereum",
            swap_gas_units=180_000,
            liquidity_depth_multiplier=1.0,
            supports_private_relay=True,
            private_relay_url="https://relay.flashbots.net",
            uniswap_v2_factory="0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
            token_addresses={
                "WETH": "0xC02aaA39b223FE8D0A0E5C4F27eAD9083C756Cc2",
                "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
                "DAI": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
                "WBTC": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
            },
        ),
        ChainExecutionConfig(
            chain_id=42161,
            chain_name="arbitrum",
            swap_gas_units=700_000,
            liquidity_depth_multiplier=0.25,
            has_sequencer=True,
            uniswap_v2_factory="0xf1D7CC64Fb4452F05c498126312eBE29f30Fbcf9",
            token_addresses={
                "WETH": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
                "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
                "DAI": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
                "WBTC": "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
            },
        ),
        ChainExecutionConfig(
            chain_id=8453,
            chain_name="base",
            swap_gas_units=200_000,
            liquidity_depth_multiplier=0.15,
            has_sequencer=True,
            uniswap_v2_factory="0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
            token_addresses={
                "WETH": "0x4200000000000000000000000000000000000006",
                "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                "DAI": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
            },
        ),
        ChainExecutionConfig(
            chain_id=10,
            chain_name="optimism",
            swap_gas_units=250_000,
            liquidity_depth_multiplier=0.10,
            has_sequencer=True,
            uniswap_v2_factory="0x0c3c1c532F1e39EdF36BE9Fe0bE1410313E074Bf",
            token_addresses={
                "WETH": "0x4200000000000000000000000000000000000006",
                "USDC": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
            },
        ),
        ChainExecutionConfig(
            chain_id=137,
            chain_name="polygon",
            swap_gas_units=200_000,
            liquidity_depth_multiplier=0.20,
            native_currency="POL",
            fallback_native_price_usd=0.5,
            uniswap_v2_factory="0x9e5A52f57b3038F1B8EeE45F28b3C1967e22799C",
            token_addresses={
                "WETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
                "USDC": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
            },
        ),
    ]
    return {config.chain_name: config for config in configs}


CHAIN_CONFIGS: Dict[str, ChainExecutionConfig] = _initialize_chain_configs()


def get_chain_config(chain_name: str) -> ChainExecutionConfig:
    """Config for a chain, falling back to conservative defaults for unknown chains."""
    config = CHAIN_CONFIGS.get(chain_name.lower())
    if config is None:
        logger.debug(f"No execution config for chain {chain_name}; using defaults")
        return DEFAULT_CHAIN_CONFIG
    return config


def get_token_on_chain(token_address: str, from_chain: str, to_chain: str) -> Optional[str]:
    """Address of the same token on another chain, if known."""
    source = get_chain_config(from_chain).token_addresses
    target = get_chain_config(to_chain).token_addresses

    for symbol, address in source.items():
        if address.lower() == token_address.lower():
            return target.get(symbol)
    return None
