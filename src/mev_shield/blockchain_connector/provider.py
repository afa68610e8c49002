"""Blockchain provider for multi-chain Uniswap V2 pool reads."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import aiohttp
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider
from web3.exceptions import Web3Exception

from ..config.settings import settings
from ..mev_protection.chain_configs import get_chain_config
from ..protocols.dex_protocols.uniswap_v2_math import ReservePair

logger = logging.getLogger(__name__)

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

UNISWAP_V2_PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token0",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token1",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

UNISWAP_V2_FACTORY_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "name": "getPair",
        "outputs": [{"name": "pair", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_DECIMALS_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]

RPC_ERRORS = (Web3Exception, asyncio.TimeoutError, aiohttp.ClientError, OSError, ValueError)


class ChainConfig:
    """RPC configuration for a blockchain network."""

    def __init__(
        self,
        name: str,
        chain_id: int,
        rpc_url: str,
        block_explorer_url: Optional[str] = None,
        native_currency: str = "ETH"
    ):
        self.name = name
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self.block_explorer_url = block_explorer_url
        self.native_currency = native_currency


class ChainDataProvider(ABC):
    """
    On-chain reads needed to simulate a trade.

    Every method reports unavailability by returning None instead of raising.
    """

    @abstractmethod
    async def get_reserves(self, chain: str, pair_address: str, token_in: str) -> Optional[ReservePair]:
        """Pair reserves oriented token_in -> token_out."""
        pass

    @abstractmethod
    async def get_gas_price(self, chain: str) -> Optional[int]:
        """Current gas price in wei."""
        pass

    @abstractmethod
    async def get_pair_address(self, chain: str, token_a: str, token_b: str) -> Optional[str]:
        """Uniswap V2 pair for two tokens, None when no pair exists."""
        pass

    @abstractmethod
    async def get_token_decimals(self, chain: str, token: str) -> Optional[int]:
        """ERC20 decimals."""
        pass


class BlockchainProvider(ChainDataProvider):
    """Async web3 provider for multi-chain pool reads."""

    def __init__(self, timeout_seconds: Optional[float] = None, attempts: int = 2):
        """Initialize the blockchain provider."""
        self.web3_instances: Dict[str, AsyncWeb3] = {}
        self.chain_configs: Dict[str, ChainConfig] = {}
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.attempts = attempts
        self._decimals_cache: Dict[tuple, int] = {}
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize all blockchain connections."""
        if self._initialized:
            return

        logger.info("🔗 Initializing blockchain connections...")
        self._setup_chain_configs()
        await self._initialize_web3_instances()

        self._initialized = True
        logger.info(f"✅ Initialized {len(self.web3_instances)} blockchain connections")

    def _setup_chain_configs(self) -> None:
        """Set up configuration for chains with an RPC URL."""
        rpc_urls = {
            "ethereum": (settings.ethereum_rpc_url, "Ethereum", "https://etherscan.io"),
            "arbitrum": (settings.arbitrum_rpc_url, "Arbitrum", "https://arbiscan.io"),
            "base": (settings.base_rpc_url, "Base", "https://basescan.org"),
            "optimism": (settings.optimism_rpc_url, "Optimism", "https://optimistic.etherscan.io"),
            "polygon": (settings.polygon_rpc_url, "Polygon", "https://polygonscan.com"),
        }

        configs = {}
        for chain_name, (rpc_url, display_name, explorer) in rpc_urls.items():
            if not rpc_url:
                continue
            execution_config = get_chain_config(chain_name)
            configs[chain_name] = ChainConfig(
                name=display_name,
                chain_id=execution_config.chain_id,
                rpc_url=rpc_url,
                block_explorer_url=explorer,
                native_currency=execution_config.native_currency
            )

        self.chain_configs = configs
        logger.info(f"📋 Configured {len(configs)} chains: {list(configs.keys())}")

    async def _initialize_web3_instances(self) -> None:
        """Initialize Web3 instances for all configured chains."""
        for chain_name, config in self.chain_configs.items():
            try:
                provider = AsyncHTTPProvider(
                    config.rpc_url,
                    request_kwargs={"timeout": self.timeout_seconds}
                )
                w3 = AsyncWeb3(provider)

                chain_id = await asyncio.wait_for(w3.eth.chain_id, timeout=self.timeout_seconds)
                if chain_id != config.chain_id:
                    logger.warning(
                        f"⚠️ Chain ID mismatch for {chain_name}: "
                        f"expected {config.chain_id}, got {chain_id}"
                    )

                self.web3_instances[chain_name] = w3
                logger.info(f"✅ Connected to {config.name} (chain ID: {chain_id})")

            except RPC_ERRORS as e:
                logger.error(f"❌ Failed to connect to {chain_name}: {e}")
                continue

    async def get_web3(self, chain_name: str) -> Optional[AsyncWeb3]:
        """Get Web3 instance for a specific chain."""
        if not self._initialized:
            await self.initialize()

        return self.web3_instances.get(chain_name.lower())

    async def get_supported_chains(self) -> List[str]:
        """Get list of connected chain names."""
        if not self._initialized:
            await self.initialize()

        return list(self.web3_instances.keys())

    async def _call(self, description: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Run an RPC read with a timeout, retrying once; None when both attempts fail."""
        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except RPC_ERRORS as e:
                if attempt < self.attempts:
                    logger.warning(f"{description} failed (attempt {attempt}/{self.attempts}): {e}")
                else:
                    logger.error(f"Failed to get {description}: {e}")
        return None

    async def get_gas_price(self, chain: str) -> Optional[int]:
        """Get current gas price for a chain (in wei)."""
        w3 = await self.get_web3(chain)
        if not w3:
            return None

        async def read():
            return await w3.eth.gas_price

        return await self._call(f"gas price for {chain}", read)

    async def get_block_number(self, chain: str) -> Optional[int]:
        """Get current block number for a chain."""
        w3 = await self.get_web3(chain)
        if not w3:
            return None

        async def read():
            return await w3.eth.block_number

        return await self._call(f"block number for {chain}", read)

    async def get_reserves(self, chain: str, pair_address: str, token_in: str) -> Optional[ReservePair]:
        w3 = await self.get_web3(chain)
        if not w3:
            return None

        async def read():
            pair = w3.eth.contract(address=AsyncWeb3.to_checksum_address(pair_address), abi=UNISWAP_V2_PAIR_ABI)
            reserve0, reserve1, _ = await pair.functions.getReserves().call()
            token0 = await pair.functions.token0().call()
            return reserve0, reserve1, token0

        result = await self._call(f"reserves of {pair_address} on {chain}", read)
        if result is None:
            return None

        reserve0, reserve1, token0 = result
        if token0.lower() == token_in.lower():
            return ReservePair(reserve_in=reserve0, reserve_out=reserve1)
        return ReservePair(reserve_in=reserve1, reserve_out=reserve0)

    async def get_pair_address(self, chain: str, token_a: str, token_b: str) -> Optional[str]:
        factory_address = get_chain_config(chain).uniswap_v2_factory
        w3 = await self.get_web3(chain)
        if not w3 or not factory_address:
            return None

        async def read():
            factory = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(factory_address),
                abi=UNISWAP_V2_FACTORY_ABI
            )
            return await factory.functions.getPair(
                AsyncWeb3.to_checksum_address(token_a),
                AsyncWeb3.to_checksum_address(token_b)
            ).call()

        pair = await self._call(f"pair for {token_a}/{token_b} on {chain}", read)
        if not pair or pair == ZERO_ADDRESS:
            return None
        return pair

    async def get_token_decimals(self, chain: str, token: str) -> Optional[int]:
        key = (chain.lower(), token.lower())
        if key in self._decimals_cache:
            return self._decimals_cache[key]

        w3 = await self.get_web3(chain)
        if not w3:
            return None

        async def read():
            contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=ERC20_DECIMALS_ABI)
            return await contract.functions.decimals().call()

        decimals = await self._call(f"decimals of {token} on {chain}", read)
        if decimals is not None:
            self._decimals_cache[key] = int(decimals)
        return decimals

    async def get_chain_health(self, chain_name: str) -> Dict[str, Any]:
        """Get health information for a specific chain."""
        w3 = await self.get_web3(chain_name)
        config = self.chain_configs.get(chain_name.lower())

        if not w3 or not config:
            return {
                "chain": chain_name,
                "status": "not_configured",
                "connected": False
            }

        block_number = await self.get_block_number(chain_name)
        gas_price = await self.get_gas_price(chain_name) if block_number is not None else None
        connected = block_number is not None

        return {
            "chain": chain_name,
            "name": config.name,
            "chain_id": config.chain_id,
            "status": "healthy" if connected else "unhealthy",
            "connected": connected,
            "block_number": block_number,
            "gas_price": gas_price,
            "native_currency": config.native_currency
        }

    async def get_all_chain_health(self) -> Dict[str, Dict[str, Any]]:
        """Get health information for all configured chains."""
        if not self._initialized:
            await self.initialize()

        health_checks = {}
        for chain_name in self.chain_configs.keys():
            health_checks[chain_name] = await self.get_chain_health(chain_name)
        return health_checks

    async def close(self) -> None:
        """Close all blockchain connections."""
        logger.info("🔒 Closing blockchain connections...")

        for chain_name, w3 in self.web3_instances.items():
            disconnect = getattr(w3.provider, "disconnect", None)
            if disconnect is None:
                continue
            try:
                await disconnect()
            except RPC_ERRORS as e:
                logger.error(f"Error closing {chain_name} connection: {e}")

        self.web3_instances.clear()
        self._decimals_cache.clear()
        self._initialized = False
        logger.info("✅ All blockchain connections closed")
