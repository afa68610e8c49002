"""Unit tests for blockchain provider."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mev_shield.blockchain_connector import BlockchainProvider
from mev_shield.blockchain_connector.provider import ZERO_ADDRESS, ChainConfig

PAIR = "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0E5C4F27eAD9083C756Cc2"


class FakeEth:
    """Minimal w3.eth whose awaitable properties can be read repeatedly."""

    def __init__(self, gas_price=30 * 10 ** 9, block_number=18_000_000):
        self._gas_price = gas_price
        self._block_number = block_number
        self.contract = MagicMock()

    @staticmethod
    def _value(value):
        async def read():
            if isinstance(value, Exception):
                raise value
            return value
        return read()

    @property
    def gas_price(self):
        return self._value(self._gas_price)

    @property
    def block_number(self):
        return self._value(self._block_number)


def make_web3(**kwargs):
    w3 = MagicMock()
    w3.eth = FakeEth(**kwargs)
    return w3


def pair_contract(reserve0, reserve1, token0):
    contract = MagicMock()
    contract.functions.getReserves.return_value.call = AsyncMock(return_value=[reserve0, reserve1, 1700000000])
    contract.functions.token0.return_value.call = AsyncMock(return_value=token0)
    return contract


class TestChainConfig:
    """Test ChainConfig class."""

    def test_chain_config_defaults(self):
        config = ChainConfig(name="TestChain", chain_id=999, rpc_url="https://test.com")

        assert config.name == "TestChain"
        assert config.block_explorer_url is None
        assert config.native_currency == "ETH"


class TestBlockchainProvider:
    """Test BlockchainProvider class."""

    def setup_method(self):
        """Provider with a pre-connected mainnet instance."""
        self.provider = BlockchainProvider(timeout_seconds=1.0)
        self.w3 = make_web3()
        self.provider.web3_instances["ethereum"] = self.w3
        self.provider.chain_configs["ethereum"] = ChainConfig("Ethereum", 1, "https://eth.example.com")
        self.provider._initialized = True

    def test_setup_chain_configs(self):
        """Only chains with an RPC URL are configured."""
        provider = BlockchainProvider()
        with patch("mev_shield.blockchain_connector.provider.settings") as mock_settings:
            mock_settings.ethereum_rpc_url = "https://eth.example.com"
            mock_settings.arbitrum_rpc_url = "https://arb.example.com"
            mock_settings.base_rpc_url = None
            mock_settings.optimism_rpc_url = None
            mock_settings.polygon_rpc_url = ""

            provider._setup_chain_configs()

        assert set(provider.chain_configs) == {"ethereum", "arbitrum"}
        assert provider.chain_configs["arbitrum"].chain_id == 42161

    @pytest.mark.asyncio
    async def test_get_web3_not_initialized(self):
        """Getting a Web3 instance triggers initialization."""
        provider = BlockchainProvider()
        with patch.object(provider, "initialize", new=AsyncMock()) as mock_init:
            result = await provider.get_web3("ethereum")

        assert result is None
        mock_init.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gas_price(self):
        assert await self.provider.get_gas_price("Ethereum") == 30 * 10 ** 9

    @pytest.mark.asyncio
    async def test_unknown_chain_returns_none(self):
        assert await self.provider.get_gas_price("arbitrum") is None
        assert await self.provider.get_reserves("arbitrum", PAIR, USDC) is None

    @pytest.mark.asyncio
    async def test_reserves_oriented_to_token_in(self):
        self.w3.eth.contract.return_value = pair_contract(1_000_000, 500, USDC)

        forward = await self.provider.get_reserves("ethereum", PAIR, USDC.lower())
        backward = await self.provider.get_reserves("ethereum", PAIR, WETH)

        assert (forward.reserve_in, forward.reserve_out) == (1_000_000, 500)
        assert (backward.reserve_in, backward.reserve_out) == (500, 1_000_000)

    @pytest.mark.asyncio
    async def test_rpc_failure_returns_none(self):
        self.provider.web3_instances["ethereum"] = make_web3(gas_price=ValueError("execution reverted"))
        assert await self.provider.get_gas_price("ethereum") is None

    @pytest.mark.asyncio
    async def test_call_retries_once(self):
        call = AsyncMock(side_effect=[OSError("connection reset"), 42])

        assert await self.provider._call("test read", call) == 42
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_call_gives_up_after_attempts(self):
        call = AsyncMock(side_effect=OSError("connection reset"))

        assert await self.provider._call("test read", call) is None
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_call_does_not_swallow_programming_errors(self):
        call = AsyncMock(side_effect=KeyError("bug"))
        with pytest.raises(KeyError):
            await self.provider._call("test read", call)

    @pytest.mark.asyncio
    async def test_pair_address(self):
        factory = MagicMock()
        factory.functions.getPair.return_value.call = AsyncMock(return_value=PAIR)
        self.w3.eth.contract.return_value = factory

        assert await self.provider.get_pair_address("ethereum", USDC, WETH) == PAIR

    @pytest.mark.asyncio
    async def test_missing_pair(self):
        factory = MagicMock()
        factory.functions.getPair.return_value.call = AsyncMock(return_value=ZERO_ADDRESS)
        self.w3.eth.contract.return_value = factory

        assert await self.provider.get_pair_address("ethereum", USDC, WETH) is None

    @pytest.mark.asyncio
    async def test_token_decimals_cached(self):
        token = MagicMock()
        token.functions.decimals.return_value.call = AsyncMock(return_value=6)
        self.w3.eth.contract.return_value = token

        assert await self.provider.get_token_decimals("ethereum", USDC) == 6
        assert await self.provider.get_token_decimals("ethereum", USDC.lower()) == 6
        token.functions.decimals.return_value.call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_chain_health(self):
        health = await self.provider.get_all_chain_health()

        assert health["ethereum"]["status"] == "healthy"
        assert health["ethereum"]["block_number"] == 18_000_000
        assert health["ethereum"]["gas_price"] == 30 * 10 ** 9

    @pytest.mark.asyncio
    async def test_chain_health_not_configured(self):
        health = await self.provider.get_chain_health("base")
        assert health == {"chain": "base", "status": "not_configured", "connected": False}

    @pytest.mark.asyncio
    async def test_close(self):
        self.w3.provider.disconnect = AsyncMock()

        await self.provider.close()

        self.w3.provider.disconnect.assert_awaited_once()
        assert self.provider.web3_instances == {}
        assert not self.provider._initialized
