"""Blockchain connector package for multi-chain EVM pool reads."""
from .provider import BlockchainProvider, ChainDataProvider

__all__ = [
    "BlockchainProvider",
    "ChainDataProvider",
]
