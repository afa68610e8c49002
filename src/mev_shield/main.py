"""Main FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from mev_shield.api.health import router as health_router
from mev_shield.api.shield import router as shield_router
from mev_shield.blockchain_connector.provider import BlockchainProvider
from mev_shield.config.settings import settings
from mev_shield.data_collector.bridge_quotes import LiFiBridgeQuoteProvider
from mev_shield.data_collector.graph_swap_fetcher import GraphSwapFetcher
from mev_shield.data_collector.market_data import MarketDataCollector
from mev_shield.data_collector.price_oracle import LiFiPriceOracle
from mev_shield.mev_detection.mev_profiler import HistoricalMEVProfiler
from mev_shield.shield_agent import ShieldAgent


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown events."""
    # Startup
    print("🚀 Starting MEV Shield...")

    print("🔗 Setting up blockchain connections...")
    blockchain_provider = BlockchainProvider()
    await blockchain_provider.initialize()
    app.state.blockchain_provider = blockchain_provider
    print("✅ Blockchain connections initialized!")

    print("🌐 Setting up price and bridge quote clients...")
    price_oracle = LiFiPriceOracle()
    bridge_provider = LiFiBridgeQuoteProvider()
    await price_oracle.initialize()
    await bridge_provider.initialize()
    print("✅ LI.FI clients initialized!")

    swap_fetcher = None
    if settings.graph_api_key:
        print("📜 Setting up historical swap fetcher...")
        swap_fetcher = GraphSwapFetcher()
        await swap_fetcher.initialize()
        print("✅ Graph swap fetcher initialized!")
    else:
        print("⚠️  GRAPH_API_KEY not set; pool profiles will use defaults")

    app.state.clients = [c for c in (price_oracle, bridge_provider, swap_fetcher) if c is not None]
    app.state.shield_agent = ShieldAgent(
        chain_provider=blockchain_provider,
        price_oracle=price_oracle,
        profiler=HistoricalMEVProfiler(swap_provider=swap_fetcher),
        market_collector=MarketDataCollector(blockchain_provider, price_oracle, bridge_provider),
    )

    print("✅ System startup complete!")

    yield

    # Shutdown
    print("🛑 Shutting down MEV Shield...")
    app.state.shield_agent = None

    print("🌐 Closing HTTP clients...")
    for client in app.state.clients:
        await client.close()
    print("✅ HTTP clients closed!")

    print("🔗 Closing blockchain connections...")
    await blockchain_provider.close()
    print("✅ Blockchain connections closed!")

    print("✅ System shutdown complete!")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="MEV Shield API",
        description="Sandwich-risk estimation and execution-channel selection for Uniswap V2 swaps",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Include API routers
    app.include_router(health_router, tags=["health"])
    app.include_router(shield_router, tags=["shield"])

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mev_shield.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug",
    )
