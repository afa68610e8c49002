"""Swap protection and pool threat API endpoints."""
import logging
import re
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from mev_shield.shield_agent import ShieldAgent
from mev_shield.simulation.simulation_models import TradeIntent

logger = logging.getLogger(__name__)

router = APIRouter()

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class SwapRequest(BaseModel):
    """Swap to analyze. amount_in is raw token units; send large values as strings."""

    trader: str = Field(..., description="Trader identity used for policy lookup")
    token_in: str = Field(..., description="Input token address")
    token_out: str = Field(..., description="Output token address")
    amount_in: Union[str, int] = Field(..., description="Raw input amount")
    chain: str = Field(default="ethereum", description="Chain to execute on")


class PoolThreatRequest(BaseModel):
    """Pool to profile, optionally with a prospective trade."""

    pool: Optional[str] = Field(None, description="Uniswap V2 pair address")
    trade_size_usd: Optional[float] = Field(None, description="Prospective trade size in USD", ge=0)
    pool_depth_usd: Optional[float] = Field(None, description="Pool depth in USD", ge=0)
    refresh: bool = Field(default=False, description="Bypass the profile cache")


def get_agent(request: Request) -> ShieldAgent:
    agent = getattr(request.app.state, "shield_agent", None)
    if agent is None:
        raise HTTPException(status_code=503, detail="Shield agent not initialized")
    return agent


def validate_pool_address(pool: Optional[str]) -> str:
    if not pool or not ADDRESS_PATTERN.match(pool):
        raise HTTPException(status_code=400, detail="Invalid or missing `pool` address")
    return pool


@router.post("/swap")
async def analyze_swap(body: SwapRequest, agent: ShieldAgent = Depends(get_agent)) -> Dict[str, Any]:
    """Simulate the sandwich against a swap and return the chosen execution strategy."""
    try:
        intent = TradeIntent(
            trader=body.trader,
            token_in=body.token_in,
            token_out=body.token_out,
            amount_in=int(body.amount_in),
            chain=body.chain.lower(),
        )
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid swap request: {e}")

    response = await agent.handle_swap(intent)
    return response.to_dict()


@router.get("/pool-threat")
async def pool_threat(pool: Optional[str] = None,
                      trade_size_usd: Optional[float] = None,
                      pool_depth_usd: Optional[float] = None,
                      refresh: bool = False,
                      agent: ShieldAgent = Depends(get_agent)) -> Dict[str, Any]:
    """Historical MEV profile of a pool."""
    pool = validate_pool_address(pool)
    return await agent.analyze_pool_threat(pool, trade_size_usd, pool_depth_usd, bypass_cache=refresh)


@router.post("/pool-threat")
async def pool_threat_post(body: PoolThreatRequest, agent: ShieldAgent = Depends(get_agent)) -> Dict[str, Any]:
    pool = validate_pool_address(body.pool)
    return await agent.analyze_pool_threat(
        pool, body.trade_size_usd, body.pool_depth_usd, bypass_cache=body.refresh
    )
