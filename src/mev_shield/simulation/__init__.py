"""
Sandwich Simulation.

Closed-form simulation of the optimal sandwich attack against a single trade.
"""
from .simulation_models import (
    RiskLevel,
    TradeIntent,
    SandwichSimulationResult,
)
from .sandwich_simulator import (
    SandwichSimulator,
    simulate_sandwich,
)

__all__ = [
    "RiskLevel",
    "TradeIntent",
    "SandwichSimulationResult",
    "SandwichSimulator",
    "simulate_sandwich",
]
