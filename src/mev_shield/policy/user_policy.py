"""
User execution policy.

Per-identity preferences that steer the decision engine. Out-of-range values
are clamped to safe bounds rather than rejected.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from mev_shield.config.settings import settings

logger = logging.getLogger(__name__)

RISK_PROFILES = ("conservative", "balanced", "aggressive")

PRIVATE_THRESHOLD_RANGE = (0.0, 10_000_000.0)
MAX_CHUNKS_RANGE = (1, 100)
SLIPPAGE_BPS_RANGE = (1, 1000)


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True)
class UserPolicy:
    """Execution preferences for one identity."""
    private_threshold_usd: float = 5000.0
    split_enabled: bool = True
    risk_profile: str = "balanced"
    max_chunks: int = 100
    slippage_tolerance_bps: int = 50

    def clamped(self) -> "UserPolicy":
        """Copy of this policy with every value inside its documented range."""
        risk_profile = self.risk_profile.lower() if isinstance(self.risk_profile, str) else "balanced"
        if risk_profile not in RISK_PROFILES:
            risk_profile = "balanced"

        policy = replace(
            self,
            private_threshold_usd=float(_clamp(self.private_threshold_usd, *PRIVATE_THRESHOLD_RANGE)),
            risk_profile=risk_profile,
            max_chunks=int(_clamp(self.max_chunks, *MAX_CHUNKS_RANGE)),
            slippage_tolerance_bps=int(_clamp(self.slippage_tolerance_bps, *SLIPPAGE_BPS_RANGE)),
        )
        if policy != self:
            logger.debug(f"Policy clamped: {self} -> {policy}")
        return policy

    @property
    def effective_max_chunks(self) -> int:
        """Chunk cap seen by the optimizer; splitting disabled means one chunk."""
        return self.max_chunks if self.split_enabled else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "private_threshold_usd": self.private_threshold_usd,
            "split_enabled": self.split_enabled,
            "risk_profile": self.risk_profile,
            "max_chunks": self.max_chunks,
            "slippage_tolerance_bps": self.slippage_tolerance_bps,
        }


def default_policy() -> UserPolicy:
    """Policy used for identities with nothing configured."""
    return UserPolicy(
        private_threshold_usd=settings.default_private_threshold_usd,
        max_chunks=settings.default_max_chunks,
        slippage_tolerance_bps=settings.default_slippage_tolerance_bps,
    ).clamped()


class PolicyProvider(ABC):
    """Source of per-identity execution policies."""

    @abstractmethod
    async def get_policy(self, identity: str) -> UserPolicy:
        """Return the policy for an identity, falling back to defaults."""
        pass


class StaticPolicyProvider(PolicyProvider):
    """In-memory policies keyed by lowercase identity."""

    def __init__(self,
                 overrides: Optional[Dict[str, UserPolicy]] = None,
                 default: Optional[UserPolicy] = None):
        self.default = (default or default_policy()).clamped()
        self.overrides: Dict[str, UserPolicy] = {}
        for identity, policy in (overrides or {}).items():
            self.set_policy(identity, policy)

    def set_policy(self, identity: str, policy: UserPolicy) -> None:
        self.overrides[identity.lower()] = policy.clamped()

    async def get_policy(self, identity: str) -> UserPolicy:
        return self.overrides.get((identity or "").lower(), self.default)
