"""
User Policy Module.

Per-identity execution preferences and the providers that supply them.
"""
from .user_policy import (
    UserPolicy,
    PolicyProvider,
    StaticPolicyProvider,
    default_policy,
)

__all__ = [
    "UserPolicy",
    "PolicyProvider",
    "StaticPolicyProvider",
    "default_policy",
]
