"""Market inputs tagged with whether they were observed or assumed."""
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class MarketInput(Generic[T]):
    """
    A market value plus its provenance.

    Assumed values are fallbacks used when a data source was unavailable, so
    callers and tests can tell a computed result from a degraded one.
    """
    value: T
    source: str
    assumed: bool = False
    reason: Optional[str] = None

    @classmethod
    def observed(cls, value: T, source: str) -> "MarketInput[T]":
        return cls(value=value, source=source)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "MarketInput[T]":
        return cls(value=value, source="fallback", assumed=True, reason=reason)

    def describe(self, name: str) -> str:
        """One-line note for the response's assumption list."""
        return f"{name}={self.value} assumed ({self.reason})"

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        return {
            "value": value,
            "source": self.source,
            "assumed": self.assumed,
            "reason": self.reason,
        }
