"""Historical swap provider interface and cursor pagination."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Set

from mev_shield.mev_detection.swap_models import PoolState, SwapRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapCursor:
    """Resume point for newest-first pagination: (timestamp, id) of the oldest swap seen."""
    timestamp: int
    last_id: str


@dataclass
class SwapPage:
    """One page of swaps, newest first."""
    records: List[SwapRecord] = field(default_factory=list)
    requested: int = 0

    @property
    def is_partial(self) -> bool:
        """Fewer records than requested means the history is exhausted."""
        return len(self.records) < self.requested

    @property
    def next_cursor(self) -> Optional[SwapCursor]:
        if not self.records:
            return None
        oldest = self.records[-1]
        return SwapCursor(timestamp=oldest.timestamp, last_id=oldest.id)


class HistoricalSwapProvider(ABC):
    """Abstract source of historical swaps for a pool."""

    @abstractmethod
    async def fetch_swaps(self,
                          pool_address: str,
                          count: int,
                          cursor: Optional[SwapCursor] = None) -> SwapPage:
        """Fetch up to count swaps at or before the cursor, newest first. Idempotent."""
        pass

    @abstractmethod
    async def fetch_pool_state(self, pool_address: str) -> Optional[PoolState]:
        """Current reserves and token metadata for a pool, or None if unknown."""
        pass

    async def fetch_history(self,
                            pool_address: str,
                            target_swaps: int,
                            page_size: int = 1000) -> List[SwapRecord]:
        """
        Collect up to target_swaps swaps by walking pages backwards in time.

        Timestamp cursors overlap at page boundaries, so records are
        deduplicated by id. Stops on an empty page, a partial page, or a
        cursor that no longer makes progress.
        """
        records: List[SwapRecord] = []
        seen_ids: Set[str] = set()
        cursor: Optional[SwapCursor] = None
        page_count = 0

        while len(records) < target_swaps:
            requested = min(page_size, target_swaps - len(records))
            page = await self.fetch_swaps(pool_address, requested, cursor)
            page_count += 1

            if not page.records:
                logger.debug(f"Page {page_count}: empty, history exhausted for {pool_address}")
                break

            new_count = 0
            for record in page.records:
                if record.id in seen_ids:
                    continue
                seen_ids.add(record.id)
                records.append(record)
                new_count += 1

            next_cursor = page.next_cursor
            if new_count == 0 and cursor is not None and next_cursor.timestamp == cursor.timestamp:
                logger.warning(f"Pagination stuck at timestamp {cursor.timestamp} for {pool_address}")
                break
            cursor = next_cursor

            logger.debug(f"Page {page_count}: +{new_count} swaps (total {len(records)})")

            if page.is_partial:
                break

        logger.info(f"Fetched {len(records)} swaps for {pool_address} in {page_count} pages")
        return records[:target_swaps]
