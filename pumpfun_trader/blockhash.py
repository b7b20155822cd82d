import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import RPCError, error_message
from .ledger import LedgerClient
from .retry import RetryExecutor, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedBlockhash:
    blockhash: Any
    last_valid_block_height: int

    def is_expired(self, block_height: int) -> bool:
        return block_height >= self.last_valid_block_height


class BlockhashCache:
    """
    Holds the most recent blockhash until the chain passes its last valid
    block height.

    The hash and its expiry live in one immutable CachedBlockhash that is
    swapped in whole, so readers never see a hash paired with another
    hash's expiry. Refreshes are serialized by a lock; callers that queued
    behind a refresh reuse its result instead of fetching again.
    """

    def __init__(
        self,
        executor: Optional[RetryExecutor] = None,
        policy: Optional[RetryPolicy] = None,
    ):
        self.executor = executor or RetryExecutor()
        self.policy = policy
        self._cache: Optional[CachedBlockhash] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[CachedBlockhash]:
        return self._cache

    async def get(self, ledger: LedgerClient) -> Any:
        try:
            height = await self.executor.execute(ledger.get_block_height, self.policy)

            cached = self._cache
            if cached is not None and not cached.is_expired(height):
                return cached.blockhash

            async with self._lock:
                cached = self._cache
                if cached is not None and not cached.is_expired(height):
                    return cached.blockhash

                latest = await self.executor.execute(ledger.get_latest_blockhash, self.policy)
                self._cache = CachedBlockhash(
                    blockhash=latest.blockhash,
                    last_valid_block_height=latest.last_valid_block_height,
                )
                logger.debug(
                    "Fetched new blockhash %s valid through height %d",
                    latest.blockhash,
                    latest.last_valid_block_height,
                )
                return self._cache.blockhash
        except RPCError:
            raise
        except Exception as e:
            raise RPCError(f"Failed to get blockhash: {error_message(e)}") from e

    def invalidate(self) -> None:
        self._cache = None


__all__ = [
    "CachedBlockhash",
    "BlockhashCache",
]
