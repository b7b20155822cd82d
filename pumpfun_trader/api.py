"""
Pump.fun REST client.

Async client for the pump.fun frontend API: pool state for the trading
engine, plus market data and quotes for callers that only want to look.
Every request goes through a RetryExecutor; non-200 responses become
``APIError`` carrying the HTTP status so the classifier can decide whether
to retry.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from .exceptions import APIError, PumpFunError, error_message, wrap_exception
from .pricing import Number, PoolState, Quote, quote_buy, quote_sell
from .retry import RetryExecutor, RetryPolicy

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

PUMPFUN_API_BASE = "https://frontend-api-v3.pump.fun"

DEFAULT_TIMEOUT = 30
DEFAULT_MARKET_LIMIT = 10
DEFAULT_HISTORY_LIMIT = 20

# The frontend API rejects requests that don't look like they come from the site
STANDARD_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate, br",
    "Referer": "https://www.pump.fun/",
    "Origin": "https://www.pump.fun",
    "Connection": "keep-alive",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "cross-site",
}


class PoolDataSource(ABC):
    """Anything that can report the current reserves of a bonding curve."""

    @abstractmethod
    async def fetch_pool_state(self, mint: str) -> PoolState:
        pass


class PumpFunAPIClient(PoolDataSource):
    """
    Async client for the pump.fun frontend API.

    Usage:
        async with PumpFunAPIClient() as api:
            pool = await api.fetch_pool_state(mint)
            quote = await api.get_buy_price_quote(mint, 0.1)
    """

    def __init__(
        self,
        base_url: str = PUMPFUN_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        executor: Optional[RetryExecutor] = None,
        policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, without trailing slash
            timeout: Total request timeout in seconds
            executor: Retry executor shared with the caller, if any
            policy: Retry policy override for this client's requests
            session: Existing aiohttp session to use instead of creating one
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.executor = executor or RetryExecutor()
        self.policy = policy

        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls, settings: Any, executor: Optional[RetryExecutor] = None
    ) -> "PumpFunAPIClient":
        return cls(
            base_url=str(settings.base_url),
            timeout=settings.timeout,
            executor=executor,
        )

    async def __aenter__(self) -> "PumpFunAPIClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(
                    timeout=timeout,
                    headers=STANDARD_HEADERS,
                )
                self._owns_session = True
            return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        logger.debug("PumpFunAPIClient closed")

    async def _get_json(
        self,
        path: str,
        failure_message: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"

        async def request() -> Any:
            session = await self._ensure_session()
            logger.debug("GET %s params=%s", url, params)
            async with session.get(url, params=params, headers=STANDARD_HEADERS) as response:
                if response.status != 200:
                    raise APIError(
                        f"{failure_message}: {response.status}",
                        status_code=response.status,
                        context={"url": url},
                    )
                return await response.json(content_type=None)

        return await self.executor.execute(request, self.policy)

    async def _fetch(
        self,
        path: str,
        failure_message: str,
        error_prefix: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            return await self._get_json(path, failure_message, params)
        except PumpFunError:
            raise
        except Exception as e:
            raise wrap_exception(
                e,
                APIError,
                f"{error_prefix}: {error_message(e)}",
                status_code=0,
                context={"path": path},
            ) from e

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get_coin_data(self, mint: str) -> Dict[str, Any]:
        """Full coin record for ``mint`` as returned by the API."""
        data = await self._fetch(
            f"coins/{mint}",
            "Failed to retrieve coin data",
            "Error fetching coin data",
        )
        if not isinstance(data, dict):
            raise APIError(
                "Error fetching coin data: unexpected payload",
                status_code=0,
                context={"mint": mint},
            )
        return data

    async def fetch_pool_state(self, mint: str) -> PoolState:
        data = await self.get_coin_data(mint)
        data.setdefault("mint", mint)
        return PoolState.from_api(data)

    async def get_market_overview(self, limit: int = DEFAULT_MARKET_LIMIT) -> Any:
        return await self._fetch(
            "coins",
            "Failed to retrieve market data",
            "Error fetching market data",
            params={"limit": limit},
        )

    async def get_token_transaction_history(
        self, mint: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[Dict[str, Any]]:
        return await self._fetch(
            f"coins/{mint}/transactions",
            "Failed to retrieve transaction history",
            "Error fetching transaction history",
            params={"limit": limit},
        )

    async def get_buy_price_quote(self, mint: str, sol_amount: Number) -> Quote:
        """Quote a buy of ``sol_amount`` against the current pool without trading."""
        pool = await self.fetch_pool_state(mint)
        try:
            return quote_buy(pool, sol_amount)
        except PumpFunError:
            raise
        except Exception as e:
            raise APIError(
                f"Error calculating buy price quote: {error_message(e)}", status_code=0
            ) from e

    async def get_sell_price_quote(self, mint: str, token_amount: Number) -> Quote:
        """Quote a sell of ``token_amount`` against the current pool without trading."""
        pool = await self.fetch_pool_state(mint)
        try:
            return quote_sell(pool, token_amount)
        except PumpFunError:
            raise
        except Exception as e:
            raise APIError(
                f"Error calculating sell price quote: {error_message(e)}", status_code=0
            ) from e


__all__ = [
    "PUMPFUN_API_BASE",
    "STANDARD_HEADERS",
    "PoolDataSource",
    "PumpFunAPIClient",
]
