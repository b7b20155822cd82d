"""
Pump.fun Trader

An async engine for buying and selling tokens on the pump.fun bonding curve.
"""

__version__ = "1.0.0"

from .api import PoolDataSource, PumpFunAPIClient
from .blockhash import BlockhashCache, CachedBlockhash
from .config import Settings, get_settings
from .exceptions import (
    APIError,
    ErrorKind,
    PumpFunError,
    RetryError,
    RPCError,
    TransactionError,
    ValidationError,
)
from .ledger import LedgerClient, SolanaLedgerClient
from .pricing import PoolState, Quote, quote_buy, quote_sell
from .retry import RetryExecutor, RetryPolicy, classify
from .transaction import (
    Executed,
    Failed,
    Simulated,
    TradeOptions,
    TransactionLifecycleManager,
    TransactionMode,
    settle,
)
from .validators import is_valid_public_key

__all__ = [
    "PoolDataSource",
    "PumpFunAPIClient",
    "BlockhashCache",
    "CachedBlockhash",
    "Settings",
    "get_settings",
    "APIError",
    "ErrorKind",
    "PumpFunError",
    "RetryError",
    "RPCError",
    "TransactionError",
    "ValidationError",
    "LedgerClient",
    "SolanaLedgerClient",
    "PoolState",
    "Quote",
    "quote_buy",
    "quote_sell",
    "RetryExecutor",
    "RetryPolicy",
    "classify",
    "Executed",
    "Failed",
    "Simulated",
    "TradeOptions",
    "TransactionLifecycleManager",
    "TransactionMode",
    "settle",
    "is_valid_public_key",
]
