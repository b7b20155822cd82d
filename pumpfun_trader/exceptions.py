"""
Exception hierarchy for the pump.fun trading engine.

Every error raised by the engine is a ``PumpFunError`` carrying:
- a unique error code for logging and debugging
- a human-readable message
- an optional context dictionary
- an ``ErrorKind`` tag so callers can branch on the kind of failure
  (bad input, data source, RPC node, built transaction, retry exhaustion)
  without matching on exception types
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional


class ErrorKind(str, Enum):
    """Tag identifying which layer a failure belongs to."""
    VALIDATION = "validation"
    API = "api"
    RPC = "rpc"
    TRANSACTION = "transaction"
    RETRY = "retry"


# =============================================================================
# BASE EXCEPTION
# =============================================================================

@dataclass
class PumpFunError(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique identifier for the error type (e.g., "VAL_001")
        context: Optional dictionary with debugging information
        timestamp: When the error occurred
    """
    message: str
    error_code: str = "GENERAL_001"
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSACTION

    def __post_init__(self) -> None:
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message with code and context."""
        base = f"[{self.error_code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" | Context: {context_str}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return self.format_message()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"kind={self.kind.value!r}, "
            f"error_code={self.error_code!r}, "
            f"message={self.message!r})"
        )


# =============================================================================
# VALIDATION EXCEPTIONS
# =============================================================================

@dataclass
class ValidationError(PumpFunError):
    """Bad caller input, detected before any network call."""
    error_code: str = "VAL_000"

    kind: ClassVar[ErrorKind] = ErrorKind.VALIDATION


@dataclass
class InvalidKeyMaterialError(ValidationError):
    """Missing or undecodable signer secret."""
    error_code: str = "VAL_001"


@dataclass
class InvalidAddressError(ValidationError):
    """Invalid Solana address format."""
    error_code: str = "VAL_002"
    invalid_address: Optional[str] = None


@dataclass
class InvalidAmountError(ValidationError):
    """Invalid trade amount."""
    error_code: str = "VAL_003"
    amount: Any = None


@dataclass
class InvalidSlippageError(ValidationError):
    """Slippage tolerance outside [0, 1]."""
    error_code: str = "VAL_004"
    slippage: Any = None


@dataclass
class InvalidPriorityFeeError(ValidationError):
    """Negative priority fee."""
    error_code: str = "VAL_005"
    priority_fee: Any = None


# =============================================================================
# DATA SOURCE EXCEPTIONS
# =============================================================================

@dataclass
class APIError(PumpFunError):
    """Price/reserve data source returned an error or unusable payload."""
    error_code: str = "API_000"
    status_code: Optional[int] = None

    kind: ClassVar[ErrorKind] = ErrorKind.API


@dataclass
class InvalidPoolStateError(APIError):
    """Pool reserves from the data source cannot be priced against."""
    error_code: str = "API_001"
    mint: Optional[str] = None


# =============================================================================
# RPC EXCEPTIONS
# =============================================================================

@dataclass
class RPCError(PumpFunError):
    """Ledger node failure not tied to a specific submitted transaction."""
    error_code: str = "RPC_000"
    code: Optional[int] = None

    kind: ClassVar[ErrorKind] = ErrorKind.RPC


# =============================================================================
# TRANSACTION EXCEPTIONS
# =============================================================================

@dataclass
class TransactionError(PumpFunError):
    """A built transaction failed simulation or on-chain execution."""
    error_code: str = "TX_000"
    signature: Optional[str] = None
    logs: list[str] = field(default_factory=list)

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSACTION


# =============================================================================
# RETRY EXCEPTIONS
# =============================================================================

@dataclass
class RetryError(PumpFunError):
    """The retry executor exhausted its attempt budget."""
    error_code: str = "RETRY_000"
    attempts: int = 0
    last_message: str = ""

    kind: ClassVar[ErrorKind] = ErrorKind.RETRY


# =============================================================================
# HELPERS
# =============================================================================

def error_message(error: BaseException) -> str:
    """Plain message of an error, without the error-code prefix."""
    if isinstance(error, PumpFunError):
        return error.message
    return str(error) or type(error).__name__


def wrap_exception(
    original: BaseException,
    wrapper_class: type[PumpFunError],
    message: Optional[str] = None,
    **kwargs: Any
) -> PumpFunError:
    """Wrap a foreign exception in a PumpFunError subclass."""
    msg = message or str(original)
    context = kwargs.pop("context", {})
    context["original_error"] = type(original).__name__

    return wrapper_class(
        message=msg,
        context=context,
        **kwargs
    )


__all__ = [
    "ErrorKind",
    "PumpFunError",
    "ValidationError",
    "InvalidKeyMaterialError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidSlippageError",
    "InvalidPriorityFeeError",
    "APIError",
    "InvalidPoolStateError",
    "RPCError",
    "TransactionError",
    "RetryError",
    "error_message",
    "wrap_exception",
]
