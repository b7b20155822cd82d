import base58
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .exceptions import (
    InvalidAddressError,
    InvalidAmountError,
    InvalidKeyMaterialError,
    InvalidPriorityFeeError,
    InvalidSlippageError,
)

SOLANA_ADDRESS_LENGTH = 32
SOLANA_SECRET_KEY_LENGTH = 64

MIN_SLIPPAGE = Decimal("0")
MAX_SLIPPAGE = Decimal("1")

_AMOUNT_LABELS = {
    "sol_in": "SOL amount",
    "token_in": "Token amount",
}

def _to_decimal(value: Any, error_class: type, message: str, **kwargs: Any) -> Decimal:
    if isinstance(value, bool):
        raise error_class(message, **kwargs)
    try:
        if isinstance(value, Decimal):
            decimal_value = value
        elif isinstance(value, int):
            decimal_value = Decimal(value)
        elif isinstance(value, float):
            decimal_value = Decimal(str(value))
        else:
            raise error_class(message, **kwargs)
    except InvalidOperation:
        raise error_class(message, **kwargs)

    if decimal_value.is_nan() or decimal_value.is_infinite():
        raise error_class(message, **kwargs)

    return decimal_value

def require_positive_amount(amount: Any, field_name: str = "amount") -> Decimal:
    label = _AMOUNT_LABELS.get(field_name, "Amount")
    message = f"{label} must be greater than 0"

    decimal_amount = _to_decimal(
        amount, InvalidAmountError, message,
        amount=amount, context={"field": field_name}
    )
    if decimal_amount <= 0:
        raise InvalidAmountError(message, amount=amount, context={"field": field_name})

    return decimal_amount

def require_slippage(slippage: Any) -> Decimal:
    message = "Slippage must be between 0 and 1"

    decimal_slippage = _to_decimal(slippage, InvalidSlippageError, message, slippage=slippage)
    if decimal_slippage < MIN_SLIPPAGE or decimal_slippage > MAX_SLIPPAGE:
        raise InvalidSlippageError(message, slippage=slippage)

    return decimal_slippage

def require_priority_fee(priority_fee: Any) -> Decimal:
    message = "Priority fee cannot be negative"

    decimal_fee = _to_decimal(priority_fee, InvalidPriorityFeeError, message, priority_fee=priority_fee)
    if decimal_fee < 0:
        raise InvalidPriorityFeeError(message, priority_fee=priority_fee)

    return decimal_fee

def is_valid_public_key(address: Any) -> bool:
    if isinstance(address, Pubkey):
        return True
    if not isinstance(address, str) or not address.strip():
        return False

    try:
        decoded = base58.b58decode(address.strip())
    except ValueError:
        return False

    if len(decoded) != SOLANA_ADDRESS_LENGTH:
        return False

    try:
        Pubkey.from_string(address.strip())
    except ValueError:
        return False

    return True

def validate_mint(address: Any) -> Pubkey:
    if not is_valid_public_key(address):
        raise InvalidAddressError(
            "Invalid token mint address",
            invalid_address=str(address)[:50] if address is not None else None,
        )
    if isinstance(address, Pubkey):
        return address
    return Pubkey.from_string(address.strip())

def resolve_signer(secret: Optional[str]) -> Keypair:
    if secret is None or (isinstance(secret, str) and not secret.strip()):
        raise InvalidKeyMaterialError("Private key is required")

    if not isinstance(secret, str):
        raise InvalidKeyMaterialError(
            f"Private key must be a base58 string, got {type(secret).__name__}"
        )

    try:
        raw = base58.b58decode(secret.strip())
    except ValueError as e:
        raise InvalidKeyMaterialError(f"Invalid base58 encoding in private key: {e}") from e

    if len(raw) != SOLANA_SECRET_KEY_LENGTH:
        raise InvalidKeyMaterialError(
            f"Decoded private key has wrong length: {len(raw)} bytes "
            f"(expected {SOLANA_SECRET_KEY_LENGTH})"
        )

    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise InvalidKeyMaterialError(f"Private key could not be loaded: {e}") from e
