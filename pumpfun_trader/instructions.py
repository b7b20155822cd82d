"""
Pump.fun program instructions.

Account lists and data layouts for the bonding curve program's buy and sell
instructions, plus the compute budget prelude every trade transaction
starts with.
"""

import struct
from typing import Any, List

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import (
    create_associated_token_account,
    get_associated_token_address,
)

from .exceptions import ValidationError

# =============================================================================
# PROGRAM ADDRESSES
# =============================================================================

PUMP_FUN_PROGRAM = Pubkey.from_string("6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P")
GLOBAL = Pubkey.from_string("4wTV1YmiEkRvAtNtsSGPtUrqRYQMe5SKy2uB4Jjaxnjf")
FEE_RECIPIENT = Pubkey.from_string("CebN5WGQ4jvEPvsVU4EoHEpgzq1VV7AbicfhtW4xC9iM")
EVENT_AUTHORITY = Pubkey.from_string("Ce6TQqeHC9p8KetsN6JsjHK7UTZk7nasjjnr7XxXp9F1")
TOKEN_PROGRAM = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
SYSTEM_PROGRAM = Pubkey.from_string("11111111111111111111111111111111")
RENT = Pubkey.from_string("SysvarRent111111111111111111111111111111111")

# Anchor discriminators, stored as the little-endian u64 of their 8 bytes
BUY_DISCRIMINATOR = 16927863322537952870
SELL_DISCRIMINATOR = 12502976635542562355

DEFAULT_COMPUTE_UNIT_LIMIT = 1_000_000
MICRO_LAMPORTS_PER_SOL = 1_000_000_000

U64_MAX = 2**64 - 1


def encode_u64(value: Any) -> bytes:
    """Encode a non-negative integer (or its decimal string) as 8 little-endian bytes."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid u64 value: {value!r}")

    try:
        if isinstance(value, int):
            number = value
        elif isinstance(value, str):
            number = int(value.strip())
        elif isinstance(value, float) and value.is_integer():
            number = int(value)
        else:
            raise ValidationError(f"Invalid u64 value: {value!r}")
    except ValueError as e:
        raise ValidationError(f"Invalid u64 value: {value!r}") from e

    if number < 0 or number > U64_MAX:
        raise ValidationError(
            f"Value out of u64 range: {number}",
            context={"min": 0, "max": U64_MAX},
        )

    return struct.pack("<Q", number)


def derive_associated_token_address(mint: Pubkey, owner: Pubkey) -> Pubkey:
    return get_associated_token_address(owner, mint)


def create_associated_token_account_instruction(
    payer: Pubkey, owner: Pubkey, mint: Pubkey
) -> Instruction:
    return create_associated_token_account(payer=payer, owner=owner, mint=mint)


def compute_budget_instructions(
    priority_fee: float = 0.0,
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT,
) -> List[Instruction]:
    """
    Compute budget prelude for a trade transaction.

    The unit limit is always set. A unit price is added only for a positive
    priority fee; the fee in SOL maps one-to-one onto micro-lamports per
    compute unit (1 SOL -> 1e9 micro-lamports).
    """
    instructions = [set_compute_unit_limit(compute_unit_limit)]
    if priority_fee > 0:
        micro_lamports = int(priority_fee * MICRO_LAMPORTS_PER_SOL)
        instructions.append(set_compute_unit_price(micro_lamports))
    return instructions


def build_buy_instruction(
    mint: Pubkey,
    bonding_curve: Pubkey,
    associated_bonding_curve: Pubkey,
    associated_user: Pubkey,
    user: Pubkey,
    token_out: int,
    max_sol_cost: int,
) -> Instruction:
    accounts = [
        AccountMeta(GLOBAL, is_signer=False, is_writable=False),
        AccountMeta(FEE_RECIPIENT, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(bonding_curve, is_signer=False, is_writable=True),
        AccountMeta(associated_bonding_curve, is_signer=False, is_writable=True),
        AccountMeta(associated_user, is_signer=False, is_writable=True),
        AccountMeta(user, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(RENT, is_signer=False, is_writable=False),
        AccountMeta(EVENT_AUTHORITY, is_signer=False, is_writable=False),
        AccountMeta(PUMP_FUN_PROGRAM, is_signer=False, is_writable=False),
    ]
    data = encode_u64(BUY_DISCRIMINATOR) + encode_u64(token_out) + encode_u64(max_sol_cost)
    return Instruction(PUMP_FUN_PROGRAM, data, accounts)


def build_sell_instruction(
    mint: Pubkey,
    bonding_curve: Pubkey,
    associated_bonding_curve: Pubkey,
    associated_user: Pubkey,
    user: Pubkey,
    token_in: int,
    min_sol_output: int,
) -> Instruction:
    accounts = [
        AccountMeta(GLOBAL, is_signer=False, is_writable=False),
        AccountMeta(FEE_RECIPIENT, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(bonding_curve, is_signer=False, is_writable=True),
        AccountMeta(associated_bonding_curve, is_signer=False, is_writable=True),
        AccountMeta(associated_user, is_signer=False, is_writable=True),
        AccountMeta(user, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(ASSOCIATED_TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(EVENT_AUTHORITY, is_signer=False, is_writable=False),
        AccountMeta(PUMP_FUN_PROGRAM, is_signer=False, is_writable=False),
    ]
    data = encode_u64(SELL_DISCRIMINATOR) + encode_u64(token_in) + encode_u64(min_sol_output)
    return Instruction(PUMP_FUN_PROGRAM, data, accounts)


__all__ = [
    "PUMP_FUN_PROGRAM",
    "GLOBAL",
    "FEE_RECIPIENT",
    "EVENT_AUTHORITY",
    "TOKEN_PROGRAM",
    "ASSOCIATED_TOKEN_PROGRAM",
    "SYSTEM_PROGRAM",
    "RENT",
    "BUY_DISCRIMINATOR",
    "SELL_DISCRIMINATOR",
    "DEFAULT_COMPUTE_UNIT_LIMIT",
    "encode_u64",
    "derive_associated_token_address",
    "create_associated_token_account_instruction",
    "compute_budget_instructions",
    "build_buy_instruction",
    "build_sell_instruction",
]
