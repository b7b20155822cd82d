from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from pumpfun_trader.exceptions import ValidationError
from pumpfun_trader.instructions import (
    ASSOCIATED_TOKEN_PROGRAM,
    BUY_DISCRIMINATOR,
    EVENT_AUTHORITY,
    FEE_RECIPIENT,
    GLOBAL,
    PUMP_FUN_PROGRAM,
    RENT,
    SELL_DISCRIMINATOR,
    build_buy_instruction,
    build_sell_instruction,
    compute_budget_instructions,
    encode_u64,
)

COMPUTE_BUDGET_PROGRAM = Pubkey.from_string("ComputeBudget111111111111111111111111111111")


def test_encode_u64() -> None:
    assert encode_u64(0) == b"\x00" * 8
    assert encode_u64(1) == b"\x01" + b"\x00" * 7
    assert encode_u64(2**64 - 1) == b"\xff" * 8
    assert encode_u64("256") == b"\x00\x01" + b"\x00" * 6


@pytest.mark.parametrize("value", [-1, 2**64, "abc", "", 1.5, None, True])
def test_encode_u64_rejects_invalid_values(value) -> None:
    with pytest.raises(ValidationError):
        encode_u64(value)


def test_discriminators_match_program_layout() -> None:
    assert encode_u64(BUY_DISCRIMINATOR) == bytes([102, 6, 61, 18, 1, 218, 235, 234])
    assert encode_u64(SELL_DISCRIMINATOR) == bytes([51, 230, 133, 164, 1, 127, 131, 173])


def test_compute_budget_without_priority_fee() -> None:
    instructions = compute_budget_instructions(0.0)

    assert len(instructions) == 1
    assert instructions[0].program_id == COMPUTE_BUDGET_PROGRAM


def test_compute_budget_with_priority_fee() -> None:
    instructions = compute_budget_instructions(0.00001)

    assert len(instructions) == 2
    assert all(ix.program_id == COMPUTE_BUDGET_PROGRAM for ix in instructions)


def _keys():
    return {
        "mint": Pubkey.new_unique(),
        "bonding_curve": Pubkey.new_unique(),
        "associated_bonding_curve": Pubkey.new_unique(),
        "associated_user": Pubkey.new_unique(),
        "user": Pubkey.new_unique(),
    }


def test_buy_instruction_layout() -> None:
    keys = _keys()

    instruction = build_buy_instruction(**keys, token_out=3_576, max_sol_cost=125_000_000)

    assert instruction.program_id == PUMP_FUN_PROGRAM
    assert instruction.data == encode_u64(BUY_DISCRIMINATOR) + encode_u64(3_576) + encode_u64(125_000_000)
    pubkeys = [meta.pubkey for meta in instruction.accounts]
    assert pubkeys[:7] == [
        GLOBAL,
        FEE_RECIPIENT,
        keys["mint"],
        keys["bonding_curve"],
        keys["associated_bonding_curve"],
        keys["associated_user"],
        keys["user"],
    ]
    assert pubkeys[9] == RENT
    assert pubkeys[10:] == [EVENT_AUTHORITY, PUMP_FUN_PROGRAM]
    assert [meta.is_signer for meta in instruction.accounts].count(True) == 1
    assert instruction.accounts[6].is_signer


def test_sell_instruction_layout() -> None:
    keys = _keys()

    instruction = build_sell_instruction(**keys, token_in=1_000, min_sol_output=75)

    assert instruction.data == encode_u64(SELL_DISCRIMINATOR) + encode_u64(1_000) + encode_u64(75)
    pubkeys = [meta.pubkey for meta in instruction.accounts]
    assert pubkeys[8] == ASSOCIATED_TOKEN_PROGRAM
    assert RENT not in pubkeys
    assert instruction.accounts[1].is_writable
    assert not instruction.accounts[0].is_writable
