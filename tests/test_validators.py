from __future__ import annotations

import base58
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pumpfun_trader.exceptions import (
    InvalidAddressError,
    InvalidAmountError,
    InvalidKeyMaterialError,
    InvalidPriorityFeeError,
    InvalidSlippageError,
    ValidationError,
)
from pumpfun_trader.transaction import TransactionLifecycleManager, TransactionMode
from pumpfun_trader.validators import (
    is_valid_public_key,
    require_priority_fee,
    resolve_signer,
    validate_mint,
)


def test_is_valid_public_key() -> None:
    assert is_valid_public_key("6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P")
    assert is_valid_public_key(Pubkey.new_unique())
    assert not is_valid_public_key("")
    assert not is_valid_public_key("not-a-key")
    assert not is_valid_public_key("0OIl0OIl0OIl0OIl0OIl0OIl0OIl0OIl")
    assert not is_valid_public_key(None)
    assert not is_valid_public_key(12345)


def test_validate_mint() -> None:
    address = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

    assert validate_mint(address) == Pubkey.from_string(address)

    with pytest.raises(InvalidAddressError, match="Invalid token mint address"):
        validate_mint("abc")


def test_resolve_signer_round_trips_keypair(signer: Keypair, secret: str) -> None:
    assert resolve_signer(secret).pubkey() == signer.pubkey()


@pytest.mark.parametrize(
    "bad_secret",
    [
        None,
        "",
        "   ",
        "0OIl",
        base58.b58encode(b"\x01" * 32).decode(),
    ],
)
def test_resolve_signer_rejects_bad_material(bad_secret) -> None:
    with pytest.raises(InvalidKeyMaterialError):
        resolve_signer(bad_secret)


def test_require_priority_fee() -> None:
    assert require_priority_fee(0) == 0
    assert require_priority_fee(0.0001) > 0

    with pytest.raises(InvalidPriorityFeeError):
        require_priority_fee(-0.1)


@pytest.fixture
def manager(ledger, data_source, executor) -> TransactionLifecycleManager:
    return TransactionLifecycleManager(ledger, data_source, executor=executor)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, expected_error",
    [
        ({"signer_secret": ""}, InvalidKeyMaterialError),
        ({"mint": "definitely-not-a-mint"}, InvalidAddressError),
        ({"amount": 0}, InvalidAmountError),
        ({"amount": -1}, InvalidAmountError),
        ({"slippage": 1.5}, InvalidSlippageError),
        ({"slippage": -0.1}, InvalidSlippageError),
        ({"priority_fee": -0.001}, InvalidPriorityFeeError),
        ({"signer_secret": "0OIl"}, InvalidKeyMaterialError),
        ({"mode": "yolo"}, ValidationError),
    ],
)
async def test_invalid_input_fails_before_any_network_call(
    manager, ledger, data_source, secret, mint, overrides, expected_error
) -> None:
    args = {
        "mode": TransactionMode.SIMULATION,
        "signer_secret": secret,
        "mint": mint,
        "sol_in": 0.1,
        "token_amount": 1000,
        "priority_fee": 0.0,
        "slippage": 0.25,
    }
    if "amount" in overrides:
        overrides = {**overrides, "sol_in": overrides["amount"], "token_amount": overrides["amount"]}
    args.update(overrides)

    for trade, amount in ((manager.buy, args["sol_in"]), (manager.sell, args["token_amount"])):
        with pytest.raises(expected_error):
            await trade(
                args["mode"],
                args["signer_secret"],
                args["mint"],
                amount,
                priority_fee=args["priority_fee"],
                slippage=args["slippage"],
            )

    assert ledger.calls == []
    assert data_source.calls == 0


@pytest.mark.asyncio
async def test_fractional_token_amount_is_rejected(manager, ledger, secret, mint) -> None:
    with pytest.raises(InvalidAmountError):
        await manager.sell(TransactionMode.SIMULATION, secret, mint, 10.5)

    assert ledger.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("sol_in", [1e-10, 0.0000000009])
async def test_sub_lamport_buy_fails_before_any_network_call(
    manager, ledger, data_source, secret, mint, sol_in
) -> None:
    with pytest.raises(InvalidAmountError, match="at least 1 lamport"):
        await manager.buy(TransactionMode.SIMULATION, secret, mint, sol_in)

    assert ledger.calls == []
    assert data_source.calls == 0
