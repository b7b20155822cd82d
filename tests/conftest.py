from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import base58
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pumpfun_trader.api import PoolDataSource
from pumpfun_trader.ledger import (
    LatestBlockhash,
    LedgerClient,
    SignatureStatus,
    SimulationResult,
    TransactionRequest,
)
from pumpfun_trader.pricing import PoolState
from pumpfun_trader.retry import RetryExecutor, RetryPolicy

_EXISTING_ACCOUNT = object()


class FakeLedger(LedgerClient):
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.block_height = 100
        self.blockhashes = ["hash-1", "hash-2", "hash-3"]
        self.last_valid_block_height = 150
        self.blockhash_error: Optional[BaseException] = None
        self.account_info: Any = _EXISTING_ACCOUNT
        self.simulation = SimulationResult(err=None, logs=["Program log: ok"], units_consumed=42_000)
        self.signature = "5igna7ure"
        self.submit_errors: List[BaseException] = []
        self.statuses: List[Optional[SignatureStatus]] = [
            SignatureStatus(err=None, confirmation_status="finalized")
        ]
        self.status_error: Optional[BaseException] = None
        self.record: Any = {"slot": 1234, "meta": {"err": None}}
        self.requests: List[TransactionRequest] = []

    async def get_account_info(self, address: Pubkey) -> Optional[Any]:
        self.calls.append("get_account_info")
        return self.account_info

    async def get_block_height(self) -> int:
        self.calls.append("get_block_height")
        return self.block_height

    async def get_latest_blockhash(self) -> LatestBlockhash:
        self.calls.append("get_latest_blockhash")
        await asyncio.sleep(0)
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return LatestBlockhash(
            blockhash=self.blockhashes.pop(0),
            last_valid_block_height=self.last_valid_block_height,
        )

    async def simulate(self, request: TransactionRequest, signers: Any) -> SimulationResult:
        self.calls.append("simulate")
        self.requests.append(request)
        return self.simulation

    async def submit_and_confirm(self, request: TransactionRequest, signers: Any) -> str:
        self.calls.append("submit_and_confirm")
        self.requests.append(request)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return self.signature

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        self.calls.append("get_signature_status")
        if self.status_error is not None:
            raise self.status_error
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    async def get_transaction(self, signature: str, commitment: str = "finalized") -> Any:
        self.calls.append("get_transaction")
        return self.record


class FakeDataSource(PoolDataSource):
    def __init__(self, pool: PoolState) -> None:
        self.pool = pool
        self.calls = 0
        self.error: Optional[BaseException] = None

    async def fetch_pool_state(self, mint: str) -> PoolState:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.pool


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def executor(sleeps: SleepRecorder) -> RetryExecutor:
    return RetryExecutor(
        RetryPolicy(max_attempts=3, jitter=False),
        sleep=sleeps,
    )


@pytest.fixture
def mint() -> str:
    return str(Pubkey.new_unique())


@pytest.fixture
def signer() -> Keypair:
    return Keypair()


@pytest.fixture
def secret(signer: Keypair) -> str:
    return base58.b58encode(bytes(signer)).decode()


@pytest.fixture
def pool(mint: str) -> PoolState:
    return PoolState(
        mint=mint,
        bonding_curve=str(Pubkey.new_unique()),
        associated_bonding_curve=str(Pubkey.new_unique()),
        virtual_sol_reserves=30_000_000_000,
        virtual_token_reserves=1_073_000_000_000_000,
        price_sol=0.000000028,
        liquidity_sol=60.0,
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def data_source(pool: PoolState) -> FakeDataSource:
    return FakeDataSource(pool)
