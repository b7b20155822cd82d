"""
Trade lifecycle for pump.fun buys and sells.

A trade moves through Validating -> Quoting -> Building -> (Simulating |
Submitting) -> Confirming -> Terminal. Inputs are checked before any network
call; the expected output and the on-chain bound are both derived from the
same pool snapshot; every ledger call goes through the RetryExecutor.

Usage:
    async with SolanaLedgerClient(rpc_url) as ledger, PumpFunAPIClient() as api:
        manager = TransactionLifecycleManager(ledger, api)
        outcome = await manager.buy(TransactionMode.EXECUTION, secret, mint, 0.1)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .api import PoolDataSource
from .blockhash import BlockhashCache
from .exceptions import (
    ErrorKind,
    InvalidAmountError,
    InvalidKeyMaterialError,
    InvalidPoolStateError,
    PumpFunError,
    RetryError,
    RPCError,
    TransactionError,
    ValidationError,
    error_message,
)
from .instructions import (
    DEFAULT_COMPUTE_UNIT_LIMIT,
    build_buy_instruction,
    build_sell_instruction,
    compute_budget_instructions,
    create_associated_token_account_instruction,
    derive_associated_token_address,
)
from .ledger import LedgerClient, TransactionRequest
from .pricing import (
    LAMPORTS_PER_SOL,
    Number,
    PoolState,
    max_sol_cost,
    min_sol_output,
    quote_buy,
    quote_sell,
    sol_to_lamports,
)
from .retry import RetryExecutor, RetryPolicy
from .validators import (
    require_positive_amount,
    require_priority_fee,
    require_slippage,
    resolve_signer,
    validate_mint,
)

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE = 0.25
DEFAULT_CONFIRMATION_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 2.0


class TransactionMode(str, Enum):
    SIMULATION = "simulation"
    EXECUTION = "execution"


class TradeState(str, Enum):
    VALIDATING = "validating"
    QUOTING = "quoting"
    BUILDING = "building"
    SIMULATING = "simulating"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    TERMINAL = "terminal"


# =============================================================================
# OPTIONS AND OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class TradeOptions:
    """
    Per-call knobs for a trade.

    Attributes:
        track_finality: Poll the signature until finalized after submission
        confirmation_timeout: Seconds to wait for finality
        poll_interval: Seconds between status polls
        retry_policy: Policy for this trade's ledger calls (executor default if None)
        compute_unit_limit: Compute unit limit set on every trade transaction
        slippage: Slippage used when a call passes none
        priority_fee: Priority fee in SOL used when a call passes none
    """
    track_finality: bool = True
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    retry_policy: Optional[RetryPolicy] = None
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT
    slippage: float = DEFAULT_SLIPPAGE
    priority_fee: float = 0.0

    @classmethod
    def from_settings(cls, settings: Any) -> "TradeOptions":
        return cls(
            track_finality=settings.track_finality,
            confirmation_timeout=settings.confirmation_timeout,
            poll_interval=settings.poll_interval,
            compute_unit_limit=settings.compute_unit_limit,
            slippage=settings.default_slippage,
            priority_fee=settings.default_priority_fee,
        )


@dataclass(frozen=True)
class Executed:
    signature: str
    expected_output: Number
    record: Any = None


@dataclass(frozen=True)
class Simulated:
    logs: List[str]
    expected_output: Number


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    detail: str
    error: Optional[PumpFunError] = field(default=None, compare=False, repr=False)


TransactionOutcome = Union[Executed, Simulated, Failed]


async def settle(awaitable: Awaitable[TransactionOutcome]) -> TransactionOutcome:
    """
    Await a trade and fold a raised engine error into a ``Failed`` outcome.

    Lets callers branch on ``outcome.kind`` instead of catching exception
    types. Errors outside the engine's taxonomy still propagate.
    """
    try:
        return await awaitable
    except PumpFunError as e:
        return Failed(kind=e.kind, detail=e.message, error=e)


# =============================================================================
# TRANSACTION HELPERS
# =============================================================================

def build_transaction_request(
    instructions: Sequence[Instruction],
    fee_payer: Pubkey,
    recent_blockhash: Any,
    priority_fee: float = 0.0,
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT,
) -> TransactionRequest:
    """Prefix ``instructions`` with the compute budget prelude and package them."""
    if not instructions:
        raise ValidationError("No instructions provided")
    require_priority_fee(priority_fee)

    return TransactionRequest(
        instructions=tuple(compute_budget_instructions(priority_fee, compute_unit_limit))
        + tuple(instructions),
        fee_payer=fee_payer,
        recent_blockhash=recent_blockhash,
        priority_fee=priority_fee,
    )


async def track_transaction(
    ledger: LedgerClient,
    signature: str,
    executor: Optional[RetryExecutor] = None,
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Poll ``signature`` until it is finalized, fails, or ``timeout`` elapses.

    The deadline is measured on the event loop clock and each status call is
    bounded by the time left, so a hung RPC node cannot stretch the wait.

    Returns:
        The finalized transaction record from the ledger

    Raises:
        TransactionError: The transaction landed with an error
        RPCError: Timed out, or the node kept failing
    """
    executor = executor or RetryExecutor()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    def timed_out() -> RPCError:
        return RPCError(
            f"Transaction tracking timed out after {timeout} seconds",
            context={"signature": signature},
        )

    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise timed_out()

        try:
            status = await asyncio.wait_for(
                executor.execute(lambda: ledger.get_signature_status(signature), policy),
                timeout=remaining,
            )
        except asyncio.TimeoutError:
            raise timed_out()
        except Exception as e:
            raise RPCError(
                f"Failed to track transaction: {error_message(e)}",
                context={"signature": signature},
            ) from e

        if status is not None:
            if status.err is not None:
                raise TransactionError(
                    f"Transaction failed: {status.err}",
                    signature=signature,
                )
            if status.is_finalized:
                logger.info("Transaction finalized: %s", signature)
                try:
                    return await executor.execute(
                        lambda: ledger.get_transaction(signature, "finalized"), policy
                    )
                except Exception as e:
                    raise RPCError(
                        f"Failed to track transaction: {error_message(e)}",
                        context={"signature": signature},
                    ) from e

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise timed_out()
        await sleep(min(poll_interval, remaining))


# =============================================================================
# LIFECYCLE MANAGER
# =============================================================================

@dataclass(frozen=True)
class _TradePlan:
    instruction: Instruction
    expected_output: Number


class TransactionLifecycleManager:
    """
    Drives buys and sells against the bonding curve.

    The manager owns its BlockhashCache; share one manager across concurrent
    trades to share the cached blockhash. Calls hold no other state.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        data_source: PoolDataSource,
        executor: Optional[RetryExecutor] = None,
        blockhash_cache: Optional[BlockhashCache] = None,
        options: Optional[TradeOptions] = None,
    ):
        self.ledger = ledger
        self.data_source = data_source
        self.executor = executor or RetryExecutor()
        self.blockhash_cache = blockhash_cache or BlockhashCache(self.executor)
        self.options = options or TradeOptions()

    @classmethod
    def from_settings(
        cls,
        ledger: LedgerClient,
        data_source: PoolDataSource,
        settings: Any = None,
    ) -> "TransactionLifecycleManager":
        if settings is None:
            from .config import get_settings
            settings = get_settings()
        executor = RetryExecutor(RetryPolicy.from_settings(settings.retry))
        return cls(
            ledger,
            data_source,
            executor=executor,
            options=TradeOptions.from_settings(settings.trading),
        )

    async def buy(
        self,
        mode: Union[TransactionMode, str],
        signer_secret: str,
        mint: str,
        sol_in: Number,
        priority_fee: Optional[float] = None,
        slippage: Optional[float] = None,
        options: Optional[TradeOptions] = None,
    ) -> TransactionOutcome:
        """Spend ``sol_in`` SOL on ``mint``; expected output is in raw token units."""
        return await self._run(
            "buy", mode, signer_secret, mint, sol_in, priority_fee, slippage, options
        )

    async def sell(
        self,
        mode: Union[TransactionMode, str],
        signer_secret: str,
        mint: str,
        token_amount: Number,
        priority_fee: Optional[float] = None,
        slippage: Optional[float] = None,
        options: Optional[TradeOptions] = None,
    ) -> TransactionOutcome:
        """Sell ``token_amount`` raw token units of ``mint``; expected output is in SOL."""
        return await self._run(
            "sell", mode, signer_secret, mint, token_amount, priority_fee, slippage, options
        )

    async def _run(self, operation: str, *args: Any) -> TransactionOutcome:
        try:
            return await self._trade(operation, *args)
        except PumpFunError as e:
            logger.debug("%s: %s (%s)", operation, TradeState.TERMINAL.value, e.kind.value)
            raise
        except Exception as e:
            logger.debug("%s: %s (unexpected %s)", operation, TradeState.TERMINAL.value, type(e).__name__)
            raise TransactionError(f"Error in {operation}: {error_message(e)}") from e

    def _enter(self, operation: str, state: TradeState) -> None:
        logger.debug("%s: %s", operation, state.value)

    async def _trade(
        self,
        operation: str,
        mode: Union[TransactionMode, str],
        signer_secret: str,
        mint: str,
        amount: Number,
        priority_fee: Optional[float],
        slippage: Optional[float],
        options: Optional[TradeOptions],
    ) -> TransactionOutcome:
        options = options or self.options
        if slippage is None:
            slippage = options.slippage
        if priority_fee is None:
            priority_fee = options.priority_fee
        policy = options.retry_policy

        self._enter(operation, TradeState.VALIDATING)
        try:
            mode = TransactionMode(mode)
        except ValueError as e:
            raise ValidationError(f"Invalid transaction mode: {mode!r}") from e
        if not signer_secret:
            raise InvalidKeyMaterialError("Private key is required")
        mint_key = validate_mint(mint)
        if operation == "buy":
            require_positive_amount(amount, "sol_in")
            if sol_to_lamports(amount) < 1:
                raise InvalidAmountError("SOL amount must be at least 1 lamport", amount=amount)
        else:
            token_units = require_positive_amount(amount, "token_in")
            if token_units != token_units.to_integral_value():
                raise InvalidAmountError(
                    "Token amount must be a whole number of base units", amount=amount
                )
        require_slippage(slippage)
        require_priority_fee(priority_fee)
        signer = resolve_signer(signer_secret)
        owner = signer.pubkey()

        self._enter(operation, TradeState.QUOTING)
        pool = await self.data_source.fetch_pool_state(str(mint_key))
        associated_user = derive_associated_token_address(mint_key, owner)
        if operation == "buy":
            plan = self._plan_buy(pool, mint_key, owner, associated_user, amount, slippage)
        else:
            plan = self._plan_sell(pool, mint_key, owner, associated_user, int(amount), slippage)

        self._enter(operation, TradeState.BUILDING)
        instructions: List[Instruction] = []
        account = await self.executor.execute(
            lambda: self.ledger.get_account_info(associated_user), policy
        )
        if account is None:
            logger.debug("%s: creating associated token account %s", operation, associated_user)
            instructions.append(
                create_associated_token_account_instruction(owner, owner, mint_key)
            )
        instructions.append(plan.instruction)

        blockhash = await self.blockhash_cache.get(self.ledger)
        request = build_transaction_request(
            instructions,
            fee_payer=owner,
            recent_blockhash=blockhash,
            priority_fee=priority_fee,
            compute_unit_limit=options.compute_unit_limit,
        )

        if mode is TransactionMode.SIMULATION:
            return await self._simulate(operation, request, signer, plan, policy)

        signature = await self._submit(operation, request, signer, policy)

        record = None
        if options.track_finality:
            self._enter(operation, TradeState.CONFIRMING)
            record = await track_transaction(
                self.ledger,
                signature,
                executor=self.executor,
                timeout=options.confirmation_timeout,
                poll_interval=options.poll_interval,
                policy=policy,
            )

        self._enter(operation, TradeState.TERMINAL)
        return Executed(signature=signature, expected_output=plan.expected_output, record=record)

    def _plan_buy(
        self,
        pool: PoolState,
        mint: Pubkey,
        owner: Pubkey,
        associated_user: Pubkey,
        sol_in: Number,
        slippage: float,
    ) -> _TradePlan:
        quote = quote_buy(pool, sol_to_lamports(sol_in))
        token_out = int(quote.expected_output_amount)
        instruction = build_buy_instruction(
            mint=mint,
            bonding_curve=_pool_address(pool, "bonding_curve"),
            associated_bonding_curve=_pool_address(pool, "associated_bonding_curve"),
            associated_user=associated_user,
            user=owner,
            token_out=token_out,
            max_sol_cost=max_sol_cost(sol_in, slippage),
        )
        return _TradePlan(instruction=instruction, expected_output=token_out)

    def _plan_sell(
        self,
        pool: PoolState,
        mint: Pubkey,
        owner: Pubkey,
        associated_user: Pubkey,
        token_in: int,
        slippage: float,
    ) -> _TradePlan:
        quote = quote_sell(pool, token_in)
        instruction = build_sell_instruction(
            mint=mint,
            bonding_curve=_pool_address(pool, "bonding_curve"),
            associated_bonding_curve=_pool_address(pool, "associated_bonding_curve"),
            associated_user=associated_user,
            user=owner,
            token_in=token_in,
            min_sol_output=min_sol_output(pool, token_in, slippage),
        )
        return _TradePlan(
            instruction=instruction,
            expected_output=quote.expected_output_amount / LAMPORTS_PER_SOL,
        )

    async def _simulate(
        self,
        operation: str,
        request: TransactionRequest,
        signer: Keypair,
        plan: _TradePlan,
        policy: Optional[RetryPolicy],
    ) -> Simulated:
        self._enter(operation, TradeState.SIMULATING)
        result = await self.executor.execute(
            lambda: self.ledger.simulate(request, [signer]), policy
        )
        if result.err is not None:
            raise TransactionError(f"Simulation failed: {result.err}", logs=list(result.logs))

        logger.info(
            "%s simulation succeeded (%s compute units)", operation, result.units_consumed
        )
        self._enter(operation, TradeState.TERMINAL)
        return Simulated(logs=list(result.logs), expected_output=plan.expected_output)

    async def _submit(
        self,
        operation: str,
        request: TransactionRequest,
        signer: Keypair,
        policy: Optional[RetryPolicy],
    ) -> str:
        self._enter(operation, TradeState.SUBMITTING)
        try:
            signature = await self.executor.execute(
                lambda: self.ledger.submit_and_confirm(request, [signer]), policy
            )
        except (RetryError, TransactionError):
            raise
        except Exception as e:
            raise TransactionError(
                f"Transaction failed: {error_message(e)}",
                signature=getattr(e, "signature", None),
                logs=list(getattr(e, "logs", None) or []),
            ) from e

        logger.info("%s confirmed: %s", operation, signature)
        return signature


def _pool_address(pool: PoolState, name: str) -> Pubkey:
    value = getattr(pool, name)
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise InvalidPoolStateError(
            f"Pool has an invalid {name} address",
            mint=pool.mint,
            context={name: value},
        ) from e


__all__ = [
    "TransactionMode",
    "TradeState",
    "TradeOptions",
    "TransactionRequest",
    "Executed",
    "Simulated",
    "Failed",
    "TransactionOutcome",
    "settle",
    "build_transaction_request",
    "track_transaction",
    "TransactionLifecycleManager",
    "DEFAULT_SLIPPAGE",
]
