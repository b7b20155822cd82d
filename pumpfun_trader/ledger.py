import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .exceptions import TransactionError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_SEND_MAX_RETRIES = 3


@dataclass(frozen=True)
class LatestBlockhash:
    blockhash: Any
    last_valid_block_height: int


@dataclass
class SimulationResult:
    err: Optional[str]
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.err is None


@dataclass(frozen=True)
class SignatureStatus:
    err: Optional[Any]
    confirmation_status: Optional[str]

    @property
    def is_finalized(self) -> bool:
        return self.confirmation_status == "finalized"


@dataclass(frozen=True)
class TransactionRequest:
    """
    Everything the ledger needs to compile one transaction.

    Built fresh for every call; reusing one would replay a stale blockhash.
    """
    instructions: Sequence[Instruction]
    fee_payer: Pubkey
    recent_blockhash: Any
    priority_fee: float = 0.0


class LedgerClient(ABC):
    """Capabilities the engine needs from a Solana RPC node."""

    @abstractmethod
    async def get_account_info(self, address: Pubkey) -> Optional[Any]:
        pass

    @abstractmethod
    async def get_block_height(self) -> int:
        """
        Current block height, not the slot.

        BlockhashCache compares this against ``last_valid_block_height``, which
        the node reports in block height. Slots run ahead of block height
        whenever a leader skips its slot.
        """

    @abstractmethod
    async def get_latest_blockhash(self) -> LatestBlockhash:
        pass

    @abstractmethod
    async def simulate(
        self, request: TransactionRequest, signers: Sequence[Keypair]
    ) -> SimulationResult:
        pass

    @abstractmethod
    async def submit_and_confirm(
        self, request: TransactionRequest, signers: Sequence[Keypair]
    ) -> str:
        pass

    @abstractmethod
    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        pass

    @abstractmethod
    async def get_transaction(self, signature: str, commitment: str = "finalized") -> Any:
        pass


def _to_hash(blockhash: Union[Hash, str]) -> Hash:
    if isinstance(blockhash, Hash):
        return blockhash
    return Hash.from_string(str(blockhash))


def _normalize_confirmation(status: Any) -> Optional[str]:
    if status is None:
        return None
    status_str = str(status).lower()
    for level in ("finalized", "confirmed", "processed"):
        if level in status_str:
            return level
    return status_str


def compile_transaction(
    request: TransactionRequest, signers: Sequence[Keypair]
) -> VersionedTransaction:
    message = MessageV0.try_compile(
        payer=request.fee_payer,
        instructions=list(request.instructions),
        address_lookup_table_accounts=[],
        recent_blockhash=_to_hash(request.recent_blockhash),
    )
    return VersionedTransaction(message, list(signers))


class SolanaLedgerClient(LedgerClient):
    """
    LedgerClient backed by solana-py's AsyncClient.

    Usage:
        async with SolanaLedgerClient(rpc_url) as ledger:
            height = await ledger.get_block_height()
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        commitment: str = "confirmed",
        timeout: float = 30,
        client: Optional[AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.client = client or AsyncClient(rpc_url, commitment=self.commitment, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Any) -> "SolanaLedgerClient":
        return cls(
            rpc_url=str(settings.rpc_url),
            commitment=settings.commitment,
            timeout=settings.timeout,
        )

    async def __aenter__(self) -> "SolanaLedgerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    async def get_account_info(self, address: Pubkey) -> Optional[Any]:
        response = await self.client.get_account_info(address)
        return response.value

    async def get_block_height(self) -> int:
        response = await self.client.get_block_height(commitment=self.commitment)
        return response.value

    async def get_latest_blockhash(self) -> LatestBlockhash:
        response = await self.client.get_latest_blockhash(commitment=self.commitment)
        return LatestBlockhash(
            blockhash=response.value.blockhash,
            last_valid_block_height=response.value.last_valid_block_height,
        )

    async def simulate(
        self, request: TransactionRequest, signers: Sequence[Keypair]
    ) -> SimulationResult:
        tx = compile_transaction(request, signers)
        response = await self.client.simulate_transaction(tx, commitment=self.commitment)
        result = response.value
        return SimulationResult(
            err=str(result.err) if result.err is not None else None,
            logs=list(result.logs or []),
            units_consumed=result.units_consumed,
        )

    async def submit_and_confirm(
        self, request: TransactionRequest, signers: Sequence[Keypair]
    ) -> str:
        tx = compile_transaction(request, signers)
        opts = TxOpts(
            skip_preflight=True,
            preflight_commitment=Confirmed,
            max_retries=DEFAULT_SEND_MAX_RETRIES,
        )
        response = await self.client.send_transaction(tx, opts=opts)
        signature = response.value
        logger.info("Transaction sent: %s", signature)

        confirmation = await self.client.confirm_transaction(signature, commitment=Confirmed)
        statuses = confirmation.value or []
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            raise TransactionError(
                f"Transaction failed: {status.err}",
                signature=str(signature),
            )
        return str(signature)

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        response = await self.client.get_signature_statuses(
            [Signature.from_string(signature)],
            search_transaction_history=True,
        )
        if not response.value or response.value[0] is None:
            return None
        status = response.value[0]
        return SignatureStatus(
            err=status.err,
            confirmation_status=_normalize_confirmation(status.confirmation_status),
        )

    async def get_transaction(self, signature: str, commitment: str = "finalized") -> Any:
        response = await self.client.get_transaction(
            Signature.from_string(signature),
            commitment=Commitment(commitment),
            max_supported_transaction_version=0,
        )
        return response.value


__all__ = [
    "LatestBlockhash",
    "SimulationResult",
    "SignatureStatus",
    "TransactionRequest",
    "LedgerClient",
    "SolanaLedgerClient",
    "compile_transaction",
    "DEFAULT_RPC_URL",
]
