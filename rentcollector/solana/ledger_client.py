"""
Remote ledger access.

``LedgerClient`` is the narrow set of ledger operations the rent collector
needs. ``SolanaLedgerClient`` implements it over solana-py's ``AsyncClient``
and translates library exceptions into the collector's error taxonomy.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import MemcmpOpts, TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from rentcollector.config import COMMITMENT, RPC_TIMEOUT_SEC
from rentcollector.errors import LedgerError, RateLimitedError, TransactionError
from rentcollector.solana.models import AccountSnapshot, ParsedTokenAccount
from rentcollector.utils.rate_limit_utils import is_rate_limit_exception


class LedgerClient(ABC):
    """Ledger operations required by the rent collector."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance of an account in lamports."""

    @abstractmethod
    async def get_minimum_balance_for_rent_exemption(self, data_size: int) -> int:
        """Minimum lamports for an account of ``data_size`` bytes to be rent exempt."""

    @abstractmethod
    async def get_token_accounts_by_owner(self, owner: str, program_id: str) -> List[AccountSnapshot]:
        """Token accounts of ``owner`` under ``program_id``, from the owner index."""

    @abstractmethod
    async def get_program_accounts(
        self,
        program_id: str,
        data_size: Optional[int] = None,
        memcmp_offset: Optional[int] = None,
        memcmp_bytes: Optional[str] = None,
    ) -> List[AccountSnapshot]:
        """Accounts owned by ``program_id`` matching the optional size/offset filters."""

    @abstractmethod
    async def get_parsed_token_accounts_by_owner(self, owner: str, program_id: str) -> List[ParsedTokenAccount]:
        """Token accounts of ``owner`` under ``program_id``, in parsed form."""

    @abstractmethod
    async def get_account_info(self, address: str) -> Optional[AccountSnapshot]:
        """Raw data and lamports of an account, or None if it does not exist."""

    @abstractmethod
    async def get_latest_blockhash(self) -> Hash:
        """A recent blockhash to anchor a transaction."""

    @abstractmethod
    async def send_and_confirm(self, transaction: Transaction) -> str:
        """Submit a signed transaction, wait for confirmation and return its signature."""

    async def close(self) -> None:
        """Release the connection."""

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class SolanaLedgerClient(LedgerClient):
    """
    LedgerClient backed by a Solana JSON-RPC endpoint.
    """

    def __init__(self, rpc_url: str, commitment: str = COMMITMENT, timeout: float = RPC_TIMEOUT_SEC):
        """
        Initialize the ledger client.

        Args:
            rpc_url: JSON-RPC endpoint URL
            commitment: Commitment level used for reads and confirmation
            timeout: Request timeout in seconds
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.async_client = AsyncClient(rpc_url, commitment=self.commitment, timeout=timeout)
        logger.info(f"SolanaLedgerClient initialized: {rpc_url} @ {commitment}")

    async def close(self) -> None:
        try:
            await self.async_client.close()
            logger.info("SolanaLedgerClient connection closed.")
        except Exception as e:
            logger.warning(f"Error closing SolanaLedgerClient: {e}")

    @staticmethod
    def _translate(error: Exception, operation: str) -> Exception:
        """Map a solana-py / httpx exception onto the collector's errors."""
        if is_rate_limit_exception(error):
            return RateLimitedError(f"{operation} rate limited: {error}")
        return LedgerError(f"{operation} failed: {type(error).__name__}: {error}")

    @staticmethod
    def _snapshot(pubkey: Pubkey, account) -> AccountSnapshot:
        return AccountSnapshot(
            account_id=str(pubkey),
            lamports=account.lamports,
            owner_program=str(account.owner),
            data=bytes(account.data),
        )

    async def get_balance(self, address: str) -> int:
        try:
            resp = await self.async_client.get_balance(Pubkey.from_string(address), self.commitment)
            return resp.value
        except Exception as e:
            raise self._translate(e, "getBalance") from e

    async def get_minimum_balance_for_rent_exemption(self, data_size: int) -> int:
        try:
            resp = await self.async_client.get_minimum_balance_for_rent_exemption(data_size, self.commitment)
            return resp.value
        except Exception as e:
            raise self._translate(e, "getMinimumBalanceForRentExemption") from e

    async def get_token_accounts_by_owner(self, owner: str, program_id: str) -> List[AccountSnapshot]:
        try:
            resp = await self.async_client.get_token_accounts_by_owner(
                Pubkey.from_string(owner),
                TokenAccountOpts(program_id=Pubkey.from_string(program_id)),
                self.commitment,
            )
        except Exception as e:
            raise self._translate(e, "getTokenAccountsByOwner") from e
        return [self._snapshot(item.pubkey, item.account) for item in resp.value]

    async def get_program_accounts(
        self,
        program_id: str,
        data_size: Optional[int] = None,
        memcmp_offset: Optional[int] = None,
        memcmp_bytes: Optional[str] = None,
    ) -> List[AccountSnapshot]:
        filters = []
        if data_size is not None:
            filters.append(data_size)
        if memcmp_offset is not None and memcmp_bytes is not None:
            filters.append(MemcmpOpts(offset=memcmp_offset, bytes=memcmp_bytes))
        try:
            resp = await self.async_client.get_program_accounts(
                Pubkey.from_string(program_id),
                commitment=self.commitment,
                encoding="base64",
                filters=filters or None,
            )
        except Exception as e:
            raise self._translate(e, "getProgramAccounts") from e
        return [self._snapshot(item.pubkey, item.account) for item in resp.value]

    async def get_parsed_token_accounts_by_owner(self, owner: str, program_id: str) -> List[ParsedTokenAccount]:
        try:
            resp = await self.async_client.get_token_accounts_by_owner_json_parsed(
                Pubkey.from_string(owner),
                TokenAccountOpts(program_id=Pubkey.from_string(program_id)),
                self.commitment,
            )
        except Exception as e:
            raise self._translate(e, "getTokenAccountsByOwner(jsonParsed)") from e

        accounts = []
        for item in resp.value:
            parsed = getattr(item.account.data, "parsed", None) or {}
            accounts.append(ParsedTokenAccount(
                account_id=str(item.pubkey),
                lamports=item.account.lamports,
                owner_program=str(item.account.owner),
                info=parsed.get("info", {}) if isinstance(parsed, dict) else {},
            ))
        return accounts

    async def get_account_info(self, address: str) -> Optional[AccountSnapshot]:
        try:
            resp = await self.async_client.get_account_info(
                Pubkey.from_string(address), self.commitment, encoding="base64"
            )
        except Exception as e:
            raise self._translate(e, "getAccountInfo") from e
        if resp.value is None:
            return None
        return self._snapshot(Pubkey.from_string(address), resp.value)

    async def get_latest_blockhash(self) -> Hash:
        try:
            resp = await self.async_client.get_latest_blockhash(self.commitment)
        except Exception as e:
            raise self._translate(e, "getLatestBlockhash") from e
        return resp.value.blockhash

    async def send_and_confirm(self, transaction: Transaction) -> str:
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        try:
            resp = await self.async_client.send_transaction(transaction, opts=opts)
        except Exception as e:
            if is_rate_limit_exception(e):
                raise RateLimitedError(f"sendTransaction rate limited: {e}") from e
            raise TransactionError(f"sendTransaction failed: {type(e).__name__}: {e}") from e

        signature = resp.value
        try:
            status_resp = await self.async_client.confirm_transaction(signature, self.commitment)
        except Exception as e:
            # The transaction may already have landed: never report this as
            # rate limited, a retry would submit it a second time.
            raise TransactionError(
                f"Transaction {signature} not confirmed: {type(e).__name__}: {e}",
                signature=str(signature),
            ) from e

        status = status_resp.value[0] if status_resp.value else None
        if status is not None and status.err is not None:
            raise TransactionError(f"Transaction {signature} failed: {status.err}", signature=str(signature))

        logger.debug(f"Transaction confirmed: {signature}")
        return str(signature)
