"""
Per-wallet rent collection pipeline.

A wallet moves through Discovering, Burning, Closing and Sweeping in that
order. Failures of a single token account are logged and skipped; failures
that leave the wallet's outcome unknown end the wallet in Failed and raise
``WalletProcessingError`` carrying whatever was recovered so far.
"""

from enum import Enum
from typing import Dict, List, Optional, Set
from loguru import logger
from solders.keypair import Keypair

from rentcollector.config import DUST_LAMPORTS_FLOOR, LAMPORTS_PER_SOL
from rentcollector.errors import ValidationError, WalletProcessingError
from rentcollector.solana.discovery import TokenAccountDiscovery, default_strategies
from rentcollector.solana.models import RentCollectionResult, TokenAccountRecord
from rentcollector.solana.run_context import RunContext
from rentcollector.solana.token_program import (
    TokenError,
    create_burn_instruction,
    create_close_instruction,
    create_sweep_instruction,
    decode_token_account,
)
from rentcollector.solana.tx_executor import TxExecutor
from rentcollector.utils.validation_utils import keypair_from_secret


class PipelineState(str, Enum):
    IDLE = "Idle"
    DISCOVERING = "Discovering"
    BURNING = "Burning"
    CLOSING = "Closing"
    SWEEPING = "Sweeping"
    DONE = "Done"
    FAILED = "Failed"


class EligibleAccount:
    """A token account that will be closed, with its raw on-chain state."""

    def __init__(self, record: TokenAccountRecord, is_native: bool):
        self.record = record
        self.is_native = is_native

    @property
    def needs_burn(self) -> bool:
        # Closing a wrapped SOL account unwraps it; no burn needed
        return self.record.token_amount > 0 and not self.is_native


class RentPipeline:
    """
    Runs the burn, close and sweep sequence for one wallet at a time.
    """

    def __init__(
        self,
        context: RunContext,
        discovery: Optional[TokenAccountDiscovery] = None,
        executor: Optional[TxExecutor] = None,
        dust_floor: int = DUST_LAMPORTS_FLOOR,
    ):
        """
        Initialize the pipeline.

        Args:
            context: Run context (ledger, fee payer, wallets, retry and pacing)
            discovery: Token account discovery; defaults to all strategies
            executor: Transaction executor; defaults to one paid by the context's fee payer
            dust_floor: Native balances below this many lamports are not swept
        """
        self.context = context
        self.discovery = discovery or TokenAccountDiscovery(default_strategies(context.ledger, context.retry))
        self.executor = executor or TxExecutor(context.ledger, context.retry, context.fee_payer)
        self.dust_floor = dust_floor
        self.state = PipelineState.IDLE
        # Rent exemption minimum by account data size, for this run
        self._rent_exemption_cache: Dict[int, int] = {}

    def _enter(self, state: PipelineState, wallet_id: str) -> None:
        self.state = state
        logger.debug(f"Wallet {wallet_id}: {state.value}")

    def _fail(self, result: RentCollectionResult, message: str, error: Exception) -> WalletProcessingError:
        self.state = PipelineState.FAILED
        result.failed = True
        result.error = f"{message}: {error}"
        logger.error(f"Wallet {result.wallet_id} failed: {result.error}")
        return WalletProcessingError(result.error, result)

    async def process_wallet(self, index: int) -> RentCollectionResult:
        """
        Collect rent and remaining balance from one wallet.

        Args:
            index: Index of the wallet in the run's wallet store

        Returns:
            RentCollectionResult for the wallet

        Raises:
            ValidationError: If there is no wallet at index
            WalletProcessingError: If the wallet could not be fully processed
        """
        wallet = self.context.wallet_store.get_by_index(index)
        if wallet is None:
            raise ValidationError(f"No wallet at index {index}")

        owner = keypair_from_secret(wallet.secret)
        result = RentCollectionResult(wallet_id=wallet.public_id)
        logger.info(f"Processing wallet {index + 1}: {wallet.public_id}")

        self._enter(PipelineState.DISCOVERING, wallet.public_id)
        try:
            eligible = await self._discover(index, wallet.public_id)
        except Exception as e:
            raise self._fail(result, "Discovery failed", e) from e

        if eligible:
            self._enter(PipelineState.BURNING, wallet.public_id)
            burned = await self._burn(eligible, owner, result)

            self._enter(PipelineState.CLOSING, wallet.public_id)
            await self._close(eligible, burned, owner, result)
        else:
            logger.info(f"No closable token accounts for {wallet.public_id}")

        self._enter(PipelineState.SWEEPING, wallet.public_id)
        try:
            await self._sweep(owner, result)
        except Exception as e:
            raise self._fail(result, "Sweep failed", e) from e

        self._enter(PipelineState.DONE, wallet.public_id)
        logger.info(
            f"Wallet {wallet.public_id} done: {result.token_accounts_closed} accounts closed, "
            f"{result.total_recovered / LAMPORTS_PER_SOL:.6f} SOL recovered",
            extra={
                "wallet": wallet.public_id,
                "accounts_closed": result.token_accounts_closed,
                "tokens_burned": result.tokens_burned,
                "rent_recovered": result.rent_recovered,
                "sol_transferred": result.sol_transferred,
            }
        )
        return result

    async def _rent_exemption(self, data_size: int) -> Optional[int]:
        if data_size not in self._rent_exemption_cache:
            try:
                self._rent_exemption_cache[data_size] = await self.context.retry.call(
                    self.context.ledger.get_minimum_balance_for_rent_exemption,
                    data_size,
                    description="rent exemption lookup",
                )
            except Exception as e:
                logger.debug(f"Rent exemption lookup for {data_size} bytes failed: {e}")
                return None
        return self._rent_exemption_cache[data_size]

    async def _discover(self, index: int, owner_id: str) -> List[EligibleAccount]:
        """Find closable token accounts and write balance and rent back to the store."""
        ledger = self.context.ledger
        retry = self.context.retry

        balance = await retry.call(ledger.get_balance, owner_id, description="wallet balance")
        accounts = await self.discovery.discover(owner_id)

        eligible = []
        for account in accounts:
            try:
                snapshot = await retry.call(
                    ledger.get_account_info, account.account_id, description="token account lookup"
                )
            except Exception as e:
                logger.warning(f"Could not read token account {account.account_id}: {e}")
                continue
            if snapshot is None:
                logger.info(f"Token account {account.account_id} no longer exists")
                continue

            try:
                decoded = decode_token_account(snapshot.data)
            except TokenError as e:
                logger.warning(f"Skipping {account.account_id}: {e}")
                continue

            threshold = await self._rent_exemption(len(snapshot.data))
            logger.debug(
                f"Token account {account.account_id}: {snapshot.lamports} lamports, "
                f"{decoded.amount} raw units, rent exempt minimum {threshold}"
            )

            if snapshot.lamports <= 0:
                continue
            if decoded.is_frozen:
                logger.warning(f"Token account {account.account_id} is frozen; it cannot be closed")
                continue

            record = account.model_copy(update={
                "token_amount": decoded.amount,
                "mint_id": decoded.mint_id,
                "lamports": snapshot.lamports,
            })
            eligible.append(EligibleAccount(record, decoded.is_native))

        rent_amount = sum(e.record.lamports for e in eligible)
        self.context.wallet_store.update_discovery(index, balance, rent_amount, rent_amount > 0)
        logger.info(
            f"Found {len(eligible)} closable token accounts for {owner_id} "
            f"({rent_amount / LAMPORTS_PER_SOL:.6f} SOL rent)"
        )
        return eligible

    async def _burn(self, eligible: List[EligibleAccount], owner: Keypair, result: RentCollectionResult) -> Set[str]:
        """Burn the balance of every account holding tokens; returns the accounts burned."""
        burned: Set[str] = set()
        to_burn = [e for e in eligible if e.needs_burn]

        for position, item in enumerate(to_burn):
            record = item.record
            try:
                await self.executor.execute(
                    [self._burn_instruction(record)],
                    [owner],
                    description=f"Burn {record.token_amount} units from {record.account_id}",
                )
                burned.add(record.account_id)
                result.tokens_burned += 1
            except Exception as e:
                logger.error(f"Burn failed for {record.account_id}: {e}")

            if position < len(to_burn) - 1:
                await self.context.pacing.after_burn()
        return burned

    async def _close(
        self,
        eligible: List[EligibleAccount],
        burned: Set[str],
        owner: Keypair,
        result: RentCollectionResult,
    ) -> None:
        """Close every eligible account, returning its lamports to the fee payer."""
        for position, item in enumerate(eligible):
            record = item.record
            instructions = []
            folds_burn = item.needs_burn and record.account_id not in burned
            if folds_burn:
                instructions.append(self._burn_instruction(record))
            instructions.append(create_close_instruction(
                record.account_id,
                self.context.fee_payer_id,
                record.owner_id,
                record.program_variant,
            ))

            try:
                await self.executor.execute(
                    instructions, [owner], description=f"Close token account {record.account_id}"
                )
                result.token_accounts_closed += 1
                result.rent_recovered += record.lamports
                if folds_burn:
                    result.tokens_burned += 1
            except Exception as e:
                logger.error(f"Close failed for {record.account_id}: {e}")

            if position < len(eligible) - 1:
                await self.context.pacing.after_account()

    async def _sweep(self, owner: Keypair, result: RentCollectionResult) -> None:
        """Transfer the wallet's whole remaining native balance to the fee payer."""
        owner_id = str(owner.pubkey())
        fee_payer_id = self.context.fee_payer_id
        if owner_id == fee_payer_id:
            logger.info(f"Wallet {owner_id} is the fee payer; nothing to sweep")
            return

        balance = await self.context.retry.call(
            self.context.ledger.get_balance, owner_id, description="wallet balance refresh"
        )
        if balance <= 0:
            return
        if balance < self.dust_floor:
            logger.info(f"Skipping sweep of {balance} lamports from {owner_id}: below {self.dust_floor} lamport floor")
            return

        await self.executor.execute(
            [create_sweep_instruction(owner_id, fee_payer_id, balance)],
            [owner],
            description=f"Sweep {balance / LAMPORTS_PER_SOL:.6f} SOL from {owner_id}",
        )
        result.sol_transferred = balance

    @staticmethod
    def _burn_instruction(record: TokenAccountRecord):
        return create_burn_instruction(
            record.account_id,
            record.mint_id,
            record.owner_id,
            record.token_amount,
            record.program_variant,
        )
