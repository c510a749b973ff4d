"""
Per-run context shared by the pipeline and the scheduler.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger
from solders.keypair import Keypair

from rentcollector.config import (
    ACCOUNT_DELAY_SEC,
    BATCH_DELAY_SEC,
    BATCH_SIZE,
    BURN_DELAY_SEC,
    WALLET_DELAY_SEC,
)
from rentcollector.solana.ledger_client import LedgerClient
from rentcollector.solana.retry_policy import RetryPolicy
from rentcollector.solana.wallet_store import WalletRepository


@dataclass
class PacingPolicy:
    """
    Fixed waits that keep a run under the ledger's rate limits.

    ``wallet_delay`` separates consecutive wallets, ``batch_delay`` is added
    after every ``batch_size`` wallets, ``account_delay`` separates token
    account closes and ``burn_delay`` separates standalone burns.
    """
    wallet_delay: float = WALLET_DELAY_SEC
    batch_size: int = BATCH_SIZE
    batch_delay: float = BATCH_DELAY_SEC
    account_delay: float = ACCOUNT_DELAY_SEC
    burn_delay: float = BURN_DELAY_SEC
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    async def after_wallet(self, processed: int, total: int) -> None:
        """Wait after the ``processed``-th wallet, unless it was the last one."""
        if processed >= total:
            return
        await self.sleep(self.wallet_delay)
        if self.batch_size > 0 and processed % self.batch_size == 0:
            logger.info(f"Batch of {self.batch_size} wallets done, waiting {self.batch_delay}s before next batch")
            await self.sleep(self.batch_delay)

    async def after_account(self) -> None:
        await self.sleep(self.account_delay)

    async def after_burn(self) -> None:
        await self.sleep(self.burn_delay)


@dataclass(frozen=True)
class RunContext:
    """Everything one run needs, fixed for the duration of the run."""
    ledger: LedgerClient
    fee_payer: Keypair
    wallet_store: WalletRepository
    retry: RetryPolicy
    pacing: PacingPolicy

    @property
    def fee_payer_id(self) -> str:
        return str(self.fee_payer.pubkey())
