"""
Batch scheduler for rent collection runs.
"""

import inspect
from typing import Awaitable, Callable, List, Optional, Union
from loguru import logger

from rentcollector.config import LAMPORTS_PER_SOL, ProgressStatus
from rentcollector.errors import ValidationError, WalletProcessingError
from rentcollector.solana.models import (
    ProgressEvent,
    RentCollectionResult,
    RentCollectionSummary,
    WalletRecord,
)
from rentcollector.solana.pipeline import RentPipeline
from rentcollector.solana.run_context import PacingPolicy, RunContext

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]

__all__ = ["BatchScheduler", "PacingPolicy", "ProgressCallback"]


class BatchScheduler:
    """
    Processes wallets one at a time, in order, under a pacing policy.

    Every transaction of a run is co-signed by the same fee payer, so nothing
    is processed concurrently. A failing wallet is recorded and the run
    continues with the next one.
    """

    def __init__(self, context: RunContext, pipeline: Optional[RentPipeline] = None):
        """
        Initialize the scheduler.

        Args:
            context: Run context
            pipeline: Pipeline run for each wallet; defaults to one built from the context
        """
        self.context = context
        self.pipeline = pipeline or RentPipeline(context)

    @staticmethod
    async def _emit(on_progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        if on_progress is None:
            return
        try:
            outcome = on_progress(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def process_all(
        self,
        wallets: List[WalletRecord],
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> RentCollectionSummary:
        """
        Run the pipeline over every wallet.

        Args:
            wallets: Wallets to process, in order; each is looked up in the store by public identity
            on_progress: Called (sync or async) before and after each wallet
            should_stop: Checked before each wallet; returning True ends the run there

        Returns:
            RentCollectionSummary for the run
        """
        total = len(wallets)
        summary = RentCollectionSummary(total_wallets=total)
        batch_count = (total + self.context.pacing.batch_size - 1) // max(self.context.pacing.batch_size, 1)
        logger.info(
            f"Starting rent collection for {total} wallets in {batch_count} batches",
            extra={"wallets": total, "batches": batch_count}
        )

        for index, wallet in enumerate(wallets):
            if should_stop is not None and should_stop():
                logger.warning(f"Run stopped before wallet {index + 1}/{total}")
                summary.aborted = True
                await self._emit(on_progress, ProgressEvent(
                    current=index + 1, total=total, wallet_id=wallet.public_id, status=ProgressStatus.STOPPED
                ))
                break

            await self._emit(on_progress, ProgressEvent(
                current=index + 1, total=total, wallet_id=wallet.public_id, status=ProgressStatus.PROCESSING
            ))

            store_index = self.context.wallet_store.index_of(wallet.public_id)
            try:
                if store_index is None:
                    raise ValidationError(f"Wallet {wallet.public_id} is not loaded")
                result = await self.pipeline.process_wallet(store_index)
            except WalletProcessingError as e:
                result = e.result
            except Exception as e:
                logger.error(f"Error processing wallet {index + 1}: {e}")
                result = RentCollectionResult(wallet_id=wallet.public_id, failed=True, error=str(e))

            summary.results.append(result)
            summary.total_recovered += result.total_recovered
            if result.failed:
                summary.failed_wallets += 1
                status = ProgressStatus.FAILED
            else:
                summary.successful_wallets += 1
                status = f"Collected {result.total_recovered / LAMPORTS_PER_SOL:.4f} SOL"

            await self._emit(on_progress, ProgressEvent(
                current=index + 1, total=total, wallet_id=wallet.public_id, status=status
            ))

            await self.context.pacing.after_wallet(index + 1, total)

        self._log_summary(summary)
        return summary

    @staticmethod
    def _log_summary(summary: RentCollectionSummary) -> None:
        closed = sum(r.token_accounts_closed for r in summary.results)
        burned = sum(r.tokens_burned for r in summary.results)
        rent = sum(r.rent_recovered for r in summary.results)
        swept = sum(r.sol_transferred for r in summary.results)
        logger.info(
            f"Rent collection {'stopped' if summary.aborted else 'complete'}: "
            f"{summary.successful_wallets} successful, {summary.failed_wallets} failed of {summary.total_wallets} wallets; "
            f"{closed} token accounts closed, {burned} burns, "
            f"{rent / LAMPORTS_PER_SOL:.6f} SOL rent + {swept / LAMPORTS_PER_SOL:.6f} SOL swept = "
            f"{summary.total_recovered / LAMPORTS_PER_SOL:.6f} SOL",
            extra={
                "successful_wallets": summary.successful_wallets,
                "failed_wallets": summary.failed_wallets,
                "total_recovered": summary.total_recovered,
                "aborted": summary.aborted,
            }
        )
