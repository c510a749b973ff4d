"""
Integration module that combines the rent collection components.

``RentCollectorService`` is the surface an outer shell (the CLI in this
repository) talks to: load wallet files, set the endpoint and fee payer,
then run every wallet or a single one.
"""

import os
from typing import Callable, List, Optional
from loguru import logger
from solders.keypair import Keypair

from rentcollector.config import DUST_LAMPORTS_FLOOR
from rentcollector.errors import ConfigurationError, RentCollectorError, ValidationError, WalletProcessingError
from rentcollector.solana.ledger_client import LedgerClient, SolanaLedgerClient
from rentcollector.solana.models import LoadWalletsResponse, RentCollectionResult, RentCollectionSummary
from rentcollector.solana.pipeline import RentPipeline
from rentcollector.solana.retry_policy import RetryPolicy
from rentcollector.solana.run_context import PacingPolicy, RunContext
from rentcollector.solana.scheduler import BatchScheduler, ProgressCallback
from rentcollector.solana.wallet_store import WalletRepository, WalletStore
from rentcollector.utils.validation_utils import keypair_from_secret, validate_rpc_url

__all__ = ["RentCollectorService", "RunContext"]


class RentCollectorService:
    """
    Orchestrates wallet loading and rent collection runs.

    Endpoint and fee payer are plain settings on the service; each run
    snapshots them into an immutable RunContext, so changing a setting never
    affects a run already in progress.
    """

    def __init__(
        self,
        wallet_store: Optional[WalletRepository] = None,
        ledger_factory: Callable[[str], LedgerClient] = SolanaLedgerClient,
        retry: Optional[RetryPolicy] = None,
        pacing: Optional[PacingPolicy] = None,
        dust_floor: int = DUST_LAMPORTS_FLOOR,
    ):
        """
        Initialize the service.

        Args:
            wallet_store: Wallet store; a new WalletStore if None
            ledger_factory: Builds a ledger client for an endpoint URL
            retry: Retry policy for remote calls; a default policy per run if None
            pacing: Pacing policy; defaults from configuration if None
            dust_floor: Native balances below this many lamports are not swept
        """
        self.wallet_store = wallet_store if wallet_store is not None else WalletStore()
        self.ledger_factory = ledger_factory
        self.retry = retry
        self.pacing = pacing or PacingPolicy()
        self.dust_floor = dust_floor

        self.rpc_url: Optional[str] = None
        self._fee_payer: Optional[Keypair] = None
        self._loaded_files: List[str] = []

        logger.info("RentCollectorService initialized")

    @property
    def fee_payer_id(self) -> Optional[str]:
        return str(self._fee_payer.pubkey()) if self._fee_payer else None

    def load_wallets(self, paths: List[str]) -> LoadWalletsResponse:
        """
        Load wallets from one or more text files.

        A file that cannot be read or parsed is recorded in ``errors`` and the
        remaining files are still loaded.

        Args:
            paths: Wallet file paths

        Returns:
            LoadWalletsResponse with every wallet loaded so far

        Raises:
            ValidationError: If no paths were given
        """
        if not paths:
            raise ValidationError("No wallet files given")

        response = LoadWalletsResponse()
        for path in paths:
            try:
                with open(path, "r", encoding="utf-8-sig") as f:
                    content = f.read()
                result = self.wallet_store.load_from_text(content)
            except (OSError, UnicodeDecodeError, RentCollectorError) as e:
                logger.error(f"Error loading file {path}: {e}")
                response.errors[path] = str(e)
                continue

            response.new_wallets_count += result.added_count
            response.diagnostics.extend(result.diagnostics)
            if path not in self._loaded_files:
                self._loaded_files.append(path)
                response.new_files.append(os.path.basename(path))

        response.wallets = self.wallet_store.get_all()
        response.count = len(response.wallets)
        logger.info(
            f"Loaded {response.new_wallets_count} new wallets from {len(paths)} files ({response.count} total)",
            extra={"new_wallets": response.new_wallets_count, "total": response.count, "failed_files": len(response.errors)}
        )
        return response

    def set_rpc_endpoint(self, url: str) -> None:
        """
        Set the RPC endpoint used by subsequent runs.

        Raises:
            ValidationError: If the URL is not an http(s) URL
        """
        is_valid, error = validate_rpc_url(url)
        if not is_valid:
            raise ValidationError(error)
        self.rpc_url = url.strip()
        logger.info(f"RPC endpoint set: {self.rpc_url}")

    def set_fee_payer(self, secret: str) -> None:
        """
        Set the fee payer used by subsequent runs.

        Raises:
            KeyFormatError: If the secret cannot be decoded into a key pair
        """
        self._fee_payer = keypair_from_secret(secret)
        logger.info(f"Fee payer set: {self.fee_payer_id}")

    def clear_wallets(self) -> None:
        """Forget every loaded wallet and file."""
        self.wallet_store.clear()
        self._loaded_files = []

    def _context(self, ledger: LedgerClient) -> RunContext:
        return RunContext(
            ledger=ledger,
            fee_payer=self._fee_payer,
            wallet_store=self.wallet_store,
            retry=self.retry or RetryPolicy(),
            pacing=self.pacing,
        )

    def _require_settings(self) -> None:
        if not self.rpc_url:
            raise ConfigurationError("RPC URL not set")
        if self._fee_payer is None:
            raise ConfigurationError("Fee payer not set")

    async def process_all_wallets(
        self,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> RentCollectionSummary:
        """
        Collect rent from every loaded wallet.

        Args:
            on_progress: Progress callback, sync or async
            should_stop: Checked at each wallet boundary; True ends the run there

        Returns:
            RentCollectionSummary

        Raises:
            ConfigurationError: If the endpoint or fee payer is not set
            ValidationError: If no wallets are loaded
        """
        self._require_settings()
        wallets = self.wallet_store.get_all()
        if not wallets:
            raise ValidationError("Wallets not loaded")

        async with self.ledger_factory(self.rpc_url) as ledger:
            context = self._context(ledger)
            pipeline = RentPipeline(context, dust_floor=self.dust_floor)
            scheduler = BatchScheduler(context, pipeline)
            return await scheduler.process_all(wallets, on_progress, should_stop)

    async def process_single_wallet(self, index: int) -> RentCollectionResult:
        """
        Collect rent from one loaded wallet.

        Args:
            index: Wallet index in load order

        Returns:
            RentCollectionResult; ``failed`` is set if the wallet could not be fully processed

        Raises:
            ConfigurationError: If the endpoint or fee payer is not set
            ValidationError: If there is no wallet at index
        """
        self._require_settings()
        if self.wallet_store.get_by_index(index) is None:
            raise ValidationError(f"No wallet at index {index}")

        async with self.ledger_factory(self.rpc_url) as ledger:
            pipeline = RentPipeline(self._context(ledger), dust_floor=self.dust_floor)
            try:
                return await pipeline.process_wallet(index)
            except WalletProcessingError as e:
                return e.result
