"""
Solana integration for the rent collector.

This package contains the modules that talk to the Solana ledger: wallet
storage, token account discovery, transaction execution and the per-wallet
pipeline driven by the batch scheduler.

Every transaction is co-signed by the same fee payer, so wallets and their
token accounts are processed strictly one at a time.
"""

from rentcollector.solana.models import (
    ProgramVariant,
    WalletRecord,
    TokenAccountRecord,
    RentCollectionResult,
    RentCollectionSummary,
    ProgressEvent,
    LoadDiagnostic,
    LoadResult,
    LoadWalletsResponse,
)
from rentcollector.solana.wallet_store import WalletRepository, WalletStore
from rentcollector.solana.ledger_client import LedgerClient, SolanaLedgerClient
from rentcollector.solana.retry_policy import RetryPolicy
from rentcollector.solana.discovery import (
    TokenAccountDiscovery,
    OwnerIndexStrategy,
    ProgramScanStrategy,
    ParsedOwnerStrategy,
)
from rentcollector.solana.tx_executor import TxExecutor
from rentcollector.solana.run_context import PacingPolicy, RunContext
from rentcollector.solana.pipeline import RentPipeline, PipelineState
from rentcollector.solana.scheduler import BatchScheduler
from rentcollector.solana.integration import RentCollectorService
