"""
Token account discovery.

A single query method is not reliable against a live RPC node: owner indexes
can be incomplete, and providers limit or lag some methods. Discovery
therefore runs several independent strategies against both token program
variants and unions what they find by account address. A failing strategy
contributes nothing and never hides the accounts other strategies found.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence
from loguru import logger

from rentcollector.errors import DiscoveryError
from rentcollector.solana.ledger_client import LedgerClient
from rentcollector.solana.models import AccountSnapshot, ProgramVariant, TokenAccountRecord
from rentcollector.solana.retry_policy import RetryPolicy
from rentcollector.solana.token_program import (
    PROGRAM_IDS,
    TOKEN_ACCOUNT_SIZE,
    OWNER_OFFSET,
    TokenError,
    decode_token_account,
    is_token_account_layout,
)


class DiscoveryStrategy(ABC):
    """One way of asking the ledger for a wallet's token accounts."""

    name = "strategy"

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy):
        self.ledger = ledger
        self.retry = retry

    @abstractmethod
    async def find(self, owner_id: str, variant: ProgramVariant) -> List[TokenAccountRecord]:
        """Token accounts of ``owner_id`` under ``variant``."""

    @staticmethod
    def _from_snapshot(snapshot: AccountSnapshot, owner_id: str, variant: ProgramVariant) -> Optional[TokenAccountRecord]:
        """Build a record from raw account data, or None if it is not the owner's token account."""
        if not is_token_account_layout(snapshot.data):
            return None
        try:
            decoded = decode_token_account(snapshot.data)
        except TokenError as e:
            logger.debug(f"Skipping {snapshot.account_id}: {e}")
            return None
        if decoded.owner_id != owner_id:
            return None
        return TokenAccountRecord(
            account_id=snapshot.account_id,
            owner_id=decoded.owner_id,
            program_variant=variant,
            token_amount=decoded.amount,
            mint_id=decoded.mint_id,
            lamports=snapshot.lamports,
        )


class OwnerIndexStrategy(DiscoveryStrategy):
    """Owner-indexed lookup (getTokenAccountsByOwner). Fast, may omit accounts."""

    name = "owner-index"

    async def find(self, owner_id: str, variant: ProgramVariant) -> List[TokenAccountRecord]:
        snapshots = await self.retry.call(
            self.ledger.get_token_accounts_by_owner,
            owner_id,
            PROGRAM_IDS[variant],
            description=f"{self.name} lookup ({variant.value})",
        )
        records = [self._from_snapshot(s, owner_id, variant) for s in snapshots]
        return [r for r in records if r is not None]


class ProgramScanStrategy(DiscoveryStrategy):
    """Full program account scan filtered on the owner field of the account layout."""

    name = "program-scan"

    async def find(self, owner_id: str, variant: ProgramVariant) -> List[TokenAccountRecord]:
        # Token-2022 accounts with extensions are larger than the base layout
        data_size = TOKEN_ACCOUNT_SIZE if variant == ProgramVariant.STANDARD else None
        snapshots = await self.retry.call(
            self.ledger.get_program_accounts,
            PROGRAM_IDS[variant],
            data_size=data_size,
            memcmp_offset=OWNER_OFFSET,
            memcmp_bytes=owner_id,
            description=f"{self.name} ({variant.value})",
        )
        records = [self._from_snapshot(s, owner_id, variant) for s in snapshots]
        return [r for r in records if r is not None]


class ParsedOwnerStrategy(DiscoveryStrategy):
    """Parsed owner lookup, kept only where the parsed ``owner`` field matches."""

    name = "parsed-owner"

    async def find(self, owner_id: str, variant: ProgramVariant) -> List[TokenAccountRecord]:
        parsed_accounts = await self.retry.call(
            self.ledger.get_parsed_token_accounts_by_owner,
            owner_id,
            PROGRAM_IDS[variant],
            description=f"{self.name} lookup ({variant.value})",
        )
        records = []
        for account in parsed_accounts:
            info = account.info or {}
            if info.get("owner") != owner_id:
                continue
            token_amount = info.get("tokenAmount") or {}
            try:
                amount = int(token_amount.get("amount", 0))
            except (TypeError, ValueError):
                amount = 0
            records.append(TokenAccountRecord(
                account_id=account.account_id,
                owner_id=owner_id,
                program_variant=variant,
                token_amount=amount,
                mint_id=info.get("mint", ""),
                lamports=account.lamports,
            ))
        return records


def default_strategies(ledger: LedgerClient, retry: RetryPolicy) -> List[DiscoveryStrategy]:
    """The three strategies, fastest first."""
    return [
        OwnerIndexStrategy(ledger, retry),
        ProgramScanStrategy(ledger, retry),
        ParsedOwnerStrategy(ledger, retry),
    ]


class TokenAccountDiscovery:
    """
    Finds every token account a wallet owns across both token programs.
    """

    def __init__(
        self,
        strategies: Sequence[DiscoveryStrategy],
        variants: Sequence[ProgramVariant] = (ProgramVariant.STANDARD, ProgramVariant.EXTENDED),
    ):
        """
        Initialize discovery.

        Args:
            strategies: Strategies to run, in order; earlier ones win on duplicates
            variants: Token program variants to query
        """
        self.strategies = list(strategies)
        self.variants = list(variants)

    async def discover(self, owner_id: str) -> List[TokenAccountRecord]:
        """
        Run every strategy against every variant and merge the results.

        Args:
            owner_id: Wallet public address

        Returns:
            Token accounts, unique by account address, in first-seen order

        Raises:
            DiscoveryError: If every strategy failed for every variant
        """
        merged: Dict[str, TokenAccountRecord] = {}
        attempts = 0
        failures = 0
        last_error: Optional[Exception] = None

        for variant in self.variants:
            for strategy in self.strategies:
                attempts += 1
                try:
                    records = await strategy.find(owner_id, variant)
                except Exception as e:
                    failures += 1
                    last_error = e
                    logger.warning(f"Discovery {strategy.name} ({variant.value}) failed for {owner_id}: {e}")
                    continue

                new = 0
                for record in records:
                    if record.account_id not in merged:
                        merged[record.account_id] = record
                        new += 1
                logger.debug(
                    f"Discovery {strategy.name} ({variant.value}): {len(records)} found, {new} new",
                    extra={"owner": owner_id, "strategy": strategy.name, "found": len(records)}
                )

        if attempts and failures == attempts:
            raise DiscoveryError(f"All discovery strategies failed for {owner_id}: {last_error}")

        logger.info(f"Total unique token accounts found for {owner_id}: {len(merged)}")
        return list(merged.values())
