"""
Wallet storage for a rent collection run.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from loguru import logger

from rentcollector.errors import ValidationError, KeyFormatError
from rentcollector.solana.models import WalletRecord, LoadResult, LoadDiagnostic
from rentcollector.utils.validation_utils import keypair_from_secret
from rentcollector.utils.wallet_file_parser import parse_wallet_text


class WalletRepository(ABC):
    """What the rent pipeline needs from a wallet store."""

    @abstractmethod
    def load_from_text(self, content: str) -> LoadResult: ...

    @abstractmethod
    def get_all(self) -> List[WalletRecord]: ...

    @abstractmethod
    def get_by_index(self, index: int) -> Optional[WalletRecord]: ...

    @abstractmethod
    def index_of(self, public_id: str) -> Optional[int]: ...

    @abstractmethod
    def update_discovery(self, index: int, balance: int, rent_amount: int, can_close: bool) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class WalletStore(WalletRepository):
    """
    Holds the deduplicated working set of wallets for a run.

    Wallets are kept in load order and deduplicated by public identity
    across every load made on the same store.
    """

    def __init__(self):
        """Initialize an empty wallet store."""
        self._wallets: List[WalletRecord] = []
        self._index_by_public_id: Dict[str, int] = {}

    def load_from_text(self, content: str) -> LoadResult:
        """
        Parse wallet text and add every new wallet to the store.

        The text is decoded completely before anything is added, so a file
        with one bad secret adds nothing.

        Args:
            content: Full text of a wallet file

        Returns:
            LoadResult with the number of wallets added and advisory diagnostics

        Raises:
            ValidationError: If no secret key lines were found
            KeyFormatError: If a secret key line cannot be decoded
        """
        parsed = parse_wallet_text(content)
        if not parsed.secrets:
            raise ValidationError("No valid private keys found in wallet text")

        decoded = []
        for line_number, secret in enumerate(parsed.secrets, start=1):
            try:
                keypair = keypair_from_secret(secret)
            except KeyFormatError as e:
                logger.error(f"Invalid private key at secret #{line_number}: {e}")
                raise KeyFormatError(f"Invalid private key at secret #{line_number}: {e}") from e
            decoded.append((secret, str(keypair.pubkey())))

        result = LoadResult()
        staged: List[WalletRecord] = []
        staged_by_public_id: Dict[str, WalletRecord] = {}

        for index, (secret, public_id) in enumerate(decoded):
            provided = parsed.provided_address_for(index)
            if provided is not None and provided != public_id:
                message = (
                    f"Provided address {provided} doesn't match private key's "
                    f"public key {public_id}"
                )
                logger.warning(f"Warning: {message}")
                result.diagnostics.append(LoadDiagnostic(
                    kind="address_mismatch",
                    public_id=public_id,
                    message=message,
                    provided_address=provided,
                ))

            existing_secret = self._secret_for(public_id, staged_by_public_id)
            if existing_secret is not None:
                if existing_secret == secret:
                    kind = "duplicate_secret"
                    message = f"Duplicate private key found for public key {public_id}"
                else:
                    # e.g. the same key written in a different encoding
                    kind = "conflicting_secret"
                    message = f"Different private keys found for same public key {public_id}"
                logger.warning(f"Warning: {message}")
                result.diagnostics.append(LoadDiagnostic(kind=kind, public_id=public_id, message=message))
                result.duplicate_count += 1
                continue

            record = WalletRecord(secret=secret, public_id=public_id)
            staged.append(record)
            staged_by_public_id[public_id] = record

        for record in staged:
            self._index_by_public_id[record.public_id] = len(self._wallets)
            self._wallets.append(record)

        result.added_count = len(staged)

        if result.duplicate_count:
            logger.info(f"Removed {result.duplicate_count} duplicate wallets")
        logger.info(
            f"Loaded {result.added_count} new wallets ({len(self._wallets)} total)",
            extra={"added": result.added_count, "total": len(self._wallets)}
        )
        return result

    def _secret_for(self, public_id: str, staged_by_public_id: Dict[str, WalletRecord]) -> Optional[str]:
        index = self._index_by_public_id.get(public_id)
        if index is not None:
            return self._wallets[index].secret
        staged = staged_by_public_id.get(public_id)
        return staged.secret if staged else None

    def get_all(self) -> List[WalletRecord]:
        """Get all loaded wallets in load order."""
        return list(self._wallets)

    def get_by_index(self, index: int) -> Optional[WalletRecord]:
        """Get a wallet by index, or None if out of range."""
        return self._wallets[index] if 0 <= index < len(self._wallets) else None

    def index_of(self, public_id: str) -> Optional[int]:
        """Get the store index of a wallet by public identity, or None if not loaded."""
        return self._index_by_public_id.get(public_id)

    def update_discovery(self, index: int, balance: int, rent_amount: int, can_close: bool) -> None:
        """
        Write discovery results back onto a wallet.

        Args:
            index: Wallet index
            balance: Native balance in lamports
            rent_amount: Reclaimable rent in lamports
            can_close: Whether any token account can be closed
        """
        if not 0 <= index < len(self._wallets):
            logger.warning(f"Ignoring discovery update for unknown wallet index {index}")
            return
        self._wallets[index] = self._wallets[index].model_copy(update={
            "balance": balance,
            "rent_amount": rent_amount,
            "can_close": can_close or rent_amount > 0,
        })

    def clear(self) -> None:
        """Remove every wallet from the store."""
        count = len(self._wallets)
        self._wallets = []
        self._index_by_public_id = {}
        logger.info(f"Cleared {count} wallets")

    def __len__(self) -> int:
        return len(self._wallets)
