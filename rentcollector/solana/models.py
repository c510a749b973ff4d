"""
Models for rent collection.
"""
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, computed_field
from datetime import datetime


class ProgramVariant(str, Enum):
    """Token program an account belongs to."""
    STANDARD = "Standard"
    EXTENDED = "Extended"


class WalletRecord(BaseModel):
    """A loaded wallet and what discovery found in it."""
    secret: str
    public_id: str
    balance: int = 0
    rent_amount: int = 0
    can_close: bool = False
    loaded_at: datetime = Field(default_factory=datetime.now)


class TokenAccountRecord(BaseModel):
    """A token account owned by a wallet."""
    account_id: str
    owner_id: str
    program_variant: ProgramVariant
    token_amount: int = 0
    mint_id: str
    lamports: int = 0


class AccountSnapshot(BaseModel):
    """Raw state of a ledger account."""
    account_id: str
    lamports: int
    owner_program: str
    data: bytes = b""


class ParsedTokenAccount(BaseModel):
    """A token account as returned by a parsed (jsonParsed) query."""
    account_id: str
    lamports: int
    owner_program: str
    info: Dict = Field(default_factory=dict)


class RentCollectionResult(BaseModel):
    """Outcome of processing one wallet."""
    wallet_id: str
    token_accounts_closed: int = 0
    tokens_burned: int = 0
    rent_recovered: int = 0
    sol_transferred: int = 0
    failed: bool = False
    error: Optional[str] = None

    @computed_field
    @property
    def total_recovered(self) -> int:
        return self.rent_recovered + self.sol_transferred


class RentCollectionSummary(BaseModel):
    """Outcome of a run over all wallets."""
    total_wallets: int = 0
    successful_wallets: int = 0
    failed_wallets: int = 0
    total_recovered: int = 0
    aborted: bool = False
    results: List[RentCollectionResult] = Field(default_factory=list)


class ProgressEvent(BaseModel):
    """Progress update emitted around each wallet."""
    current: int
    total: int
    wallet_id: str
    status: str


class LoadDiagnostic(BaseModel):
    """Advisory (non-blocking) finding from wallet ingestion."""
    kind: str  # duplicate_secret, conflicting_secret, address_mismatch
    public_id: str
    message: str
    provided_address: Optional[str] = None


class LoadResult(BaseModel):
    """Result of loading one wallet text."""
    added_count: int = 0
    duplicate_count: int = 0
    diagnostics: List[LoadDiagnostic] = Field(default_factory=list)


class LoadWalletsResponse(BaseModel):
    """Result of loading one or more wallet files."""
    wallets: List[WalletRecord] = Field(default_factory=list)
    count: int = 0
    new_files: List[str] = Field(default_factory=list)
    new_wallets_count: int = 0
    diagnostics: List[LoadDiagnostic] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
