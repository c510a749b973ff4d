"""
SPL Token program utilities for rent collection.

This module knows the token account data layout shared by the Standard
(Token) and Extended (Token-2022) programs and builds the burn, close and
sweep instructions used by the rent pipeline.
"""

import struct
from typing import Optional
from pydantic import BaseModel
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import BurnParams, CloseAccountParams, burn, close_account

from rentcollector.solana.models import ProgramVariant

# SPL Token program IDs
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

# Mint of wrapped SOL; closing such an account unwraps it, no burn needed
NATIVE_MINT = "So11111111111111111111111111111111111111112"

PROGRAM_IDS = {
    ProgramVariant.STANDARD: TOKEN_PROGRAM_ID,
    ProgramVariant.EXTENDED: TOKEN_2022_PROGRAM_ID,
}

# Token account layout:
# [mint(32)][owner(32)][amount(8)][delegate(4+32)][state(1)][is_native(4+8)]
# [delegated_amount(8)][close_authority(4+32)]
TOKEN_ACCOUNT_SIZE = 165
MINT_OFFSET = 0
OWNER_OFFSET = 32
AMOUNT_OFFSET = 64
STATE_OFFSET = 108
IS_NATIVE_OFFSET = 109

# Token-2022 accounts with extensions carry an account type byte after the base layout
ACCOUNT_TYPE_OFFSET = TOKEN_ACCOUNT_SIZE
ACCOUNT_TYPE_ACCOUNT = 2

STATE_UNINITIALIZED = 0
STATE_INITIALIZED = 1
STATE_FROZEN = 2


class TokenError(Exception):
    """Base exception for token-related errors."""
    pass


class DecodedTokenAccount(BaseModel):
    """Fields read from raw token account data."""
    mint_id: str
    owner_id: str
    amount: int
    state: int
    is_native: bool

    @property
    def is_frozen(self) -> bool:
        return self.state == STATE_FROZEN


def variant_for_program(program_id: str) -> Optional[ProgramVariant]:
    """
    Map a program ID to its token program variant.

    Args:
        program_id: Owner program of an account (string address)

    Returns:
        The variant, or None if the program is not a token program
    """
    for variant, known in PROGRAM_IDS.items():
        if known == program_id:
            return variant
    return None


def is_token_account_layout(data: bytes) -> bool:
    """
    Check that raw data has the shape of a token account.

    Args:
        data: Raw account data

    Returns:
        True for a 165-byte account, or a larger Token-2022 account whose
        account type byte marks it as a token account
    """
    if len(data) == TOKEN_ACCOUNT_SIZE:
        return True
    if len(data) > TOKEN_ACCOUNT_SIZE:
        return data[ACCOUNT_TYPE_OFFSET] == ACCOUNT_TYPE_ACCOUNT
    return False


def decode_token_account(data: bytes) -> DecodedTokenAccount:
    """
    Read mint, owner, amount and state from raw token account data.

    Args:
        data: Raw account data (at least 165 bytes)

    Returns:
        DecodedTokenAccount

    Raises:
        TokenError: If the data is too short to be a token account
    """
    if len(data) < TOKEN_ACCOUNT_SIZE:
        raise TokenError(f"Invalid token account data length: {len(data)}")

    mint = Pubkey.from_bytes(data[MINT_OFFSET:MINT_OFFSET + 32])
    owner = Pubkey.from_bytes(data[OWNER_OFFSET:OWNER_OFFSET + 32])
    (amount,) = struct.unpack_from("<Q", data, AMOUNT_OFFSET)
    state = data[STATE_OFFSET]
    (is_native_tag,) = struct.unpack_from("<I", data, IS_NATIVE_OFFSET)

    return DecodedTokenAccount(
        mint_id=str(mint),
        owner_id=str(owner),
        amount=amount,
        state=state,
        is_native=is_native_tag == 1 or str(mint) == NATIVE_MINT,
    )


def create_burn_instruction(
    token_account: str,
    mint: str,
    owner_address: str,
    amount: int,
    variant: ProgramVariant,
) -> Instruction:
    """
    Create an instruction burning ``amount`` raw units from a token account.

    Args:
        token_account: Token account to burn from (string address)
        mint: Mint of the token account (string address)
        owner_address: Owner authorizing the burn (string address)
        amount: Raw token units to burn
        variant: Token program variant of the account

    Returns:
        Burn instruction
    """
    return burn(
        BurnParams(
            program_id=Pubkey.from_string(PROGRAM_IDS[variant]),
            account=Pubkey.from_string(token_account),
            mint=Pubkey.from_string(mint),
            owner=Pubkey.from_string(owner_address),
            amount=amount,
        )
    )


def create_close_instruction(
    token_account: str,
    destination: str,
    owner_address: str,
    variant: ProgramVariant,
) -> Instruction:
    """
    Create an instruction closing a token account.

    Args:
        token_account: Token account to close (string address)
        destination: Recipient of the reclaimed lamports (string address)
        owner_address: Owner authorizing the close (string address)
        variant: Token program variant of the account

    Returns:
        CloseAccount instruction
    """
    return close_account(
        CloseAccountParams(
            program_id=Pubkey.from_string(PROGRAM_IDS[variant]),
            account=Pubkey.from_string(token_account),
            dest=Pubkey.from_string(destination),
            owner=Pubkey.from_string(owner_address),
        )
    )


def create_sweep_instruction(from_address: str, to_address: str, lamports: int) -> Instruction:
    """
    Create a native transfer of ``lamports`` between two wallets.

    Args:
        from_address: Wallet being drained (string address)
        to_address: Recipient wallet (string address)
        lamports: Amount in lamports

    Returns:
        System transfer instruction
    """
    return transfer(
        TransferParams(
            from_pubkey=Pubkey.from_string(from_address),
            to_pubkey=Pubkey.from_string(to_address),
            lamports=lamports,
        )
    )
