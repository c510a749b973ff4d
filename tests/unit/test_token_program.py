# tests/unit/test_token_program.py
import pytest

from fakes import address_of, token_account_data
from rentcollector.solana.models import ProgramVariant
from rentcollector.solana.token_program import (
    NATIVE_MINT,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    TokenError,
    create_burn_instruction,
    create_close_instruction,
    decode_token_account,
    is_token_account_layout,
    variant_for_program,
)

OWNER = address_of(10)
MINT = address_of(200)
ACCOUNT = address_of(101)


def test_decode_reads_raw_layout():
    decoded = decode_token_account(token_account_data(MINT, OWNER, 123_456_789, state=2))
    assert decoded.mint_id == MINT
    assert decoded.owner_id == OWNER
    assert decoded.amount == 123_456_789
    assert decoded.is_frozen
    assert not decoded.is_native


def test_native_accounts_are_recognised():
    assert decode_token_account(token_account_data(NATIVE_MINT, OWNER, 5, is_native=True)).is_native


def test_short_data_is_rejected():
    with pytest.raises(TokenError):
        decode_token_account(bytes(82))


def test_layout_check_uses_account_type_for_extended_accounts():
    base = token_account_data(MINT, OWNER, 1)
    assert is_token_account_layout(base)
    assert is_token_account_layout(base + bytes([2]) + bytes(8))
    assert not is_token_account_layout(base + bytes([1]) + bytes(8))  # a mint
    assert not is_token_account_layout(bytes(82))


def test_program_variants():
    assert variant_for_program(TOKEN_PROGRAM_ID) == ProgramVariant.STANDARD
    assert variant_for_program(TOKEN_2022_PROGRAM_ID) == ProgramVariant.EXTENDED
    assert variant_for_program("11111111111111111111111111111111") is None


def test_instructions_target_the_account_program():
    burn = create_burn_instruction(ACCOUNT, MINT, OWNER, 1000, ProgramVariant.EXTENDED)
    close = create_close_instruction(ACCOUNT, address_of(50), OWNER, ProgramVariant.STANDARD)
    assert str(burn.program_id) == TOKEN_2022_PROGRAM_ID
    assert bytes(burn.data)[0] == 8
    assert str(close.program_id) == TOKEN_PROGRAM_ID
    assert bytes(close.data)[0] == 9
    assert str(close.accounts[1].pubkey) == address_of(50)
