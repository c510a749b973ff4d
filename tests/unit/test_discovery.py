# tests/unit/test_discovery.py
import asyncio

import pytest

from fakes import FakeLedgerClient, FakeTokenAccount, RecordingSleep, address_of
from rentcollector.errors import DiscoveryError, LedgerError
from rentcollector.solana.discovery import TokenAccountDiscovery, default_strategies
from rentcollector.solana.models import ProgramVariant
from rentcollector.solana.retry_policy import RetryPolicy

OWNER = address_of(10)
OTHER_OWNER = address_of(11)
MINT = address_of(200)
A, B, C = address_of(101), address_of(102), address_of(103)


def make_discovery(ledger):
    retry = RetryPolicy(sleep=RecordingSleep())
    return TokenAccountDiscovery(default_strategies(ledger, retry))


def ledger_with_accounts(*account_ids, variant=ProgramVariant.STANDARD):
    ledger = FakeLedgerClient()
    for account_id in account_ids:
        ledger.add_token_account(account_id, FakeTokenAccount(OWNER, MINT, 5, 2_039_280, variant=variant))
    return ledger


def test_union_of_strategies_without_duplicates():
    ledger = ledger_with_accounts(A, B, C)
    ledger.hidden["owner_index"] = {C}       # strategy 1 sees {A, B}
    ledger.hidden["program_scan"] = {A}      # strategy 2 sees {B, C}
    ledger.errors["get_parsed_token_accounts_by_owner"] = LedgerError("parsed lookup unavailable")

    records = asyncio.run(make_discovery(ledger).discover(OWNER))

    assert sorted(r.account_id for r in records) == sorted([A, B, C])
    assert len(records) == 3


def test_first_strategy_wins_on_duplicates():
    ledger = ledger_with_accounts(A)
    records = asyncio.run(make_discovery(ledger).discover(OWNER))
    assert len(records) == 1
    assert records[0].token_amount == 5
    assert records[0].mint_id == MINT
    assert records[0].program_variant == ProgramVariant.STANDARD


def test_both_program_variants_are_searched():
    ledger = ledger_with_accounts(A)
    ledger.add_token_account(B, FakeTokenAccount(OWNER, MINT, 0, 2_074_080, variant=ProgramVariant.EXTENDED))

    records = asyncio.run(make_discovery(ledger).discover(OWNER))

    variants = {r.account_id: r.program_variant for r in records}
    assert variants == {A: ProgramVariant.STANDARD, B: ProgramVariant.EXTENDED}


def test_extended_accounts_with_extensions_are_found_by_program_scan():
    ledger = FakeLedgerClient()
    # account type byte 2 marks a token account, followed by extension data
    ledger.add_token_account(A, FakeTokenAccount(
        OWNER, MINT, 1, 2_100_000, variant=ProgramVariant.EXTENDED, extension=bytes([2]) + bytes(12)
    ))
    ledger.hidden["owner_index"] = {A}
    ledger.hidden["parsed"] = {A}

    records = asyncio.run(make_discovery(ledger).discover(OWNER))
    assert [r.account_id for r in records] == [A]


def test_accounts_of_other_owners_are_ignored():
    ledger = ledger_with_accounts(A)
    ledger.add_token_account(B, FakeTokenAccount(OTHER_OWNER, MINT, 1, 2_039_280))

    records = asyncio.run(make_discovery(ledger).discover(OWNER))
    assert [r.account_id for r in records] == [A]


def test_all_strategies_failing_is_a_discovery_error():
    ledger = ledger_with_accounts(A)
    ledger.errors["get_token_accounts_by_owner"] = LedgerError("down")
    ledger.errors["get_program_accounts"] = LedgerError("down")
    ledger.errors["get_parsed_token_accounts_by_owner"] = LedgerError("down")

    with pytest.raises(DiscoveryError):
        asyncio.run(make_discovery(ledger).discover(OWNER))


def test_rate_limited_strategy_is_retried():
    ledger = ledger_with_accounts(A)
    ledger.hidden["program_scan"] = {A}
    ledger.hidden["parsed"] = {A}
    ledger.rate_limited["get_token_accounts_by_owner"] = 2

    records = asyncio.run(make_discovery(ledger).discover(OWNER))
    assert [r.account_id for r in records] == [A]
