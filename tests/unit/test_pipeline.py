# tests/unit/test_pipeline.py
import asyncio

import pytest

from fakes import (
    FakeLedgerClient,
    FakeTokenAccount,
    RecordingSleep,
    address_of,
    make_context,
    make_keypair,
    secret_of,
)
from rentcollector.errors import TransactionError, ValidationError, WalletProcessingError
from rentcollector.solana.pipeline import PipelineState, RentPipeline
from rentcollector.solana.token_program import NATIVE_MINT
from rentcollector.solana.wallet_store import WalletStore

FEE_PAYER = make_keypair(50)
WALLET = make_keypair(1)
OWNER = str(WALLET.pubkey())
MINT = address_of(200)
A, B, C = address_of(101), address_of(102), address_of(103)


def setup(*accounts, balance=0):
    ledger = FakeLedgerClient()
    ledger.balances[str(FEE_PAYER.pubkey())] = 1_000_000_000
    ledger.balances[OWNER] = balance
    for account_id, account in accounts:
        ledger.add_token_account(account_id, account)
    store = WalletStore()
    store.load_from_text(secret_of(WALLET))
    sleep = RecordingSleep()
    return ledger, store, RentPipeline(make_context(ledger, store, FEE_PAYER, sleep)), sleep


def test_zero_lamport_account_is_never_counted_or_closed():
    ledger, store, pipeline, _ = setup(
        (A, FakeTokenAccount(OWNER, MINT, 0, 0)),
        (B, FakeTokenAccount(OWNER, MINT, 0, 1)),
    )
    result = asyncio.run(pipeline.process_wallet(0))

    assert store.get_by_index(0).rent_amount == 1
    assert store.get_by_index(0).can_close is True
    assert result.token_accounts_closed == 1
    assert result.rent_recovered == 1
    assert A in ledger.token_accounts
    assert B not in ledger.token_accounts


def test_positive_balance_is_eligible_below_rent_exemption():
    # far below the 2,039,280 lamport rent exemption minimum
    ledger, store, pipeline, _ = setup((A, FakeTokenAccount(OWNER, MINT, 0, 1000)))
    result = asyncio.run(pipeline.process_wallet(0))

    assert store.get_by_index(0).rent_amount == 1000
    assert result.rent_recovered == 1000
    assert ledger.sent == [["close"]]


def test_burn_precedes_close_and_rent_goes_to_fee_payer():
    ledger, _, pipeline, _ = setup((A, FakeTokenAccount(OWNER, MINT, 1000, 2_039_280)))
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == [["burn"], ["close"]]
    assert result.tokens_burned == 1
    assert result.token_accounts_closed == 1
    assert result.rent_recovered == 2_039_280
    # two transaction fees paid by the fee payer
    assert ledger.balances[str(FEE_PAYER.pubkey())] == 1_000_000_000 + 2_039_280 - 2 * 5000
    assert pipeline.state == PipelineState.DONE


def test_failed_standalone_burn_is_folded_into_the_close():
    ledger, _, pipeline, _ = setup((A, FakeTokenAccount(OWNER, MINT, 1000, 2_039_280)))
    real_send = ledger.send_and_confirm
    attempts = []

    async def flaky_send(transaction):
        attempts.append(transaction)
        if len(attempts) == 1:
            raise TransactionError("blockhash not found")
        return await real_send(transaction)

    ledger.send_and_confirm = flaky_send
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == [["burn", "close"]]
    assert result.tokens_burned == 1
    assert result.token_accounts_closed == 1


def test_wrapped_sol_is_closed_without_burn():
    ledger, _, pipeline, _ = setup((A, FakeTokenAccount(OWNER, NATIVE_MINT, 500_000, 2_539_280, is_native=True)))
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == [["close"]]
    assert result.tokens_burned == 0
    assert result.rent_recovered == 2_539_280


def test_frozen_account_is_skipped():
    ledger, store, pipeline, _ = setup((A, FakeTokenAccount(OWNER, MINT, 10, 2_039_280, state=2)))
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == []
    assert store.get_by_index(0).can_close is False
    assert result.token_accounts_closed == 0


def test_one_failing_close_does_not_fail_the_wallet():
    ledger, _, pipeline, sleep = setup(
        (A, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)),
        (B, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)),
        balance=100_000,
    )
    real_send = ledger.send_and_confirm
    sends = []

    async def fail_first_close(transaction):
        sends.append(transaction)
        if len(sends) == 1:
            raise TransactionError("simulation failed")
        return await real_send(transaction)

    ledger.send_and_confirm = fail_first_close
    result = asyncio.run(pipeline.process_wallet(0))

    assert result.failed is False
    assert result.token_accounts_closed == 1
    assert result.rent_recovered == 2_039_280
    assert result.sol_transferred == 100_000
    assert 1.0 in sleep.waits  # account pacing between the two closes


def test_wallet_without_token_accounts_goes_straight_to_sweep():
    ledger, _, pipeline, _ = setup(balance=500_000)
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == [["transfer"]]
    assert result.sol_transferred == 500_000
    assert result.total_recovered == 500_000
    assert result.model_dump()["total_recovered"] == 500_000
    assert ledger.balances[OWNER] == 0


def test_dust_balance_is_not_swept():
    ledger, _, pipeline, _ = setup(balance=4_999)
    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == []
    assert result.sol_transferred == 0


def test_fee_payer_wallet_is_not_swept_to_itself():
    ledger = FakeLedgerClient()
    ledger.balances[str(FEE_PAYER.pubkey())] = 1_000_000_000
    ledger.add_token_account(A, FakeTokenAccount(str(FEE_PAYER.pubkey()), MINT, 0, 2_039_280))
    store = WalletStore()
    store.load_from_text(secret_of(FEE_PAYER))
    pipeline = RentPipeline(make_context(ledger, store, FEE_PAYER))

    result = asyncio.run(pipeline.process_wallet(0))

    assert ledger.sent == [["close"]]
    assert result.rent_recovered == 2_039_280
    assert result.sol_transferred == 0


def test_sweep_failure_raises_with_partial_result():
    ledger, _, pipeline, _ = setup((A, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)), balance=500_000)
    ledger.failing_transfers_from = {OWNER}

    with pytest.raises(WalletProcessingError) as excinfo:
        asyncio.run(pipeline.process_wallet(0))

    partial = excinfo.value.result
    assert partial.failed is True
    assert partial.rent_recovered == 2_039_280
    assert partial.sol_transferred == 0
    assert pipeline.state == PipelineState.FAILED


def test_unknown_index_is_a_validation_error():
    _, _, pipeline, _ = setup()
    with pytest.raises(ValidationError):
        asyncio.run(pipeline.process_wallet(3))


def test_rent_exemption_is_looked_up_once_per_data_size():
    ledger, _, pipeline, _ = setup(
        (A, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)),
        (B, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)),
        (C, FakeTokenAccount(OWNER, MINT, 0, 2_039_280)),
    )
    asyncio.run(pipeline.process_wallet(0))
    assert ledger.calls["get_minimum_balance_for_rent_exemption"] == 1
