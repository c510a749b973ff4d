# tests/unit/test_integration.py
import asyncio

import pytest

from fakes import FakeLedgerClient, FakeTokenAccount, RecordingSleep, address_of, make_keypair, secret_of
from rentcollector.errors import ConfigurationError, KeyFormatError, ValidationError
from rentcollector.solana.integration import RentCollectorService
from rentcollector.solana.retry_policy import RetryPolicy
from rentcollector.solana.run_context import PacingPolicy

FEE_PAYER = make_keypair(50)
W1, W2, W3 = make_keypair(1), make_keypair(2), make_keypair(3)


def make_service(ledger):
    sleep = RecordingSleep()
    return RentCollectorService(
        ledger_factory=lambda url: ledger,
        retry=RetryPolicy(sleep=sleep),
        pacing=PacingPolicy(sleep=sleep),
    )


def write_wallets(tmp_path, name, *keypairs):
    path = tmp_path / name
    path.write_text("\n".join(secret_of(kp) for kp in keypairs) + "\n")
    return str(path)


def configured_service(ledger):
    service = make_service(ledger)
    service.set_rpc_endpoint("https://rpc.example.com")
    service.set_fee_payer(secret_of(FEE_PAYER))
    return service


def test_load_wallets_accumulates_and_reports_new_files(tmp_path):
    service = make_service(FakeLedgerClient())
    first = write_wallets(tmp_path, "a.txt", W1, W2)
    second = write_wallets(tmp_path, "b.txt", W2, W3)

    response = service.load_wallets([first])
    assert response.count == 2
    assert response.new_files == ["a.txt"]

    response = service.load_wallets([first, second])
    assert response.count == 3
    assert response.new_wallets_count == 1
    assert response.new_files == ["b.txt"]


def test_load_wallets_continues_past_a_bad_file(tmp_path):
    service = make_service(FakeLedgerClient())
    good = write_wallets(tmp_path, "good.txt", W1)
    empty = tmp_path / "empty.txt"
    empty.write_text("no keys here\n")
    missing = str(tmp_path / "missing.txt")

    response = service.load_wallets([str(empty), missing, good])

    assert response.count == 1
    assert response.new_files == ["good.txt"]
    assert set(response.errors) == {str(empty), missing}


def test_load_wallets_requires_paths():
    with pytest.raises(ValidationError):
        make_service(FakeLedgerClient()).load_wallets([])


def test_settings_are_validated():
    service = make_service(FakeLedgerClient())
    with pytest.raises(ValidationError):
        service.set_rpc_endpoint("ftp://rpc.example.com")
    with pytest.raises(KeyFormatError):
        service.set_fee_payer("not-a-key")
    service.set_fee_payer(secret_of(FEE_PAYER))
    assert service.fee_payer_id == str(FEE_PAYER.pubkey())


def test_run_requires_endpoint_and_fee_payer(tmp_path):
    service = make_service(FakeLedgerClient())
    service.load_wallets([write_wallets(tmp_path, "w.txt", W1)])

    with pytest.raises(ConfigurationError):
        asyncio.run(service.process_all_wallets())

    service.set_rpc_endpoint("https://rpc.example.com")
    with pytest.raises(ConfigurationError):
        asyncio.run(service.process_all_wallets())


def test_run_without_wallets_is_a_validation_error():
    service = configured_service(FakeLedgerClient())
    with pytest.raises(ValidationError):
        asyncio.run(service.process_all_wallets())


def test_process_all_wallets_closes_the_ledger(tmp_path):
    ledger = FakeLedgerClient()
    ledger.balances[str(FEE_PAYER.pubkey())] = 1_000_000_000
    ledger.balances[str(W1.pubkey())] = 250_000
    service = configured_service(ledger)
    service.load_wallets([write_wallets(tmp_path, "w.txt", W1)])

    summary = asyncio.run(service.process_all_wallets())

    assert summary.successful_wallets == 1
    assert summary.total_recovered == 250_000
    assert ledger.closed is True


def test_process_single_wallet(tmp_path):
    ledger = FakeLedgerClient()
    ledger.balances[str(FEE_PAYER.pubkey())] = 1_000_000_000
    ledger.add_token_account(address_of(101), FakeTokenAccount(str(W2.pubkey()), address_of(200), 0, 2_039_280))
    service = configured_service(ledger)
    service.load_wallets([write_wallets(tmp_path, "w.txt", W1, W2)])

    result = asyncio.run(service.process_single_wallet(1))
    assert result.wallet_id == str(W2.pubkey())
    assert result.rent_recovered == 2_039_280

    with pytest.raises(ValidationError):
        asyncio.run(service.process_single_wallet(7))


def test_process_single_wallet_reports_failure_as_result(tmp_path):
    ledger = FakeLedgerClient()
    ledger.balances[str(W1.pubkey())] = 250_000
    ledger.failing_transfers_from = {str(W1.pubkey())}
    service = configured_service(ledger)
    service.load_wallets([write_wallets(tmp_path, "w.txt", W1)])

    result = asyncio.run(service.process_single_wallet(0))
    assert result.failed is True
    assert result.error


def test_clear_wallets_forgets_files(tmp_path):
    service = make_service(FakeLedgerClient())
    path = write_wallets(tmp_path, "w.txt", W1)
    service.load_wallets([path])
    service.clear_wallets()

    response = service.load_wallets([path])
    assert response.count == 1
    assert response.new_files == ["w.txt"]


def test_load_wallets_accepts_a_byte_order_mark(tmp_path):
    service = make_service(FakeLedgerClient())
    path = tmp_path / "notepad.txt"
    path.write_bytes(b"\xef\xbb\xbf" + (secret_of(W1) + "\r\n" + secret_of(W2) + "\r\n").encode())

    response = service.load_wallets([str(path)])

    assert response.errors == {}
    assert [w.public_id for w in response.wallets] == [str(W1.pubkey()), str(W2.pubkey())]
