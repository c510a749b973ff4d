# tests/unit/test_config_store.py
import json

from rentcollector.state.config_store import ConfigStore


def test_missing_file_is_empty_config(tmp_path):
    store = ConfigStore(str(tmp_path / "config.json"))
    assert store.load() == {}
    assert store.rpc_url is None


def test_update_merges_and_persists(tmp_path):
    path = tmp_path / "data" / "config.json"
    store = ConfigStore(str(path))
    store.update(rpc_url="https://rpc.example.com")
    store.update(fee_payer_key="secret")

    assert json.loads(path.read_text()) == {"rpcUrl": "https://rpc.example.com", "feePayerKey": "secret"}
    assert ConfigStore(str(path)).fee_payer_key == "secret"


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert ConfigStore(str(path)).load() == {}
