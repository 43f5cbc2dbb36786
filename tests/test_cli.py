import json

import pytest

from airdrop_whitelist import cli, merkle
from airdrop_whitelist.config import Settings

from conftest import USER1, USER2, FakeChain


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "wl" / "whitelist.json"
    monkeypatch.setenv("WHITELIST_DATA_PATH", str(path))
    for var in ("RPC_URL", "PRIVATE_KEY", "DEPLOYMENT_DATA_PATH", "CHAIN_TIMEOUT_SECONDS", "TOKEN_DECIMALS"):
        monkeypatch.delenv(var, raising=False)
    return path


def run(capsys, *argv):
    code = cli.main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


def test_add_list_check_remove(env, capsys):
    code, out, _ = run(capsys, "add", USER1.lower(), USER2)
    assert code == 0
    result = json.loads(out)
    assert result["addedCount"] == 2
    assert result["contractUpdateStatus"] == "skipped"

    code, out, _ = run(capsys, "list")
    listed = json.loads(out)
    assert listed["count"] == 2
    assert listed["merkleRoot"] == merkle.build_tree([USER1, USER2]).root

    code, out, _ = run(capsys, "check", USER1.lower())
    checked = json.loads(out)
    assert checked["isWhitelisted"] is True
    assert len(checked["proof"]) == 1

    code, out, _ = run(capsys, "remove", USER2)
    assert json.loads(out)["removedCount"] == 1
    assert env.exists()


def test_invalid_address_exits_nonzero(env, capsys):
    code, out, err = run(capsys, "add", "not-an-address")
    assert code == 1
    assert "Invalid address format" in err
    assert out == ""


def test_chain_commands_need_rpc(env, capsys):
    code, _, err = run(capsys, "eligibility", USER1)
    assert code == 1
    assert "RPC_URL" in err


def test_claims_lists_claimed_events(env, capsys, monkeypatch):
    fake = FakeChain()
    fake.record_claim(USER1)
    fake.record_claim(USER2)
    monkeypatch.setenv("RPC_URL", "http://localhost:8545")
    monkeypatch.setattr(cli.Web3AirdropChain, "from_settings", classmethod(lambda cls, settings: fake))

    code, out, _ = run(capsys, "claims", USER1)
    assert code == 0
    result = json.loads(out)
    assert result["count"] == 1
    assert result["claims"][0]["amount"] == "100"
    assert result["claims"][0]["address"] == USER1


def test_proofs_solidity_output(env, capsys):
    run(capsys, "add", USER1, USER2)
    code, out, _ = run(capsys, "proofs", "--solidity")
    assert code == 0
    name = USER1[2:].upper()
    assert f"PROOF_{name} = new bytes32[](1);" in out
    assert f"PROOF_{name}[0] = 0x" in out


def test_solidity_proof_literal():
    text = cli.solidity_proof(USER1, ["0x" + "ab" * 32])
    assert text.splitlines() == [
        f"PROOF_{USER1[2:].upper()} = new bytes32[](1);",
        f"PROOF_{USER1[2:].upper()}[0] = 0x{'ab' * 32};",
    ]


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("WHITELIST_DATA_PATH", "/tmp/x.json")
    monkeypatch.setenv("RPC_URL", "http://localhost:8545")
    monkeypatch.setenv("CHAIN_TIMEOUT_SECONDS", "7.5")
    monkeypatch.setenv("TOKEN_DECIMALS", "6")
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    s = Settings.from_env(dotenv=False)
    assert s.whitelist_path == "/tmp/x.json"
    assert s.chain_enabled
    assert s.private_key is None
    assert s.chain_timeout == 7.5
    assert s.token_decimals == 6


def test_settings_defaults(monkeypatch):
    for var in ("WHITELIST_DATA_PATH", "RPC_URL", "CHAIN_TIMEOUT_SECONDS", "TOKEN_DECIMALS"):
        monkeypatch.delenv(var, raising=False)
    s = Settings.from_env(dotenv=False)
    assert not s.chain_enabled
    assert s.chain_timeout == 120.0
    assert s.token_decimals is None
