import pytest

from airdrop_whitelist.distribution import claim, distribute
from airdrop_whitelist.eligibility import EligibilityResolver
from airdrop_whitelist.errors import ChainError, InvalidAddressFormat, WhitelistError

from conftest import OUTSIDER, USER1, USER2


def test_distribute_sends_stored_proofs(store, chain):
    store.add([USER1, USER2])
    receipt = distribute(store, chain, [USER1.lower(), USER2, USER1])

    assert receipt.succeeded
    addresses, proofs = chain.batches[0]
    assert addresses == [USER1, USER2]
    assert proofs == [store.get_proof(USER1), store.get_proof(USER2)]


def test_distribute_rejects_non_whitelisted(store, chain):
    store.add([USER1])
    with pytest.raises(WhitelistError, match=OUTSIDER):
        distribute(store, chain, [USER1, OUTSIDER])
    assert chain.batches == []


def test_distribute_rejects_bad_input(store, chain):
    with pytest.raises(WhitelistError):
        distribute(store, chain, [])
    with pytest.raises(InvalidAddressFormat):
        distribute(store, chain, ["0x12"])


def test_distribute_revert(store, chain, monkeypatch):
    store.add([USER1])
    monkeypatch.setattr(chain, "distribute_batch", lambda a, p: chain._receipt(status=0))
    with pytest.raises(ChainError, match="reverted"):
        distribute(store, chain, [USER1])


def test_claim_checks_eligibility_first(store, chain):
    store.add([USER1])
    resolver = EligibilityResolver(store, chain)
    try:
        receipt = claim(resolver, USER1)
        assert receipt.succeeded
        assert chain.claims == [store.get_proof(USER1)]

        chain.claimed.add(USER1)
        with pytest.raises(WhitelistError, match="already claimed"):
            claim(resolver, USER1)
        assert len(chain.claims) == 1
    finally:
        resolver.close()
