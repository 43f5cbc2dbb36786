import time

import pytest

from airdrop_whitelist import merkle
from airdrop_whitelist.chain import ChainRootSync, ClaimEvent, TokenInfo, TxReceipt
from airdrop_whitelist.errors import ChainError, ChainSyncError
from airdrop_whitelist.storage import JsonFileStorage
from airdrop_whitelist.whitelist import WhitelistStore

USER1 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
USER2 = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
USER3 = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
USER4 = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OUTSIDER = "0x1234567890123456789012345678901234567890"


class FakeChain:
    """In-memory airdrop contract. isEligible checks proofs against its own root."""

    def __init__(self):
        self.root = merkle.EMPTY_ROOT
        self.claimed = set()
        self.blacklist = set()
        self.amount = 100 * 10 ** 18
        self.end = 1_900_000_000
        self.is_paused = False
        self.balance = 10_000 * 10 ** 18
        self.fail_updates = None
        self.update_delay = 0.0
        self.revert_updates = False
        self.fail_reads = False
        self.updates = []
        self.batches = []
        self.claims = []
        self.claim_log = []
        self.token = TokenInfo(name="Airdrop Token", symbol="ADT", decimals=18)
        self._block = 100

    def _receipt(self, status=1):
        self._block += 1
        return TxReceipt(tx_hash="0x" + f"{self._block:064x}", block_number=self._block, status=status, gas_used=50_000)

    def _read(self, value):
        if self.fail_reads:
            raise ChainError("connection refused")
        return value

    def amount_per_address(self):
        return self._read(self.amount)

    def merkle_root(self):
        return self._read(self.root)

    def end_time(self):
        return self._read(self.end)

    def paused(self):
        return self._read(self.is_paused)

    def get_available_tokens(self):
        return self._read(self.balance)

    def has_claimed(self, address):
        return self._read(address in self.claimed)

    def blacklisted(self, address):
        return self._read(address in self.blacklist)

    def is_eligible(self, address, proof):
        return self._read(merkle.verify(proof, merkle.leaf_hash(address), self.root))

    def token_info(self):
        return self._read(self.token)

    def claim_events(self, address=None):
        return self._read([e for e in self.claim_log if address is None or e.address == address])

    def record_claim(self, address, amount=None):
        r = self._receipt()
        self.claimed.add(address)
        self.claim_log.append(ClaimEvent(address, self.amount if amount is None else amount, r.tx_hash, r.block_number, 1_700_000_000))
        return r

    def update_merkle_root(self, root):
        if self.update_delay:
            time.sleep(self.update_delay)
        if self.fail_updates is not None:
            raise self.fail_updates
        if self.revert_updates:
            return self._receipt(status=0)
        self.root = root
        self.updates.append(root)
        return self._receipt()

    def claim(self, proof):
        self.claims.append(list(proof))
        return self._receipt()

    def distribute_batch(self, addresses, proofs):
        self.batches.append((list(addresses), [list(p) for p in proofs]))
        return self._receipt()


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def whitelist_path(tmp_path):
    return str(tmp_path / "data" / "whitelist.json")


@pytest.fixture
def storage(whitelist_path):
    return JsonFileStorage(whitelist_path)


@pytest.fixture
def root_sync(chain):
    sync = ChainRootSync(chain, timeout=2.0)
    yield sync
    sync.close()


@pytest.fixture
def store(storage, root_sync):
    return WhitelistStore(storage, root_sync)


@pytest.fixture
def offline_store(storage):
    return WhitelistStore(storage)


@pytest.fixture
def failing_chain(chain):
    chain.fail_updates = ChainSyncError("execution reverted: caller is not the owner")
    return chain
