"""
WhitelistStore: the authoritative off-chain whitelist.

Holds the address set together with the Merkle root and proof map derived
from it. Every mutation runs normalize -> rebuild -> persist -> publish under
one lock; readers always see a complete state because the new state is only
swapped in once it has been saved.
"""
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from airdrop_whitelist import merkle
from airdrop_whitelist.addresses import normalize, normalize_all
from airdrop_whitelist.chain import ChainRootSync
from airdrop_whitelist.errors import (
    ChainError,
    ChainSyncError,
    InvalidAddressFormat,
    StorageError,
    WhitelistError,
)
from airdrop_whitelist.storage import JsonFileStorage, WhitelistSnapshot

logger = logging.getLogger(__name__)


class SyncStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SyncResult:
    root: str
    status: SyncStatus
    tx_ref: Optional[str] = None
    block_ref: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"merkleRoot": self.root, "contractUpdateStatus": self.status.value}
        if self.tx_ref:
            out["transactionHash"] = self.tx_ref
            out["blockNumber"] = self.block_ref
        if self.error:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class AddResult:
    added_count: int
    total_count: int
    root: str
    sync: SyncResult

    @property
    def contract_update_status(self) -> str:
        return self.sync.status.value

    def to_dict(self) -> Dict[str, Any]:
        return {"addedCount": self.added_count, "totalCount": self.total_count, **self.sync.to_dict()}


@dataclass(frozen=True)
class RemoveResult:
    removed_count: int
    total_count: int
    root: str
    sync: SyncResult

    @property
    def contract_update_status(self) -> str:
        return self.sync.status.value

    def to_dict(self) -> Dict[str, Any]:
        return {"removedCount": self.removed_count, "totalCount": self.total_count, **self.sync.to_dict()}


@dataclass(frozen=True)
class _State:
    addresses: FrozenSet[str]
    root: str
    proofs: Dict[str, List[str]]

    def snapshot(self) -> WhitelistSnapshot:
        return WhitelistSnapshot(sorted(self.addresses), self.root, self.proofs)


def _derive(addresses) -> _State:
    tree = merkle.build_tree(addresses)
    return _State(frozenset(tree.proofs), tree.root, tree.proofs)


class WhitelistStore:
    def __init__(self, storage: JsonFileStorage, root_sync: Optional[ChainRootSync] = None):
        self.storage = storage
        self.root_sync = root_sync
        self._lock = threading.Lock()
        self._state = self._load()

    def _load(self) -> _State:
        snapshot = self.storage.load()
        if snapshot is None:
            logger.info("Whitelist file not found, creating empty whitelist")
            state = _derive([])
            self.storage.save(state.snapshot())
            return state

        try:
            state = _derive(normalize_all(snapshot.addresses))
            stored_proofs = {normalize(a): p for a, p in snapshot.proof_map.items()}
        except (InvalidAddressFormat, TypeError) as e:
            path = self.storage.path
            raise StorageError(f"Corrupt whitelist data in {path}: {e}", path) from e
        if snapshot.root != state.root or stored_proofs != state.proofs:
            logger.warning(
                "Stored merkle root %s does not match rebuilt root %s, saving rebuilt state",
                snapshot.root or "<empty>", state.root,
            )
            self.storage.save(state.snapshot())
        logger.info("Loaded %d addresses from whitelist", len(state.addresses))
        return state

    def get_all(self) -> List[str]:
        return sorted(self._state.addresses)

    def get_root(self) -> str:
        return self._state.root

    def is_whitelisted(self, address: str) -> bool:
        return normalize(address) in self._state.addresses

    def get_proof(self, address: str) -> Optional[List[str]]:
        """Proof for ``address`` against the local root, or None if it is not whitelisted."""
        proof = self._state.proofs.get(normalize(address))
        return list(proof) if proof is not None else None

    def lookup(self, address: str) -> Tuple[str, Optional[List[str]]]:
        """Local root and proof for ``address``, read from one state."""
        state = self._state
        proof = state.proofs.get(normalize(address))
        return state.root, (list(proof) if proof is not None else None)

    def verify_proof(self, address: str, proof: Sequence[str]) -> bool:
        return merkle.verify(proof, merkle.leaf_hash(address), self._state.root)

    def add(self, addresses: Sequence[str]) -> AddResult:
        if not addresses:
            raise WhitelistError("No addresses provided")
        incoming = set(normalize_all(addresses))

        with self._lock:
            current = self._state
            new = incoming - current.addresses
            if not new:
                return AddResult(0, len(current.addresses), current.root, SyncResult(current.root, SyncStatus.SKIPPED))
            state = self._commit(current.addresses | new)
            logger.info("Added %d addresses to whitelist", len(new))
            sync = self._publish(state.root)
        return AddResult(len(new), len(state.addresses), state.root, sync)

    def remove(self, addresses: Sequence[str]) -> RemoveResult:
        if not addresses:
            raise WhitelistError("No addresses provided")
        outgoing = set(normalize_all(addresses))

        with self._lock:
            current = self._state
            removed = outgoing & current.addresses
            if not removed:
                return RemoveResult(0, len(current.addresses), current.root, SyncResult(current.root, SyncStatus.SKIPPED))
            state = self._commit(current.addresses - removed)
            logger.info("Removed %d addresses from whitelist", len(removed))
            sync = self._publish(state.root)
        return RemoveResult(len(removed), len(state.addresses), state.root, sync)

    def sync_root(self, force: bool = True) -> SyncResult:
        """Push the current local root on-chain.

        With ``force=False`` the chain root is read first and nothing is sent
        when it already matches.
        """
        with self._lock:
            root = self._state.root
            if self.root_sync is None:
                return SyncResult(root, SyncStatus.SKIPPED, error="no chain configured")
            if not force:
                try:
                    chain_root = self.root_sync.chain_root()
                except ChainError as e:
                    return SyncResult(root, SyncStatus.FAILED, error=e.reason)
                if chain_root.lower() == root.lower():
                    logger.info("Chain merkle root already matches local root %s", root)
                    return SyncResult(root, SyncStatus.SKIPPED)
                logger.warning("Chain merkle root %s differs from local root %s", chain_root, root)
            return self._publish(root)

    def reconcile(self) -> SyncResult:
        return self.sync_root(force=False)

    def _commit(self, addresses) -> _State:
        # persist before swapping so a failed save leaves readers on the old state
        state = _derive(addresses)
        self.storage.save(state.snapshot())
        self._state = state
        logger.info("Merkle tree regenerated with root: %s", state.root)
        return state

    def _publish(self, root: str) -> SyncResult:
        if self.root_sync is None:
            return SyncResult(root, SyncStatus.SKIPPED)
        try:
            receipt = self.root_sync.push(root)
        except ChainSyncError as e:
            logger.error("Failed to update Merkle root in smart contract: %s", e.reason)
            return SyncResult(root, SyncStatus.FAILED, error=e.reason)
        return SyncResult(root, SyncStatus.SUCCESS, tx_ref=receipt.tx_hash, block_ref=receipt.block_number)
