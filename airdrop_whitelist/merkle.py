"""
Sorted-pair keccak Merkle tree over whitelisted addresses.

Leaf = keccak256(abi.encode(address)), i.e. the 20 address bytes left-padded
to 32. Each parent is keccak256 of its two children in ascending byte order,
the same rule OpenZeppelin's MerkleProof.verify applies on-chain. An odd node
at the end of a level is carried up unchanged.
"""
from typing import Dict, Iterable, List, NamedTuple, Sequence, Union

from eth_utils import keccak, to_bytes

from airdrop_whitelist.addresses import normalize

HashLike = Union[bytes, str]

EMPTY_ROOT = "0x" + "00" * 32


def to_hex(h: bytes) -> str:
    return "0x" + h.hex()


def _as_bytes(h: HashLike) -> bytes:
    if isinstance(h, (bytes, bytearray)):
        return bytes(h)
    return to_bytes(hexstr=h)


def leaf_hash(addr: str) -> bytes:
    a = normalize(addr)
    b20 = bytes.fromhex(a[2:])
    return keccak(b"\x00" * 12 + b20)


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a < b:
        return keccak(a + b)
    else:
        return keccak(b + a)


class MerkleTree:
    def __init__(self, leaves: List[bytes]):
        self.leaves = leaves
        self.tree = self._build_tree(leaves)

    def _build_tree(self, leaves: List[bytes]) -> List[List[bytes]]:
        if not leaves:
            return [[]]
        tree = [leaves]
        current = leaves
        while len(current) > 1:
            nxt = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    nxt.append(hash_pair(current[i], current[i + 1]))
                else:
                    nxt.append(current[i])
            tree.append(nxt)
            current = nxt
        return tree

    def get_root(self) -> bytes:
        return self.tree[-1][0] if self.tree[-1] else b"\x00" * 32

    def get_proof(self, index: int) -> List[bytes]:
        proof = []
        idx = index
        for level in range(len(self.tree) - 1):
            curr = self.tree[level]
            if idx % 2 == 0:
                if idx + 1 < len(curr):
                    proof.append(curr[idx + 1])
            else:
                proof.append(curr[idx - 1])
            idx //= 2
        return proof


class TreeResult(NamedTuple):
    root: str
    proofs: Dict[str, List[str]]


def build_tree(addresses: Iterable[str]) -> TreeResult:
    """Build the whitelist tree for ``addresses``.

    The result depends only on the normalized set of addresses: input order
    and duplicates do not matter. Returns the hex root and a map from each
    checksum address to its hex proof.
    """
    addrs_sorted = sorted({normalize(a) for a in addresses})
    if not addrs_sorted:
        return TreeResult(EMPTY_ROOT, {})

    leaves = [leaf_hash(a) for a in addrs_sorted]
    tree = MerkleTree(leaves)
    proofs = {
        addr: [to_hex(p) for p in tree.get_proof(i)]
        for i, addr in enumerate(addrs_sorted)
    }
    return TreeResult(to_hex(tree.get_root()), proofs)


def verify(proof: Sequence[HashLike], leaf: HashLike, root: HashLike) -> bool:
    try:
        computed = _as_bytes(leaf)
        siblings = [_as_bytes(p) for p in proof]
        expected = _as_bytes(root)
    except ValueError:
        return False
    for p in siblings:
        computed = hash_pair(computed, p)
    return computed == expected
