from airdrop_whitelist.addresses import normalize
from airdrop_whitelist.errors import (
    ChainError,
    ChainSyncError,
    InvalidAddressFormat,
    StorageError,
    WhitelistError,
)
from airdrop_whitelist.merkle import EMPTY_ROOT, MerkleTree, build_tree, leaf_hash, verify

__version__ = "0.1.0"

__all__ = [
    "EMPTY_ROOT",
    "ChainError",
    "ChainSyncError",
    "InvalidAddressFormat",
    "MerkleTree",
    "StorageError",
    "WhitelistError",
    "build_tree",
    "leaf_hash",
    "normalize",
    "verify",
]
