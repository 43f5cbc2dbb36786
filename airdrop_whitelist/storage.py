import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from airdrop_whitelist.errors import StorageError

logger = logging.getLogger(__name__)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


@dataclass
class WhitelistSnapshot:
    addresses: List[str] = field(default_factory=list)
    root: str = ""
    proof_map: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "addresses": list(self.addresses),
            "merkleRoot": self.root,
            "addressToProofMap": {a: list(p) for a, p in self.proof_map.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WhitelistSnapshot":
        if not isinstance(data, dict) or not isinstance(data.get("addresses"), list):
            raise ValueError("whitelist data needs an 'addresses' list")
        proof_map = data.get("addressToProofMap") or {}
        if not isinstance(proof_map, dict):
            raise ValueError("'addressToProofMap' must be an object")
        for addr, proof in proof_map.items():
            if not isinstance(proof, list) or not all(isinstance(p, str) for p in proof):
                raise ValueError(f"proof for {addr} must be a list of hex strings")
        return cls(
            addresses=list(data["addresses"]),
            root=data.get("merkleRoot") or "",
            proof_map=dict(proof_map),
        )


class JsonFileStorage:
    """Whole-file JSON persistence for a whitelist snapshot.

    Every save rewrites the file through a temporary sibling and
    ``os.replace``, so readers never see a half-written whitelist.
    """

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[WhitelistSnapshot]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return WhitelistSnapshot.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to load whitelist from {self.path}: {e}", self.path) from e

    def save(self, snapshot: WhitelistSnapshot) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".whitelist-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            # mkstemp creates the file 0600
            os.chmod(tmp_path, 0o644 & ~_current_umask())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Failed to save whitelist to {self.path}: {e}", self.path) from e
        logger.info("Whitelist saved with %d addresses", len(snapshot.addresses))
