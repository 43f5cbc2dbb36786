"""
Configuration
=============

Settings are read from the environment. A ``.env`` file in the working
directory is loaded first if present.

    WHITELIST_DATA_PATH     whitelist JSON file (default: data/whitelist.json)
    RPC_URL                 JSON-RPC endpoint; chain features are off when unset
    PRIVATE_KEY             signer for updateMerkleRoot / distributeBatch / claim
    DEPLOYMENT_DATA_PATH    deployment JSON with "token" and "airdrop" addresses
    CHAIN_TIMEOUT_SECONDS   bound on RPC calls and receipt waits (default: 120)
    TOKEN_DECIMALS          token decimals for formatted amounts (default: read from the token)
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_WHITELIST_PATH = os.path.join("data", "whitelist.json")
DEFAULT_DEPLOYMENT_PATH = os.path.join("data", "deployment.json")


@dataclass(frozen=True)
class Settings:
    whitelist_path: str = DEFAULT_WHITELIST_PATH
    rpc_url: Optional[str] = None
    private_key: Optional[str] = None
    deployment_path: str = DEFAULT_DEPLOYMENT_PATH
    chain_timeout: float = 120.0
    token_decimals: Optional[int] = None

    @property
    def chain_enabled(self) -> bool:
        return bool(self.rpc_url)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        decimals = os.getenv("TOKEN_DECIMALS")
        return cls(
            whitelist_path=os.getenv("WHITELIST_DATA_PATH", DEFAULT_WHITELIST_PATH),
            rpc_url=os.getenv("RPC_URL") or None,
            private_key=os.getenv("PRIVATE_KEY") or None,
            deployment_path=os.getenv("DEPLOYMENT_DATA_PATH", DEFAULT_DEPLOYMENT_PATH),
            chain_timeout=float(os.getenv("CHAIN_TIMEOUT_SECONDS", "120")),
            token_decimals=int(decimals) if decimals else None,
        )
