"""
Airdrop contract access and Merkle root publishing.

``AirdropChain`` is the narrow view of the airdrop and token contracts the
whitelist needs. ``Web3AirdropChain`` implements it over JSON-RPC, and
``ChainRootSync`` publishes a new root through it with a bounded wait.
"""
import concurrent.futures
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from eth_utils import to_bytes
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from airdrop_whitelist.errors import ChainError, ChainSyncError

logger = logging.getLogger(__name__)


def _fn(name, inputs, outputs=None, mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(inputs)],
        "outputs": [{"name": "", "type": t} for t in (outputs or [])],
    }


AIRDROP_ABI = [
    _fn("amountPerAddress", [], ["uint256"]),
    _fn("merkleRoot", [], ["bytes32"]),
    _fn("endTime", [], ["uint256"]),
    _fn("paused", [], ["bool"]),
    _fn("hasClaimed", ["address"], ["bool"]),
    _fn("isEligible", ["address", "bytes32[]"], ["bool"]),
    _fn("getAvailableTokens", [], ["uint256"]),
    _fn("claim", ["bytes32[]"], mutability="nonpayable"),
    _fn("distributeBatch", ["address[]", "bytes32[][]"], mutability="nonpayable"),
    _fn("updateMerkleRoot", ["bytes32"], mutability="nonpayable"),
    {
        "type": "event",
        "name": "Claimed",
        "anonymous": False,
        "inputs": [
            {"name": "account", "type": "address", "indexed": True},
            {"name": "amount", "type": "uint256", "indexed": False},
        ],
    },
]

TOKEN_ABI = [
    _fn("name", [], ["string"]),
    _fn("symbol", [], ["string"]),
    _fn("decimals", [], ["uint8"]),
    _fn("blacklisted", ["address"], ["bool"]),
    _fn("balanceOf", ["address"], ["uint256"]),
]


@dataclass
class TxReceipt:
    tx_hash: str
    block_number: Optional[int]
    status: int
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class ClaimEvent:
    address: str
    amount: int
    tx_hash: str
    block_number: int
    timestamp: Optional[int] = None


@dataclass
class TokenInfo:
    name: str
    symbol: str
    decimals: int


@dataclass
class AirdropParameters:
    amount_per_address: int
    merkle_root: str
    end_time: int
    paused: bool
    available_tokens: int


class AirdropChain(Protocol):
    def amount_per_address(self) -> int: ...
    def merkle_root(self) -> str: ...
    def end_time(self) -> int: ...
    def paused(self) -> bool: ...
    def has_claimed(self, address: str) -> bool: ...
    def is_eligible(self, address: str, proof: Sequence[str]) -> bool: ...
    def blacklisted(self, address: str) -> bool: ...
    def get_available_tokens(self) -> int: ...
    def token_info(self) -> TokenInfo: ...
    def claim_events(self, address: Optional[str] = None) -> List[ClaimEvent]: ...
    def update_merkle_root(self, root: str) -> TxReceipt: ...
    def claim(self, proof: Sequence[str]) -> TxReceipt: ...
    def distribute_batch(self, addresses: Sequence[str], proofs: Sequence[Sequence[str]]) -> TxReceipt: ...


def get_airdrop_parameters(chain: AirdropChain) -> AirdropParameters:
    return AirdropParameters(
        amount_per_address=chain.amount_per_address(),
        merkle_root=chain.merkle_root(),
        end_time=chain.end_time(),
        paused=chain.paused(),
        available_tokens=chain.get_available_tokens(),
    )


def total_claimed(chain: AirdropChain) -> int:
    return sum(e.amount for e in chain.claim_events())


def load_deployment(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ChainError(f"Failed to load deployment data from {path}: {e}") from e
    if not data.get("token") or not data.get("airdrop"):
        raise ChainError(f"Deployment data at {path} needs 'token' and 'airdrop' addresses")
    return data


def _hash_arg(h: str) -> bytes:
    b = to_bytes(hexstr=h)
    if len(b) != 32:
        raise ChainError(f"Expected a 32-byte hash, got {h}")
    return b


class Web3AirdropChain:
    def __init__(
        self,
        w3: Web3,
        airdrop_address: str,
        token_address: str,
        tx_timeout: float = 120.0,
        from_block: int = 0,
    ):
        self.w3 = w3
        self.tx_timeout = tx_timeout
        # deployment block; event scans start here
        self.from_block = from_block
        self._block_times: Dict[int, int] = {}
        self.airdrop = w3.eth.contract(address=Web3.to_checksum_address(airdrop_address), abi=AIRDROP_ABI)
        self.token = w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=TOKEN_ABI)

    @classmethod
    def from_settings(cls, settings) -> "Web3AirdropChain":
        deployment = load_deployment(settings.deployment_path)
        w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.chain_timeout}))
        if settings.private_key:
            account = w3.eth.account.from_key(settings.private_key)
            w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
            w3.eth.default_account = account.address
        logger.info("Airdrop contract %s, token %s", deployment["airdrop"], deployment["token"])
        return cls(
            w3,
            deployment["airdrop"],
            deployment["token"],
            tx_timeout=settings.chain_timeout,
            from_block=int(deployment.get("blockNumber") or 0),
        )

    def _call(self, what: str, fn):
        try:
            return fn.call()
        except Exception as e:
            raise ChainError(f"Failed to read {what}: {e}") from e

    def _transact(self, what: str, fn) -> TxReceipt:
        try:
            tx_hash = fn.transact()
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except Exception as e:
            raise ChainSyncError(f"Failed to {what}: {e}") from e
        return TxReceipt(
            tx_hash="0x" + bytes(receipt["transactionHash"]).hex(),
            block_number=receipt.get("blockNumber"),
            status=receipt.get("status", 0),
            gas_used=receipt.get("gasUsed"),
        )

    def amount_per_address(self) -> int:
        return self._call("amountPerAddress", self.airdrop.functions.amountPerAddress())

    def merkle_root(self) -> str:
        return "0x" + bytes(self._call("merkleRoot", self.airdrop.functions.merkleRoot())).hex()

    def end_time(self) -> int:
        return self._call("endTime", self.airdrop.functions.endTime())

    def paused(self) -> bool:
        return self._call("paused", self.airdrop.functions.paused())

    def get_available_tokens(self) -> int:
        return self._call("available tokens", self.airdrop.functions.getAvailableTokens())

    def has_claimed(self, address: str) -> bool:
        return self._call("claim status", self.airdrop.functions.hasClaimed(address))

    def is_eligible(self, address: str, proof: Sequence[str]) -> bool:
        args = [_hash_arg(p) for p in proof]
        return self._call("eligibility", self.airdrop.functions.isEligible(address, args))

    def blacklisted(self, address: str) -> bool:
        return self._call("blacklist status", self.token.functions.blacklisted(address))

    def token_info(self) -> TokenInfo:
        return TokenInfo(
            name=self._call("token name", self.token.functions.name()),
            symbol=self._call("token symbol", self.token.functions.symbol()),
            decimals=self._call("token decimals", self.token.functions.decimals()),
        )

    def _block_time(self, block_number: int) -> Optional[int]:
        if block_number not in self._block_times:
            try:
                self._block_times[block_number] = self.w3.eth.get_block(block_number)["timestamp"]
            except Exception as e:
                logger.warning("Could not get timestamp of block %s: %s", block_number, e)
                return None
        return self._block_times[block_number]

    def claim_events(self, address: Optional[str] = None) -> List[ClaimEvent]:
        filters = {"account": address} if address else None
        try:
            logs = self.airdrop.events.Claimed.get_logs(argument_filters=filters, from_block=self.from_block)
        except Exception as e:
            raise ChainError(f"Failed to read Claimed events: {e}") from e
        return [
            ClaimEvent(
                address=log["args"]["account"],
                amount=log["args"]["amount"],
                tx_hash="0x" + bytes(log["transactionHash"]).hex(),
                block_number=log["blockNumber"],
                timestamp=self._block_time(log["blockNumber"]),
            )
            for log in logs
        ]

    def update_merkle_root(self, root: str) -> TxReceipt:
        return self._transact("update merkle root", self.airdrop.functions.updateMerkleRoot(_hash_arg(root)))

    def claim(self, proof: Sequence[str]) -> TxReceipt:
        return self._transact("claim tokens", self.airdrop.functions.claim([_hash_arg(p) for p in proof]))

    def distribute_batch(self, addresses: Sequence[str], proofs: Sequence[Sequence[str]]) -> TxReceipt:
        args = [[_hash_arg(p) for p in pf] for pf in proofs]
        return self._transact("distribute tokens", self.airdrop.functions.distributeBatch(list(addresses), args))


class ChainRootSync:
    """Publishes Merkle roots to the airdrop contract.

    Each push waits at most ``timeout`` seconds. A push that times out keeps
    running on the worker thread; it is never retried from here.
    """

    def __init__(self, chain: AirdropChain, timeout: float = 120.0):
        self.chain = chain
        self.timeout = timeout
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="root-sync")

    def push(self, root: str) -> TxReceipt:
        try:
            future = self._executor.submit(self.chain.update_merkle_root, root)
            receipt = future.result(timeout=self.timeout)
        except concurrent.futures.TimeoutError as e:
            raise ChainSyncError(f"Merkle root update timed out after {self.timeout:g}s") from e
        except ChainSyncError:
            raise
        except Exception as e:
            raise ChainSyncError(f"Failed to update merkle root: {e}") from e

        if not receipt.succeeded:
            raise ChainSyncError(f"Merkle root update reverted in {receipt.tx_hash}")
        logger.info("Merkle root %s published in %s (block %s)", root, receipt.tx_hash, receipt.block_number)
        return receipt

    def chain_root(self) -> str:
        return self.chain.merkle_root()

    def close(self) -> None:
        self._executor.shutdown(wait=False)
