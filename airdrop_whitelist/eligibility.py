"""
Claim eligibility.

Local whitelist membership only decides whether a proof can be served. The
verdict itself always comes from live contract state, since the chain root
can lag behind the local one.
"""
import concurrent.futures
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from airdrop_whitelist.addresses import normalize
from airdrop_whitelist.chain import AirdropChain, TokenInfo, get_airdrop_parameters, total_claimed
from airdrop_whitelist.errors import ChainError
from airdrop_whitelist.whitelist import WhitelistStore

logger = logging.getLogger(__name__)

REASON_NOT_WHITELISTED = "not whitelisted"
REASON_ALREADY_CLAIMED = "already claimed"
REASON_BLACKLISTED = "blacklisted"
REASON_UNKNOWN = "unknown"


def format_amount(raw: int, decimals: int) -> str:
    return str(raw // (10 ** decimals))


def format_end_time(end_time: int) -> str:
    return datetime.fromtimestamp(end_time, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


@dataclass
class EligibilityVerdict:
    address: str
    is_whitelisted: bool
    has_claimed: bool
    is_blacklisted: bool
    is_eligible: bool
    proof: Optional[List[str]]
    amount_per_address: str
    end_time: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "isWhitelisted": self.is_whitelisted,
            "hasClaimed": self.has_claimed,
            "isBlacklisted": self.is_blacklisted,
            "isEligible": self.is_eligible,
            "proof": self.proof,
            "amountPerAddress": self.amount_per_address,
            "endTime": self.end_time,
            "reason": self.reason,
        }


def ineligibility_reason(is_whitelisted: bool, has_claimed: bool, is_blacklisted: bool) -> str:
    if not is_whitelisted:
        return REASON_NOT_WHITELISTED
    if has_claimed:
        return REASON_ALREADY_CLAIMED
    if is_blacklisted:
        return REASON_BLACKLISTED
    return REASON_UNKNOWN


class EligibilityResolver:
    def __init__(
        self,
        store: WhitelistStore,
        chain: AirdropChain,
        token_decimals: Optional[int] = None,
        max_workers: int = 5,
    ):
        self.store = store
        self.chain = chain
        self._token: Optional[TokenInfo] = None
        self._decimals = token_decimals
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="eligibility")

    @property
    def token_decimals(self) -> int:
        if self._decimals is None:
            self._decimals = self.token().decimals
        return self._decimals

    def token(self) -> TokenInfo:
        if self._token is None:
            try:
                self._token = self.chain.token_info()
            except ChainError:
                raise
            except Exception as e:
                raise ChainError(f"Failed to get token info: {e}") from e
        return self._token

    def _gather(self, **calls) -> Dict[str, Any]:
        futures = {name: self._executor.submit(fn, *args) for name, (fn, *args) in calls.items()}
        try:
            return {name: f.result() for name, f in futures.items()}
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"Failed to check eligibility: {e}") from e

    def resolve(self, address: str) -> EligibilityVerdict:
        addr = normalize(address)
        _, proof = self.store.lookup(addr)
        if proof is None:
            return EligibilityVerdict(
                address=addr,
                is_whitelisted=False,
                has_claimed=False,
                is_blacklisted=False,
                is_eligible=False,
                proof=None,
                amount_per_address="0",
                end_time="",
                reason=REASON_NOT_WHITELISTED,
            )

        r = self._gather(
            has_claimed=(self.chain.has_claimed, addr),
            is_blacklisted=(self.chain.blacklisted, addr),
            on_chain_whitelisted=(self.chain.is_eligible, addr, proof),
            amount=(self.chain.amount_per_address,),
            end_time=(self.chain.end_time,),
        )

        is_eligible = r["on_chain_whitelisted"] and not r["has_claimed"] and not r["is_blacklisted"]
        reason = None
        if not is_eligible:
            reason = ineligibility_reason(r["on_chain_whitelisted"], r["has_claimed"], r["is_blacklisted"])
            logger.info("%s is not eligible: %s", addr, reason)

        return EligibilityVerdict(
            address=addr,
            is_whitelisted=r["on_chain_whitelisted"],
            has_claimed=r["has_claimed"],
            is_blacklisted=r["is_blacklisted"],
            is_eligible=is_eligible,
            proof=proof,
            amount_per_address=format_amount(r["amount"], self.token_decimals),
            end_time=format_end_time(r["end_time"]),
            reason=reason,
        )

    def allocation(self, address: str) -> Dict[str, Any]:
        addr = normalize(address)
        _, proof = self.store.lookup(addr)
        if proof is None:
            return {"address": addr, "isWhitelisted": False, "allocation": "0", "message": "Address is not whitelisted"}

        r = self._gather(
            amount=(self.chain.amount_per_address,),
            has_claimed=(self.chain.has_claimed, addr),
            end_time=(self.chain.end_time,),
        )
        return {
            "address": addr,
            "isWhitelisted": True,
            "allocation": format_amount(r["amount"], self.token_decimals),
            "rawAllocation": str(r["amount"]),
            "hasClaimed": r["has_claimed"],
            "endTime": format_end_time(r["end_time"]),
            "proof": proof,
        }

    def claim_history(self, address: str) -> List[Dict[str, Any]]:
        addr = normalize(address)
        try:
            events = self.chain.claim_events(addr)
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"Failed to get claim events: {e}") from e
        return [
            {
                "address": e.address,
                "amount": format_amount(e.amount, self.token_decimals),
                "rawAmount": str(e.amount),
                "timestamp": format_end_time(e.timestamp) if e.timestamp is not None else None,
                "transactionHash": e.tx_hash,
                "blockNumber": e.block_number,
            }
            for e in events
        ]

    def distribution_progress(self) -> Dict[str, Any]:
        try:
            params = get_airdrop_parameters(self.chain)
            claimed = total_claimed(self.chain)
            token = self.token()
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"Failed to get airdrop info: {e}") from e

        total_whitelisted = len(self.store.get_all())
        total_allocated = params.amount_per_address * total_whitelisted
        percentage = f"{claimed / total_allocated * 100:.2f}" if total_allocated > 0 else "0"
        now = int(time.time())
        return {
            "tokenName": token.name,
            "tokenSymbol": token.symbol,
            "tokenDecimals": self.token_decimals,
            "totalWhitelisted": total_whitelisted,
            "amountPerAddress": format_amount(params.amount_per_address, self.token_decimals),
            "rawAmountPerAddress": str(params.amount_per_address),
            "totalAllocated": format_amount(total_allocated, self.token_decimals),
            "rawTotalAllocated": str(total_allocated),
            "totalClaimed": format_amount(claimed, self.token_decimals),
            "rawTotalClaimed": str(claimed),
            "claimPercentage": percentage,
            "contractBalance": format_amount(params.available_tokens, self.token_decimals),
            "rawContractBalance": str(params.available_tokens),
            "isPaused": params.paused,
            "merkleRoot": params.merkle_root,
            "rootInSync": params.merkle_root.lower() == self.store.get_root().lower(),
            "endTime": format_end_time(params.end_time),
            "remainingTime": max(params.end_time - now, 0),
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False)
