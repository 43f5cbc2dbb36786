import logging
from typing import Sequence

from airdrop_whitelist.addresses import normalize_all
from airdrop_whitelist.chain import AirdropChain, TxReceipt
from airdrop_whitelist.eligibility import EligibilityResolver
from airdrop_whitelist.errors import ChainError, WhitelistError
from airdrop_whitelist.whitelist import WhitelistStore

logger = logging.getLogger(__name__)


def distribute(store: WhitelistStore, chain: AirdropChain, addresses: Sequence[str]) -> TxReceipt:
    """Send tokens to ``addresses`` via distributeBatch, using the store's proofs.

    Rejects the whole batch before sending anything if one address is not
    whitelisted. The proofs are against the local root; if the chain root
    lags behind, the contract will revert.
    """
    if not addresses:
        raise WhitelistError("No addresses provided")
    addrs = list(dict.fromkeys(normalize_all(addresses)))

    proofs = []
    missing = []
    for a in addrs:
        proof = store.get_proof(a)
        if proof is None:
            missing.append(a)
        else:
            proofs.append(proof)
    if missing:
        raise WhitelistError(f"Not whitelisted: {', '.join(missing)}")

    receipt = chain.distribute_batch(addrs, proofs)
    if not receipt.succeeded:
        raise ChainError(f"distributeBatch reverted in {receipt.tx_hash}")
    logger.info("Distributed to %d addresses in %s", len(addrs), receipt.tx_hash)
    return receipt


def claim(resolver: EligibilityResolver, address: str) -> TxReceipt:
    """Claim for ``address`` from the configured signer after a live eligibility check."""
    verdict = resolver.resolve(address)
    if not verdict.is_eligible:
        raise WhitelistError(f"{verdict.address} is not eligible: {verdict.reason}")

    receipt = resolver.chain.claim(verdict.proof)
    if not receipt.succeeded:
        raise ChainError(f"claim reverted in {receipt.tx_hash}")
    logger.info("Claimed for %s in %s", verdict.address, receipt.tx_hash)
    return receipt
