import argparse
import json
import logging
import sys

from airdrop_whitelist.chain import ChainRootSync, Web3AirdropChain
from airdrop_whitelist.config import Settings
from airdrop_whitelist.distribution import claim, distribute
from airdrop_whitelist.eligibility import EligibilityResolver
from airdrop_whitelist.errors import WhitelistError
from airdrop_whitelist.storage import JsonFileStorage
from airdrop_whitelist.whitelist import WhitelistStore

logger = logging.getLogger(__name__)


class App:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.chain = Web3AirdropChain.from_settings(settings) if settings.chain_enabled else None
        root_sync = ChainRootSync(self.chain, timeout=settings.chain_timeout) if self.chain else None
        self.store = WhitelistStore(JsonFileStorage(settings.whitelist_path), root_sync)

    def require_chain(self):
        if self.chain is None:
            raise WhitelistError("RPC_URL is not set")
        return self.chain

    def resolver(self) -> EligibilityResolver:
        return EligibilityResolver(self.store, self.require_chain(), token_decimals=self.settings.token_decimals)


def solidity_proof(addr: str, proof) -> str:
    name = addr.replace("0x", "").upper()
    lines = [f"PROOF_{name} = new bytes32[]({len(proof)});"]
    for i, p in enumerate(proof):
        lines.append(f"PROOF_{name}[{i}] = {p};")
    return "\n".join(lines)


def cmd_list(app, args):
    addresses = app.store.get_all()
    return {"addresses": addresses, "merkleRoot": app.store.get_root(), "count": len(addresses)}


def cmd_root(app, args):
    return {"merkleRoot": app.store.get_root()}


def cmd_check(app, args):
    ok = app.store.is_whitelisted(args.address)
    return {"address": args.address, "isWhitelisted": ok, "proof": app.store.get_proof(args.address) if ok else None}


def cmd_add(app, args):
    return app.store.add(args.addresses).to_dict()


def cmd_remove(app, args):
    return app.store.remove(args.addresses).to_dict()


def cmd_sync(app, args):
    return app.store.sync_root(force=args.force).to_dict()


def cmd_eligibility(app, args):
    return app.resolver().resolve(args.address).to_dict()


def cmd_allocation(app, args):
    return app.resolver().allocation(args.address)


def cmd_progress(app, args):
    return app.resolver().distribution_progress()


def cmd_claims(app, args):
    events = app.resolver().claim_history(args.address)
    return {"address": args.address, "claims": events, "count": len(events)}


def cmd_distribute(app, args):
    r = distribute(app.store, app.require_chain(), args.addresses)
    return {"transactionHash": r.tx_hash, "blockNumber": r.block_number, "gasUsed": r.gas_used, "status": "success"}


def cmd_claim(app, args):
    r = claim(app.resolver(), args.address)
    return {"transactionHash": r.tx_hash, "blockNumber": r.block_number, "gasUsed": r.gas_used, "status": "success"}


def cmd_proofs(app, args):
    if args.solidity:
        for addr in app.store.get_all():
            print(f"// {addr}")
            print(solidity_proof(addr, app.store.get_proof(addr)))
        return None
    return {"merkleRoot": app.store.get_root(), "proofs": {a: app.store.get_proof(a) for a in app.store.get_all()}}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="airdrop-whitelist", description="Merkle whitelist for the token airdrop")
    ap.add_argument("--log-level", default="INFO")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("list", help="list whitelisted addresses")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("root", help="print the local merkle root")
    p.set_defaults(func=cmd_root)

    p = sub.add_parser("check", help="whitelist status and proof for an address")
    p.add_argument("address")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("add", help="add addresses and publish the new root")
    p.add_argument("addresses", nargs="+")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="remove addresses and publish the new root")
    p.add_argument("addresses", nargs="+")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("sync", help="publish the local root on-chain")
    p.add_argument("--force", action="store_true", help="push even if the chain root already matches")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("eligibility", help="claim eligibility for an address")
    p.add_argument("address")
    p.set_defaults(func=cmd_eligibility)

    p = sub.add_parser("allocation", help="token allocation for an address")
    p.add_argument("address")
    p.set_defaults(func=cmd_allocation)

    p = sub.add_parser("progress", help="overall distribution progress")
    p.set_defaults(func=cmd_progress)

    p = sub.add_parser("claims", help="Claimed events emitted for an address")
    p.add_argument("address")
    p.set_defaults(func=cmd_claims)

    p = sub.add_parser("distribute", help="distributeBatch to whitelisted addresses")
    p.add_argument("addresses", nargs="+")
    p.set_defaults(func=cmd_distribute)

    p = sub.add_parser("claim", help="claim tokens from the signer account")
    p.add_argument("address")
    p.set_defaults(func=cmd_claim)

    p = sub.add_parser("proofs", help="print every address with its proof")
    p.add_argument("--solidity", action="store_true", help="print bytes32[] literals for Solidity tests")
    p.set_defaults(func=cmd_proofs)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    try:
        app = App(Settings.from_env())
        out = args.func(app, args)
    except WhitelistError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    if out is not None:
        print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
