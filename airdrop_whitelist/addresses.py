from typing import Iterable, List

from eth_utils import is_hex_address, to_checksum_address

from airdrop_whitelist.errors import InvalidAddressFormat


def normalize(addr: str) -> str:
    """Return the checksum-cased form of ``addr``.

    Accepts any casing and a missing ``0x`` prefix. Casing is discarded
    before validation, so an address with a wrong checksum still normalizes.
    """
    if not isinstance(addr, str):
        raise InvalidAddressFormat(addr)
    a = addr.strip().lower()
    if not a.startswith("0x"):
        a = "0x" + a
    if not is_hex_address(a):
        raise InvalidAddressFormat(addr)
    return to_checksum_address(a)


def normalize_all(addrs: Iterable[str]) -> List[str]:
    # fails on the first bad entry, nothing is returned partially
    return [normalize(a) for a in addrs]


def same_address(a: str, b: str) -> bool:
    return normalize(a) == normalize(b)
