from typing import Optional


class WhitelistError(Exception):
    pass


class InvalidAddressFormat(WhitelistError, ValueError):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid address format: {address!r}")


class StorageError(WhitelistError):
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ChainError(WhitelistError):
    """A call to the airdrop or token contract failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ChainSyncError(ChainError):
    """Pushing a Merkle root on-chain failed (network error, revert or timeout)."""
