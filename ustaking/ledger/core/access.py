import logging
from ...protocol.crypto.addresses import is_zero_address
from ...protocol.types.common import Unauthorized, InvalidAddress

logger = logging.getLogger(__name__)


class OwnerGate:
    """Single-owner administrator check consumed by the staking ledger."""

    def __init__(self, owner: str):
        if is_zero_address(owner):
            raise InvalidAddress("owner is the zero address")
        self.owner = owner

    def is_administrator(self, principal: str) -> bool:
        return principal == self.owner

    def transfer_ownership(self, caller: str, new_owner: str):
        if not self.is_administrator(caller):
            raise Unauthorized("caller is not the owner")
        if is_zero_address(new_owner):
            raise InvalidAddress("new owner is the zero address")
        logger.info(f"Ownership transferred: {self.owner} -> {new_owner}")
        self.owner = new_owner
