# MIT License
# Copyright (c) 2025 Hashborn

import json
import logging
import threading
from typing import Dict, Optional, Set, List
from .accounts import Account
from ..storage.db import StorageDB
from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.crypto.addresses import is_zero_address
from ...protocol.types.common import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    MaxSupplyExceeded,
    Unauthorized,
)

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "DEFAULT_ADMIN_ROLE"
MINTER_ROLE = "MINTER_ROLE"


def _check_amount(amount: int):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmount(f"invalid amount: {amount!r}")


class TokenLedger:
    """
    Fungible token ledger (uStaking / uSTK).

    Balances and allowances live in `Account` records cached in memory and
    written to the StorageDB on `persist()`. The deployer receives the
    initial supply and DEFAULT_ADMIN_ROLE; only MINTER_ROLE holders can mint.

    `lock` is shared with every ledger that moves tokens, so all mutations
    are applied in a single order.
    """

    def __init__(self, owner: str, config: NetworkConfig = CURRENT_NETWORK,
                 db: Optional[StorageDB] = None, lock: Optional[threading.RLock] = None):
        self.config = config
        self.db = db
        self.lock = lock if lock is not None else threading.RLock()

        self.name = config.token_name
        self.symbol = config.token_symbol
        self.decimals = config.decimals
        self.max_supply = config.max_supply

        # Cache for modified/accessed accounts: address -> Account
        self._accounts: Dict[str, Account] = {}
        self._roles: Dict[str, Set[str]] = {}
        self.total_supply = 0

        if not self._load_meta():
            if is_zero_address(owner):
                raise InvalidAddress("token owner is the zero address")
            self._roles[DEFAULT_ADMIN_ROLE] = {owner}
            self._mint(owner, config.initial_supply)
            logger.info(f"Token {self.symbol} deployed, {config.initial_supply} minted to {owner}")

    # --- State access ---

    def _load_meta(self) -> bool:
        if not self.db:
            return False
        raw = self.db.get_state("token:meta")
        if not raw:
            return False
        meta = json.loads(raw)
        self.total_supply = int(meta["total_supply"])
        self._roles = {role: set(members) for role, members in meta["roles"].items()}
        return True

    def get_account(self, address: str) -> Account:
        if address in self._accounts:
            return self._accounts[address]

        if self.db:
            raw_json = self.db.get_state(f"acc:{address}")
            if raw_json:
                acc = Account.model_validate_json(raw_json)
                self._accounts[address] = acc
                return acc

        # Return generic new account
        return Account(address=address)

    def set_account(self, account: Account):
        """Updates account in local cache."""
        self._accounts[account.address] = account

    def state_items(self) -> Dict[str, str]:
        """Serialized token state, keyed as stored."""
        items = {f"acc:{addr}": acc.model_dump_json() for addr, acc in self._accounts.items()}
        items["token:meta"] = json.dumps({
            "total_supply": str(self.total_supply),
            "roles": {role: sorted(members) for role, members in self._roles.items()},
        })
        return items

    def persist(self):
        """Writes cached accounts and token metadata to DB."""
        if self.db:
            with self.lock:
                self.db.set_states(self.state_items())

    # --- Queries ---

    def balance_of(self, address: str) -> int:
        with self.lock:
            return self.get_account(address).balance

    def allowance(self, owner: str, spender: str) -> int:
        with self.lock:
            return self.get_account(owner).allowances.get(spender, 0)

    def has_role(self, role: str, account: str) -> bool:
        with self.lock:
            return account in self._roles.get(role, set())

    def role_members(self, role: str) -> List[str]:
        with self.lock:
            return sorted(self._roles.get(role, set()))

    def can_mint(self, minter: str, amount: int) -> bool:
        with self.lock:
            return (self.has_role(MINTER_ROLE, minter)
                    and self.total_supply + amount <= self.max_supply)

    def ensure_can_mint(self, minter: str, amount: int):
        """Raises Unauthorized / MaxSupplyExceeded if `mint` by `minter` would fail."""
        with self.lock:
            if not self.has_role(MINTER_ROLE, minter):
                raise Unauthorized(f"{minter} is missing {MINTER_ROLE}")
            if self.total_supply + amount > self.max_supply:
                raise MaxSupplyExceeded(
                    f"Minting {amount} exceeds max supply {self.max_supply} (supply {self.total_supply})"
                )

    # --- Capability surface used by the staking ledger ---

    def debit(self, principal: str, amount: int):
        _check_amount(amount)
        with self.lock:
            acc = self.get_account(principal)
            if acc.balance < amount:
                raise InsufficientBalance(f"Insufficient balance: have {acc.balance}, need {amount}")
            acc.balance -= amount
            self.set_account(acc)

    def credit(self, principal: str, amount: int):
        _check_amount(amount)
        with self.lock:
            acc = self.get_account(principal)
            acc.balance += amount
            self.set_account(acc)

    def spend_allowance(self, owner: str, spender: str, amount: int):
        _check_amount(amount)
        with self.lock:
            acc = self.get_account(owner)
            current = acc.allowances.get(spender, 0)
            if current < amount:
                raise InsufficientAllowance(f"Insufficient allowance: have {current}, need {amount}")
            acc.allowances[spender] = current - amount
            self.set_account(acc)

    # --- ERC20 operations ---

    def approve(self, owner: str, spender: str, amount: int):
        _check_amount(amount)
        if is_zero_address(spender):
            raise InvalidAddress("approve to the zero address")
        with self.lock:
            acc = self.get_account(owner)
            acc.allowances[spender] = amount
            self.set_account(acc)
        logger.debug(f"{owner} approved {spender} for {amount}")

    def transfer(self, sender: str, to: str, amount: int):
        _check_amount(amount)
        if is_zero_address(to):
            raise InvalidAddress("transfer to the zero address")
        with self.lock:
            self.debit(sender, amount)
            self.credit(to, amount)
        logger.debug(f"Transfer {amount} {sender} -> {to}")

    def transfer_from(self, spender: str, owner: str, to: str, amount: int):
        _check_amount(amount)
        if is_zero_address(to):
            raise InvalidAddress("transfer to the zero address")
        with self.lock:
            if self.allowance(owner, spender) < amount:
                raise InsufficientAllowance(
                    f"Insufficient allowance: have {self.allowance(owner, spender)}, need {amount}"
                )
            if self.balance_of(owner) < amount:
                raise InsufficientBalance(
                    f"Insufficient balance: have {self.balance_of(owner)}, need {amount}"
                )
            self.spend_allowance(owner, spender, amount)
            self.debit(owner, amount)
            self.credit(to, amount)

    def mint(self, caller: str, to: str, amount: int):
        _check_amount(amount)
        if is_zero_address(to):
            raise InvalidAddress("mint to the zero address")
        with self.lock:
            self.ensure_can_mint(caller, amount)
            self._mint(to, amount)

    def _mint(self, to: str, amount: int):
        if self.total_supply + amount > self.max_supply:
            raise MaxSupplyExceeded(
                f"Minting {amount} exceeds max supply {self.max_supply} (supply {self.total_supply})"
            )
        self.credit(to, amount)
        self.total_supply += amount

    def burn(self, holder: str, amount: int):
        _check_amount(amount)
        with self.lock:
            self.debit(holder, amount)
            self.total_supply -= amount

    # --- Roles ---

    def grant_role(self, caller: str, role: str, account: str):
        if is_zero_address(account):
            raise InvalidAddress("grant to the zero address")
        with self.lock:
            if not self.has_role(DEFAULT_ADMIN_ROLE, caller):
                raise Unauthorized(f"{caller} is missing {DEFAULT_ADMIN_ROLE}")
            self._roles.setdefault(role, set()).add(account)
        logger.info(f"Granted {role} to {account}")

    def revoke_role(self, caller: str, role: str, account: str):
        with self.lock:
            if not self.has_role(DEFAULT_ADMIN_ROLE, caller):
                raise Unauthorized(f"{caller} is missing {DEFAULT_ADMIN_ROLE}")
            self._roles.get(role, set()).discard(account)
        logger.info(f"Revoked {role} from {account}")
