# MIT License
# Copyright (c) 2025 Hashborn

"""
Stake ledger.

Owns every stake record and the referral slot. Tokens never leave the token
ledger: a stake pulls the principal into the ledger's own account and mints
the uplift next to it; cashback, yield and principal are later paid from that
account.

The token is only reached through its capability surface: `balance_of`,
`allowance`, `debit`, `credit` for balances, and `spend_allowance`,
`ensure_can_mint`, `mint` to fund a new stake.

Every mutator validates all of its preconditions before touching any state,
and runs under the ledger lock, so a rejected call leaves nothing behind.
The node passes the token's lock in, so token and stake mutations share
one order.
"""

import logging
import threading
from typing import Dict, List, Optional
from .access import OwnerGate
from .clock import SystemClock
from ..storage.db import StorageDB
from ...protocol.config.economic_model import ECONOMIC_CONFIG, EconomicConfig, StakeTerms
from ...protocol.config.params import CURRENT_NETWORK
from ...protocol.crypto.addresses import contract_address, is_zero_address
from ...protocol.types.common import (
    AlreadyClaimed,
    AlreadyWithdrawn,
    BelowMinimumStake,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidStakeId,
    InvalidStakeType,
    LockNotExpired,
    Unauthorized,
)
from ...protocol.types.stake import StakeRecord, StakingMeta

logger = logging.getLogger(__name__)


class StakeLedger:
    def __init__(self,
                 token,
                 owner: str,
                 ref_wallet: str,
                 clock=None,
                 auth=None,
                 economics: EconomicConfig = ECONOMIC_CONFIG,
                 address: Optional[str] = None,
                 db: Optional[StorageDB] = None,
                 lock: Optional[threading.RLock] = None,
                 label: str = CURRENT_NETWORK.staking_label):
        """
        Args:
            token: Token ledger the stakes are denominated in (capability surface only)
            owner: Deployer; administrator unless `auth` is given
            ref_wallet: Initial referral payout target
            clock: Object with `now() -> int` (default: SystemClock)
            auth: Object with `is_administrator(principal) -> bool` (default: OwnerGate(owner))
            economics: Stake terms and rates
            address: Ledger account on the token (default: derived from owner and label)
            db: Optional state store; existing state is loaded from it
            lock: Lock serializing mutations; pass the token's lock to share it
            label: Seed of the default ledger address
        """
        self.token = token
        self.clock = clock or SystemClock()
        self.auth = auth or OwnerGate(owner)
        self.economics = economics
        self.db = db
        self._lock = lock if lock is not None else threading.RLock()

        self._stakes: Dict[int, StakeRecord] = {}
        self._owner_stakes: Dict[str, List[int]] = {}

        meta = self._load() if db else None
        if meta is None:
            if is_zero_address(ref_wallet):
                raise InvalidAddress("referral wallet is the zero address")
            meta = StakingMeta(
                address=address or contract_address(owner, label),
                ref_wallet=ref_wallet,
            )
        self._meta = meta

    # --- Persistence ---

    def _load(self) -> Optional[StakingMeta]:
        raw = self.db.get_state("staking:meta")
        if not raw:
            return None
        meta = StakingMeta.model_validate_json(raw)
        records = [StakeRecord.model_validate_json(v)
                   for v in self.db.get_state_by_prefix("stake:").values()]
        for record in sorted(records, key=lambda r: r.id):
            self._index(record)
        logger.info(f"Loaded {len(records)} stakes (last id {meta.last_stake_id})")
        return meta

    def _index(self, record: StakeRecord):
        self._stakes[record.id] = record
        self._owner_stakes.setdefault(record.owner, []).append(record.id)

    def state_items(self) -> Dict[str, str]:
        items = {f"stake:{sid}": rec.model_dump_json() for sid, rec in self._stakes.items()}
        items["staking:meta"] = self._meta.model_dump_json()
        return items

    def persist(self):
        if self.db:
            with self._lock:
                self.db.set_states(self.state_items())

    # --- Properties ---

    @property
    def address(self) -> str:
        return self._meta.address

    @property
    def ref_wallet(self) -> str:
        return self._meta.ref_wallet

    @property
    def last_stake_id(self) -> int:
        return self._meta.last_stake_id

    # --- Helpers ---

    def _terms(self, stake_type: int) -> StakeTerms:
        terms = self.economics.terms_for(stake_type)
        if terms is None:
            raise InvalidStakeType(f"invalid stake type: {stake_type!r}")
        return terms

    def _owned_stake(self, caller: str, stake_id: int) -> StakeRecord:
        # Foreign ids are reported exactly like missing ones
        record = self._stakes.get(stake_id)
        if record is None or record.owner != caller:
            raise InvalidStakeId(f"invalid stake id: {stake_id!r}")
        return record

    def _pay(self, to: str, amount: int):
        if amount > 0:
            self.token.debit(self.address, amount)
            self.token.credit(to, amount)

    def _ensure_funds(self, amount: int):
        balance = self.token.balance_of(self.address)
        if balance < amount:
            raise InsufficientBalance(f"Ledger balance {balance} cannot cover {amount}")

    # --- Mutators ---

    def stake(self, caller: str, stake_type: int, amount: int) -> int:
        """Locks `amount` under `stake_type`. Returns the new stake id."""
        with self._lock:
            terms = self._terms(stake_type)
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < terms.min_amount:
                raise BelowMinimumStake(
                    f"stake type {stake_type} requires at least {terms.min_amount}, got {amount!r}"
                )

            allowance = self.token.allowance(caller, self.address)
            if allowance < amount:
                raise InsufficientAllowance(f"Insufficient allowance: have {allowance}, need {amount}")
            balance = self.token.balance_of(caller)
            if balance < amount:
                raise InsufficientBalance(f"Insufficient balance: have {balance}, need {amount}")

            uplift = self.economics.uplift(stake_type, amount)
            self.token.ensure_can_mint(self.address, uplift)

            self.token.spend_allowance(caller, self.address, amount)
            self.token.debit(caller, amount)
            self.token.credit(self.address, amount)
            self.token.mint(self.address, self.address, uplift)

            stake_id = self._meta.last_stake_id + 1
            record = StakeRecord(
                id=stake_id,
                owner=caller,
                stake_type=int(stake_type),
                principal_amount=amount,
                created_at=self.clock.now(),
            )
            self._meta.last_stake_id = stake_id
            self._index(record)

        logger.info(f"Stake #{stake_id}: {caller} locked {amount} (type {stake_type}, uplift {uplift})")
        return stake_id

    def cash_back(self, caller: str, stake_id: int) -> int:
        """Pays the one-off cashback of a stake. Returns the amount paid."""
        with self._lock:
            record = self._owned_stake(caller, stake_id)
            if record.cash_back_claimed:
                raise AlreadyClaimed(f"cashback of stake {stake_id} already claimed")

            amount = self.economics.cashback(record.principal_amount)
            self._ensure_funds(amount)
            self._pay(caller, amount)
            record.cash_back_claimed = True

        logger.info(f"Cashback #{stake_id}: {amount} to {caller}")
        return amount

    def claim(self, caller: str, stake_id: int) -> int:
        """Pays the yield accrued since the last claim. Returns the amount paid (0 at saturation)."""
        with self._lock:
            record = self._owned_stake(caller, stake_id)
            accrued = self._accrued(record)
            amount = accrued - record.accrued_claimed
            if amount <= 0:
                return 0

            self._ensure_funds(amount)
            self._pay(caller, amount)
            record.accrued_claimed = accrued

        logger.info(f"Claim #{stake_id}: {amount} to {caller} (total {accrued})")
        return amount

    def withdraw(self, caller: str, stake_id: int) -> int:
        """Returns the principal once the lock has expired. Yield is claimed separately."""
        with self._lock:
            record = self._owned_stake(caller, stake_id)
            unlocks_at = self._terms(record.stake_type).unlocks_at(record.created_at)
            now = self.clock.now()
            if now < unlocks_at:
                raise LockNotExpired(f"stake {stake_id} unlocks at {unlocks_at}, now {now}")
            if record.withdrawn:
                raise AlreadyWithdrawn(f"stake {stake_id} already withdrawn")

            amount = record.principal_amount
            self._ensure_funds(amount)
            self._pay(caller, amount)
            record.withdrawn = True

        logger.info(f"Withdraw #{stake_id}: {amount} to {caller}")
        return amount

    def update_referral_target(self, caller: str, new_wallet: str):
        with self._lock:
            if not self.auth.is_administrator(caller):
                raise Unauthorized(f"{caller} is not the administrator")
            if is_zero_address(new_wallet):
                raise InvalidAddress("referral wallet is the zero address")
            old = self._meta.ref_wallet
            self._meta.ref_wallet = new_wallet

        logger.info(f"Referral wallet updated: {old} -> {new_wallet}")

    # --- Queries (never raise for missing data) ---

    def _accrued(self, record: StakeRecord) -> int:
        terms = self._terms(record.stake_type)
        return terms.accrued_reward(record.principal_amount, self.clock.now() - record.created_at)

    def pending_rewards(self, stake_id: int) -> int:
        with self._lock:
            record = self._stakes.get(stake_id)
            if record is None:
                return 0
            return max(0, self._accrued(record) - record.accrued_claimed)

    def stake_count_for(self, principal: str) -> int:
        with self._lock:
            return len(self._owner_stakes.get(principal, []))

    def stake_id_at(self, principal: str, index: int) -> int:
        """Id of the principal's `index`-th stake in creation order, 0 if out of range."""
        with self._lock:
            ids = self._owner_stakes.get(principal, [])
            if index < 0 or index >= len(ids):
                return 0
            return ids[index]

    def all_stake_ids_for(self, principal: str) -> List[int]:
        with self._lock:
            return list(self._owner_stakes.get(principal, []))

    def has_stake(self, principal: str, stake_id: int) -> bool:
        with self._lock:
            record = self._stakes.get(stake_id)
            return record is not None and record.owner == principal

    def get_records(self, principal: str) -> List[StakeRecord]:
        with self._lock:
            return [self._stakes[sid].model_copy() for sid in self._owner_stakes.get(principal, [])]

    def get_stake(self, stake_id: int) -> Optional[StakeRecord]:
        with self._lock:
            record = self._stakes.get(stake_id)
            return record.model_copy() if record else None

    def unlocks_at(self, stake_id: int) -> int:
        with self._lock:
            record = self._stakes.get(stake_id)
            if record is None:
                return 0
            return self._terms(record.stake_type).unlocks_at(record.created_at)

    def total_staked(self) -> int:
        """Principal still locked in the ledger."""
        with self._lock:
            return sum(r.principal_amount for r in self._stakes.values() if not r.withdrawn)

    def stake_count(self) -> int:
        with self._lock:
            return len(self._stakes)
