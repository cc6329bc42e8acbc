# MIT License
# Copyright (c) 2025 Hashborn

from typing import Optional, Dict, Any
import json
import logging
import os
import threading
from ...protocol.config.economic_model import ECONOMIC_CONFIG, EconomicConfig
from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.crypto.addresses import address_from_pubkey
from ...protocol.crypto.keys import verify
from ...protocol.types.call import Call
from ...protocol.types.common import (
    CallType,
    InvalidArguments,
    InvalidNonce,
    InvalidSignature,
    ProtocolError,
    UnknownCall,
)
from ...protocol.types.genesis import Genesis
from ..observability import metrics
from ..storage.db import StorageDB
from .clock import SystemClock
from .staking import StakeLedger
from .token import TokenLedger, MINTER_ROLE

logger = logging.getLogger(__name__)


class StakingNode:
    """
    Authenticates signed calls and applies them to the token and staking ledgers.

    Both ledgers share `_lock`, so calls are applied one at a time in arrival
    order. A rejected call changes nothing, the sender's nonce included.
    """

    def __init__(self,
                 db_path: str,
                 owner: Optional[str] = None,
                 ref_wallet: Optional[str] = None,
                 alloc: Optional[Dict[str, int]] = None,
                 clock=None,
                 config: NetworkConfig = CURRENT_NETWORK,
                 economics: EconomicConfig = ECONOMIC_CONFIG):
        self.db = StorageDB(db_path)
        self._lock = threading.RLock()
        self.config = config
        self.clock = clock or SystemClock()

        # genesis.json next to the database is used when no owner is passed
        self.genesis_path = os.path.join(os.path.dirname(db_path), "genesis.json")

        stored = self.db.get_state("genesis")
        if stored:
            self.genesis = Genesis.model_validate_json(stored)
        else:
            self.genesis = self._read_genesis(owner, ref_wallet, alloc)

        self.token = TokenLedger(self.genesis.owner, config, self.db, lock=self._lock)
        self.staking = StakeLedger(
            self.token,
            self.genesis.owner,
            self.genesis.ref_wallet,
            clock=self.clock,
            economics=economics,
            db=self.db,
            lock=self._lock,
            label=config.staking_label,
        )

        if stored:
            logger.info(f"Node loaded (staking ledger {self.staking.address}, {self.staking.stake_count()} stakes)")
        else:
            self._apply_genesis()

    def _read_genesis(self, owner, ref_wallet, alloc) -> Genesis:
        if owner:
            return Genesis(
                owner=owner,
                ref_wallet=ref_wallet or owner,
                alloc=alloc or {},
                genesis_time=self.clock.now(),
            )
        if os.path.exists(self.genesis_path):
            with open(self.genesis_path, "r") as f:
                genesis = Genesis.model_validate(json.load(f))
            logger.info(f"Loaded genesis from {self.genesis_path}")
            return genesis
        raise ValueError(f"Empty node: pass an owner or provide {self.genesis_path}")

    def _apply_genesis(self):
        owner = self.genesis.owner
        with self._lock:
            for addr, amount in self.genesis.alloc.items():
                self.token.transfer(owner, addr, int(amount))
            # The staking ledger mints the uplift of every stake
            self.token.grant_role(owner, MINTER_ROLE, self.staking.address)
            self._persist()
        logger.info(
            f"Genesis applied: owner {owner}, staking ledger {self.staking.address}, "
            f"{len(self.genesis.alloc)} allocations"
        )

    def _persist(self):
        items = self.token.state_items()
        items.update(self.staking.state_items())
        items["genesis"] = self.genesis.model_dump_json()
        self.db.set_states(items)

    def close(self):
        self.db.close()

    # --- Queries ---

    def get_nonce(self, address: str) -> int:
        with self._lock:
            return self.token.get_account(address).nonce

    # --- Calls ---

    def apply_call(self, call: Call) -> Dict[str, Any]:
        """
        Verifies and applies a signed call. Raises ProtocolError on rejection.

        Returns:
            Call result (e.g. {"stake_id": 1} or {"paid": "20000000000000000000"})
        """
        with self._lock:
            try:
                self._verify(call)
                result = self._dispatch(call)
            except ProtocolError as e:
                metrics.record_rejection(call.call_type.value, getattr(e, "code", "PROTOCOL_ERROR"))
                logger.warning(f"Rejected {call.call_type.value} from {call.from_address}: {e}")
                raise

            sender = self.token.get_account(call.from_address)
            sender.nonce += 1
            self.token.set_account(sender)
            self._persist()

        metrics.record_call(call.call_type.value)
        return result

    def _verify(self, call: Call):
        if not call.signature or not call.pub_key:
            raise InvalidSignature("Missing signature or pub_key")

        try:
            pub_bytes = bytes.fromhex(call.pub_key)
            sig_bytes = bytes.fromhex(call.signature)
        except ValueError as e:
            raise InvalidSignature(f"Malformed key or signature: {e}")

        derived_addr = address_from_pubkey(pub_bytes, prefix=self.config.bech32_prefix_acc)
        if derived_addr != call.from_address:
            raise InvalidSignature(f"pub_key mismatch: derived {derived_addr}, expected {call.from_address}")

        if not verify(bytes.fromhex(call.hash()), sig_bytes, pub_bytes):
            raise InvalidSignature("Invalid signature")

        expected = self.token.get_account(call.from_address).nonce
        if call.nonce != expected:
            raise InvalidNonce(f"Invalid nonce: expected {expected}, got {call.nonce}")

    def _parse_args(self, call: Call) -> Dict[str, Any]:
        """Typed arguments of a call. Malformed input raises InvalidArguments / InvalidAddress."""
        prefix = self.config.bech32_prefix_acc
        call_type = call.call_type
        try:
            if call_type == CallType.STAKE:
                return {"stake_type": call.int_arg("stake_type"), "amount": call.int_arg("amount")}

            elif call_type in (CallType.CASH_BACK, CallType.CLAIM, CallType.WITHDRAW):
                return {"stake_id": call.int_arg("stake_id")}

            elif call_type == CallType.UPDATE_REF_WALLET:
                return {"ref_wallet": call.address_arg("ref_wallet", prefix)}

            elif call_type == CallType.APPROVE:
                return {"spender": call.address_arg("spender", prefix), "amount": call.int_arg("amount")}

            elif call_type == CallType.TRANSFER:
                return {"to": call.address_arg("to", prefix), "amount": call.int_arg("amount")}

            elif call_type == CallType.GRANT_ROLE:
                role = call.args["role"]
                if not isinstance(role, str):
                    raise TypeError(f"role must be a string, got {role!r}")
                return {"role": role, "account": call.address_arg("account", prefix)}

        except (KeyError, ValueError, TypeError) as e:
            raise InvalidArguments(f"Invalid arguments for {call_type.value}: {e}")

        raise UnknownCall(f"Unsupported call type: {call_type}")

    def _dispatch(self, call: Call) -> Dict[str, Any]:
        args = self._parse_args(call)
        sender = call.from_address
        call_type = call.call_type

        if call_type == CallType.STAKE:
            stake_id = self.staking.stake(sender, args["stake_type"], args["amount"])
            metrics.record_stake(args["stake_type"])
            return {"stake_id": stake_id}

        if call_type == CallType.CASH_BACK:
            paid = self.staking.cash_back(sender, args["stake_id"])
            metrics.record_payout("cashback", paid)
            return {"paid": str(paid)}

        if call_type == CallType.CLAIM:
            paid = self.staking.claim(sender, args["stake_id"])
            metrics.record_payout("yield", paid)
            return {"paid": str(paid)}

        if call_type == CallType.WITHDRAW:
            paid = self.staking.withdraw(sender, args["stake_id"])
            metrics.record_payout("principal", paid)
            return {"paid": str(paid)}

        if call_type == CallType.UPDATE_REF_WALLET:
            self.staking.update_referral_target(sender, args["ref_wallet"])
            return {"ref_wallet": self.staking.ref_wallet}

        if call_type == CallType.APPROVE:
            self.token.approve(sender, args["spender"], args["amount"])
        elif call_type == CallType.TRANSFER:
            self.token.transfer(sender, args["to"], args["amount"])
        elif call_type == CallType.GRANT_ROLE:
            self.token.grant_role(sender, args["role"], args["account"])
        return {}
