# MIT License
# Copyright (c) 2025 Hashborn

"""
uStaking end-to-end scenario

One staker walks a type-1 stake through its whole life on a manual clock:
stake -> cashback -> early claim -> withdraw after the lock -> final claim.
Every payout is checked to the base unit, and the ledger must end up empty.
"""

import pytest
from ustaking.ledger.core.clock import ManualClock
from ustaking.ledger.core.staking import StakeLedger
from ustaking.ledger.core.token import TokenLedger, MINTER_ROLE
from ustaking.protocol.config.params import UNIT
from ustaking.protocol.crypto.addresses import address_from_pubkey
from ustaking.protocol.crypto.keys import generate_private_key, public_key_from_private
from ustaking.protocol.types.common import LockNotExpired


def new_address() -> str:
    return address_from_pubkey(public_key_from_private(generate_private_key()))


@pytest.fixture
def deployment():
    owner, user1, user2, ref_wallet = (new_address() for _ in range(4))
    clock = ManualClock(start=1_700_000_000)

    token = TokenLedger(owner)
    staking = StakeLedger(token, owner, ref_wallet, clock=clock)
    token.grant_role(owner, MINTER_ROLE, staking.address)

    return {
        "owner": owner,
        "user1": user1,
        "user2": user2,
        "ref_wallet": ref_wallet,
        "clock": clock,
        "token": token,
        "staking": staking,
    }


def test_full_stake_lifecycle(deployment):
    d = deployment
    token, staking, clock = d["token"], d["staking"], d["clock"]
    owner, user1, user2 = d["owner"], d["user1"], d["user2"]

    # ═══════════════════════════════════════════════════════════════
    # Token setup
    # ═══════════════════════════════════════════════════════════════
    assert token.name == "uStaking"
    assert token.symbol == "uSTK"
    assert token.total_supply == 79_000_000 * UNIT

    token.transfer(owner, user1, 2000 * UNIT)
    assert token.balance_of(user1) == 2000 * UNIT

    token.approve(user1, staking.address, 1000 * UNIT)
    assert token.allowance(user1, staking.address) == 1000 * UNIT

    # ═══════════════════════════════════════════════════════════════
    # Stake 1000 uSTK, type 1: ledger receives principal + 32%
    # ═══════════════════════════════════════════════════════════════
    user_before = token.balance_of(user1)
    ledger_before = token.balance_of(staking.address)

    stake_id = staking.stake(user1, 1, 1000 * UNIT)
    assert stake_id == 1

    assert token.balance_of(user1) - user_before == -1000 * UNIT
    assert token.balance_of(staking.address) - ledger_before == 1320 * UNIT
    assert token.allowance(user1, staking.address) == 0

    # ═══════════════════════════════════════════════════════════════
    # Cashback: 2% of principal
    # ═══════════════════════════════════════════════════════════════
    clock.increase_time(1)
    user_before = token.balance_of(user1)
    paid = staking.cash_back(user1, stake_id)
    assert paid == 20 * UNIT
    assert token.balance_of(user1) - user_before == 20 * UNIT

    # ═══════════════════════════════════════════════════════════════
    # Early claim: two seconds of yield
    # ═══════════════════════════════════════════════════════════════
    clock.increase_time(1)
    user_before = token.balance_of(user1)
    paid = staking.claim(user1, stake_id)
    assert paid == 38_580_000_000_000
    assert token.balance_of(user1) - user_before == 38_580_000_000_000

    # ═══════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════
    assert staking.has_stake(user1, stake_id)
    assert staking.stake_count_for(user1) == 1
    assert staking.stake_id_at(user1, 0) == 1
    assert staking.all_stake_ids_for(user1) == [1]

    records = staking.get_records(user1)
    assert len(records) == 1
    assert records[0].principal_amount == 1000 * UNIT
    assert records[0].stake_type == 1
    assert records[0].cash_back_claimed

    # ═══════════════════════════════════════════════════════════════
    # Referral wallet update by the administrator
    # ═══════════════════════════════════════════════════════════════
    staking.update_referral_target(owner, user2)
    assert staking.ref_wallet == user2

    # ═══════════════════════════════════════════════════════════════
    # Withdraw after the lock, then the final claim
    # ═══════════════════════════════════════════════════════════════
    with pytest.raises(LockNotExpired):
        staking.withdraw(user1, stake_id)

    clock.increase_time(15_778_458)

    user_before = token.balance_of(user1)
    paid = staking.withdraw(user1, stake_id)
    assert paid == 1000 * UNIT
    assert token.balance_of(user1) - user_before == 1000 * UNIT

    user_before = token.balance_of(user1)
    paid = staking.claim(user1, stake_id)
    assert paid == 299_999_961_420_000_000_000
    assert token.balance_of(user1) - user_before == 299_999_961_420_000_000_000

    # Nothing left to pay, and nothing left in the ledger
    assert staking.claim(user1, stake_id) == 0
    assert staking.pending_rewards(stake_id) == 0
    assert token.balance_of(staking.address) == 0

    # Staker ends with 2000 + 20 + 300
    assert token.balance_of(user1) == 2320 * UNIT
