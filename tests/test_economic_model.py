# MIT License
# Copyright (c) 2025 Hashborn

"""
Economic model tests

Stake terms, reward-rate truncation and accrual saturation, checked against
the reference payouts of a 1000 uSTK type-1 stake.
"""

import pytest
from ustaking.protocol.config.economic_model import (
    BPS,
    DAY_IN_SECONDS,
    DEVNET,
    RATE_PRECISION,
    TESTNET,
    StakeTerms,
)
from ustaking.protocol.config.params import UNIT, to_base_units, from_base_units
from ustaking.protocol.types.common import StakeType


def test_type_one_terms():
    terms = DEVNET.terms_for(1)
    assert terms.period_seconds == 180 * DAY_IN_SECONDS == 15_552_000
    assert terms.yield_bps == 3_000
    assert terms.min_amount == 10 * UNIT
    # 30% over 180 days, truncated to 1929e-11 per second
    assert terms.reward_rate == 1929


def test_longer_types_lock_longer():
    periods = [DEVNET.terms_for(t).period_seconds for t in StakeType]
    assert periods == [15_552_000, 31_536_000, 63_072_000]


def test_unknown_types_have_no_terms():
    assert DEVNET.terms_for(0) is None
    assert DEVNET.terms_for(4) is None
    assert DEVNET.terms_for(True) is None


def test_bonus_is_yield_plus_cashback():
    assert DEVNET.bonus_bps(1) == 3_200
    assert DEVNET.uplift(1, 1000 * UNIT) == 320 * UNIT
    assert DEVNET.cashback(1000 * UNIT) == 20 * UNIT


def test_accrual_reference_values():
    terms = DEVNET.terms_for(1)
    amount = 1000 * UNIT

    assert terms.accrued_reward(amount, 0) == 0
    assert terms.accrued_reward(amount, -5) == 0
    assert terms.accrued_reward(amount, 2) == 38_580_000_000_000
    assert terms.accrued_reward(amount, DAY_IN_SECONDS) == 1_666_656_000_000_000_000


def test_accrual_snaps_to_budget_at_period_end():
    terms = DEVNET.terms_for(1)
    amount = 1000 * UNIT
    budget = 300 * UNIT

    just_before = terms.accrued_reward(amount, terms.period_seconds - 1)
    assert just_before < budget
    assert terms.accrued_reward(amount, terms.period_seconds) == budget
    assert terms.accrued_reward(amount, 15_778_458) == budget
    assert terms.accrued_reward(amount, 10 * terms.period_seconds) == budget


def test_accrual_is_monotonic():
    terms = DEVNET.terms_for(2)
    amount = 123 * UNIT + 456
    samples = [terms.accrued_reward(amount, t) for t in range(0, terms.period_seconds + 1, 86_400 * 7)]
    assert samples == sorted(samples)
    assert samples[-1] <= terms.total_reward(amount)


def test_custom_terms_rate():
    terms = StakeTerms(stake_type=1, period_seconds=100, yield_bps=BPS, min_amount=1)
    assert terms.reward_rate == RATE_PRECISION // 100
    assert terms.accrued_reward(1000, 50) == 500
    assert terms.unlocks_at(1_000) == 1_100


def test_testnet_uses_hours():
    assert TESTNET.terms_for(1).period_seconds == 180 * 3_600
    assert TESTNET.terms_for(1).yield_bps == DEVNET.terms_for(1).yield_bps


def test_unit_conversion():
    assert to_base_units("1000") == 1000 * UNIT
    assert to_base_units("0.5") == UNIT // 2
    assert from_base_units(1320 * UNIT) == "1320"
    assert from_base_units(38_580_000_000_000) == "0.00003858"
    assert from_base_units(0) == "0"

    with pytest.raises(ValueError):
        to_base_units("-1")
    with pytest.raises(ValueError):
        to_base_units("abc")
    with pytest.raises(ValueError):
        to_base_units("0.0000000000000000001")


def test_profiles_share_minimums():
    for stake_type in StakeType:
        assert TESTNET.terms_for(stake_type).min_amount == DEVNET.terms_for(stake_type).min_amount
    assert [DEVNET.terms_for(t).min_amount for t in StakeType] == [10 * UNIT, 25 * UNIT, 50 * UNIT]
