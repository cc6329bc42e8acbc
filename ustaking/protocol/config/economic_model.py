# MIT License
# Copyright (c) 2025 Hashborn

"""
uStaking Economic Model
Single source of truth for stake terms and payout arithmetic.

Every stake is pre-funded at creation: the ledger receives the principal
from the staker and mints the uplift (yield budget + cashback) to itself.
Cashback, yield and principal are later paid out of that balance, so the
outflow of a stake never exceeds principal * (1 + bonus).
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from ..types.common import StakeType
from .params import UNIT

BPS = 10_000                 # basis points denominator
RATE_PRECISION = 10**11      # fixed-point scale of the per-second reward rate
DAY_IN_SECONDS = 86_400
HOUR_IN_SECONDS = 3_600


@dataclass(frozen=True)
class StakeTerms:
    """Lock period, yield and floor for one stake type."""

    stake_type: int
    period_seconds: int     # lock duration == accrual duration
    yield_bps: int          # total yield over the period
    min_amount: int         # base units

    @property
    def reward_rate(self) -> int:
        """Yield per second per unit of principal, scaled by RATE_PRECISION (truncated)."""
        return self.yield_bps * RATE_PRECISION // (BPS * self.period_seconds)

    def total_reward(self, amount: int) -> int:
        return amount * self.yield_bps // BPS

    def accrued_reward(self, amount: int, elapsed: int) -> int:
        """
        Yield earned after `elapsed` seconds.

        Linear in elapsed time at the truncated rate, and snaps to the full
        budget once the period is over.
        """
        if elapsed <= 0:
            return 0
        budget = self.total_reward(amount)
        if elapsed >= self.period_seconds:
            return budget
        return min(budget, amount * elapsed * self.reward_rate // RATE_PRECISION)

    def unlocks_at(self, created_at: int) -> int:
        return created_at + self.period_seconds


@dataclass
class EconomicConfig:
    """Economic parameters for a network."""

    stake_terms: Dict[int, StakeTerms]
    cashback_bps: int           # one-off cashback on the principal
    referral_bps: int           # advertised referral share, informational only

    def terms_for(self, stake_type: int) -> Optional[StakeTerms]:
        if isinstance(stake_type, bool):
            return None
        return self.stake_terms.get(stake_type)

    def bonus_bps(self, stake_type: int) -> int:
        """Uplift minted on top of the principal at stake time."""
        return self.stake_terms[stake_type].yield_bps + self.cashback_bps

    def uplift(self, stake_type: int, amount: int) -> int:
        return amount * self.bonus_bps(stake_type) // BPS

    def cashback(self, amount: int) -> int:
        return amount * self.cashback_bps // BPS


def _terms(period_seconds: int) -> Dict[int, StakeTerms]:
    return {
        StakeType.HALF_YEAR: StakeTerms(StakeType.HALF_YEAR, period_seconds, 3_000, 10 * UNIT),
        StakeType.ONE_YEAR: StakeTerms(StakeType.ONE_YEAR, period_seconds * 365 // 180, 7_000, 25 * UNIT),
        StakeType.TWO_YEARS: StakeTerms(StakeType.TWO_YEARS, period_seconds * 730 // 180, 16_000, 50 * UNIT),
    }


# ═══════════════════════════════════════════════════════════════════════════
# DEVNET / MAINNET CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════
# Type 1: 180 days, 30%   Type 2: 365 days, 70%   Type 3: 730 days, 160%
MAINNET = EconomicConfig(
    stake_terms=_terms(180 * DAY_IN_SECONDS),
    cashback_bps=200,               # 2%
    referral_bps=2_500,             # 25%
)

DEVNET = MAINNET


# ═══════════════════════════════════════════════════════════════════════════
# TESTNET CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════
# Same yields, periods scaled from days to hours for demos
TESTNET = EconomicConfig(
    stake_terms=_terms(180 * HOUR_IN_SECONDS),
    cashback_bps=200,
    referral_bps=2_500,
)


ECONOMIC_CONFIGS: Dict[str, EconomicConfig] = {
    "devnet": DEVNET,
    "testnet": TESTNET,
    "mainnet": MAINNET,
}

ECONOMIC_CONFIG = ECONOMIC_CONFIGS[os.environ.get("USTAKING_NETWORK", "devnet")]
