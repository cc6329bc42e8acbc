# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field


class StakeRecord(BaseModel):
    """A single deposit. Kept after withdrawal as a historical entry."""
    id: int = Field(frozen=True)                  # 1-based, unique across all owners
    owner: str = Field(frozen=True)
    stake_type: int = Field(frozen=True)
    principal_amount: int = Field(frozen=True)    # base units
    created_at: int = Field(frozen=True)          # unix seconds

    cash_back_claimed: bool = False
    withdrawn: bool = False
    accrued_claimed: int = 0                      # yield already paid via claim


class StakingMeta(BaseModel):
    """Process-wide staking state persisted next to the records."""
    address: str
    ref_wallet: str
    last_stake_id: int = 0
