# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict


class Genesis(BaseModel):
    """Deployment parameters, applied once to an empty node."""
    owner: str                  # token deployer and staking administrator
    ref_wallet: str             # initial referral target
    # address -> amount in base units, paid out of the initial supply
    alloc: Dict[str, int] = Field(default_factory=dict)
    genesis_time: int = 0
