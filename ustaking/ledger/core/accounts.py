from pydantic import BaseModel, Field
from typing import Dict


class Account(BaseModel):
    address: str
    balance: int = 0
    nonce: int = 0      # signed calls applied by the node

    # spender -> remaining allowance
    allowances: Dict[str, int] = Field(default_factory=dict)
